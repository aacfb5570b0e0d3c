"""Resource identity helpers.

Every indexed resource is identified by a URI string. Real files use the
``file`` scheme; anything else (virtual documents, symbol-only identities)
keeps its own scheme and is never treated as a filesystem path.
"""

from pathlib import Path
from urllib.parse import unquote, urlparse

FILE_SCHEME = "file"


def path_to_uri(path: Path | str) -> str:
    """Build a ``file://`` URI for a filesystem path.

    Args:
        path: Absolute or relative filesystem path.

    Returns:
        URI string for the absolute path.
    """
    return Path(path).absolute().as_uri()


def uri_scheme(uri: str) -> str:
    """Return the scheme of a URI, treating bare paths as files."""
    scheme = urlparse(uri).scheme
    # Windows drive letters parse as a one-letter scheme
    if not scheme or len(scheme) == 1:
        return FILE_SCHEME
    return scheme


def is_file_uri(uri: str) -> bool:
    """Check whether a URI points at a real file."""
    return uri_scheme(uri) == FILE_SCHEME


def uri_to_path(uri: str) -> Path | None:
    """Convert a ``file`` URI (or bare path) back to a Path.

    Args:
        uri: URI string or plain filesystem path.

    Returns:
        Filesystem path, or None for non-file schemes.
    """
    if not is_file_uri(uri):
        return None
    parsed = urlparse(uri)
    if parsed.scheme == FILE_SCHEME:
        return Path(unquote(parsed.path))
    return Path(uri)

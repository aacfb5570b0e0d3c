"""Glob-based exclusion filter shared by every provider and the text matcher."""

from collections.abc import Iterable, Sequence
from pathlib import Path

import pathspec
import structlog

from everywhere.core.uris import uri_to_path

logger = structlog.get_logger()

DEFAULT_EXCLUSIONS: tuple[str, ...] = (
    # Version control
    "**/.git/**",
    "**/.svn/**",
    "**/.hg/**",
    # Build output
    "**/bin/**",
    "**/build/**",
    "**/dist/**",
    "**/target/**",
    "**/out/**",
    # Packages
    "**/node_modules/**",
    "**/packages/**",
    "**/vendor/**",
    # IDE state
    "**/.idea/**",
    "**/.vs/**",
    "**/.vscode/**",
    # Binaries
    "**/*.pyc",
    "**/*.class",
    "**/*.o",
    "**/*.obj",
    "**/*.exe",
    "**/*.dll",
    "**/*.so",
    "**/*.dylib",
    # Temporary and backup files
    "**/*.tmp",
    "**/*.bak",
    "**/*~",
    "**/.DS_Store",
    # Archives and documents
    "**/*.zip",
    "**/*.tar",
    "**/*.gz",
    "**/*.rar",
    "**/*.7z",
    "**/*.jar",
    "**/*.war",
    "**/*.ear",
    "**/*.iso",
    "**/*.pdf",
    "**/*.docx",
    "**/*.xlsx",
    # Media
    "**/*.jpg",
    "**/*.jpeg",
    "**/*.png",
    "**/*.gif",
    "**/*.svg",
    "**/*.ico",
    "**/*.mp3",
    "**/*.mp4",
    "**/*.wav",
    "**/*.avi",
    # Logs
    "**/*.log",
)


def _literal(pattern: str) -> str:
    """Lower-case a pattern and make leading ``!``/``#`` literal characters."""
    lowered = pattern.strip().lower()
    if lowered.startswith(("!", "#")):
        return "\\" + lowered
    return lowered


class ExclusionFilter:
    """Decides whether a resource is left out of indexing.

    Patterns use gitignore-style glob semantics: ``**`` spans directories,
    ``*`` stays within one path segment, dotfiles are matched like any other
    name, and a pattern without a ``/`` matches the basename at any depth.
    Matching is case-insensitive. Paths are tested relative to the workspace
    root that contains them.

    Attributes:
        patterns: Default patterns followed by user-supplied ones.
        roots: Workspace roots used to relativize paths.
    """

    def __init__(
        self,
        user_patterns: Iterable[str] = (),
        roots: Sequence[Path] = (),
    ) -> None:
        """Initialize exclusion filter.

        Args:
            user_patterns: Extra patterns appended after the defaults.
            roots: Workspace roots used to compute relative paths.
        """
        user = [p for p in user_patterns if p and p.strip()]
        self._patterns: list[str] = [*DEFAULT_EXCLUSIONS, *user]
        self._roots = [Path(root).absolute() for root in roots]
        self._spec = pathspec.GitIgnoreSpec.from_lines(
            [_literal(p) for p in self._patterns]
        )
        logger.debug(
            "exclusions_loaded",
            default=len(DEFAULT_EXCLUSIONS),
            user=len(user),
            total=len(self._patterns),
        )

    @property
    def patterns(self) -> list[str]:
        """Ordered pattern list (defaults first, then user patterns)."""
        return list(self._patterns)

    @property
    def roots(self) -> list[Path]:
        """Workspace roots used for relativizing paths."""
        return list(self._roots)

    def relative_path(self, path: Path) -> str:
        """Path relative to the first containing root, in POSIX form.

        Args:
            path: Filesystem path.

        Returns:
            Root-relative path, or the path itself without a leading slash
            when no root contains it.
        """
        absolute = Path(path).absolute()
        for root in self._roots:
            if absolute.is_relative_to(root):
                return absolute.relative_to(root).as_posix()
        return absolute.as_posix().lstrip("/")

    def should_exclude(self, target: str | Path) -> bool:
        """Check a URI or path against the exclusion patterns.

        Non-file URIs are never excluded.

        Args:
            target: ``file://`` URI, other URI, or filesystem path.

        Returns:
            True if the resource must be left out.
        """
        if isinstance(target, Path):
            path: Path | None = target
        else:
            path = uri_to_path(target)
        if path is None:
            return False

        relative = self.relative_path(path)
        if not relative:
            return False
        excluded = self._spec.match_file(relative.lower())
        if excluded:
            logger.debug("path_excluded", path=relative)
        return excluded

    def should_exclude_dir(self, path: Path) -> bool:
        """Check whether a directory's contents are all excluded.

        Used to prune directory walks early; a directory is pruned when a
        hypothetical child of it would be excluded by a directory pattern.
        """
        relative = self.relative_path(path)
        if not relative:
            return False
        return self._spec.match_file(f"{relative.lower()}/")

"""File provider: every non-excluded file under the workspace roots."""

import asyncio
from functools import partial
from pathlib import Path

import structlog

from everywhere.core.types import FileSearchItem, SearchItem
from everywhere.core.uris import path_to_uri
from everywhere.events.types import DomainEvent, EventType
from everywhere.providers.base import BaseProvider

logger = structlog.get_logger()

BATCH_SIZE = 1000

_FILE_ICONS: dict[str, str] = {
    "js": "file-code",
    "jsx": "file-code",
    "ts": "file-code",
    "tsx": "file-code",
    "json": "file-json",
    "md": "markdown",
    "html": "html",
    "htm": "html",
    "css": "file-css",
    "scss": "file-css",
    "sass": "file-css",
    "less": "file-css",
    "xml": "file-xml",
    "py": "python",
    "cs": "c-sharp",
    "java": "java",
    "c": "file-code",
    "cpp": "file-code",
    "h": "file-code",
    "hpp": "file-code",
    "php": "file-code",
    "go": "file-code",
    "rb": "ruby",
    "rs": "file-code",
    "sh": "terminal",
    "bash": "terminal",
    "yaml": "file-yaml",
    "yml": "file-yaml",
    "toml": "file-text",
    "sql": "file-text",
    "ps1": "terminal-powershell",
    "gitignore": "git",
    "gitattributes": "git",
}

_REFRESH_EVENTS = frozenset(
    {EventType.FILE_CREATED, EventType.FILE_DELETED, EventType.FILE_RENAMED}
)


def file_icon(filename: str) -> str:
    """Icon hint for a file name, keyed by its extension."""
    extension = filename.rsplit(".", 1)[-1].lower()
    return _FILE_ICONS.get(extension, "file")


class FileProvider(BaseProvider):
    """Indexes files of every workspace root.

    Refreshes as soon as a file is created, deleted or renamed.
    """

    name = "files"
    topic = "files"

    async def collect(self) -> list[SearchItem]:
        roots = self._workspace.roots
        if not roots:
            logger.info("no_workspace_roots", provider=self.name)
            return []

        items: list[SearchItem] = []
        for root in roots:
            files = await self._workspace.find_files(root, self._exclusions)
            logger.debug("files_found", root=str(root), count=len(files))

            for start in range(0, len(files), BATCH_SIZE):
                for path in files[start : start + BATCH_SIZE]:
                    try:
                        if self._exclusions.should_exclude(path):
                            continue
                        items.append(self._to_item(path, root))
                    except Exception as e:
                        logger.warning("file_item_failed", path=str(path), error=str(e))
                await asyncio.sleep(0)
        return items

    def _to_item(self, path: Path, root: Path) -> FileSearchItem:
        uri = path_to_uri(path)
        if path.is_relative_to(root):
            relative = path.relative_to(root).as_posix()
        else:
            relative = self._workspace.relative_path(uri)
        return FileSearchItem(
            id=f"file:{uri}",
            label=path.name,
            description=relative,
            detail=str(path),
            uri=uri,
            relative_path=relative,
            icon=file_icon(path.name),
            action=partial(self._workspace.open_location, uri),
        )

    async def handle_event(self, event: DomainEvent) -> None:
        if event.type in _REFRESH_EVENTS:
            self._spawn(self.refresh())

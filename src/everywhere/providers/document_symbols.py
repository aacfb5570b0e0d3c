"""Document symbol provider: per-file symbol scans.

Complements the workspace symbol provider with symbols the host's global
index leaves out, at the cost of asking for each document separately.
"""

import asyncio
from pathlib import Path

import structlog

from everywhere.core.debouncer import Debouncer
from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.types import SearchItem, SymbolSearchItem
from everywhere.core.uris import path_to_uri, uri_to_path
from everywhere.events.types import DomainEvent, EventType
from everywhere.host.workspace import DocumentSymbol, Workspace
from everywhere.providers.base import BaseProvider
from everywhere.providers.symbols import build_symbol_item

logger = structlog.get_logger()

INDEXED_EXTENSIONS = frozenset(
    {
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".py",
        ".java",
        ".c",
        ".cpp",
        ".cs",
        ".go",
        ".rb",
        ".php",
        ".rust",
        ".swift",
    }
)

# Saved documents of these types are rescanned even though a full refresh
# does not visit them
UPDATE_EXTENSIONS = INDEXED_EXTENSIONS | {
    ".html",
    ".css",
    ".scss",
    ".sass",
    ".less",
    ".json",
    ".yaml",
    ".yml",
    ".toml",
    ".xml",
}

MAX_FILES = 300
BATCH_SIZE = 20


def _has_extension(path: Path, extensions: frozenset[str]) -> bool:
    return path.suffix.lower() in extensions


class DocumentSymbolProvider(BaseProvider):
    """Indexes the symbol trees of source files one document at a time.

    A full refresh visits at most ``MAX_FILES`` source files. Saving a
    document replaces that document's symbols in place.
    """

    name = "docSymbols"
    topic = "*"

    def __init__(
        self,
        workspace: Workspace,
        exclusions: ExclusionFilter,
        debounce_ms: int = 3000,
    ) -> None:
        super().__init__(workspace, exclusions)
        self._debouncer = Debouncer(debounce_ms, name="document_symbols")

    async def collect(self) -> list[SearchItem]:
        sources: list[Path] = []
        for root in self._workspace.roots:
            files = await self._workspace.find_files(root, self._exclusions)
            sources.extend(path for path in files if _has_extension(path, INDEXED_EXTENSIONS))

        if len(sources) > MAX_FILES:
            logger.info("document_symbol_files_capped", found=len(sources), cap=MAX_FILES)
        sources = sources[:MAX_FILES]

        items: list[SearchItem] = []
        for start in range(0, len(sources), BATCH_SIZE):
            for path in sources[start : start + BATCH_SIZE]:
                uri = path_to_uri(path)
                if self._exclusions.should_exclude(uri):
                    continue
                try:
                    symbols = await self._workspace.document_symbols(uri)
                except Exception as e:
                    logger.warning("document_symbols_failed", uri=uri, error=str(e))
                    continue
                items.extend(self._convert(symbols, uri))
            await asyncio.sleep(0)
        return items

    def _convert(
        self,
        symbols: list[DocumentSymbol],
        uri: str,
        container: str | None = None,
    ) -> list[SymbolSearchItem]:
        items: list[SymbolSearchItem] = []
        for symbol in symbols:
            items.append(
                build_symbol_item(
                    self._workspace,
                    symbol.name,
                    symbol.kind,
                    uri,
                    symbol.range,
                    container=container,
                    reveal_range=symbol.selection_range,
                )
            )
            if symbol.children:
                items.extend(self._convert(symbol.children, uri, symbol.name))
        return items

    async def update_document(self, uri: str) -> None:
        """Replace the cached symbols of one document with a fresh scan.

        Args:
            uri: Saved document.
        """
        path = uri_to_path(uri)
        if path is None or not _has_extension(path, UPDATE_EXTENSIONS):
            return
        if self._exclusions.should_exclude(uri):
            return

        try:
            symbols = await self._workspace.document_symbols(uri)
        except Exception as e:
            logger.warning("document_symbols_failed", uri=uri, error=str(e))
            symbols = []

        fresh = self._convert(symbols, uri)
        self._items = [
            item for item in self._items if getattr(item, "uri", None) != uri
        ] + fresh
        logger.debug("document_symbols_updated", uri=uri, symbols=len(fresh))

    def schedule_refresh(self) -> None:
        """Run a full refresh after the debounce window."""
        self._debouncer.debounce(self.refresh)

    async def handle_event(self, event: DomainEvent) -> None:
        if event.type is EventType.DOCUMENT_SAVED and event.uri is not None:
            await self.update_document(event.uri)
        elif event.type is EventType.WORKSPACE_FOLDERS_CHANGED:
            self._debouncer.clear()
            self._spawn(self.refresh())

    async def close(self) -> None:
        await self._debouncer.aclose()
        await super().close()

"""Workspace implementation backed by the local filesystem."""

import asyncio
import inspect
import os
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import structlog

from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.types import Range
from everywhere.core.uris import path_to_uri, uri_to_path
from everywhere.events.bus import EventBus
from everywhere.events.types import DomainEvent, EventType
from everywhere.host.extractors import extract_symbols, supports
from everywhere.host.workspace import (
    DocumentSymbol,
    SymbolInformation,
    UnknownCommandError,
    Workspace,
)

logger = structlog.get_logger()

CommandHandler = Callable[..., Any]

MAX_FILE_BYTES = 1_000_000
LISTING_TTL_SECONDS = 2.0


def _flatten(
    symbols: list[DocumentSymbol],
    uri: str,
    container: str | None = None,
) -> list[SymbolInformation]:
    flat: list[SymbolInformation] = []
    for symbol in symbols:
        flat.append(
            SymbolInformation(
                name=symbol.name,
                kind=symbol.kind,
                container_name=container,
                uri=uri,
                range=symbol.range,
            )
        )
        flat.extend(_flatten(symbol.children, uri, symbol.name))
    return flat


class LocalWorkspace(Workspace):
    """Serves files, symbols and actions from directories on local disk.

    Workspace symbol queries are answered from a per-file cache keyed by
    modification time. Like the symbol index of a real editor host, each
    answer is capped, so broad queries return an incomplete listing.

    Attributes:
        roots: Absolute workspace root directories.
        active_uri: Resource most recently opened through ``open_location``.
    """

    def __init__(
        self,
        roots: Sequence[Path],
        event_bus: EventBus | None = None,
        symbol_query_limit: int = 500,
        exclusions: ExclusionFilter | None = None,
    ) -> None:
        """Initialize local workspace.

        Args:
            roots: Workspace root directories.
            event_bus: Bus receiving editor and workspace notifications.
            symbol_query_limit: Maximum symbols returned per query.
            exclusions: Filter applied when building the symbol cache.
        """
        self._roots = [Path(root).absolute() for root in roots]
        self._bus = event_bus
        self._symbol_query_limit = symbol_query_limit
        self._exclusions = exclusions or ExclusionFilter(roots=self._roots)
        self._commands: dict[str, CommandHandler] = {}
        self._symbol_cache: dict[Path, tuple[float, list[SymbolInformation]]] = {}
        self._listing: list[Path] = []
        self._listing_at: float | None = None
        self._active_uri: str | None = None

    @property
    def roots(self) -> list[Path]:
        """Absolute workspace root directories."""
        return list(self._roots)

    @property
    def active_uri(self) -> str | None:
        """Resource most recently opened."""
        return self._active_uri

    @property
    def exclusions(self) -> ExclusionFilter:
        """Filter applied when listing files for the symbol cache."""
        return self._exclusions

    def set_exclusions(self, exclusions: ExclusionFilter) -> None:
        """Replace the filter; the next symbol query relists the roots.

        Args:
            exclusions: New exclusion filter.
        """
        self._exclusions = exclusions
        self._listing_at = None
        logger.info("workspace_exclusions_changed", patterns=len(exclusions.patterns))

    async def set_roots(self, roots: Sequence[Path]) -> None:
        """Replace the workspace roots and announce the change.

        Args:
            roots: New root directories.
        """
        self._roots = [Path(root).absolute() for root in roots]
        self._exclusions = ExclusionFilter(self._exclusions.patterns, self._roots)
        self._symbol_cache.clear()
        self._listing_at = None
        logger.info("workspace_roots_changed", roots=[str(r) for r in self._roots])
        await self._publish(DomainEvent.create(EventType.WORKSPACE_FOLDERS_CHANGED))

    async def find_files(self, root: Path, exclusions: ExclusionFilter) -> list[Path]:
        """List files under a root, pruning excluded directories.

        Args:
            root: Directory to walk.
            exclusions: Filter deciding which files and directories to skip.

        Returns:
            Kept files, in walk order.
        """
        return await asyncio.to_thread(self._walk, Path(root), exclusions)

    @staticmethod
    def _walk(root: Path, exclusions: ExclusionFilter) -> list[Path]:
        if not root.is_dir():
            logger.warning("workspace_root_missing", root=str(root))
            return []

        files: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                name for name in dirnames if not exclusions.should_exclude_dir(current / name)
            )
            for filename in sorted(filenames):
                path = current / filename
                if not exclusions.should_exclude(path):
                    files.append(path)
        return files

    async def read_text(self, path: Path) -> str:
        """Read a file as UTF-8 text, replacing undecodable bytes.

        Raises:
            ValueError: If the file exceeds the readable size limit.
            OSError: If the file cannot be read.
        """
        return await asyncio.to_thread(self._read, Path(path))

    @staticmethod
    def _read(path: Path) -> str:
        size = path.stat().st_size
        if size > MAX_FILE_BYTES:
            raise ValueError(f"File too large to read: {path} ({size} bytes)")
        return path.read_text(encoding="utf-8", errors="replace")

    async def document_symbols(self, uri: str) -> list[DocumentSymbol]:
        """Extract the symbol tree of a local file.

        Raises:
            SyntaxError: If a Python source cannot be parsed.
        """
        path = uri_to_path(uri)
        if path is None or not supports(path):
            return []
        text = await self.read_text(path)
        return extract_symbols(path, text)

    async def workspace_symbols(self, query: str) -> list[SymbolInformation]:
        """Answer a symbol query with a case-insensitive name prefix match.

        ``*`` characters in the query are ignored, so ``"a*"`` lists the
        symbols starting with ``a`` and ``"*"`` lists everything.

        Args:
            query: Symbol name prefix, optionally with ``*`` wildcards.

        Returns:
            At most ``symbol_query_limit`` matching symbols.
        """
        prefix = query.replace("*", "").lower()
        results: list[SymbolInformation] = []
        for symbol in await self._all_symbols():
            if symbol.name.lower().startswith(prefix):
                results.append(symbol)
                if len(results) >= self._symbol_query_limit:
                    break
        return results

    async def _all_symbols(self) -> list[SymbolInformation]:
        symbols: list[SymbolInformation] = []
        for path in await self._source_files():
            try:
                mtime = path.stat().st_mtime
            except OSError:
                self._symbol_cache.pop(path, None)
                continue

            cached = self._symbol_cache.get(path)
            if cached is None or cached[0] != mtime:
                try:
                    tree = await self.document_symbols(path_to_uri(path))
                except (OSError, ValueError, SyntaxError) as e:
                    logger.debug("symbol_extraction_failed", path=str(path), error=str(e))
                    tree = []
                cached = (mtime, _flatten(tree, path_to_uri(path)))
                self._symbol_cache[path] = cached
            symbols.extend(cached[1])
        return symbols

    async def _source_files(self) -> list[Path]:
        now = time.monotonic()
        if self._listing_at is None or now - self._listing_at > LISTING_TTL_SECONDS:
            listing: list[Path] = []
            for root in self._roots:
                listing.extend(
                    path for path in await self.find_files(root, self._exclusions) if supports(path)
                )
            self._listing = listing
            self._listing_at = now
        return self._listing

    def register_command(self, command_id: str, handler: CommandHandler) -> None:
        """Register an action under an identifier.

        Args:
            command_id: Action identifier.
            handler: Plain or coroutine function invoked with the action args.
        """
        self._commands[command_id] = handler

    async def list_commands(self) -> list[str]:
        """List registered action identifiers in sorted order."""
        return sorted(self._commands)

    async def execute_command(self, command_id: str, *args: Any) -> Any:
        """Invoke a registered action.

        Raises:
            UnknownCommandError: If no action is registered under the id.
        """
        handler = self._commands.get(command_id)
        if handler is None:
            raise UnknownCommandError(command_id)

        logger.info("command_executed", command=command_id)
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def open_location(self, uri: str, range: Range | None = None) -> None:
        """Mark a resource as the active editor and announce it."""
        self._active_uri = uri
        logger.info(
            "location_opened",
            uri=uri,
            line=range.start.line if range is not None else None,
        )
        await self._publish(DomainEvent.create(EventType.ACTIVE_EDITOR_CHANGED, uri=uri))

    async def _publish(self, event: DomainEvent) -> None:
        if self._bus is not None:
            await self._bus.publish(event)

"""Workspace symbol provider: symbols from the host's global index."""

import string
from functools import partial

import structlog

from everywhere.core.debouncer import Debouncer
from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.symbols import (
    item_type_for,
    kind_group,
    kind_icon,
    kind_priority,
    symbol_description,
    symbol_id,
)
from everywhere.core.types import Range, SearchItem, SymbolKind, SymbolSearchItem
from everywhere.core.uris import uri_to_path
from everywhere.events.types import DomainEvent, EventType
from everywhere.host.workspace import SymbolInformation, Workspace
from everywhere.providers.base import BaseProvider

logger = structlog.get_logger()

# The host answers a blank query with an incomplete listing, so the index
# is completed with one query per leading character.
BUCKET_QUERIES: tuple[str, ...] = (
    "*",
    *(f"{letter}*" for letter in string.ascii_lowercase),
    "_*",
    "$*",
)

SIGNIFICANT_CHANGE_CHARS = 50


def build_symbol_item(
    workspace: Workspace,
    name: str,
    kind: SymbolKind,
    uri: str,
    symbol_range: Range,
    container: str | None = None,
    reveal_range: Range | None = None,
) -> SymbolSearchItem:
    """Convert a host symbol into a search item.

    Args:
        workspace: Host used by the item's action.
        name: Symbol name.
        kind: Symbol kind.
        uri: Document containing the symbol.
        symbol_range: Location identifying the symbol.
        container: Enclosing symbol name, shown in the description.
        reveal_range: Span to reveal on selection; defaults to ``symbol_range``.

    Returns:
        Symbol item, typed CLASS for class-like kinds.
    """
    path = uri_to_path(uri)
    return SymbolSearchItem(
        id=symbol_id(name, uri, symbol_range),
        label=name,
        description=symbol_description(kind, container),
        detail=str(path) if path is not None else uri,
        type=item_type_for(kind),
        uri=uri,
        range=symbol_range,
        symbol_kind=kind,
        symbol_group=kind_group(kind),
        priority=kind_priority(kind),
        icon=kind_icon(kind),
        action=partial(workspace.open_location, uri, reveal_range or symbol_range),
    )


class WorkspaceSymbolProvider(BaseProvider):
    """Indexes symbols reported by the host's workspace symbol query.

    Saves, closes and significant edits schedule a debounced refresh; a
    change of workspace folders refreshes at once.
    """

    name = "symbols"
    topic = "*"

    def __init__(
        self,
        workspace: Workspace,
        exclusions: ExclusionFilter,
        debounce_ms: int = 2000,
    ) -> None:
        super().__init__(workspace, exclusions)
        self._debouncer = Debouncer(debounce_ms, name="workspace_symbols")

    async def collect(self) -> list[SearchItem]:
        symbols: dict[str, SymbolInformation] = {}
        for query in ("", *BUCKET_QUERIES):
            for symbol in await self._workspace.workspace_symbols(query):
                symbols.setdefault(symbol_id(symbol.name, symbol.uri, symbol.range), symbol)

        kept = [s for s in symbols.values() if not self._exclusions.should_exclude(s.uri)]
        logger.debug("workspace_symbols_found", total=len(symbols), kept=len(kept))

        return [
            build_symbol_item(
                self._workspace,
                symbol.name,
                symbol.kind,
                symbol.uri,
                symbol.range,
                container=symbol.container_name,
            )
            for symbol in kept
        ]

    def schedule_refresh(self) -> None:
        """Refresh once the workspace has been quiet for the debounce window."""
        logger.debug("symbol_refresh_scheduled", provider=self.name)
        self._debouncer.debounce(self.refresh)

    async def handle_event(self, event: DomainEvent) -> None:
        if event.type in (EventType.DOCUMENT_SAVED, EventType.DOCUMENT_CLOSED):
            self.schedule_refresh()
        elif event.type is EventType.DOCUMENT_CHANGED:
            if event.change_size > SIGNIFICANT_CHANGE_CHARS:
                self.schedule_refresh()
        elif event.type is EventType.WORKSPACE_FOLDERS_CHANGED:
            self._debouncer.clear()
            self._spawn(self.refresh())

    async def close(self) -> None:
        await self._debouncer.aclose()
        await super().close()

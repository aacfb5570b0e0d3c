"""Aggregation and ranking engine.

The service owns the deduplicated union of every provider's snapshot and
answers ranked queries over it: text matches and fuzzy matches are merged,
recently used files and symbols are boosted, and the result is ordered by
score with item priority breaking near-ties.
"""

import asyncio
import time
from collections.abc import Callable, Iterable, Sequence
from functools import cmp_to_key

import structlog
from pydantic import BaseModel

from everywhere.config import Settings
from everywhere.core.debouncer import Debouncer
from everywhere.core.errors import ActionFailedError, ItemNotFoundError
from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.types import (
    CommandSearchItem,
    FileSearchItem,
    ScoredItem,
    SearchItem,
    SearchItemType,
    SymbolSearchItem,
)
from everywhere.events.bus import EventBus
from everywhere.events.subscriber import start_listener, stop_listener
from everywhere.events.types import DomainEvent, EventType
from everywhere.host.workspace import Workspace
from everywhere.providers.base import BaseProvider
from everywhere.providers.commands import CommandProvider
from everywhere.providers.document_symbols import DocumentSymbolProvider
from everywhere.providers.files import FileProvider
from everywhere.providers.symbols import WorkspaceSymbolProvider
from everywhere.providers.text import TEXT_MATCH_SCORE, TextSearchProvider
from everywhere.search.base import FuzzySearcher
from everywhere.search.factory import all_searchers, create_searcher, library_names
from everywhere.search.schemas import CATEGORY_TYPES, FilterCategory

logger = structlog.get_logger()

Clock = Callable[[], float]

ONE_HOUR_SECONDS = 3600.0
SCORE_BAND = 0.1
SYMBOL_BOOST_FACTOR = 0.5
RECENCY_CAPACITY = 20
BENCHMARK_RUNS = 5
BENCHMARK_LIMIT = 100

PROVIDER_ORDER: tuple[str, ...] = ("files", "symbols", "docSymbols", "commands")

_INDEXING_SETTINGS = ("include_files", "include_symbols", "include_commands", "include_text")


class RecencyTracker:
    """Bounded map of resource URI to last access time.

    When a new entry pushes the map over capacity, the entry with the
    oldest timestamp is evicted.
    """

    def __init__(self, capacity: int = RECENCY_CAPACITY) -> None:
        self._capacity = capacity
        self._entries: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uri: object) -> bool:
        return uri in self._entries

    def record(self, uri: str, timestamp: float) -> None:
        """Record an access, evicting the oldest entry on overflow."""
        self._entries[uri] = timestamp
        if len(self._entries) > self._capacity:
            oldest = min(self._entries, key=self._entries.__getitem__)
            del self._entries[oldest]
            logger.debug("recency_evicted", uri=oldest)

    def get(self, uri: str) -> float | None:
        """Last access time of a resource, if tracked."""
        return self._entries.get(uri)

    def clear(self) -> None:
        """Forget every recorded access."""
        self._entries.clear()


class IndexStats(BaseModel):
    """Aggregated index summary.

    Attributes:
        items: Items in the aggregated index.
        providers: Snapshot size per registered provider.
        by_type: Aggregated items per item type.
        recent: Resources currently tracked for the recency boost.
        fuzzy_library: Scorer in use.
        fuzzy_libraries: Scorers that can be selected.
        text_enabled: Whether content search is active.
    """

    items: int
    providers: dict[str, int]
    by_type: dict[str, int]
    recent: int
    fuzzy_library: str
    fuzzy_libraries: list[str]
    text_enabled: bool


def _normalized_label(label: str) -> str:
    return label.removesuffix("()")


def dedup_key(item: SearchItem) -> str:
    """Identity under which overlapping items from different sources collapse.

    Symbols collapse by name and start position in their document, files by
    URI and actions by action id. Other items fall back to their type, label
    and id with its leading segment dropped.
    """
    label = _normalized_label(item.label)
    if isinstance(item, SymbolSearchItem):
        start = item.range.start
        return f"{item.type.value}:{label}:{item.uri}:{start.line}:{start.character}"
    if isinstance(item, FileSearchItem):
        return f"file:{item.uri}"
    if isinstance(item, CommandSearchItem):
        return f"command:{item.command}"
    _, _, rest = item.id.partition(":")
    return f"{item.type.value}:{label}:{rest}"


def deduplicate(items: Iterable[SearchItem]) -> list[SearchItem]:
    """Drop items whose dedup key was already seen, keeping the first."""
    unique: dict[str, SearchItem] = {}
    for item in items:
        unique.setdefault(dedup_key(item), item)
    return list(unique.values())


def compare_results(a: ScoredItem, b: ScoredItem) -> int:
    """Order two results: clearly different scores first, then priority.

    Scores within ``SCORE_BAND`` of each other are treated as a tie.
    """
    if a.score is not None and b.score is not None and abs(a.score - b.score) > SCORE_BAND:
        return -1 if a.score > b.score else 1
    return b.item.effective_priority - a.item.effective_priority


def sort_results(results: Iterable[ScoredItem]) -> list[ScoredItem]:
    """Stable sort by ``compare_results``."""
    return sorted(results, key=cmp_to_key(compare_results))


def recency_factor(age_seconds: float) -> float:
    """1 for a resource used just now, falling linearly to 0 at one hour."""
    return max(0.0, 1.0 - age_seconds / ONE_HOUR_SECONDS)


def apply_recency_boost(
    results: Sequence[ScoredItem],
    recency: RecencyTracker,
    weight: float,
    now: float,
) -> list[ScoredItem]:
    """Scale the scores of recently used files and symbols.

    Files get ``score * (1 + factor * weight)``; symbols and classes use
    half the weight. Unscored results and resources with no recorded
    access are returned as they are.

    Args:
        results: Ranked records.
        recency: Last access times.
        weight: Boost strength, 0 to 1.
        now: Current time in seconds.

    Returns:
        New records, in the same order.
    """
    boosted: list[ScoredItem] = []
    for result in results:
        item = result.item
        if result.score is None:
            boosted.append(result)
            continue

        if isinstance(item, FileSearchItem):
            item_weight = weight
        elif isinstance(item, SymbolSearchItem):
            item_weight = weight * SYMBOL_BOOST_FACTOR
        else:
            boosted.append(result)
            continue

        accessed = recency.get(item.uri)
        if accessed is None:
            boosted.append(result)
            continue

        factor = recency_factor(now - accessed)
        boosted.append(ScoredItem(item=item, score=result.score * (1 + factor * item_weight)))
    return boosted


def filter_category(results: Iterable[ScoredItem], category: FilterCategory) -> list[ScoredItem]:
    """Keep the results belonging to a category."""
    if category is FilterCategory.ALL:
        return list(results)
    types = CATEGORY_TYPES[category]
    return [result for result in results if result.item.type in types]


class SearchService:
    """Maintains the aggregated index and answers ranked searches.

    Providers are registered according to the ``include_*`` settings and
    each keeps its own snapshot current. Saving or closing a document
    schedules an incremental rebuild of the aggregate; saving a document
    or switching the active editor records the resource as recently used.

    Attributes:
        settings: Active configuration.
        workspace: Host capability surface.
    """

    def __init__(
        self,
        settings: Settings,
        workspace: Workspace,
        event_bus: EventBus,
        clock: Clock = time.time,
    ) -> None:
        """Initialize search service.

        Args:
            settings: Active configuration.
            workspace: Host capability surface.
            event_bus: Bus delivering change notifications.
            clock: Source of the current time in seconds.
        """
        self._settings = settings
        self._workspace = workspace
        self._bus = event_bus
        self._clock = clock
        self._exclusions = ExclusionFilter(settings.exclusions, workspace.roots)
        workspace.set_exclusions(self._exclusions)
        self._searcher: FuzzySearcher = create_searcher(settings.fuzzy_library)
        self._providers: dict[str, BaseProvider] = {}
        self._text: TextSearchProvider | None = None
        self._items: list[SearchItem] = []
        self._recency = RecencyTracker()
        self._activity_debouncer = Debouncer(settings.activity_debounce_ms, name="activity")
        self._index_debouncer = Debouncer(settings.index_update_debounce_ms, name="index_update")
        self._listener: asyncio.Task[None] | None = None
        self._last_results: dict[str, SearchItem] = {}
        self._started = False

    @property
    def settings(self) -> Settings:
        """Active configuration."""
        return self._settings

    @property
    def workspace(self) -> Workspace:
        """Host capability surface."""
        return self._workspace

    @property
    def exclusions(self) -> ExclusionFilter:
        """Exclusion filter currently applied to every source."""
        return self._exclusions

    @property
    def items(self) -> list[SearchItem]:
        """Copy of the aggregated index."""
        return list(self._items)

    @property
    def recency(self) -> RecencyTracker:
        """Recently used resources."""
        return self._recency

    @property
    def searcher(self) -> FuzzySearcher:
        """Scorer in use."""
        return self._searcher

    @property
    def provider_names(self) -> list[str]:
        """Names of the registered providers, in merge order."""
        return list(self._providers)

    @property
    def text_provider(self) -> TextSearchProvider | None:
        """Content matcher, when text search is enabled."""
        return self._text

    def provider(self, name: str) -> BaseProvider | None:
        """Registered provider by name."""
        return self._providers.get(name)

    async def start(self) -> None:
        """Register providers and start listening for change notifications."""
        if self._started:
            return
        self._started = True
        await self._sync_providers()
        self._listener = await start_listener(
            self._bus,
            self.handle_event,
            topic="*",
            name="search_service",
        )
        logger.info("search_service_started", providers=self.provider_names)

    async def close(self) -> None:
        """Stop listeners, pending debounced work and every provider."""
        await stop_listener(self._listener)
        self._listener = None
        await self._activity_debouncer.aclose()
        await self._index_debouncer.aclose()
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()
        if self._text is not None:
            await self._text.close()
            self._text = None
        self._started = False
        logger.info(
            "search_service_stopped",
            activity_coalesced=self._activity_debouncer.coalesced_calls,
            index_updates_coalesced=self._index_debouncer.coalesced_calls,
        )

    def _wanted_providers(self) -> list[str]:
        settings = self._settings
        wanted: list[str] = []
        if settings.include_files:
            wanted.append("files")
        if settings.include_symbols:
            wanted.extend(["symbols", "docSymbols"])
        if settings.include_commands:
            wanted.append("commands")
        return wanted

    def _create_provider(self, name: str) -> BaseProvider:
        settings = self._settings
        if name == "files":
            return FileProvider(self._workspace, self._exclusions)
        if name == "symbols":
            return WorkspaceSymbolProvider(
                self._workspace,
                self._exclusions,
                debounce_ms=settings.symbol_refresh_debounce_ms,
            )
        if name == "docSymbols":
            return DocumentSymbolProvider(
                self._workspace,
                self._exclusions,
                debounce_ms=settings.document_symbol_refresh_debounce_ms,
            )
        if name == "commands":
            return CommandProvider(self._workspace, self._exclusions)
        raise ValueError(f"Unknown provider: {name}")

    async def _sync_providers(self) -> None:
        """Match registered providers to the enabled slices.

        Providers whose slice stays enabled keep their snapshot; disabled
        ones are closed, newly enabled ones created and started.
        """
        wanted = self._wanted_providers()

        for name in [name for name in self._providers if name not in wanted]:
            provider = self._providers.pop(name)
            await provider.close()
            logger.info("provider_removed", provider=name)

        registered: dict[str, BaseProvider] = {}
        for name in wanted:
            provider = self._providers.get(name)
            if provider is None:
                provider = self._create_provider(name)
                if self._started:
                    await provider.start(self._bus)
                logger.info("provider_registered", provider=name)
            registered[name] = provider
        self._providers = registered

        if self._settings.include_text:
            if self._text is None:
                self._text = TextSearchProvider(
                    self._workspace,
                    self._exclusions,
                    max_results_per_file=self._settings.max_text_results,
                )
        elif self._text is not None:
            await self._text.close()
            self._text = None

    async def _collect(self, force: bool) -> list[SearchItem]:
        unique: dict[str, SearchItem] = {}
        for name, provider in list(self._providers.items()):
            try:
                if force:
                    await provider.refresh(force=True)
                items = await provider.get_items()
            except Exception:
                logger.exception("provider_items_failed", provider=name)
                continue

            logger.debug("provider_items_collected", provider=name, items=len(items))
            for item in items:
                unique.setdefault(dedup_key(item), item)
        return list(unique.values())

    async def refresh_index(self, force: bool = False) -> None:
        """Rebuild the aggregated index from every enabled provider.

        Args:
            force: Make every provider re-enumerate its source first.
        """
        started = time.perf_counter()
        self._items = []
        await self._sync_providers()
        self._items = await self._collect(force)
        logger.info(
            "index_refreshed",
            items=len(self._items),
            forced=force,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

    async def update_index_from_providers(self) -> None:
        """Rebuild the aggregate from the providers' current snapshots."""
        self._items = await self._collect(force=False)
        logger.info("index_updated", items=len(self._items))

    def schedule_index_update(self) -> None:
        """Run an incremental update once changes have settled."""
        self._index_debouncer.debounce(self.update_index_from_providers)

    def track_activity(self, uri: str) -> None:
        """Record a resource as used once activity has settled."""
        self._activity_debouncer.debounce(lambda: self._recency.record(uri, self._clock()))

    def clear_activity(self) -> None:
        """Forget every recently used resource."""
        self._recency.clear()
        logger.info("activity_cleared")

    async def handle_event(self, event: DomainEvent) -> None:
        """React to a change notification."""
        if event.type in (EventType.DOCUMENT_SAVED, EventType.DOCUMENT_CLOSED):
            self.schedule_index_update()
        if event.type in (EventType.DOCUMENT_SAVED, EventType.ACTIVE_EDITOR_CHANGED):
            if event.uri is not None:
                self.track_activity(event.uri)
        if event.type is EventType.WORKSPACE_FOLDERS_CHANGED:
            self._set_exclusions(ExclusionFilter(self._settings.exclusions, self._workspace.roots))
            self.schedule_index_update()

    async def search(
        self,
        query: str,
        category: FilterCategory = FilterCategory.ALL,
    ) -> list[ScoredItem]:
        """Rank the index against a query.

        Args:
            query: User query; blank lists the index by priority.
            category: Restrict results to one category.

        Returns:
            At most ``max_results`` records, best first.
        """
        started = time.perf_counter()
        if not self._items:
            await self.refresh_index()

        settings = self._settings
        limit = settings.max_results
        has_query = bool(query.strip())

        text_results: list[ScoredItem] = []
        if has_query and settings.include_text and self._text is not None:
            try:
                matches = await self._text.search(query)
                text_results = [ScoredItem(item=m, score=TEXT_MATCH_SCORE) for m in matches]
            except Exception:
                logger.exception("text_search_failed", query=query)

        if not has_query:
            results = sort_results(ScoredItem(item=item) for item in self._items)
        else:
            fuzzy_results = await self._searcher.search(self._items, query, limit)
            results = text_results + fuzzy_results
            if settings.activity_enabled and len(self._recency) > 0:
                results = apply_recency_boost(
                    results,
                    self._recency,
                    settings.activity_weight,
                    self._clock(),
                )
            results = sort_results(results)

        results = filter_category(results, category)[:limit]
        self._last_results = {result.item.id: result.item for result in results}
        logger.info(
            "search_completed",
            query=query,
            category=category.value,
            results=len(results),
            text_matches=len(text_results),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return results

    def find_item(self, item_id: str) -> SearchItem:
        """Look up an item by id in the last results or the index.

        Raises:
            ItemNotFoundError: If no such item is known.
        """
        item = self._last_results.get(item_id)
        if item is not None:
            return item
        for candidate in self._items:
            if candidate.id == item_id:
                return candidate
        raise ItemNotFoundError(item_id)

    async def invoke_item(self, item_id: str) -> SearchItem:
        """Run an item's action.

        Args:
            item_id: Identifier of a known item.

        Returns:
            The invoked item.

        Raises:
            ItemNotFoundError: If no such item is known.
            ActionFailedError: If the item has no action or its action raised.
        """
        item = self.find_item(item_id)
        if item.action is None:
            raise ActionFailedError(item_id, ValueError("Item has no action"))

        try:
            await item.action()
        except Exception as e:
            logger.exception("item_action_failed", item_id=item_id, item_type=item.type.value)
            raise ActionFailedError(item_id, e) from e

        logger.info("item_invoked", item_id=item_id, item_type=item.type.value)
        return item

    async def run_benchmarks(self, query: str) -> dict[str, float]:
        """Average time of every available scorer over the index.

        Args:
            query: Query to rank with.

        Returns:
            Mean milliseconds per search, keyed by scorer name.
        """
        benchmarks: dict[str, float] = {}
        for searcher in all_searchers():
            started = time.perf_counter()
            for _ in range(BENCHMARK_RUNS):
                await searcher.search(self._items, query, BENCHMARK_LIMIT)
            elapsed_ms = (time.perf_counter() - started) * 1000
            benchmarks[searcher.name] = elapsed_ms / BENCHMARK_RUNS

        logger.info("benchmarks_completed", query=query, items=len(self._items), **benchmarks)
        return benchmarks

    def _set_exclusions(self, exclusions: ExclusionFilter) -> None:
        self._exclusions = exclusions
        self._workspace.set_exclusions(exclusions)
        for provider in self._providers.values():
            provider.exclusions = exclusions
        if self._text is not None:
            self._text.exclusions = exclusions

    async def apply_settings(self, settings: Settings) -> None:
        """Switch to a new configuration.

        The scorer, exclusions, text limits and debounce windows take effect
        at once. Changing which slices are indexed, or the exclusions,
        rebuilds the index.
        A debounced call still waiting when its window changes runs first.

        Args:
            settings: New configuration.
        """
        previous = self._settings
        self._settings = settings
        changed = sorted(
            name
            for name in type(settings).model_fields
            if getattr(settings, name) != getattr(previous, name)
        )

        if settings.fuzzy_library != previous.fuzzy_library:
            self._searcher = create_searcher(settings.fuzzy_library)

        exclusions_changed = settings.exclusions != previous.exclusions
        if exclusions_changed:
            self._set_exclusions(ExclusionFilter(settings.exclusions, self._workspace.roots))

        if self._text is not None:
            self._text.max_results_per_file = settings.max_text_results

        if settings.activity_debounce_ms != previous.activity_debounce_ms:
            await self._activity_debouncer.flush()
            await self._activity_debouncer.aclose()
            self._activity_debouncer = Debouncer(settings.activity_debounce_ms, name="activity")
        if settings.index_update_debounce_ms != previous.index_update_debounce_ms:
            await self._index_debouncer.flush()
            await self._index_debouncer.aclose()
            self._index_debouncer = Debouncer(
                settings.index_update_debounce_ms,
                name="index_update",
            )

        logger.info("settings_applied", changed=changed)

        indexing_changed = any(
            getattr(settings, name) != getattr(previous, name) for name in _INDEXING_SETTINGS
        )
        if indexing_changed or exclusions_changed:
            await self.refresh_index(force=exclusions_changed)

    def stats(self) -> IndexStats:
        """Summary of the aggregated index."""
        by_type: dict[str, int] = {item_type.value: 0 for item_type in SearchItemType}
        for item in self._items:
            by_type[item.type.value] += 1
        return IndexStats(
            items=len(self._items),
            providers={name: p.item_count for name, p in self._providers.items()},
            by_type=by_type,
            recent=len(self._recency),
            fuzzy_library=self._searcher.name,
            fuzzy_libraries=library_names(),
            text_enabled=self._text is not None,
        )

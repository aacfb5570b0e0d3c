"""Search service and ranking tests."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from everywhere.app import watcher_filter
from everywhere.config import Settings
from everywhere.core.errors import ActionFailedError, ItemNotFoundError
from everywhere.core.service import (
    RecencyTracker,
    SearchService,
    apply_recency_boost,
    compare_results,
    dedup_key,
    deduplicate,
    filter_category,
    recency_factor,
    sort_results,
)
from everywhere.core.types import (
    CommandSearchItem,
    FileSearchItem,
    Range,
    ScoredItem,
    SearchItem,
    SearchItemType,
    SymbolKind,
    SymbolSearchItem,
)
from everywhere.events.bus import EventBus
from everywhere.events.types import DomainEvent, EventType
from everywhere.search.schemas import FilterCategory
from fakes import FakeWorkspace, document_symbol, symbol_info, uri, wait_until

NOW = 100_000.0


class FakeClock:
    """Settable time source."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def file_item(relative: str) -> FileSearchItem:
    """Minimal file item."""
    return FileSearchItem(
        id=f"file:{uri(relative)}",
        label=relative.rsplit("/", 1)[-1],
        description=relative,
        uri=uri(relative),
    )


def symbol_item(name: str, relative: str, line: int = 0, description: str = "") -> SymbolSearchItem:
    """Minimal function symbol item."""
    return SymbolSearchItem(
        id=f"symbol:{name}:{uri(relative)}:{line}:0",
        label=name,
        description=description,
        uri=uri(relative),
        range=Range.from_coordinates(line, 0),
        symbol_kind=SymbolKind.FUNCTION,
    )


def command_item(command: str, priority: int | None = None) -> CommandSearchItem:
    """Minimal action item."""
    return CommandSearchItem(id=f"command:{command}", label=command, command=command, priority=priority)


async def make_service(
    settings: Settings,
    workspace: FakeWorkspace,
    event_bus: EventBus,
    clock: FakeClock | None = None,
) -> SearchService:
    """Started service with a built index."""
    service = SearchService(settings, workspace, event_bus, clock=clock or FakeClock())
    await service.start()
    await service.refresh_index()
    return service


@pytest.fixture
async def service(
    settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
) -> AsyncIterator[SearchService]:
    """Started service over the default fake workspace."""
    service = await make_service(settings, workspace, event_bus)
    yield service
    await service.close()


class TestDeduplication:
    """Identity of overlapping items."""

    def test_symbols_collapse_by_name_and_position(self) -> None:
        """The same symbol from two sources has one key; the first is kept."""
        first = symbol_item("handleClick", "src/Bar.ts", line=5, description="Function")
        second = symbol_item("handleClick", "src/Bar.ts", line=5, description="Function - Bar")
        assert dedup_key(first) == dedup_key(second)

        unique = deduplicate([first, second])
        assert len(unique) == 1
        assert unique[0].description == "Function"

    def test_trailing_call_parens_ignored(self) -> None:
        """Labels differing only by a trailing ``()`` collapse."""
        plain = symbol_item("render", "src/Foo.ts")
        called = symbol_item("render()", "src/Foo.ts")
        assert dedup_key(plain) == dedup_key(called)

    def test_distinct_positions_kept(self) -> None:
        """Same name at different positions are different symbols."""
        items = [symbol_item("init", "src/a.ts", line=1), symbol_item("init", "src/a.ts", line=9)]
        assert len(deduplicate(items)) == 2

    def test_files_collapse_by_uri(self) -> None:
        """Files are identified by URI."""
        assert dedup_key(file_item("src/Foo.ts")) == f"file:{uri('src/Foo.ts')}"

    def test_preserves_order(self) -> None:
        """Unique items keep their first-seen order."""
        items = [file_item("b.ts"), file_item("a.ts"), file_item("b.ts")]
        assert [item.label for item in deduplicate(items)] == ["b.ts", "a.ts"]


class TestOrdering:
    """Score band and priority tie-break."""

    def test_clear_score_difference_wins(self) -> None:
        """Scores more than 0.1 apart order by score."""
        high = ScoredItem(item=command_item("low-priority", priority=10), score=0.95)
        low = ScoredItem(item=command_item("high-priority", priority=100), score=0.8)
        assert compare_results(high, low) < 0
        assert [r.item.label for r in sort_results([low, high])] == ["low-priority", "high-priority"]

    def test_close_scores_use_priority(self) -> None:
        """Scores within the band are a tie broken by priority."""
        better_score = ScoredItem(item=command_item("plain"), score=0.85)
        better_priority = ScoredItem(item=command_item("class-like", priority=100), score=0.8)
        ordered = sort_results([better_score, better_priority])
        assert [r.item.label for r in ordered] == ["class-like", "plain"]

    def test_zero_priority_is_neutral(self) -> None:
        """Priority 0 ranks like an unset priority."""
        zero = ScoredItem(item=command_item("zero", priority=0), score=0.5)
        unset = ScoredItem(item=command_item("unset"), score=0.5)
        assert compare_results(zero, unset) == 0

    def test_sort_is_stable(self) -> None:
        """Equal records keep their input order."""
        records = [ScoredItem(item=command_item(name), score=0.5) for name in "abcde"]
        assert [r.item.label for r in sort_results(records)] == list("abcde")

    def test_unscored_records_order_by_priority(self) -> None:
        """Without scores only priority matters."""
        records = [
            ScoredItem(item=command_item("var", priority=40)),
            ScoredItem(item=command_item("cls", priority=100)),
            ScoredItem(item=command_item("cmd")),
        ]
        assert [r.item.label for r in sort_results(records)] == ["cls", "cmd", "var"]


class TestRecency:
    """Recently used resources and the boost they earn."""

    def test_factor_decays_linearly_over_an_hour(self) -> None:
        """Fresh access is 1, an hour or older is 0."""
        assert recency_factor(0) == 1.0
        assert recency_factor(1800) == pytest.approx(0.5)
        assert recency_factor(3600) == 0.0
        assert recency_factor(7200) == 0.0

    def test_file_boost(self) -> None:
        """A file used ten minutes ago with weight 0.5 gains about 41.7%."""
        recency = RecencyTracker()
        recency.record(uri("src/Foo.ts"), NOW - 600)
        boosted = apply_recency_boost(
            [ScoredItem(item=file_item("src/Foo.ts"), score=1.0)],
            recency,
            weight=0.5,
            now=NOW,
        )
        assert boosted[0].score == pytest.approx(1.4167, abs=1e-4)

    def test_symbols_get_half_weight(self) -> None:
        """Symbols are boosted with half the configured weight."""
        recency = RecencyTracker()
        recency.record(uri("src/Foo.ts"), NOW)
        boosted = apply_recency_boost(
            [ScoredItem(item=symbol_item("render", "src/Foo.ts"), score=1.0)],
            recency,
            weight=1.0,
            now=NOW,
        )
        assert boosted[0].score == pytest.approx(1.5)

    def test_other_items_untouched(self) -> None:
        """Actions, unscored records and unused files keep their score."""
        recency = RecencyTracker()
        recency.record(uri("src/Foo.ts"), NOW)
        records = [
            ScoredItem(item=command_item("build"), score=0.7),
            ScoredItem(item=file_item("src/Foo.ts"), score=None),
            ScoredItem(item=file_item("src/Bar.ts"), score=0.7),
        ]
        boosted = apply_recency_boost(records, recency, weight=1.0, now=NOW)
        assert [r.score for r in boosted] == [0.7, None, 0.7]

    def test_boost_is_monotonic_in_recency(self) -> None:
        """More recent use never boosts less."""
        scores = []
        for age in (0, 60, 600, 3599, 3600, 10_000):
            recency = RecencyTracker()
            recency.record(uri("a.ts"), NOW - age)
            record = ScoredItem(item=file_item("a.ts"), score=0.8)
            scores.append(apply_recency_boost([record], recency, 0.5, NOW)[0].score)
        assert scores == sorted(scores, reverse=True)
        assert scores[-1] == pytest.approx(0.8)

    def test_boost_does_not_modify_input(self) -> None:
        """Boosting returns new records."""
        recency = RecencyTracker()
        recency.record(uri("a.ts"), NOW)
        record = ScoredItem(item=file_item("a.ts"), score=0.8)
        apply_recency_boost([record], recency, 1.0, NOW)
        assert record.score == 0.8

    def test_tracker_evicts_oldest(self) -> None:
        """Overflowing the capacity drops the least recent entry."""
        recency = RecencyTracker(capacity=3)
        recency.record("a", 3.0)
        recency.record("b", 1.0)
        recency.record("c", 2.0)
        recency.record("d", 4.0)
        assert "b" not in recency
        assert all(uri in recency for uri in ("a", "c", "d"))

    def test_tracker_updates_existing_entry(self) -> None:
        """Re-recording a resource refreshes its time without eviction."""
        recency = RecencyTracker(capacity=2)
        recency.record("a", 1.0)
        recency.record("b", 2.0)
        recency.record("a", 3.0)
        assert len(recency) == 2
        assert recency.get("a") == 3.0


class TestCategoryFilter:
    """Category narrowing."""

    def test_symbols_include_classes(self) -> None:
        """The symbols category covers functions and classes."""
        cls = symbol_item("Foo", "a.ts").model_copy(update={"type": SearchItemType.CLASS})
        records = [
            ScoredItem(item=cls),
            ScoredItem(item=symbol_item("run", "a.ts")),
            ScoredItem(item=file_item("a.ts")),
            ScoredItem(item=command_item("build")),
        ]
        symbols = filter_category(records, FilterCategory.SYMBOLS)
        classes = filter_category(records, FilterCategory.CLASSES)
        actions = filter_category(records, FilterCategory.ACTIONS)

        assert [r.item.label for r in symbols] == ["Foo", "run"]
        assert [r.item.label for r in classes] == ["Foo"]
        assert [r.item.label for r in actions] == ["build"]
        assert len(filter_category(records, FilterCategory.ALL)) == 4


class TestSearchService:
    """Aggregation, ranking and actions end to end."""

    async def test_registers_providers_in_order(self, service: SearchService) -> None:
        """Enabled providers are merged in a fixed order."""
        assert service.provider_names == ["files", "symbols", "docSymbols", "commands"]
        assert service.text_provider is None

    async def test_index_excludes_ignored_files(self, service: SearchService) -> None:
        """The aggregated index holds the kept files."""
        labels = sorted(item.label for item in service.items)
        assert labels == ["Bar.ts", "Foo.ts", "README.md"]

    async def test_query_ranks_matching_file_first(self, service: SearchService) -> None:
        """Searching ``Foo`` puts Foo.ts first and leaves Bar.ts out."""
        results = await service.search("Foo")

        assert results[0].item.label == "Foo.ts"
        assert "Bar.ts" not in [r.item.label for r in results]

    async def test_query_ranks_class_and_file_above_unrelated(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """Class ``Foo`` and Foo.ts lead; a variable merely starting with the query follows."""
        workspace.symbols = [
            symbol_info("Foo", SymbolKind.CLASS, "src/Foo.ts"),
            symbol_info("Bar", SymbolKind.CLASS, "src/Bar.ts"),
            symbol_info("footerHeight", SymbolKind.VARIABLE, "src/Bar.ts", line=3),
        ]
        service = await make_service(settings, workspace, event_bus)
        try:
            results = await service.search("Foo")
            labels = [r.item.label for r in results]

            assert labels[:2] == ["Foo", "Foo.ts"]
            assert results[0].item.type is SearchItemType.CLASS
            assert "footerHeight" in labels[2:]
            assert "Bar" not in labels
            assert "Bar.ts" not in labels
        finally:
            await service.close()

    async def test_duplicate_symbol_reported_once(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """A symbol known to both symbol sources appears once, from the first."""
        workspace.symbols = [symbol_info("handleClick", SymbolKind.FUNCTION, "src/Bar.ts", line=5)]
        workspace.doc_symbols = {
            uri("src/Bar.ts"): [
                document_symbol(
                    "Bar",
                    SymbolKind.CLASS,
                    children=[document_symbol("handleClick", SymbolKind.FUNCTION, line=5)],
                )
            ]
        }
        service = await make_service(settings, workspace, event_bus)
        try:
            results = await service.search("handleClick", FilterCategory.SYMBOLS)
            matches = [r for r in results if r.item.label == "handleClick"]
            assert len(matches) == 1
            assert matches[0].item.description == "Function"
        finally:
            await service.close()

    async def test_empty_query_lists_by_priority(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """A blank query returns unscored items, highest priority first, capped."""
        workspace.symbols = [symbol_info("Foo", SymbolKind.CLASS, "src/Foo.ts")]
        workspace.commands = {"rebuildIndex": None}
        service = await make_service(settings.updated(max_results=2), workspace, event_bus)
        try:
            results = await service.search("")
            assert len(results) == 2
            assert results[0].item.label == "Foo"
            assert results[0].item.type is SearchItemType.CLASS
            assert all(r.score is None for r in results)
        finally:
            await service.close()

    async def test_category_filter(self, service: SearchService) -> None:
        """Only items of the requested category are returned."""
        results = await service.search("ts", FilterCategory.FILES)
        assert results
        assert all(r.item.type is SearchItemType.FILE for r in results)
        assert await service.search("Foo", FilterCategory.ACTIONS) == []

    async def test_recent_file_boosted_above_equal_match(
        self, settings: Settings, event_bus: EventBus
    ) -> None:
        """Of two equally good matches, the recently used one ranks first."""
        workspace = FakeWorkspace({"src/Widget.ts": "", "lib/Widget.ts": ""})
        clock = FakeClock()
        service = await make_service(settings, workspace, event_bus, clock)
        try:
            before = await service.search("Widget")
            assert before[0].item.description == "src/Widget.ts"

            service.recency.record(uri("lib/Widget.ts"), clock.now - 60)
            after = await service.search("Widget")
            assert after[0].item.description == "lib/Widget.ts"
            assert after[0].score is not None and before[0].score is not None
            assert after[0].score > before[0].score
        finally:
            await service.close()

    async def test_boost_disabled(self, settings: Settings, event_bus: EventBus) -> None:
        """With activity tracking off, recency does not change scores."""
        workspace = FakeWorkspace({"src/Widget.ts": "", "lib/Widget.ts": ""})
        clock = FakeClock()
        service = await make_service(
            settings.updated(activity_enabled=False), workspace, event_bus, clock
        )
        try:
            service.recency.record(uri("lib/Widget.ts"), clock.now)
            results = await service.search("Widget")
            assert results[0].item.description == "src/Widget.ts"
        finally:
            await service.close()

    async def test_text_matches_merged(self, settings: Settings, event_bus: EventBus) -> None:
        """Content matches join the results with a full score."""
        workspace = FakeWorkspace({"src/app.ts": "button.onclick = handleClick;\n"})
        service = await make_service(settings.updated(include_text=True), workspace, event_bus)
        try:
            assert service.text_provider is not None
            results = await service.search("handleClick", FilterCategory.TEXT)

            assert len(results) == 1
            assert results[0].score == 1.0
            assert results[0].item.detail == "Line 1"
        finally:
            await service.close()

    async def test_text_match_can_be_invoked(self, settings: Settings, event_bus: EventBus) -> None:
        """Items from the last results can be invoked even if not indexed."""
        workspace = FakeWorkspace({"src/app.ts": "handleClick();\n"})
        service = await make_service(settings.updated(include_text=True), workspace, event_bus)
        try:
            results = await service.search("handleClick", FilterCategory.TEXT)
            item = await service.invoke_item(results[0].item.id)

            assert item.type is SearchItemType.TEXT
            assert workspace.opened[0][0] == uri("src/app.ts")
        finally:
            await service.close()

    async def test_invoke_file(self, service: SearchService, workspace: FakeWorkspace) -> None:
        """Invoking a file opens it."""
        item = await service.invoke_item(f"file:{uri('src/Foo.ts')}")
        assert item.label == "Foo.ts"
        assert workspace.opened == [(uri("src/Foo.ts"), None)]

    async def test_invoke_unknown_item(self, service: SearchService) -> None:
        """Unknown ids raise ItemNotFoundError."""
        with pytest.raises(ItemNotFoundError):
            await service.invoke_item("file:file:///nowhere")

    async def test_invoke_failing_action(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """Errors raised by an action surface as ActionFailedError."""

        def explode() -> None:
            raise RuntimeError("kaboom")

        workspace.commands = {"explode": explode}
        service = await make_service(settings, workspace, event_bus)
        try:
            with pytest.raises(ActionFailedError) as exc_info:
                await service.invoke_item("command:explode")
            assert isinstance(exc_info.value.cause, RuntimeError)
        finally:
            await service.close()

    async def test_find_item(self, service: SearchService) -> None:
        """Indexed items can be looked up by id."""
        item: SearchItem = service.find_item(f"file:{uri('README.md')}")
        assert item.label == "README.md"
        with pytest.raises(ItemNotFoundError):
            service.find_item("missing")

    async def test_provider_failure_isolated(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """A failing source contributes nothing while others still index."""
        workspace.fail_listing = True
        workspace.symbols = [symbol_info("Foo", SymbolKind.CLASS, "src/Foo.ts")]
        service = await make_service(settings, workspace, event_bus)
        try:
            assert [item.label for item in service.items] == ["Foo"]
        finally:
            await service.close()

    async def test_activity_tracked_from_events(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """Switching editors records the resource after the debounce window."""
        clock = FakeClock()
        service = await make_service(
            settings.updated(activity_debounce_ms=5), workspace, event_bus, clock
        )
        try:
            await event_bus.publish(
                DomainEvent.create(EventType.ACTIVE_EDITOR_CHANGED, uri=uri("src/Foo.ts"))
            )
            await wait_until(lambda: uri("src/Foo.ts") in service.recency)
            assert service.recency.get(uri("src/Foo.ts")) == NOW
        finally:
            await service.close()

    async def test_activity_burst_records_last(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """Rapid activity records only the last resource."""
        service = await make_service(
            settings.updated(activity_debounce_ms=20), workspace, event_bus
        )
        try:
            service.track_activity(uri("src/Foo.ts"))
            service.track_activity(uri("src/Bar.ts"))
            await wait_until(lambda: len(service.recency) > 0)
            assert uri("src/Bar.ts") in service.recency
            assert uri("src/Foo.ts") not in service.recency
        finally:
            await service.close()

    async def test_save_updates_index(
        self, settings: Settings, workspace: FakeWorkspace, event_bus: EventBus
    ) -> None:
        """Saving a document folds its fresh symbols into the index."""
        service = await make_service(
            settings.updated(index_update_debounce_ms=10), workspace, event_bus
        )
        try:
            workspace.doc_symbols[uri("src/Foo.ts")] = [document_symbol("Foo", SymbolKind.CLASS)]
            await event_bus.publish(DomainEvent.create(EventType.DOCUMENT_SAVED, uri=uri("src/Foo.ts")))

            await wait_until(
                lambda: any(item.type is SearchItemType.CLASS for item in service.items)
            )
        finally:
            await service.close()

    async def test_clear_activity(self, service: SearchService) -> None:
        """Clearing forgets every recent resource."""
        service.recency.record(uri("src/Foo.ts"), NOW)
        service.clear_activity()
        assert len(service.recency) == 0

    async def test_apply_settings_switches_scorer(self, service: SearchService) -> None:
        """Changing the fuzzy library takes effect at once."""
        await service.apply_settings(service.settings.updated(fuzzy_library="difflib"))
        assert service.searcher.name == "difflib"
        results = await service.search("Foo")
        assert results[0].item.label == "Foo.ts"

    async def test_apply_settings_disables_slice(self, service: SearchService) -> None:
        """Turning a slice off removes its provider and its items."""
        symbols = service.provider("symbols")
        await service.apply_settings(service.settings.updated(include_files=False))

        assert "files" not in service.provider_names
        assert service.provider("symbols") is symbols
        assert all(item.type is not SearchItemType.FILE for item in service.items)

    async def test_apply_settings_exclusions_rebuild(self, service: SearchService) -> None:
        """New exclusion patterns rebuild the index without the excluded files."""
        await service.apply_settings(service.settings.updated(exclusions_raw="**/src/**"))
        assert [item.label for item in service.items] == ["README.md"]

    async def test_apply_settings_exclusions_reach_host_and_watcher(
        self, service: SearchService, workspace: FakeWorkspace
    ) -> None:
        """The host and the watcher filter follow exclusion changes made at runtime."""
        ignore = watcher_filter(service)
        generated = Path("/ws/generated/client.ts")

        await service.apply_settings(service.settings.updated(exclusions_raw="generated"))
        assert workspace.exclusion_filters[-1] is service.exclusions
        assert ignore(generated)

        await service.apply_settings(service.settings.updated(exclusions_raw=""))
        assert workspace.exclusion_filters[-1] is service.exclusions
        assert not ignore(generated)
        assert ignore(Path("/ws/node_modules/lib/index.js"))

    async def test_apply_settings_keeps_pending_activity(self, service: SearchService) -> None:
        """Changing the activity window records an access that was still waiting."""
        target = uri("src/Foo.ts")
        await service.handle_event(DomainEvent.create(EventType.ACTIVE_EDITOR_CHANGED, uri=target))
        assert target not in service.recency

        await service.apply_settings(service.settings.updated(activity_debounce_ms=100))

        assert service.recency.get(target) == NOW

    async def test_apply_settings_enables_text(self, service: SearchService) -> None:
        """Turning content search on creates the matcher."""
        await service.apply_settings(service.settings.updated(include_text=True, max_text_results=3))
        assert service.text_provider is not None
        assert service.text_provider.max_results_per_file == 3

    async def test_run_benchmarks(self, service: SearchService) -> None:
        """Every scorer is timed."""
        timings = await service.run_benchmarks("Foo")
        assert set(timings) == {"rapidfuzz", "difflib"}
        assert all(value >= 0 for value in timings.values())

    async def test_stats(self, service: SearchService) -> None:
        """Stats summarize the index per provider and type."""
        stats = service.stats()
        assert stats.items == 3
        assert stats.providers["files"] == 3
        assert stats.by_type["file"] == 3
        assert stats.by_type["class"] == 0
        assert stats.fuzzy_library == "rapidfuzz"
        assert stats.text_enabled is False

"""Fuzzy scorer tests."""

import pytest

from everywhere.core.types import (
    CommandSearchItem,
    FileSearchItem,
    Range,
    SearchItem,
    SymbolKind,
    SymbolSearchItem,
)
from everywhere.search.base import FuzzySearcher, search_text
from everywhere.search.difflib_searcher import DifflibSearcher, match_score
from everywhere.search.factory import all_searchers, create_searcher, library_names
from everywhere.search.rapidfuzz_searcher import (
    CONTEXT_WEIGHT,
    RapidfuzzSearcher,
    item_score,
    label_score,
)
from fakes import uri


def file_item(relative: str) -> FileSearchItem:
    """File item as the file provider builds it."""
    name = relative.rsplit("/", 1)[-1]
    return FileSearchItem(
        id=f"file:{uri(relative)}",
        label=name,
        description=relative,
        detail=f"/ws/{relative}",
        uri=uri(relative),
    )


@pytest.fixture
def items() -> list[SearchItem]:
    """A few files and an action."""
    return [
        file_item("src/Foo.ts"),
        file_item("src/Bar.ts"),
        file_item("docs/README.md"),
        CommandSearchItem(
            id="command:rebuildIndex",
            label="Rebuild Index",
            description="Command",
            detail="rebuildIndex",
            command="rebuildIndex",
        ),
    ]


@pytest.fixture(params=["rapidfuzz", "difflib"])
def searcher(request: pytest.FixtureRequest) -> FuzzySearcher:
    """Every available scorer."""
    return create_searcher(request.param)


def test_search_text_joins_non_empty_fields() -> None:
    """Label, description and detail are joined with spaces."""
    item = CommandSearchItem(id="command:x", label="X", detail="x", command="x")
    assert search_text(item) == "X x"


async def test_exact_name_ranks_first(searcher: FuzzySearcher, items: list[SearchItem]) -> None:
    """The file named like the query is the best match."""
    results = await searcher.search(items, "Foo")

    assert results
    assert results[0].item.label == "Foo.ts"
    assert all(r.item.label != "Bar.ts" for r in results)


async def test_scores_descend(searcher: FuzzySearcher, items: list[SearchItem]) -> None:
    """Records come back best first with positive scores."""
    results = await searcher.search(items, "rebuild")

    scores = [r.score for r in results]
    assert all(score is not None and score > 0 for score in scores)
    assert scores == sorted(scores, reverse=True)
    assert results[0].item.label == "Rebuild Index"


async def test_blank_query_returns_items_unscored(
    searcher: FuzzySearcher, items: list[SearchItem]
) -> None:
    """A blank query returns the first ``limit`` items without scores."""
    results = await searcher.search(items, "  ", limit=2)

    assert [r.item.id for r in results] == [items[0].id, items[1].id]
    assert all(r.score is None for r in results)


async def test_limit_respected(searcher: FuzzySearcher) -> None:
    """No more than ``limit`` records are returned."""
    many = [file_item(f"src/component{index}.ts") for index in range(30)]
    results = await searcher.search(many, "component", limit=7)
    assert len(results) == 7


async def test_no_items(searcher: FuzzySearcher) -> None:
    """Searching nothing finds nothing."""
    assert await searcher.search([], "Foo") == []


async def test_items_are_not_modified(searcher: FuzzySearcher, items: list[SearchItem]) -> None:
    """Scores live on the returned records, not on the items."""
    before = [item.model_dump() for item in items]
    await searcher.search(items, "Foo")
    assert [item.model_dump() for item in items] == before


async def test_unrelated_query_matches_nothing(
    searcher: FuzzySearcher, items: list[SearchItem]
) -> None:
    """Queries sharing nothing with the items return no records."""
    assert await searcher.search(items, "qqqqzzzz") == []


def test_rapidfuzz_scores_normalized() -> None:
    """WRatio scores are scaled to 0..1."""
    searcher = RapidfuzzSearcher()
    results = searcher.rank([file_item("Foo")], "Foo", 10)
    assert len(results) == 1
    assert results[0].score is not None
    assert 0 < results[0].score <= 1


class TestMatchScore:
    """Coverage and compactness scoring."""

    def test_prefix_earns_bonus(self) -> None:
        """A text starting with the query scores above a perfect inner match."""
        assert match_score("foo", "foo.ts") == pytest.approx(1.25)
        assert match_score("foo", "src/foo.ts") == pytest.approx(1.0)

    def test_scattered_characters_score_lower(self) -> None:
        """Spread-out matches lose compactness."""
        tight = match_score("abc", "xabcx")
        loose = match_score("abc", "xaxbxcx")
        assert 0 < loose < tight

    def test_low_coverage_is_zero(self) -> None:
        """Fewer than 60% of the query characters found means no match."""
        assert match_score("abcdef", "abzzzz") == 0.0

    def test_empty_inputs(self) -> None:
        """Empty query or text never match."""
        assert match_score("", "foo") == 0.0
        assert match_score("foo", "") == 0.0


class TestFactory:
    """Scorer selection."""

    def test_known_names(self) -> None:
        """Each library name builds its scorer."""
        assert isinstance(create_searcher("rapidfuzz"), RapidfuzzSearcher)
        assert isinstance(create_searcher("difflib"), DifflibSearcher)

    def test_unknown_name_uses_default(self) -> None:
        """Unknown names fall back to rapidfuzz."""
        assert isinstance(create_searcher("fuse.js"), RapidfuzzSearcher)

    def test_all_searchers(self) -> None:
        """One instance of every scorer is available for benchmarks."""
        assert [s.name for s in all_searchers()] == library_names() == ["rapidfuzz", "difflib"]


PROJECT_ROOT = "/home/dev/projects/webapp"


def project_file(relative: str) -> FileSearchItem:
    """File item under a realistically deep absolute root."""
    return FileSearchItem(
        id=f"file:file://{PROJECT_ROOT}/{relative}",
        label=relative.rsplit("/", 1)[-1],
        description=relative,
        detail=f"{PROJECT_ROOT}/{relative}",
        uri=f"file://{PROJECT_ROOT}/{relative}",
    )


def project_symbol(name: str, kind: SymbolKind, relative: str) -> SymbolSearchItem:
    """Symbol item as the symbol providers build it."""
    return SymbolSearchItem(
        id=f"symbol:{name}:{relative}",
        label=name,
        description=kind.name.title(),
        detail=f"{PROJECT_ROOT}/{relative}",
        uri=f"file://{PROJECT_ROOT}/{relative}",
        range=Range.from_coordinates(0, 0),
        symbol_kind=kind,
    )


class TestRapidfuzzRanking:
    """Label matches against long absolute paths."""

    async def test_file_name_beats_directory_name(self) -> None:
        """A query matching a file name outranks one buried in its directories."""
        items = [
            project_file("src/components/legacy/widgets/food/Unrelated.ts"),
            project_file("src/services/Foo.ts"),
        ]
        results = await RapidfuzzSearcher().search(items, "Foo")

        assert [r.item.label for r in results] == ["Foo.ts", "Unrelated.ts"]
        best, other = (r.score or 0.0 for r in results)
        assert best - other > 0.1

    async def test_exact_name_beats_longer_name(self) -> None:
        """A symbol named exactly like the query clearly beats one that starts with it."""
        items = [
            project_symbol("footerHeight", SymbolKind.VARIABLE, "src/layout/constants.ts"),
            project_symbol("Foo", SymbolKind.CLASS, "src/services/Foo.ts"),
        ]
        results = await RapidfuzzSearcher().search(items, "Foo")

        assert [r.item.label for r in results] == ["Foo", "footerHeight"]
        best, other = (r.score or 0.0 for r in results)
        assert best - other > 0.1

    async def test_whole_name_scores_high(self) -> None:
        """Matching a whole file name is not capped by the length of its path."""
        results = await RapidfuzzSearcher().search(
            [project_file("src/components/forms/controls/Button.ts")], "Button"
        )
        assert results[0].score is not None
        assert results[0].score >= 0.8

    def test_path_only_match_is_discounted(self) -> None:
        """Matches found only in the path are worth less than label matches."""
        item = project_file("src/food/Unrelated.ts")
        assert item_score("foo", item) == pytest.approx(100 * CONTEXT_WEIGHT)
        assert label_score("foo", "foo") == 100.0
        assert label_score("", "foo") == 0.0

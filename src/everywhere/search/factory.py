"""Scorer selection by library name."""

import structlog

from everywhere.search.base import FuzzySearcher
from everywhere.search.difflib_searcher import DifflibSearcher
from everywhere.search.rapidfuzz_searcher import RapidfuzzSearcher

logger = structlog.get_logger()

DEFAULT_LIBRARY = RapidfuzzSearcher.name

_SEARCHERS: dict[str, type[FuzzySearcher]] = {
    RapidfuzzSearcher.name: RapidfuzzSearcher,
    DifflibSearcher.name: DifflibSearcher,
}


def create_searcher(library: str) -> FuzzySearcher:
    """Create the scorer for a library name; unknown names use the default."""
    searcher_cls = _SEARCHERS.get(library)
    if searcher_cls is None:
        logger.warning("unknown_fuzzy_library", library=library, fallback=DEFAULT_LIBRARY)
        searcher_cls = _SEARCHERS[DEFAULT_LIBRARY]
    return searcher_cls()


def all_searchers() -> list[FuzzySearcher]:
    """One instance of every available scorer, for benchmarking."""
    return [searcher_cls() for searcher_cls in _SEARCHERS.values()]


def library_names() -> list[str]:
    """Names accepted by ``create_searcher``."""
    return list(_SEARCHERS)

"""Scorer backed by rapidfuzz."""

import time
from collections.abc import Sequence

import structlog
from rapidfuzz import fuzz, utils

from everywhere.core.types import ScoredItem, SearchItem
from everywhere.search.base import FuzzySearcher, search_text

logger = structlog.get_logger()

SCORE_CUTOFF = 50.0

# A query found only in the description or path counts for less than the
# same match on the label
CONTEXT_WEIGHT = 0.6


def label_score(query: str, label: str) -> float:
    """Score a preprocessed query against a preprocessed label, 0..100.

    ``WRatio`` rewards prefixes and partial words; ``QRatio`` penalizes
    labels much longer than the query. Their mean puts an exact name above
    a longer name that merely starts with the query.
    """
    if not query or not label:
        return 0.0
    return (fuzz.WRatio(query, label) + fuzz.QRatio(query, label)) / 2


def item_score(query: str, item: SearchItem) -> float:
    """Score a preprocessed query against an item, 0..100."""
    label = label_score(query, utils.default_process(item.label))
    context = fuzz.partial_ratio(query, utils.default_process(search_text(item)))
    return max(label, CONTEXT_WEIGHT * context)


class RapidfuzzSearcher(FuzzySearcher):
    """Ranks with rapidfuzz ratios on the label and the full item text.

    Scores are normalized to 0..1. Items scoring below the cutoff are
    dropped; ties keep their input order.
    """

    name = "rapidfuzz"

    def __init__(self, score_cutoff: float = SCORE_CUTOFF) -> None:
        self._score_cutoff = score_cutoff

    def rank(
        self,
        items: Sequence[SearchItem],
        query: str,
        limit: int,
    ) -> list[ScoredItem]:
        started = time.perf_counter()
        needle = utils.default_process(query)
        scored: list[ScoredItem] = []
        if needle:
            for item in items:
                score = item_score(needle, item)
                if score >= self._score_cutoff:
                    scored.append(ScoredItem(item=item, score=score / 100))

        results = sorted(scored, key=lambda record: record.score or 0.0, reverse=True)[:limit]
        logger.debug(
            "fuzzy_search_completed",
            library=self.name,
            items=len(items),
            matches=len(results),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return results

"""Scorer built on :class:`difflib.SequenceMatcher`."""

import time
from collections.abc import Sequence
from difflib import SequenceMatcher

import structlog

from everywhere.core.types import ScoredItem, SearchItem
from everywhere.search.base import FuzzySearcher, search_text

logger = structlog.get_logger()

MIN_COVERAGE = 0.6
PREFIX_BONUS = 0.25


def match_score(query: str, text: str) -> float:
    """Score how well ``query`` matches ``text``.

    Coverage is the share of query characters found in order in the text;
    compactness is how tightly those characters cluster. A text starting
    with the query earns a bonus.

    Args:
        query: Lower-cased query.
        text: Lower-cased candidate text.

    Returns:
        Score in ``[0, 1.25]``; 0 when coverage is below ``MIN_COVERAGE``.
    """
    if not query or not text:
        return 0.0

    matcher = SequenceMatcher(None, query, text, autojunk=False)
    blocks = [block for block in matcher.get_matching_blocks() if block.size]
    matched = sum(block.size for block in blocks)
    coverage = matched / len(query)
    if coverage < MIN_COVERAGE:
        return 0.0

    span = blocks[-1].b + blocks[-1].size - blocks[0].b
    compactness = matched / span
    score = coverage * (0.5 + 0.5 * compactness)
    if text.startswith(query):
        score += PREFIX_BONUS
    return score


class DifflibSearcher(FuzzySearcher):
    """Ranks by in-order character coverage and compactness."""

    name = "difflib"

    def rank(
        self,
        items: Sequence[SearchItem],
        query: str,
        limit: int,
    ) -> list[ScoredItem]:
        started = time.perf_counter()
        needle = query.lower()
        scored: list[ScoredItem] = []
        for item in items:
            score = match_score(needle, search_text(item).lower())
            if score > 0:
                scored.append(ScoredItem(item=item, score=score))

        scored.sort(key=lambda record: record.score or 0.0, reverse=True)
        logger.debug(
            "fuzzy_search_completed",
            library=self.name,
            items=len(items),
            matches=len(scored),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return scored[:limit]

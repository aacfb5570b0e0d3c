"""Fuzzy scorer interface."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from everywhere.core.types import ScoredItem, SearchItem


def search_text(item: SearchItem) -> str:
    """Composite text an item is matched against: label, description, detail."""
    return " ".join(part for part in (item.label, item.description, item.detail) if part)


class FuzzySearcher(ABC):
    """Ranks items against a query with an approximate string matcher.

    Implementations never modify the items they are given; they return
    ScoredItem records with scores on a positive scale where higher means a
    better match.
    """

    name: str = ""

    async def search(
        self,
        items: Sequence[SearchItem],
        query: str,
        limit: int = 100,
    ) -> list[ScoredItem]:
        """Rank items against a query.

        Args:
            items: Candidate items.
            query: User query; blank means no ranking.
            limit: Maximum number of records returned.

        Returns:
            For a blank query, the first ``limit`` items unscored. Otherwise
            at most ``limit`` scored records, best match first.
        """
        if not query.strip():
            return [ScoredItem(item=item, score=None) for item in items[:limit]]
        if limit <= 0 or not items:
            return []
        return self.rank(items, query.strip(), limit)

    @abstractmethod
    def rank(
        self,
        items: Sequence[SearchItem],
        query: str,
        limit: int,
    ) -> list[ScoredItem]:
        """Score and order items for a non-empty query."""

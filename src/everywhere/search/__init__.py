"""Fuzzy scorers and search response schemas."""

from everywhere.search.base import FuzzySearcher
from everywhere.search.factory import all_searchers, create_searcher
from everywhere.search.schemas import FilterCategory, SearchResponse, SearchResultItem

__all__ = [
    "FilterCategory",
    "FuzzySearcher",
    "SearchResponse",
    "SearchResultItem",
    "all_searchers",
    "create_searcher",
]

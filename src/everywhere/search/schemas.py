"""Pydantic schemas for search API responses."""

from enum import Enum

from pydantic import BaseModel, Field

from everywhere.core.types import Range, ScoredItem, SearchItemType


class FilterCategory(str, Enum):
    """Result categories a search can be narrowed to."""

    ALL = "all"
    CLASSES = "classes"
    FILES = "files"
    SYMBOLS = "symbols"
    ACTIONS = "actions"
    TEXT = "text"


CATEGORY_TYPES: dict[FilterCategory, frozenset[SearchItemType]] = {
    FilterCategory.CLASSES: frozenset({SearchItemType.CLASS}),
    FilterCategory.FILES: frozenset({SearchItemType.FILE}),
    FilterCategory.SYMBOLS: frozenset({SearchItemType.SYMBOL, SearchItemType.CLASS}),
    FilterCategory.ACTIONS: frozenset({SearchItemType.COMMAND}),
    FilterCategory.TEXT: frozenset({SearchItemType.TEXT}),
}


class SearchResultItem(BaseModel):
    """A ranked item as shown to the user.

    Attributes:
        id: Item identifier, used to invoke the item.
        label: Primary display string.
        description: Secondary display string.
        detail: Tertiary display string.
        type: Item variant.
        score: Relevance score, or None when unscored.
        priority: Effective tie-break priority.
        icon: Icon hint.
        uri: Resource the item points at, if any.
        range: Location inside the resource, if any.
    """

    id: str
    label: str
    description: str = ""
    detail: str = ""
    type: SearchItemType
    score: float | None = None
    priority: int
    icon: str | None = None
    uri: str | None = None
    range: Range | None = None

    @classmethod
    def from_scored(cls, scored: ScoredItem) -> "SearchResultItem":
        """Flatten a ranked record for display."""
        item = scored.item
        return cls(
            id=item.id,
            label=item.label,
            description=item.description,
            detail=item.detail,
            type=item.type,
            score=scored.score,
            priority=item.effective_priority,
            icon=item.icon,
            uri=getattr(item, "uri", None),
            range=getattr(item, "range", None),
        )


class SearchResponse(BaseModel):
    """Search response envelope.

    Attributes:
        query: The original query string.
        category: Category the results were narrowed to.
        results: Ranked results, best first.
        total: Number of results returned.
        preview: Whether the display layer should preview the selection.
    """

    query: str
    category: FilterCategory
    results: list[SearchResultItem]
    total: int = Field(ge=0)
    preview: bool = True

"""Search item data model shared by providers, scorers and the ranking engine."""

from collections.abc import Awaitable, Callable
from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ItemAction = Callable[[], Awaitable[None]]

DEFAULT_PRIORITY = 50


class SearchItemType(str, Enum):
    """Discriminator for search item variants."""

    FILE = "file"
    COMMAND = "command"
    SYMBOL = "symbol"
    CLASS = "class"
    TEXT = "text"


class SymbolKind(IntEnum):
    """Fine-grained symbol kinds, numbered as in the Language Server Protocol."""

    FILE = 1
    MODULE = 2
    NAMESPACE = 3
    PACKAGE = 4
    CLASS = 5
    METHOD = 6
    PROPERTY = 7
    FIELD = 8
    CONSTRUCTOR = 9
    ENUM = 10
    INTERFACE = 11
    FUNCTION = 12
    VARIABLE = 13
    CONSTANT = 14
    STRING = 15
    NUMBER = 16
    BOOLEAN = 17
    ARRAY = 18
    OBJECT = 19
    KEY = 20
    NULL = 21
    ENUM_MEMBER = 22
    STRUCT = 23
    EVENT = 24
    OPERATOR = 25
    TYPE_PARAMETER = 26


class SymbolKindGroup(str, Enum):
    """Coarse classification derived from a SymbolKind."""

    CLASS = "class"
    FUNCTION = "function"
    VARIABLE = "variable"
    OTHER = "other"


class Position(BaseModel):
    """Zero-based line/character position inside a document."""

    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=0)
    character: int = Field(ge=0)


class Range(BaseModel):
    """Start/end span inside a document."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def from_coordinates(
        cls,
        start_line: int,
        start_character: int,
        end_line: int | None = None,
        end_character: int | None = None,
    ) -> "Range":
        """Build a range from raw coordinates.

        Missing end coordinates collapse the range onto its start.
        """
        return cls(
            start=Position(line=start_line, character=start_character),
            end=Position(
                line=start_line if end_line is None else end_line,
                character=start_character if end_character is None else end_character,
            ),
        )


class SearchItem(BaseModel):
    """Base for every searchable entity.

    Attributes:
        id: Stable identifier, unique per logical entity.
        label: Primary display string and main fuzzy-match target.
        description: Secondary display string.
        detail: Tertiary display string.
        type: Variant discriminator.
        priority: Static tie-break rank (higher first). None means neutral.
        icon: Display hint only; never used for ranking.
        action: Zero-argument coroutine function run on selection.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    label: str
    description: str = ""
    detail: str = ""
    type: SearchItemType
    priority: int | None = None
    icon: str | None = None
    action: ItemAction | None = Field(default=None, exclude=True, repr=False)

    @property
    def effective_priority(self) -> int:
        """Priority used by the ranking comparator (unset or zero means neutral)."""
        return self.priority or DEFAULT_PRIORITY


class FileSearchItem(SearchItem):
    """A file in one of the workspace roots."""

    type: Literal[SearchItemType.FILE] = SearchItemType.FILE
    uri: str
    relative_path: str | None = None


class CommandSearchItem(SearchItem):
    """A host action that can be executed by id."""

    type: Literal[SearchItemType.COMMAND] = SearchItemType.COMMAND
    command: str
    args: list[Any] = Field(default_factory=list)


class SymbolSearchItem(SearchItem):
    """A code symbol; ``type`` is CLASS for class-like kinds."""

    type: Literal[SearchItemType.SYMBOL, SearchItemType.CLASS] = SearchItemType.SYMBOL
    uri: str
    range: Range
    symbol_kind: SymbolKind
    symbol_group: SymbolKindGroup = SymbolKindGroup.OTHER


class TextMatchItem(SearchItem):
    """A line of file content containing the query."""

    type: Literal[SearchItemType.TEXT] = SearchItemType.TEXT
    uri: str
    range: Range
    line_text: str
    match_text: str


class ScoredItem(BaseModel):
    """A search item paired with its relevance score.

    Scorers and the recency boost produce new ScoredItem records instead of
    writing onto the items they were given.

    Attributes:
        item: The ranked item.
        score: Normalized relevance, or None when unscored.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    item: SearchItem
    score: float | None = None

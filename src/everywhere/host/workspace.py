"""Capability surface the indexing core consumes from its host environment."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.types import Range, SymbolKind
from everywhere.core.uris import uri_to_path


class SymbolInformation(BaseModel):
    """Flat symbol entry returned by a workspace-wide symbol query.

    Attributes:
        name: Symbol name.
        kind: Fine-grained symbol kind.
        container_name: Enclosing symbol, if any.
        uri: Document containing the symbol.
        range: Location of the symbol in the document.
    """

    name: str
    kind: SymbolKind
    container_name: str | None = None
    uri: str
    range: Range


class DocumentSymbol(BaseModel):
    """Hierarchical symbol entry returned for a single document.

    Attributes:
        name: Symbol name.
        kind: Fine-grained symbol kind.
        range: Full extent of the symbol.
        selection_range: Span to reveal when jumping to the symbol.
        children: Nested symbols.
    """

    name: str
    kind: SymbolKind
    range: Range
    selection_range: Range
    children: list["DocumentSymbol"] = Field(default_factory=list)


class UnknownCommandError(LookupError):
    """Raised when executing an action id the host does not know."""

    def __init__(self, command_id: str) -> None:
        """Initialize unknown command error.

        Args:
            command_id: The requested action identifier.
        """
        super().__init__(f"Unknown command: {command_id}")
        self.command_id = command_id


class Workspace(ABC):
    """Host environment: files, symbol index, action registry and editor."""

    @property
    @abstractmethod
    def roots(self) -> list[Path]:
        """Workspace root directories."""

    @abstractmethod
    async def find_files(self, root: Path, exclusions: ExclusionFilter) -> list[Path]:
        """List files under ``root`` that the exclusion filter keeps."""

    @abstractmethod
    async def read_text(self, path: Path) -> str:
        """Read a file's content as text."""

    @abstractmethod
    async def workspace_symbols(self, query: str) -> list[SymbolInformation]:
        """Query the host's global symbol index."""

    @abstractmethod
    async def document_symbols(self, uri: str) -> list[DocumentSymbol]:
        """Return the symbol tree of a single document."""

    @abstractmethod
    async def list_commands(self) -> list[str]:
        """List every registered action identifier."""

    @abstractmethod
    async def execute_command(self, command_id: str, *args: Any) -> Any:
        """Invoke an action by identifier.

        Raises:
            UnknownCommandError: If no action is registered under the id.
        """

    @abstractmethod
    async def open_location(self, uri: str, range: Range | None = None) -> None:
        """Open a resource in the host editor, optionally revealing a range."""

    def set_exclusions(self, exclusions: ExclusionFilter) -> None:
        """Adopt the filter for listings the host builds on its own.

        Hosts whose symbol index applies no exclusions ignore it.
        """

    def relative_path(self, uri: str) -> str:
        """Display path of a resource relative to its workspace root.

        Args:
            uri: Resource URI.

        Returns:
            Root-relative POSIX path for files inside a root, the filesystem
            path for other files, and the URI itself for non-file resources.
        """
        path = uri_to_path(uri)
        if path is None:
            return uri
        for root in self.roots:
            if path.is_relative_to(root):
                return path.relative_to(root).as_posix()
        return str(path)

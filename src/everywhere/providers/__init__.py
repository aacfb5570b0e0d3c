"""Item sources feeding the aggregated search index."""

from everywhere.providers.base import BaseProvider
from everywhere.providers.commands import CommandProvider
from everywhere.providers.document_symbols import DocumentSymbolProvider
from everywhere.providers.files import FileProvider
from everywhere.providers.symbols import WorkspaceSymbolProvider
from everywhere.providers.text import TextSearchProvider

__all__ = [
    "BaseProvider",
    "CommandProvider",
    "DocumentSymbolProvider",
    "FileProvider",
    "TextSearchProvider",
    "WorkspaceSymbolProvider",
]

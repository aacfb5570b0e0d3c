"""Host environment capability surface and its local-disk implementation."""
from everywhere.host.local import LocalWorkspace
from everywhere.host.workspace import (
    DocumentSymbol,
    SymbolInformation,
    UnknownCommandError,
    Workspace,
)

__all__ = [
    "DocumentSymbol",
    "LocalWorkspace",
    "SymbolInformation",
    "UnknownCommandError",
    "Workspace",
]

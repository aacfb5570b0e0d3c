"""Symbol extraction for local source files.

Python sources are parsed with :mod:`ast` and yield a nested symbol tree.
Other languages go through a line-oriented regex scan that recognizes the
common declaration forms; its output is flat.
"""

import ast
import re
from pathlib import Path

from everywhere.core.types import Range, SymbolKind
from everywhere.host.workspace import DocumentSymbol

PYTHON_EXTENSIONS = frozenset({".py", ".pyi"})

REGEX_EXTENSIONS = frozenset(
    {
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".java",
        ".c",
        ".h",
        ".cpp",
        ".hpp",
        ".cs",
        ".go",
        ".rb",
        ".php",
        ".rs",
        ".swift",
        ".kt",
    }
)

_DECLARATIONS: list[tuple[re.Pattern[str], SymbolKind]] = [
    (
        re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:public\s+|private\s+|internal\s+)?"
                   r"(?:abstract\s+|final\s+|sealed\s+|static\s+)*class\s+([A-Za-z_$][\w$]*)"),
        SymbolKind.CLASS,
    ),
    (
        re.compile(r"^\s*(?:export\s+)?(?:public\s+)?interface\s+([A-Za-z_$][\w$]*)"),
        SymbolKind.INTERFACE,
    ),
    (
        re.compile(r"^\s*(?:export\s+)?(?:public\s+|pub\s+)?(?:const\s+)?enum\s+([A-Za-z_$][\w$]*)"),
        SymbolKind.ENUM,
    ),
    (
        re.compile(r"^\s*(?:pub\s+)?(?:typedef\s+)?struct\s+([A-Za-z_]\w*)"),
        SymbolKind.STRUCT,
    ),
    (re.compile(r"^\s*type\s+([A-Za-z_]\w*)\s+struct\b"), SymbolKind.STRUCT),
    (re.compile(r"^\s*(?:pub\s+)?trait\s+([A-Za-z_]\w*)"), SymbolKind.INTERFACE),
    (re.compile(r"^\s*module\s+([A-Z]\w*)"), SymbolKind.MODULE),
    (re.compile(r"^\s*namespace\s+([A-Za-z_][\w.\\]*)"), SymbolKind.NAMESPACE),
    (
        re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)"),
        SymbolKind.FUNCTION,
    ),
    (
        re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?(?:unsafe\s+)?fn\s+([A-Za-z_]\w*)"),
        SymbolKind.FUNCTION,
    ),
    (re.compile(r"^\s*func\s+\([^)]*\)\s*([A-Za-z_]\w*)"), SymbolKind.METHOD),
    (
        re.compile(r"^\s*(?:public\s+|private\s+|internal\s+)?(?:static\s+)?func\s+([A-Za-z_]\w*)"),
        SymbolKind.FUNCTION,
    ),
    (re.compile(r"^\s*def\s+(?:self\.)?([A-Za-z_]\w*[?!]?)"), SymbolKind.METHOD),
    (
        re.compile(r"^\s*(?:export\s+)?const\s+([A-Z][A-Z0-9_]*)\s*[:=]"),
        SymbolKind.CONSTANT,
    ),
    (
        re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s*)?"
                   r"(?:\([^)]*\)|[A-Za-z_$][\w$]*)\s*=>"),
        SymbolKind.FUNCTION,
    ),
    (
        re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][\w$]*)"),
        SymbolKind.VARIABLE,
    ),
    (
        re.compile(r"^\s*(?:public|private|protected)\s+(?:static\s+)?(?:final\s+)?(?:async\s+)?"
                   r"[\w<>\[\],\s]*?\s([A-Za-z_]\w*)\s*\("),
        SymbolKind.METHOD,
    ),
]


def supports(path: Path) -> bool:
    """Whether symbols can be extracted from a file of this type."""
    suffix = path.suffix.lower()
    return suffix in PYTHON_EXTENSIONS or suffix in REGEX_EXTENSIONS


def extract_symbols(path: Path, text: str) -> list[DocumentSymbol]:
    """Extract the symbol tree of a source file.

    Args:
        path: Path of the file, used to choose the extractor.
        text: File content.

    Returns:
        Top-level symbols with their children; empty for unsupported files.

    Raises:
        SyntaxError: If a Python source cannot be parsed.
    """
    suffix = path.suffix.lower()
    if suffix in PYTHON_EXTENSIONS:
        return _PythonSymbolVisitor.extract(text)
    if suffix in REGEX_EXTENSIONS:
        return _scan_declarations(text)
    return []


def _node_range(node: ast.stmt) -> Range:
    end_line = node.end_lineno if node.end_lineno is not None else node.lineno
    end_col = node.end_col_offset if node.end_col_offset is not None else node.col_offset
    return Range.from_coordinates(node.lineno - 1, node.col_offset, end_line - 1, end_col)


def _name_range(node: ast.stmt, name: str, lines: list[str]) -> Range:
    line = node.lineno - 1
    # Decorators push lineno onto the decorator; the def line follows them
    for index in range(line, min(line + 50, len(lines))):
        column = lines[index].find(name)
        if column >= 0:
            return Range.from_coordinates(index, column, index, column + len(name))
    return Range.from_coordinates(line, node.col_offset)


def _is_property(node: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name) and decorator.id in ("property", "cached_property"):
            return True
        if isinstance(decorator, ast.Attribute) and decorator.attr in (
            "cached_property",
            "setter",
            "getter",
        ):
            return True
    return False


def _assigned_names(node: ast.stmt) -> list[str]:
    if isinstance(node, ast.Assign):
        targets = node.targets
    elif isinstance(node, ast.AnnAssign):
        targets = [node.target]
    else:
        return []
    return [target.id for target in targets if isinstance(target, ast.Name)]


class _PythonSymbolVisitor:
    """Builds DocumentSymbol trees from a Python module."""

    def __init__(self, lines: list[str]) -> None:
        self._lines = lines

    @classmethod
    def extract(cls, text: str) -> list[DocumentSymbol]:
        tree = ast.parse(text)
        return cls(text.splitlines()).visit_body(tree.body, in_class=False)

    def visit_body(self, body: list[ast.stmt], in_class: bool) -> list[DocumentSymbol]:
        symbols: list[DocumentSymbol] = []
        for node in body:
            if isinstance(node, ast.ClassDef):
                symbols.append(
                    self._symbol(
                        node,
                        node.name,
                        SymbolKind.CLASS,
                        self.visit_body(node.body, in_class=True),
                    )
                )
            elif isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef):
                symbols.append(self._function(node, in_class))
            else:
                for name in _assigned_names(node):
                    symbols.append(self._symbol(node, name, self._variable_kind(name, in_class)))
        return symbols

    def _function(
        self,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        in_class: bool,
    ) -> DocumentSymbol:
        if not in_class:
            kind = SymbolKind.FUNCTION
        elif node.name == "__init__":
            kind = SymbolKind.CONSTRUCTOR
        elif _is_property(node):
            kind = SymbolKind.PROPERTY
        else:
            kind = SymbolKind.METHOD
        # Nested functions are implementation detail, only nested classes count
        children = [
            self._symbol(child, child.name, SymbolKind.CLASS, self.visit_body(child.body, True))
            for child in node.body
            if isinstance(child, ast.ClassDef)
        ]
        return self._symbol(node, node.name, kind, children)

    @staticmethod
    def _variable_kind(name: str, in_class: bool) -> SymbolKind:
        if name.isupper():
            return SymbolKind.CONSTANT
        return SymbolKind.FIELD if in_class else SymbolKind.VARIABLE

    def _symbol(
        self,
        node: ast.stmt,
        name: str,
        kind: SymbolKind,
        children: list[DocumentSymbol] | None = None,
    ) -> DocumentSymbol:
        return DocumentSymbol(
            name=name,
            kind=kind,
            range=_node_range(node),
            selection_range=_name_range(node, name, self._lines),
            children=children or [],
        )


def _scan_declarations(text: str) -> list[DocumentSymbol]:
    symbols: list[DocumentSymbol] = []
    for line_number, line in enumerate(text.splitlines()):
        for pattern, kind in _DECLARATIONS:
            match = pattern.match(line)
            if match is None:
                continue
            name = match.group(1)
            start, end = match.span(1)
            symbols.append(
                DocumentSymbol(
                    name=name,
                    kind=kind,
                    range=Range.from_coordinates(line_number, 0, line_number, len(line)),
                    selection_range=Range.from_coordinates(line_number, start, line_number, end),
                )
            )
            break
    return symbols

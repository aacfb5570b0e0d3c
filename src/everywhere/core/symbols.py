"""Symbol-kind classification tables shared by the symbol providers."""

from everywhere.core.types import (
    DEFAULT_PRIORITY,
    Range,
    SearchItemType,
    SymbolKind,
    SymbolKindGroup,
)

CLASS_PRIORITY = 100
FUNCTION_PRIORITY = 90
MEMBER_PRIORITY = 70
CONSTANT_PRIORITY = 60
VARIABLE_PRIORITY = 40

_KIND_GROUPS: dict[SymbolKind, SymbolKindGroup] = {
    SymbolKind.CLASS: SymbolKindGroup.CLASS,
    SymbolKind.INTERFACE: SymbolKindGroup.CLASS,
    SymbolKind.STRUCT: SymbolKindGroup.CLASS,
    SymbolKind.ENUM: SymbolKindGroup.CLASS,
    SymbolKind.FUNCTION: SymbolKindGroup.FUNCTION,
    SymbolKind.METHOD: SymbolKindGroup.FUNCTION,
    SymbolKind.CONSTRUCTOR: SymbolKindGroup.FUNCTION,
    SymbolKind.VARIABLE: SymbolKindGroup.VARIABLE,
    SymbolKind.PROPERTY: SymbolKindGroup.VARIABLE,
    SymbolKind.FIELD: SymbolKindGroup.VARIABLE,
    SymbolKind.CONSTANT: SymbolKindGroup.VARIABLE,
}

_KIND_PRIORITIES: dict[SymbolKind, int] = {
    SymbolKind.CLASS: CLASS_PRIORITY,
    SymbolKind.INTERFACE: CLASS_PRIORITY,
    SymbolKind.ENUM: CLASS_PRIORITY,
    SymbolKind.STRUCT: CLASS_PRIORITY,
    SymbolKind.METHOD: FUNCTION_PRIORITY,
    SymbolKind.FUNCTION: FUNCTION_PRIORITY,
    SymbolKind.CONSTRUCTOR: FUNCTION_PRIORITY,
    SymbolKind.PROPERTY: MEMBER_PRIORITY,
    SymbolKind.FIELD: MEMBER_PRIORITY,
    SymbolKind.ENUM_MEMBER: MEMBER_PRIORITY,
    SymbolKind.CONSTANT: CONSTANT_PRIORITY,
    SymbolKind.VARIABLE: VARIABLE_PRIORITY,
}

_KIND_NAMES: dict[SymbolKind, str] = {
    SymbolKind.FILE: "File",
    SymbolKind.MODULE: "Module",
    SymbolKind.NAMESPACE: "Namespace",
    SymbolKind.PACKAGE: "Package",
    SymbolKind.CLASS: "Class",
    SymbolKind.METHOD: "Method",
    SymbolKind.PROPERTY: "Property",
    SymbolKind.FIELD: "Field",
    SymbolKind.CONSTRUCTOR: "Constructor",
    SymbolKind.ENUM: "Enum",
    SymbolKind.INTERFACE: "Interface",
    SymbolKind.FUNCTION: "Function",
    SymbolKind.VARIABLE: "Variable",
    SymbolKind.CONSTANT: "Constant",
    SymbolKind.STRING: "String",
    SymbolKind.NUMBER: "Number",
    SymbolKind.BOOLEAN: "Boolean",
    SymbolKind.ARRAY: "Array",
    SymbolKind.OBJECT: "Object",
    SymbolKind.KEY: "Key",
    SymbolKind.NULL: "Null",
    SymbolKind.ENUM_MEMBER: "EnumMember",
    SymbolKind.STRUCT: "Struct",
    SymbolKind.EVENT: "Event",
    SymbolKind.OPERATOR: "Operator",
    SymbolKind.TYPE_PARAMETER: "TypeParameter",
}

_KIND_ICONS: dict[SymbolKind, str] = {
    SymbolKind.FILE: "file",
    SymbolKind.MODULE: "package",
    SymbolKind.NAMESPACE: "symbol-namespace",
    SymbolKind.PACKAGE: "package",
    SymbolKind.CLASS: "symbol-class",
    SymbolKind.METHOD: "symbol-method",
    SymbolKind.PROPERTY: "symbol-property",
    SymbolKind.FIELD: "symbol-field",
    SymbolKind.CONSTRUCTOR: "symbol-constructor",
    SymbolKind.ENUM: "symbol-enum",
    SymbolKind.INTERFACE: "symbol-interface",
    SymbolKind.FUNCTION: "symbol-method",
    SymbolKind.VARIABLE: "symbol-variable",
    SymbolKind.CONSTANT: "symbol-constant",
    SymbolKind.STRING: "symbol-string",
    SymbolKind.NUMBER: "symbol-numeric",
    SymbolKind.BOOLEAN: "symbol-boolean",
    SymbolKind.ARRAY: "symbol-array",
    SymbolKind.OBJECT: "symbol-object",
    SymbolKind.KEY: "symbol-key",
    SymbolKind.NULL: "symbol-null",
    SymbolKind.ENUM_MEMBER: "symbol-enum-member",
    SymbolKind.STRUCT: "symbol-struct",
    SymbolKind.EVENT: "symbol-event",
    SymbolKind.OPERATOR: "symbol-operator",
    SymbolKind.TYPE_PARAMETER: "symbol-parameter",
}


def kind_group(kind: SymbolKind) -> SymbolKindGroup:
    """Map a symbol kind onto its coarse group."""
    return _KIND_GROUPS.get(kind, SymbolKindGroup.OTHER)


def kind_priority(kind: SymbolKind) -> int:
    """Tie-break priority for a symbol kind (higher ranks first)."""
    return _KIND_PRIORITIES.get(kind, DEFAULT_PRIORITY)


def kind_name(kind: SymbolKind) -> str:
    """Human readable kind name used in item descriptions."""
    return _KIND_NAMES.get(kind, "Symbol")


def kind_icon(kind: SymbolKind) -> str:
    """Icon hint for a symbol kind."""
    return _KIND_ICONS.get(kind, "symbol-misc")


def item_type_for(kind: SymbolKind) -> SearchItemType:
    """Class-like kinds become CLASS items, everything else SYMBOL."""
    if kind_group(kind) is SymbolKindGroup.CLASS:
        return SearchItemType.CLASS
    return SearchItemType.SYMBOL


def symbol_description(kind: SymbolKind, container: str | None) -> str:
    """Format ``"<Kind>"`` or ``"<Kind> - <container>"``."""
    name = kind_name(kind)
    return f"{name} - {container}" if container else name


def symbol_id(name: str, uri: str, symbol_range: Range) -> str:
    """Identity of a symbol occurrence: name, document and start position."""
    start = symbol_range.start
    return f"symbol:{name}:{uri}:{start.line}:{start.character}"

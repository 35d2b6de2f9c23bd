"""Julia syntax tree adapter over tree-sitter."""

from testpicker.syntax.tree import (
    ASSIGNMENT_KINDS,
    CALL_KINDS,
    FUNCTION_KINDS,
    IMPORT_KINDS,
    MACROCALL_KINDS,
    OPERATOR_KINDS,
    SHORT_CIRCUIT_OPERATORS,
    STRING_KINDS,
    SyntaxNode,
    parse_file,
    parse_source,
)

__all__ = [
    "ASSIGNMENT_KINDS",
    "CALL_KINDS",
    "FUNCTION_KINDS",
    "IMPORT_KINDS",
    "MACROCALL_KINDS",
    "OPERATOR_KINDS",
    "SHORT_CIRCUIT_OPERATORS",
    "STRING_KINDS",
    "SyntaxNode",
    "parse_file",
    "parse_source",
]

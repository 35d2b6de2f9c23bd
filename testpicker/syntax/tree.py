"""Julia syntax trees backed by tree-sitter.

Wraps ``tree_sitter.Node`` objects produced by the ``tree-sitter-julia``
grammar in a small immutable ``SyntaxNode`` value type.  Only named
children are exposed, so punctuation and keywords (``begin``, ``end``,
``=``, quotes) never show up while walking a tree.

tree-sitter never raises on malformed input; it inserts ``ERROR`` and
missing nodes instead.  ``parse_source`` turns the first of those into a
``ParseError`` so callers get a structured failure naming the file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tree_sitter
import tree_sitter_julia

from testpicker.errors import ParseError

# Node-kind families.  Several names are accepted per family because the
# grammar renamed a few rules between releases.
CALL_KINDS = frozenset({"call_expression"})
IMPORT_KINDS = frozenset({"using_statement", "import_statement"})
ASSIGNMENT_KINDS = frozenset({"assignment", "assignment_expression"})
MACROCALL_KINDS = frozenset({"macrocall_expression"})
FUNCTION_KINDS = frozenset({"function_definition", "short_function_definition"})
STRING_KINDS = frozenset({"string_literal"})
OPERATOR_KINDS = frozenset({"binary_expression", "unary_expression"})

# Operators that lower to control flow instead of a function call
SHORT_CIRCUIT_OPERATORS = frozenset({"&&", "||"})

DO_CLAUSE_KIND = "do_clause"

MACRO_IDENTIFIER_KIND = "macro_identifier"
MACRO_ARGUMENT_KINDS = frozenset({"macro_argument_list", "argument_list"})

_LANGUAGE: Any = None


def _language() -> Any:
    global _LANGUAGE
    if _LANGUAGE is None:
        _LANGUAGE = tree_sitter.Language(tree_sitter_julia.language())
    return _LANGUAGE


class SyntaxNode:
    """Read-only view of one node of a parsed Julia file.

    Two nodes are equal when they cover the same byte span of the same
    file with the same kind, so nodes can be used inside frozen
    dataclasses and as dictionary keys.
    """

    __slots__ = ("_node", "_source", "filename")

    def __init__(self, node: Any, source: bytes, filename: str) -> None:
        self._node = node
        self._source = source
        self.filename = filename

    @property
    def kind(self) -> str:
        return self._node.type

    @property
    def children(self) -> list[SyntaxNode]:
        """Named children in source order (empty for leaves)."""
        return [
            SyntaxNode(child, self._source, self.filename)
            for child in self._node.named_children
        ]

    @property
    def is_leaf(self) -> bool:
        return self._node.named_child_count == 0

    @property
    def start_byte(self) -> int:
        return self._node.start_byte

    @property
    def end_byte(self) -> int:
        return self._node.end_byte

    @property
    def line(self) -> int:
        """1-based line of the first character of the node."""
        return self._node.start_point[0] + 1

    @property
    def column(self) -> int:
        return self._node.start_point[1] + 1

    @property
    def text(self) -> str:
        """Exact source text covered by the node."""
        return self._source[self.start_byte:self.end_byte].decode("utf-8")

    def to_expr(self) -> str:
        """Executable Julia expression for this node."""
        return self.text

    @property
    def macro_name(self) -> str | None:
        """Macro name without the ``@`` for a macro call, else None."""
        if self.kind not in MACROCALL_KINDS:
            return None
        children = self.children
        if not children or children[0].kind != MACRO_IDENTIFIER_KIND:
            return None
        return children[0].text.lstrip("@")

    @property
    def macro_arguments(self) -> list[SyntaxNode]:
        """Arguments of a macro call, in order; empty for other nodes."""
        if self.kind not in MACROCALL_KINDS:
            return []
        children = self.children
        for child in children:
            if child.kind in MACRO_ARGUMENT_KINDS:
                return child.children
        return [c for c in children[1:] if c.kind != MACRO_IDENTIFIER_KIND]

    @property
    def operator(self) -> str | None:
        """Operator token of a unary or binary expression, else None."""
        if self.kind not in OPERATOR_KINDS:
            return None
        for child in self._node.children:
            if child.type == "operator" or not child.is_named:
                token = self._source[child.start_byte:child.end_byte].decode("utf-8").strip()
                if token not in ("(", ")"):
                    return token
        return None

    @property
    def has_do_clause(self) -> bool:
        return any(child.kind == DO_CLAUSE_KIND for child in self.children)

    def _key(self) -> tuple[str, str, int, int]:
        return (self.filename, self.kind, self.start_byte, self.end_byte)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SyntaxNode):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"SyntaxNode({self.kind!r}, {self.filename}:{self.line})"


def _first_error(node: Any) -> Any | None:
    """Depth-first search for the first ERROR or missing node."""
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


def parse_source(source: str | bytes, filename: str = "none") -> SyntaxNode:
    """Parse Julia source and return the root node.

    Args:
        source: File contents.
        filename: Name used in diagnostics and node identity.

    Returns:
        The ``source_file`` root node.

    Raises:
        ParseError: If the source contains a syntax error.
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    parser = tree_sitter.Parser(_language())
    tree = parser.parse(data)
    root = tree.root_node

    error = _first_error(root)
    if error is not None:
        row, col = error.start_point[0], error.start_point[1]
        what = f"missing {error.type}" if error.is_missing else "syntax error"
        raise ParseError(filename, what, line=row + 1, column=col + 1)

    return SyntaxNode(root, data, filename)


def parse_file(path: str | Path, filename: str | None = None) -> SyntaxNode:
    """Read and parse a Julia file.

    ``filename`` is the name recorded on the nodes (defaults to ``path``).

    Raises:
        OSError: If the file cannot be read.
        ParseError: If it is not valid UTF-8 or contains a syntax error.
    """
    path = Path(path)
    data = path.read_bytes()
    try:
        data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(filename or str(path), f"not valid UTF-8 ({e.reason})") from e
    return parse_source(data, filename=filename or str(path))

"""Preamble-aware discovery of test blocks in one syntax tree.

The walk is depth-first.  At every level it carries the setup statements
("preamble") seen so far in the current lexical ancestry.  Preambles are
tuples: appending builds a new tuple, so a block that was already emitted
can never observe statements added after it, and nothing written inside
one branch leaks into a sibling.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from testpicker.discovery.interfaces import BlockInterface
from testpicker.errors import ClassificationError
from testpicker.syntax import (
    ASSIGNMENT_KINDS,
    CALL_KINDS,
    FUNCTION_KINDS,
    IMPORT_KINDS,
    MACROCALL_KINDS,
    OPERATOR_KINDS,
    SHORT_CIRCUIT_OPERATORS,
    SyntaxNode,
    parse_file,
)

PREAMBLE_KINDS = CALL_KINDS | OPERATOR_KINDS | IMPORT_KINDS | ASSIGNMENT_KINDS | MACROCALL_KINDS | FUNCTION_KINDS

Preamble = tuple[SyntaxNode, ...]


@dataclass(frozen=True)
class SyntaxBlock:
    """A discovered test block and the setup code it needs."""

    preamble: Preamble
    testblock: SyntaxNode
    interface: BlockInterface


def is_preamble(node: SyntaxNode) -> bool:
    """Whether a statement is setup code worth replaying before a block.

    Only calls (operator calls included), imports, assignments, macro calls
    and function definitions qualify.  A call with a ``do`` block and the
    short-circuit operators ``&&`` and ``||`` are control flow, like
    literals and bare blocks, and are never replayed.
    """
    if node.kind not in PREAMBLE_KINDS:
        return False
    if node.kind in CALL_KINDS:
        return not node.has_do_clause
    if node.kind in OPERATOR_KINDS:
        return node.operator not in SHORT_CIRCUIT_OPERATORS
    return True


def _claims(interface: BlockInterface, node: SyntaxNode) -> bool:
    try:
        return bool(interface.is_test_block(node))
    except Exception as e:
        raise ClassificationError(
            f"{interface.name}.is_test_block failed on {node.filename}:{node.line}: {e}"
        ) from e


def walk(
    interface: BlockInterface,
    node: SyntaxNode,
    preamble: Preamble = (),
) -> list[SyntaxBlock]:
    """Collect the blocks of one kind below ``node``.

    Args:
        interface: Block kind to recognize.
        node: Subtree to walk.  Leaves yield nothing.
        preamble: Setup statements in scope above ``node``.

    Returns:
        Blocks in source order, nested blocks right after their parent.
    """
    blocks: list[SyntaxBlock] = []
    _walk(interface, node, preamble, blocks)
    return blocks


def _walk(
    interface: BlockInterface,
    node: SyntaxNode,
    preamble: Preamble,
    blocks: list[SyntaxBlock],
) -> None:
    for child in node.children:
        if _claims(interface, child):
            blocks.append(SyntaxBlock(preamble, child, interface))
            _walk(interface, child, preamble, blocks)
        else:
            _walk(interface, child, preamble, blocks)
            if is_preamble(child):
                preamble = preamble + (child,)


def get_testblocks_from_tree(
    interfaces: Iterable[BlockInterface],
    root: SyntaxNode,
) -> list[SyntaxBlock]:
    """Run one walk per kind over a parsed file and concatenate the results."""
    blocks: list[SyntaxBlock] = []
    for interface in interfaces:
        blocks.extend(walk(interface, root))
    return blocks


def get_testblocks(
    interfaces: Iterable[BlockInterface],
    path: str | Path,
    filename: str | None = None,
) -> list[SyntaxBlock]:
    """Parse a file and return all of its test blocks.

    Args:
        interfaces: Active block kinds, walked in order.
        path: File to parse.
        filename: Name recorded on the nodes (defaults to ``path``).

    Raises:
        OSError: If the file cannot be read.
        ParseError: If the file does not parse.
    """
    root = parse_file(path, filename=filename)
    return get_testblocks_from_tree(interfaces, root)

"""Block kinds: pluggable recognizers for test blocks.

A block kind answers two questions about a syntax node: whether it is a
test block of that kind, and what label to show for it.  Kinds may also
contribute setup code run once before any of their blocks, and may
rewrite a block before it is executed.

Kinds are frozen dataclasses so that two instances describing the same
kind compare equal, which is what the registry de-duplicates on.
"""

from __future__ import annotations

import abc
import os
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from testpicker.errors import ClassificationError
from testpicker.syntax import STRING_KINDS, SyntaxNode

TESTPICKER_NODES_ENV = "TESTPICKER_NODES"


class BlockInterface(abc.ABC):
    """Contract every block kind implements."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abc.abstractmethod
    def is_test_block(self, node: SyntaxNode) -> bool:
        """Whether ``node`` is a test block of this kind.  Must not raise."""

    @abc.abstractmethod
    def label(self, node: SyntaxNode) -> str:
        """Display label of a node accepted by ``is_test_block``."""

    def setup_preamble(self) -> str | None:
        """Code run once before any block of this kind, if any."""
        return None

    def transform(self, block: SyntaxNode) -> str:
        """Executable expression for a block; the block source by default."""
        return block.to_expr()


def prepend_setup_preamble(interface: BlockInterface, statements: list[str]) -> list[str]:
    """Put the kind's setup code (if any) in front of ``statements``."""
    setup = interface.setup_preamble()
    if setup is None:
        return list(statements)
    return [setup, *statements]


def _string_label_node(node: SyntaxNode, macro: str) -> SyntaxNode | None:
    """First argument of ``@<macro> "<label>" ...`` when it is a string."""
    if node.macro_name != macro:
        return None
    args = node.macro_arguments
    if not args or args[0].kind not in STRING_KINDS:
        return None
    return args[0]


@dataclass(frozen=True)
class MacroBlock(BlockInterface):
    """Any ``@<macro> "<label>" ...`` invocation.

    ``macro`` is stored without the leading ``@``.
    """

    macro: str
    setup: str | None = None

    def __post_init__(self) -> None:
        if self.macro.startswith("@"):
            object.__setattr__(self, "macro", self.macro[1:])

    @property
    def name(self) -> str:
        return f"@{self.macro}"

    def is_test_block(self, node: SyntaxNode) -> bool:
        return _string_label_node(node, self.macro) is not None

    def label(self, node: SyntaxNode) -> str:
        label_node = _string_label_node(node, self.macro)
        if label_node is None:
            raise ClassificationError(
                f"{self.name}: node at {node.filename}:{node.line} is not a "
                f"'{self.name} \"label\" ...' invocation"
            )
        return label_node.text

    def setup_preamble(self) -> str | None:
        return self.setup


@dataclass(frozen=True)
class StandardTestGroup(MacroBlock):
    """``@testset "<description>" ...`` from the Test standard library."""

    macro: str = "testset"
    setup: str | None = "using Test"

    @property
    def name(self) -> str:
        return "StandardTestGroup"


@dataclass(frozen=True)
class TestItemBlock(MacroBlock):
    """``@testitem "<name>" [options...] begin ... end`` test items.

    Items are run as plain ``@testset`` blocks, so options such as
    ``setup=[...]`` are dropped.
    """

    __test__ = False

    macro: str = "testitem"
    setup: str | None = "using Test"

    @property
    def name(self) -> str:
        return "TestItemBlock"

    def transform(self, block: SyntaxNode) -> str:
        args = block.macro_arguments
        if len(args) < 2:
            raise ClassificationError(
                f"{self.name}: item at {block.filename}:{block.line} has no body"
            )
        return f"@testset {args[0].text} {args[-1].text}"


class InterfaceRegistry:
    """Ordered, de-duplicated collection of active block kinds."""

    def __init__(self, interfaces: list[BlockInterface] | None = None) -> None:
        self._interfaces: list[BlockInterface] = []
        for interface in interfaces or []:
            self.register(interface)

    def register(self, interface: BlockInterface) -> bool:
        """Add a kind.  Returns False if an equal kind is already active."""
        if interface in self._interfaces:
            return False
        self._interfaces.append(interface)
        return True

    def __iter__(self) -> Iterator[BlockInterface]:
        return iter(list(self._interfaces))

    def __len__(self) -> int:
        return len(self._interfaces)

    def __contains__(self, interface: object) -> bool:
        return interface in self._interfaces

    def __repr__(self) -> str:
        names = ", ".join(i.name for i in self._interfaces)
        return f"InterfaceRegistry([{names}])"


def testnode_macros_from_env(environ: Mapping[str, str] | None = None) -> list[str]:
    """Macro names listed in ``TESTPICKER_NODES``, without the ``@``.

    Entries that do not start with ``@`` are not macros; they are reported
    on stderr and ignored.
    """
    if environ is None:
        environ = os.environ
    raw = environ.get(TESTPICKER_NODES_ENV, "")
    names = [n.strip() for n in raw.split(",") if n.strip()]
    not_macros = [n for n in names if not n.startswith("@")]
    if not_macros:
        print(
            f"Warning: {TESTPICKER_NODES_ENV} entries are not macros and are "
            f"ignored: {', '.join(not_macros)}",
            file=sys.stderr,
        )
    return [n[1:] for n in names if n.startswith("@")]


def default_registry(
    config: Any | None = None,
    environ: Mapping[str, str] | None = None,
) -> InterfaceRegistry:
    """Build the active block kinds.

    ``StandardTestGroup`` always comes first, followed by ``TestItemBlock``
    (unless disabled in the config), the config's ``block_macros`` and
    finally the macros named in ``TESTPICKER_NODES``.

    Args:
        config: A ``PickerConfig``, or None for defaults.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    registry = InterfaceRegistry([StandardTestGroup()])

    testitem = True if config is None else config.testitem
    if testitem:
        registry.register(TestItemBlock())

    macros = [] if config is None else list(config.block_macros)
    macros.extend(testnode_macros_from_env(environ))
    for macro in macros:
        name = macro[1:] if macro.startswith("@") else macro
        if name == StandardTestGroup.macro:
            continue
        if name == TestItemBlock.macro and testitem:
            continue
        registry.register(MacroBlock(name))
    return registry

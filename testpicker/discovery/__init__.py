"""Test block discovery: block kinds, preamble-aware walk, files and index."""

from testpicker.discovery.files import get_test_files
from testpicker.discovery.index import (
    SEPARATOR,
    BlockIndex,
    BlockInfo,
    build_index,
    display_label,
    format_display,
    parse_display_key,
)
from testpicker.discovery.interfaces import (
    BlockInterface,
    InterfaceRegistry,
    MacroBlock,
    StandardTestGroup,
    TestItemBlock,
    default_registry,
    testnode_macros_from_env,
)
from testpicker.discovery.walker import SyntaxBlock, get_testblocks, is_preamble, walk

__all__ = [
    "SEPARATOR",
    "BlockIndex",
    "BlockInfo",
    "BlockInterface",
    "InterfaceRegistry",
    "MacroBlock",
    "StandardTestGroup",
    "SyntaxBlock",
    "TestItemBlock",
    "build_index",
    "default_registry",
    "display_label",
    "format_display",
    "get_test_files",
    "get_testblocks",
    "is_preamble",
    "parse_display_key",
    "testnode_macros_from_env",
    "walk",
]

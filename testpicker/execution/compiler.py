"""Turning selected blocks into executable Julia units.

A unit is plain Julia source.  It loads the ``Test`` harness, replays the
block kind's setup code and the captured preamble, then runs the block
inside a ``try``.  A ``Test.TestSetException`` (some test failed) is
reported on stdout as a sentinel line and swallowed, so the next unit
still runs.  Any other exception escapes and stops the batch.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from testpicker.discovery.index import BlockIndex, BlockInfo
from testpicker.discovery.interfaces import prepend_setup_preamble
from testpicker.discovery.walker import SyntaxBlock

# Sentinel prefix of the lines the catch branch prints
SENTINEL = "[TESTPICKER] "

HARNESS_IMPORT = "import Test"

_IMPORT_PREFIXES = ("using ", "import ")


@dataclass(frozen=True)
class EvalUnit:
    """One independently executable test unit."""

    code: str
    label: str
    file_name: str
    line: int
    key: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvalUnit:
        return cls(
            code=str(data["code"]),
            label=str(data["label"]),
            file_name=str(data["file_name"]),
            line=int(data["line"]),
            key=str(data["key"]),
        )


def julia_string(text: str) -> str:
    """Quote ``text`` as a Julia string literal (no interpolation)."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
    return f'"{escaped}"'


def unit_key(label: str, file_name: str, line: int) -> str:
    """Short stable identifier used to attribute reported failures."""
    digest = hashlib.sha256(f"{label}\0{file_name}\0{line}".encode())
    return digest.hexdigest()[:12]


def _is_import(statement: str) -> bool:
    return statement.lstrip().startswith(_IMPORT_PREFIXES)


def dedupe_imports(statements: Iterable[str]) -> list[str]:
    """Drop repeated ``using``/``import`` statements, keeping the first.

    Other statements are kept as captured, repeats included.
    """
    seen: set[str] = set()
    result: list[str] = []
    for statement in statements:
        if _is_import(statement):
            normalized = " ".join(statement.split())
            if normalized in seen:
                continue
            seen.add(normalized)
        result.append(statement)
    return result


def wrap_block(expression: str, key: str) -> str:
    """Wrap a block so that test failures are reported, not raised."""
    return "\n".join([
        "try",
        expression,
        "catch e",
        "    e isa Test.TestSetException || rethrow()",
        f'    println("{SENTINEL}failure {key} ", e.pass, " ", e.fail, " ", e.error, " ", e.broken)',
        "    for t in e.errors_and_fails",
        f'        println("{SENTINEL}detail {key} ", replace(sprint(show, t), "\\n" => "\\\\n"))',
        "    end",
        "end",
    ])


def preamble_statements(block: SyntaxBlock) -> list[str]:
    """Setup code of the block's kind followed by its captured preamble."""
    captured = [node.to_expr() for node in block.preamble]
    return prepend_setup_preamble(block.interface, captured)


def compile_block(info: BlockInfo, block: SyntaxBlock) -> EvalUnit:
    """Build the executable unit of one block."""
    key = unit_key(info.label, info.file_name, info.line_start)
    statements = dedupe_imports(preamble_statements(block))
    expression = block.interface.transform(block.testblock)
    code = "\n".join([HARNESS_IMPORT, *statements, wrap_block(expression, key)])
    return EvalUnit(code, info.label, info.file_name, info.line_start, key)


def compile_selection(choices: Iterable[str], index: BlockIndex) -> list[EvalUnit]:
    """Compile the chosen display keys, in the order they were chosen.

    Raises:
        SelectionError: If a choice is not a display key of ``index``.
    """
    units: list[EvalUnit] = []
    for choice in choices:
        info, block = index.lookup(choice)
        units.append(compile_block(info, block))
    return units


def compile_test_file(file_name: str, test_root: str | Path, package_name: str) -> EvalUnit:
    """Build a unit that includes a whole test file inside one test set."""
    key = unit_key("", file_name, 0)
    path = (Path(test_root) / file_name).as_posix()
    expression = "\n".join([
        f"@testset {julia_string(f'{package_name} - {file_name}')} begin",
        f"    include({julia_string(path)})",
        "end",
    ])
    code = "\n".join([HARNESS_IMPORT, "using Test", wrap_block(expression, key)])
    return EvalUnit(code, "", file_name, 0, key)

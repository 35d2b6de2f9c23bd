"""Block index: discovered blocks keyed for display and selection.

Each discovered block gets a ``BlockInfo`` (label, file, line range) and a
display key, the line shown in the fuzzy finder::

    "Outer"   |   runtests.jl:2-7~~~runtests.jl~~~2~~~7

The visible part is padded to the widest label and file name of the whole
batch.  The fields after the ``~~~`` separator are hidden from the user and
consumed by the preview command (``{2}``, ``{3}``, ``{4}`` in fzf terms).
"""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from testpicker.discovery.interfaces import BlockInterface
from testpicker.discovery.walker import SyntaxBlock, get_testblocks
from testpicker.errors import ClassificationError, IndexBuildError, SelectionError, TestPickerError

SEPARATOR = "~~~"

ON_ERROR_POLICIES = ("abort", "skip")


@dataclass(frozen=True)
class BlockInfo:
    """Display and lookup metadata of one block."""

    label: str
    file_name: str
    line_start: int
    line_end: int

    def __post_init__(self) -> None:
        if self.line_start < 1 or self.line_end < self.line_start:
            raise ValueError(
                f"invalid line range {self.line_start}-{self.line_end} "
                f"for {self.label} in {self.file_name}"
            )


def count_lines(text: str) -> int:
    """Number of lines in ``text``; a trailing newline does not open a new one."""
    if not text:
        return 1
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def block_info(block: SyntaxBlock, file_name: str) -> BlockInfo:
    """Derive the metadata of a discovered block."""
    node = block.testblock
    line_start = node.line
    line_end = line_start + count_lines(node.text) - 1
    return BlockInfo(block.interface.label(node), file_name, line_start, line_end)


def display_label(label: str) -> str:
    """Label as shown on a single finder line; newlines are escaped."""
    return label.replace("\r", "\\r").replace("\n", "\\n")


def format_visible(info: BlockInfo, label_width: int, file_width: int) -> str:
    """Visible, padded part of a display key."""
    label = display_label(info.label).ljust(label_width + 2)
    file_name = info.file_name.rjust(file_width + 2)
    return f"{label} | {file_name}:{info.line_start}-{info.line_end}"


def format_display(info: BlockInfo, label_width: int, file_width: int) -> str:
    """Full display key: visible part plus the hidden preview fields."""
    visible = format_visible(info, label_width, file_width)
    return SEPARATOR.join([visible, info.file_name, str(info.line_start), str(info.line_end)])


def parse_display_key(key: str) -> tuple[str, str, int, int]:
    """Split a display key into (visible, file name, line start, line end).

    Raises:
        ValueError: If ``key`` was not produced by ``format_display``.
    """
    parts = key.rstrip("\n").split(SEPARATOR)
    if len(parts) != 4:
        raise ValueError(f"not a display key: {key!r}")
    visible, file_name, line_start, line_end = parts
    return visible, file_name, int(line_start), int(line_end)


class BlockIndex:
    """The two coupled mappings produced by ``build_index``.

    ``info_to_block`` maps each ``BlockInfo`` to its ``SyntaxBlock``;
    ``display_to_info`` maps display keys back to ``BlockInfo``.  Both keep
    discovery order.
    """

    def __init__(self, info_to_block: dict[BlockInfo, SyntaxBlock] | None = None) -> None:
        self.info_to_block: dict[BlockInfo, SyntaxBlock] = dict(info_to_block or {})
        self.display_to_info: dict[str, BlockInfo] = {}
        if self.info_to_block:
            label_width = max(len(display_label(info.label)) for info in self.info_to_block)
            file_width = max(len(info.file_name) for info in self.info_to_block)
            for info in self.info_to_block:
                self.display_to_info[format_display(info, label_width, file_width)] = info

    def display_keys(self) -> list[str]:
        return list(self.display_to_info)

    def lookup(self, key: str) -> tuple[BlockInfo, SyntaxBlock]:
        """Resolve a display key returned by the finder.

        Raises:
            SelectionError: If the key is not part of this index.
        """
        try:
            info = self.display_to_info[key.rstrip("\n")]
        except KeyError as e:
            raise SelectionError(f"not a test block of this selection: {key.strip()!r}") from e
        return info, self.info_to_block[info]

    def __iter__(self) -> Iterator[BlockInfo]:
        return iter(self.info_to_block)

    def __len__(self) -> int:
        return len(self.info_to_block)

    def __bool__(self) -> bool:
        return bool(self.info_to_block)


def build_index(
    interfaces: Iterable[BlockInterface],
    root: str | Path,
    matched_files: Iterable[str],
    on_error: str = "abort",
) -> BlockIndex:
    """Discover the blocks of every matched file and index them.

    Args:
        interfaces: Active block kinds.
        root: Test root the file names are relative to.
        matched_files: Files to index, relative to ``root``.
        on_error: ``"abort"`` to raise on the first unreadable or
            unparseable file, ``"skip"`` to warn and leave it out.

    Returns:
        The index.  Empty when no file yields a block.

    Raises:
        IndexBuildError: A file failed and ``on_error`` is ``"abort"``.
        ValueError: ``on_error`` is not a known policy.
    """
    if on_error not in ON_ERROR_POLICIES:
        raise ValueError(f"Unknown on_error policy: {on_error}")

    interfaces = list(interfaces)
    root = Path(root)
    info_to_block: dict[BlockInfo, SyntaxBlock] = {}

    for file_name in matched_files:
        try:
            blocks = get_testblocks(interfaces, root / file_name, filename=file_name)
        except ClassificationError:
            raise
        except (OSError, TestPickerError) as e:
            if on_error == "abort":
                raise IndexBuildError(file_name, str(e)) from e
            print(f"Warning: skipping {file_name}: {e}", file=sys.stderr)
            continue

        for block in blocks:
            info_to_block[block_info(block, file_name)] = block

    return BlockIndex(info_to_block)

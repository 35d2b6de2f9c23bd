"""Unit tests for the block index."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from testpicker.discovery.index import (
    SEPARATOR,
    BlockIndex,
    BlockInfo,
    build_index,
    count_lines,
    display_label,
    format_display,
    format_visible,
    parse_display_key,
)
from testpicker.discovery.interfaces import MacroBlock, StandardTestGroup, TestItemBlock
from testpicker.errors import IndexBuildError, SelectionError

OUTER_INNER = """\
using Test
@testset "Outer" begin
    x = 1
    @testset "Inner" begin
        @test x == 1
    end
end
"""

MULTILINE = '''\
@testset """
multi
""" begin
    @test true
end
'''

SINGLE = """\
using Test

@testset "I am a testset" begin
    @test true
    @test 1 + 1 == 2
    @test_broken false
end
"""


def _write(root: Path, files: dict[str, str]) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


class TestBlockInfo:
    """Tests for the BlockInfo value type."""

    def test_value_equality(self):
        """Equal fields give equal, hash-equal keys."""
        a = BlockInfo('"a"', "f.jl", 1, 3)
        b = BlockInfo('"a"', "f.jl", 1, 3)
        assert a == b
        assert {a: 1}[b] == 1

    def test_rejects_inverted_range(self):
        with pytest.raises(ValueError):
            BlockInfo('"a"', "f.jl", 5, 4)

    def test_count_lines(self):
        """A trailing newline does not count as an extra line."""
        assert count_lines("a") == 1
        assert count_lines("a\nb") == 2
        assert count_lines("a\nb\n") == 2
        assert count_lines("") == 1


class TestDisplayKeys:
    """Tests for display key formatting and parsing."""

    def test_format(self):
        """Label is left aligned, file right aligned, widths plus two."""
        info = BlockInfo('"Outer"', "runtests.jl", 2, 7)
        key = format_display(info, len('"Outer"'), len("runtests.jl"))
        assert key == (
            '"Outer"   |   runtests.jl:2-7'
            f"{SEPARATOR}runtests.jl{SEPARATOR}2{SEPARATOR}7"
        )

    def test_parse_round_trip(self):
        """Parsing a key gives back its visible part and hidden fields."""
        info = BlockInfo('"a b"', "sub/test-x.jl", 10, 12)
        key = format_display(info, 20, 30)
        visible, file_name, start, end = parse_display_key(key)
        assert visible == format_visible(info, 20, 30)
        assert (file_name, start, end) == ("sub/test-x.jl", 10, 12)

    def test_parse_rejects_other_lines(self):
        with pytest.raises(ValueError):
            parse_display_key("just some text")


class TestBuildIndex:
    """Tests for build_index."""

    def test_outer_inner_scenario(self):
        """Two blocks with exact line ranges."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"runtests.jl": OUTER_INNER})
            index = build_index([StandardTestGroup()], root, ["runtests.jl"])
            infos = list(index)
            assert infos == [
                BlockInfo('"Outer"', "runtests.jl", 2, 7),
                BlockInfo('"Inner"', "runtests.jl", 4, 6),
            ]
            outer = index.info_to_block[infos[0]]
            inner = index.info_to_block[infos[1]]
            assert [n.text for n in outer.preamble] == ["using Test"]
            assert [n.text for n in inner.preamble] == ["using Test", "x = 1"]

    def test_line_range_matches_block_text(self):
        """line_end - line_start + 1 is the line count of the block text."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"a.jl": OUTER_INNER, "b.jl": SINGLE})
            index = build_index([StandardTestGroup()], root, ["a.jl", "b.jl"])
            for info, block in index.info_to_block.items():
                text = block.testblock.text
                assert info.line_end - info.line_start + 1 == len(text.split("\n"))
            assert BlockInfo('"I am a testset"', "b.jl", 3, 7) in index.info_to_block

    def test_padding_is_batch_wide(self):
        """All visible parts share the widest label and file widths."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"a.jl": OUTER_INNER, "sub/longer-name.jl": SINGLE})
            index = build_index([StandardTestGroup()], root, ["a.jl", "sub/longer-name.jl"])
            visibles = [parse_display_key(k)[0] for k in index.display_keys()]
            bars = {v.index(" | ") for v in visibles}
            assert len(bars) == 1
            colons = {v.rindex(":") for v in visibles}
            assert len(colons) == 1

    def test_lookup_round_trip(self):
        """A display key resolves to the BlockInfo it was formatted from."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"runtests.jl": OUTER_INNER})
            index = build_index([StandardTestGroup()], root, ["runtests.jl"])
            labels = [i.label for i in index]
            files = [i.file_name for i in index]
            for key in index.display_keys():
                info, block = index.lookup(key + "\n")
                visible = parse_display_key(key)[0]
                assert visible == format_visible(
                    info, max(map(len, labels)), max(map(len, files)),
                )
                assert block is index.info_to_block[info]

    def test_multiline_label_stays_on_one_line(self):
        """Triple-quoted labels are escaped in the finder line only."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"t.jl": MULTILINE})
            index = build_index([StandardTestGroup()], root, ["t.jl"])
            [key] = index.display_keys()
            assert "\n" not in key
            assert key.startswith('"""\\nmulti\\n"""')

            info, _ = index.lookup(key + "\n")
            assert info.label == '"""\nmulti\n"""'
            assert (info.line_start, info.line_end) == (1, 5)
            assert parse_display_key(key)[0].startswith(display_label(info.label))

    def test_fragment_of_a_key_is_rejected(self):
        """A partial finder line raises a picker error, not a KeyError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"runtests.jl": OUTER_INNER})
            index = build_index([StandardTestGroup()], root, ["runtests.jl"])
            fragment = index.display_keys()[0].split(" | ")[0]
            with pytest.raises(SelectionError, match="not a test block"):
                index.lookup(fragment)

    def test_idempotent(self):
        """Rebuilding from unchanged files gives the same keys."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"a.jl": OUTER_INNER, "b.jl": SINGLE})
            first = build_index([StandardTestGroup()], root, ["a.jl", "b.jl"])
            second = build_index([StandardTestGroup()], root, ["a.jl", "b.jl"])
            assert list(first) == list(second)
            assert first.display_keys() == second.display_keys()

    def test_empty_batch(self):
        """No files or no blocks give an empty index."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"plain.jl": "x = 1\n"})
            assert len(build_index([StandardTestGroup()], root, [])) == 0
            index = build_index([StandardTestGroup()], root, ["plain.jl"])
            assert not index
            assert index.display_keys() == []

    def test_several_kinds(self):
        """Blocks of every active kind are indexed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"items.jl": (
                '@testitem "item" begin\n    @test true\nend\n'
                '@check "custom" begin\nend\n'
            )})
            index = build_index(
                [StandardTestGroup(), TestItemBlock(), MacroBlock("check")],
                root, ["items.jl"],
            )
            assert [i.label for i in index] == ['"item"', '"custom"']

    def test_overlap_later_kind_wins(self):
        """Two kinds producing the same key keep one entry, the later one."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"dup.jl": '@check "same" begin\nend\n'})
            first, second = MacroBlock("check"), MacroBlock("check", setup="using Test")
            index = build_index([first, second], root, ["dup.jl"])
            assert len(index) == 1
            assert index.info_to_block[next(iter(index))].interface is second


class TestBuildIndexErrors:
    """Tests for unreadable and unparseable files."""

    def test_abort_names_file(self):
        """The default policy raises IndexBuildError for the bad file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"good.jl": SINGLE, "bad.jl": "@testset \"x\" begin\n  f(\n"})
            with pytest.raises(IndexBuildError) as exc_info:
                build_index([StandardTestGroup()], root, ["good.jl", "bad.jl"])
            assert exc_info.value.filename == "bad.jl"

    def test_missing_file_aborts(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(IndexBuildError, match="gone.jl"):
                build_index([StandardTestGroup()], Path(tmpdir), ["gone.jl"])

    def test_skip_warns_and_continues(self, capsys):
        """The skip policy leaves the bad file out with a warning."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _write(root, {"good.jl": SINGLE, "bad.jl": "@testset \"x\" begin\n  f(\n"})
            index = build_index([StandardTestGroup()], root, ["good.jl", "bad.jl"], on_error="skip")
            assert [i.file_name for i in index] == ["good.jl"]
            assert "Warning: skipping bad.jl" in capsys.readouterr().err

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            build_index([StandardTestGroup()], ".", [], on_error="ignore")

    def test_empty_index_object(self):
        index = BlockIndex()
        assert len(index) == 0
        with pytest.raises(SelectionError):
            index.lookup("missing")

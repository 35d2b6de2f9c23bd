"""Unit tests for test file discovery."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from testpicker.discovery.files import get_test_files
from testpicker.errors import TestDirectoryError


class TestGetTestFiles:
    """Tests for get_test_files."""

    def test_lists_julia_files_recursively(self):
        """Only .jl files, relative to the test root, sorted."""
        with tempfile.TemporaryDirectory() as tmpdir:
            pkg = Path(tmpdir)
            (pkg / "test" / "sub").mkdir(parents=True)
            (pkg / "test" / "runtests.jl").write_text("")
            (pkg / "test" / "sub" / "test-c.jl").write_text("")
            (pkg / "test" / "test-a.jl").write_text("")
            (pkg / "test" / "notes.md").write_text("")
            (pkg / "test" / "Project.toml").write_text("")

            root, files = get_test_files(pkg)
            assert root == (pkg / "test").resolve()
            assert files == ["runtests.jl", "sub/test-c.jl", "test-a.jl"]

    def test_custom_test_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            pkg = Path(tmpdir)
            (pkg / "checks").mkdir()
            (pkg / "checks" / "x.jl").write_text("")
            root, files = get_test_files(pkg, test_dir="checks")
            assert root.name == "checks"
            assert files == ["x.jl"]

    def test_empty_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "test").mkdir()
            _, files = get_test_files(tmpdir)
            assert files == []

    def test_missing_directory(self):
        """A missing test directory is a clear error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(TestDirectoryError, match="does not exist"):
                get_test_files(tmpdir)

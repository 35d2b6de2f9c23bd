"""Exception hierarchy shared by the indexing core and the CLI."""

from __future__ import annotations


class TestPickerError(Exception):
    """Base class for every error raised by testpicker."""

    __test__ = False


class ParseError(TestPickerError):
    """A source file could not be turned into a syntax tree."""

    def __init__(self, filename: str, message: str, line: int = 0, column: int = 0) -> None:
        self.filename = filename
        self.line = line
        self.column = column
        location = f"{filename}:{line}:{column}" if line else filename
        super().__init__(f"{location}: {message}")


class ClassificationError(TestPickerError):
    """A block kind violated its own contract (programmer error)."""


class IndexBuildError(TestPickerError):
    """A matched file could not contribute to the block index."""

    def __init__(self, filename: str, reason: str) -> None:
        self.filename = filename
        self.reason = reason
        super().__init__(f"could not index {filename}: {reason}")


class PackageNotFoundError(TestPickerError):
    """No usable Julia project was found."""


class TestDirectoryError(TestPickerError):
    """The package test directory is missing."""


class FinderNotFoundError(TestPickerError):
    """The fuzzy finder executable is not available."""


class RunnerError(TestPickerError):
    """The Julia process failed for a reason other than a test failure."""


class SelectionError(TestPickerError):
    """A line returned by the fuzzy finder is not a known display key."""

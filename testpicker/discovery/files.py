"""Listing the Julia test files of a package."""

from __future__ import annotations

import os
from pathlib import Path

from testpicker.errors import TestDirectoryError

SOURCE_EXTENSION = ".jl"


def get_test_files(package_path: str | Path, test_dir: str = "test") -> tuple[Path, list[str]]:
    """Find every Julia source file under a package's test directory.

    Args:
        package_path: Root of the package (the directory holding Project.toml).
        test_dir: Test directory, relative to the package root.

    Returns:
        Tuple of (absolute test root, sorted POSIX paths relative to it).

    Raises:
        TestDirectoryError: If the test directory does not exist.
    """
    root = (Path(package_path) / test_dir).resolve()
    if not root.is_dir():
        raise TestDirectoryError(
            f"the test directory {root} does not exist, you need to activate "
            "your package environment first"
        )

    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in filenames:
            if name.endswith(SOURCE_EXTENSION):
                rel = Path(dirpath, name).relative_to(root)
                files.append(rel.as_posix())
    return root, sorted(files)

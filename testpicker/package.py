"""Locating the Julia package whose tests are being picked."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from testpicker.errors import PackageNotFoundError

PROJECT_FILES = ("JuliaProject.toml", "Project.toml")


@dataclass(frozen=True)
class PackageContext:
    """A named Julia project on disk."""

    name: str
    path: Path
    uuid: str | None = None

    def test_root(self, test_dir: str = "test") -> Path:
        return self.path / test_dir


def _project_file(directory: Path) -> Path | None:
    for name in PROJECT_FILES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def read_project(project_file: Path) -> PackageContext:
    """Build the context of the project described by ``project_file``.

    Raises:
        PackageNotFoundError: If the file is unreadable, invalid, or the
            project has no name.
    """
    try:
        with open(project_file, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise PackageNotFoundError(f"cannot read {project_file}: {e}") from e

    name = data.get("name")
    if not name:
        raise PackageNotFoundError(
            "trying to activate test environment of an unnamed project "
            f"({project_file})"
        )
    uuid = data.get("uuid")
    return PackageContext(str(name), project_file.parent.resolve(), str(uuid) if uuid else None)


def find_package(start: str | Path | None = None) -> PackageContext:
    """Find the closest Julia project at or above ``start``.

    Args:
        start: Directory to search from (defaults to the working directory).

    Raises:
        PackageNotFoundError: If no project file is found or it is unusable.
    """
    directory = Path(start if start is not None else Path.cwd()).resolve()
    for candidate in (directory, *directory.parents):
        project_file = _project_file(candidate)
        if project_file is not None:
            return read_project(project_file)
    raise PackageNotFoundError(f"no Project.toml found in {directory} or any parent directory")

"""Persistent execution state: the results log and the latest selection.

The results log is a YAML file listing the units whose test sets failed
during the most recent run, so they can be inspected after the fact.  The
latest-selection cache is a JSON file holding the units of the last
non-empty selection, so that ``-`` can rerun them.
"""

from __future__ import annotations

import datetime
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from testpicker.execution.compiler import EvalUnit

RESULTS_FILE = "results.yaml"
LATEST_FILE = "latest.json"


@dataclass
class FailureRecord:
    """Summary of one failed test set."""

    label: str
    file_name: str
    line: int
    passed: int = 0
    failed: int = 0
    errored: int = 0
    broken: int = 0
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "file": self.file_name,
            "line": self.line,
            "counts": {
                "pass": self.passed,
                "fail": self.failed,
                "error": self.errored,
                "broken": self.broken,
            },
            "details": list(self.details),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FailureRecord:
        counts = data.get("counts") or {}
        return cls(
            label=str(data.get("label", "")),
            file_name=str(data.get("file", "")),
            line=int(data.get("line", 0)),
            passed=int(counts.get("pass", 0)),
            failed=int(counts.get("fail", 0)),
            errored=int(counts.get("error", 0)),
            broken=int(counts.get("broken", 0)),
            details=[str(d) for d in data.get("details") or []],
        )

    def location(self) -> str:
        if self.line:
            return f"{self.file_name}:{self.line}"
        return self.file_name


class ResultsLog:
    """Manages the YAML results log of the latest run."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, Any] = {"package": None, "generated_at": None, "failures": []}
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError):
            data = None
        if isinstance(data, dict):
            self._data = {
                "package": data.get("package"),
                "generated_at": data.get("generated_at"),
                "failures": list(data.get("failures") or []),
            }

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.dump(
                self._data,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

    def clear(self, package: str) -> None:
        """Start a fresh log for a new run of ``package``."""
        self._data = {
            "package": package,
            "generated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "failures": [],
        }
        self.save()

    def record_failure(self, failure: FailureRecord, package: str | None = None) -> None:
        """Append a failed test set and write the log."""
        if package is not None:
            self._data["package"] = package
        self._data["failures"].append(failure.to_dict())
        self.save()

    def load(self) -> dict[str, Any]:
        """Re-read the log from disk and return its raw content."""
        if self.path.exists():
            self._load()
        return dict(self._data)

    @property
    def package(self) -> str | None:
        return self._data.get("package")

    def failures(self) -> list[FailureRecord]:
        return [FailureRecord.from_dict(entry) for entry in self._data["failures"]]


class LatestEvalCache:
    """JSON cache of the last executed selection."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def save(self, units: list[EvalUnit]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump([unit.to_dict() for unit in units], f, indent=2)
            f.write("\n")

    def load(self) -> list[EvalUnit]:
        """Units of the last selection; empty if nothing was cached."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
            return [EvalUnit.from_dict(entry) for entry in data]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError):
            return []

"""Running compiled units in a Julia process.

All units of one selection run in a single ``julia`` process.  The batch
script is fed on stdin; each unit gets its own fresh module and runs from
the directory of the test file it came from.  Output is streamed through
to the terminal while ``[TESTPICKER]`` sentinel lines printed by failed
units are collected and written to the results log.
"""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from testpicker.errors import RunnerError
from testpicker.execution.compiler import SENTINEL, EvalUnit, julia_string
from testpicker.execution.results import FailureRecord, ResultsLog

# Evaluates the whole of stdin as top-level code in Main
JULIA_ENTRYPOINT = 'include_string(Main, read(stdin, String), "testpicker")'

TESTENV_ACTIVATION = "import TestEnv; TestEnv.activate()"


def parse_sentinel(line: str) -> tuple[str, str, list[str]] | None:
    """Split a sentinel line into (event, unit key, fields).

    Returns None for ordinary output and for malformed sentinels.
    """
    if not line.startswith(SENTINEL):
        return None
    rest = line[len(SENTINEL):].rstrip("\n")
    if rest.startswith("detail "):
        parts = rest.split(" ", 2)
        if len(parts) < 3:
            return None
        return "detail", parts[1], [parts[2].replace("\\n", "\n")]
    parts = rest.split()
    if len(parts) == 6 and parts[0] == "failure":
        return "failure", parts[1], parts[2:]
    return None


def announcement(unit: EvalUnit) -> str:
    if unit.label:
        return f"Executing testset {unit.label} from {unit.file_name}:{unit.line}"
    return f"Executing test file {unit.file_name}"


def build_script(
    units: list[EvalUnit],
    test_root: str | Path,
    activate_test_env: bool = False,
) -> str:
    """Compose the Julia script running ``units`` in order."""
    lines: list[str] = []
    if activate_test_env:
        lines.append(TESTENV_ACTIVATION)
    for i, unit in enumerate(units, start=1):
        directory = (Path(test_root) / unit.file_name).parent.as_posix()
        lines.append(f"cd({julia_string(directory)})")
        lines.append(f"@info {julia_string(announcement(unit))}")
        lines.append(f"module TestPickerUnit_{i}")
        lines.append(unit.code)
        lines.append("end")
    lines.append("nothing")
    return "\n".join(lines) + "\n"


@dataclass
class BatchResult:
    """Outcome of one batch."""

    units: list[EvalUnit]
    failures: list[FailureRecord] = field(default_factory=list)
    exit_code: int = 0

    @property
    def passed(self) -> bool:
        return self.exit_code == 0 and not self.failures


class JuliaRunner:
    """Runs batches of units with a Julia executable."""

    def __init__(
        self,
        project: str | Path,
        julia: str = "julia",
        activate_test_env: bool = False,
        results: ResultsLog | None = None,
        output: TextIO | None = None,
    ) -> None:
        self.project = Path(project)
        self.julia = julia
        self.activate_test_env = activate_test_env
        self.results = results
        self.output = output

    def command(self) -> list[str]:
        return [self.julia, f"--project={self.project}", "-e", JULIA_ENTRYPOINT]

    def run(
        self,
        units: list[EvalUnit],
        test_root: str | Path,
        package: str | None = None,
    ) -> BatchResult:
        """Run ``units`` in one Julia process.

        Failed test sets are recorded and do not stop the batch.

        Args:
            units: Units to run, in order.
            test_root: Directory the units' file names are relative to.
            package: Package name recorded with each failure.

        Returns:
            BatchResult with the reported failures.

        Raises:
            RunnerError: If Julia cannot be started or exits with an error,
                in which case the remaining units did not run.
        """
        result = BatchResult(units=list(units))
        if not units:
            return result

        script = build_script(units, test_root, self.activate_test_env)
        out = self.output if self.output is not None else sys.stdout
        by_key = {unit.key: unit for unit in units}
        records: dict[str, FailureRecord] = {}

        try:
            proc = subprocess.Popen(
                self.command(),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise RunnerError(f"Julia executable not found: {self.julia}") from e
        except OSError as e:
            raise RunnerError(f"OS error starting Julia: {e}") from e

        assert proc.stdin is not None
        assert proc.stdout is not None
        try:
            proc.stdin.write(script)
            proc.stdin.close()
        except BrokenPipeError:
            # Julia exited early; its exit code is checked below
            pass

        for line in proc.stdout:
            parsed = parse_sentinel(line)
            if parsed is None:
                out.write(line)
                continue
            event, key, fields = parsed
            unit = by_key.get(key)
            if unit is None:
                continue
            if event == "failure":
                try:
                    counts = [int(v) for v in fields]
                except ValueError:
                    continue
                records[key] = FailureRecord(
                    unit.label, unit.file_name, unit.line, *counts,
                )
            elif key in records:
                records[key].details.extend(fields)
        result.exit_code = proc.wait()

        result.failures = list(records.values())
        if self.results is not None:
            for record in result.failures:
                self.results.record_failure(record, package)

        if result.exit_code != 0:
            raise RunnerError(
                f"Julia exited with code {result.exit_code}; "
                "the remaining units of this batch did not run"
            )
        return result

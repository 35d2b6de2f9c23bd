"""Unit tests for the Julia runner."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from testpicker.errors import RunnerError
from testpicker.execution.compiler import EvalUnit
from testpicker.execution.results import ResultsLog
from testpicker.execution.runner import (
    JULIA_ENTRYPOINT,
    TESTENV_ACTIVATION,
    JuliaRunner,
    build_script,
    parse_sentinel,
)

UNIT_A = EvalUnit("import Test\n@test true", '"a"', "test-a.jl", 3, "keya")
UNIT_B = EvalUnit("import Test\n@test false", '"b"', "sub/test-b.jl", 7, "keyb")


def _fake_proc(lines: list[str], returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.stdin = MagicMock()
    proc.stdout = iter(lines)
    proc.wait.return_value = returncode
    return proc


class TestParseSentinel:
    """Tests for parse_sentinel."""

    def test_failure(self):
        assert parse_sentinel("[TESTPICKER] failure abc 1 2 3 4\n") == ("failure", "abc", ["1", "2", "3", "4"])

    def test_detail_unescapes_newlines(self):
        event, key, fields = parse_sentinel("[TESTPICKER] detail abc Test Failed\\n  Expression: false\n")
        assert (event, key) == ("detail", "abc")
        assert fields == ["Test Failed\n  Expression: false"]

    def test_ordinary_and_malformed_lines(self):
        """Plain output and broken sentinels are not events."""
        assert parse_sentinel("Test Summary: | Pass\n") is None
        assert parse_sentinel("[TESTPICKER] failure abc 1 2\n") is None
        assert parse_sentinel("[TESTPICKER] unknown abc\n") is None


class TestBuildScript:
    """Tests for build_script."""

    def test_units_in_fresh_modules(self):
        script = build_script([UNIT_A, UNIT_B], "/pkg/test")
        assert 'cd("/pkg/test")' in script
        assert 'cd("/pkg/test/sub")' in script
        assert "module TestPickerUnit_1\nimport Test\n@test true\nend" in script
        assert "module TestPickerUnit_2" in script
        assert script.index("TestPickerUnit_1") < script.index("TestPickerUnit_2")
        assert '@info "Executing testset \\"a\\" from test-a.jl:3"' in script

    def test_file_unit_announcement(self):
        unit = EvalUnit("", "", "runtests.jl", 0, "k")
        assert '@info "Executing test file runtests.jl"' in build_script([unit], "/t")

    def test_test_env_activation(self):
        script = build_script([UNIT_A], "/t", activate_test_env=True)
        assert script.startswith(TESTENV_ACTIVATION)
        assert TESTENV_ACTIVATION not in build_script([UNIT_A], "/t")


class TestJuliaRunner:
    """Tests for JuliaRunner.run with a mocked process."""

    def test_command(self):
        runner = JuliaRunner("/pkg", julia="julia-1.10")
        assert runner.command() == ["julia-1.10", "--project=/pkg", "-e", JULIA_ENTRYPOINT]

    def test_empty_batch_does_not_start_julia(self):
        with patch("testpicker.execution.runner.subprocess.Popen") as popen:
            result = JuliaRunner("/pkg").run([], "/pkg/test")
        popen.assert_not_called()
        assert result.passed

    def test_passing_batch(self):
        """Output is streamed and the script is written to stdin."""
        proc = _fake_proc(["Test Summary: | Pass\n"])
        out = io.StringIO()
        with patch("testpicker.execution.runner.subprocess.Popen", return_value=proc):
            result = JuliaRunner("/pkg", output=out).run([UNIT_A], "/pkg/test")
        assert result.passed
        assert out.getvalue() == "Test Summary: | Pass\n"
        assert "TestPickerUnit_1" in proc.stdin.write.call_args[0][0]
        proc.stdin.close.assert_called_once()

    def test_failures_recorded(self):
        """Sentinels become failure records in the results log."""
        lines = [
            "some output\n",
            "[TESTPICKER] failure keyb 1 1 0 0\n",
            "[TESTPICKER] detail keyb Test Failed at x.jl:2\\n  Expression: false\n",
            "[TESTPICKER] failure unknown 0 1 0 0\n",
        ]
        with tempfile.TemporaryDirectory() as tmpdir:
            log = ResultsLog(Path(tmpdir) / "results.yaml")
            out = io.StringIO()
            with patch("testpicker.execution.runner.subprocess.Popen", return_value=_fake_proc(lines)):
                result = JuliaRunner("/pkg", results=log, output=out).run([UNIT_A, UNIT_B], "/pkg/test", "MyPkg")

            assert not result.passed
            assert len(result.failures) == 1
            failure = result.failures[0]
            assert (failure.label, failure.file_name, failure.line) == ('"b"', "sub/test-b.jl", 7)
            assert (failure.passed, failure.failed) == (1, 1)
            assert failure.details == ["Test Failed at x.jl:2\n  Expression: false"]
            assert out.getvalue() == "some output\n"

            saved = ResultsLog(Path(tmpdir) / "results.yaml")
            assert saved.package == "MyPkg"
            assert len(saved.failures()) == 1

    def test_non_zero_exit_is_runner_error(self):
        """A crash of the harness aborts the batch."""
        lines = ["[TESTPICKER] failure keya 0 1 0 0\n"]
        with tempfile.TemporaryDirectory() as tmpdir:
            log = ResultsLog(Path(tmpdir) / "results.yaml")
            with patch("testpicker.execution.runner.subprocess.Popen", return_value=_fake_proc(lines, 1)):
                with pytest.raises(RunnerError, match="exited with code 1"):
                    JuliaRunner("/pkg", results=log, output=io.StringIO()).run([UNIT_A, UNIT_B], "/t")
            # Failures reported before the crash are kept
            assert len(ResultsLog(Path(tmpdir) / "results.yaml").failures()) == 1

    def test_missing_julia(self):
        with patch("testpicker.execution.runner.subprocess.Popen", side_effect=FileNotFoundError):
            with pytest.raises(RunnerError, match="not found"):
                JuliaRunner("/pkg", julia="nojulia").run([UNIT_A], "/t")

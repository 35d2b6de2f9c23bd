"""Compiling selected blocks and running them with Julia."""

from testpicker.execution.compiler import (
    EvalUnit,
    compile_block,
    compile_selection,
    compile_test_file,
    julia_string,
)
from testpicker.execution.results import FailureRecord, LatestEvalCache, ResultsLog
from testpicker.execution.runner import BatchResult, JuliaRunner, build_script

__all__ = [
    "BatchResult",
    "EvalUnit",
    "FailureRecord",
    "JuliaRunner",
    "LatestEvalCache",
    "ResultsLog",
    "build_script",
    "compile_block",
    "compile_selection",
    "compile_test_file",
    "julia_string",
]

"""Picker workflows.

A ``Session`` owns everything one invocation needs: the package, its
configuration, the active block kinds, the finder, the runner and the two
pieces of state that outlive a run (the results log and the cache of the
last selection).  Nothing here is global, so tests can build a session
around fakes.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

from testpicker.config import PickerConfig
from testpicker.discovery import (
    BlockIndex,
    InterfaceRegistry,
    build_index,
    default_registry,
    get_test_files,
    parse_display_key,
)
from testpicker.execution import (
    BatchResult,
    EvalUnit,
    FailureRecord,
    JuliaRunner,
    LatestEvalCache,
    ResultsLog,
    build_script,
    compile_selection,
    compile_test_file,
)
from testpicker.execution.results import LATEST_FILE, RESULTS_FILE
from testpicker.package import PackageContext
from testpicker.picker import FuzzyFinder
from testpicker.query import HELP_TEXT, QueryKind, parse_query


class Session:
    """Runs queries against one Julia package."""

    def __init__(
        self,
        package: PackageContext,
        config: PickerConfig | None = None,
        registry: InterfaceRegistry | None = None,
        finder: FuzzyFinder | None = None,
        runner: JuliaRunner | None = None,
        results: ResultsLog | None = None,
        latest: LatestEvalCache | None = None,
        out: TextIO | None = None,
    ) -> None:
        self.package = package
        self.config = config if config is not None else PickerConfig.for_package(package.path)
        state_dir = package.path / self.config.state_dir
        self.registry = registry if registry is not None else default_registry(self.config)
        self.finder = finder if finder is not None else FuzzyFinder(self.config.fzf)
        self.results = results if results is not None else ResultsLog(state_dir / RESULTS_FILE)
        self.latest = latest if latest is not None else LatestEvalCache(state_dir / LATEST_FILE)
        self.runner = runner if runner is not None else JuliaRunner(
            package.path,
            julia=self.config.julia,
            activate_test_env=self.config.activate_test_env,
            results=self.results,
        )
        self.out = out if out is not None else sys.stdout

    def _print(self, message: str = "") -> None:
        print(message, file=self.out)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def test_files(self) -> tuple[Path, list[str]]:
        return get_test_files(self.package.path, self.config.test_dir)

    def matching_files(self, file_query: str, files: list[str]) -> list[str]:
        """Test files matching ``file_query`` (all of them for an empty query)."""
        if not file_query:
            return list(files)
        return self.finder.filter(file_query, files)

    def block_index(self, file_query: str) -> tuple[Path, BlockIndex]:
        """Index the blocks of every test file matching ``file_query``."""
        root, files = self.test_files()
        matched = self.matching_files(file_query, files)
        index = build_index(self.registry, root, matched, on_error=self.config.on_parse_error)
        return root, index

    def list_blocks(self, file_query: str = "") -> list[str]:
        """Visible part of every display key, in discovery order."""
        _, index = self.block_index(file_query)
        return [parse_display_key(key)[0] for key in index.display_keys()]

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def execute(self, text: str, non_interactive: bool = False, dry_run: bool = False) -> BatchResult | None:
        """Dispatch a query to its workflow."""
        query = parse_query(text)
        if query.kind is QueryKind.HELP:
            self._print(HELP_TEXT)
            return None
        if query.kind is QueryKind.RESULTS:
            self.show_results()
            return None
        if query.kind is QueryKind.LATEST_EVAL:
            return self.run_latest(dry_run=dry_run)
        if query.kind is QueryKind.TEST_BLOCK:
            return self.run_blocks(
                query.file_query, query.block_query,
                non_interactive=non_interactive, dry_run=dry_run,
            )
        return self.run_files(query.file_query, non_interactive=non_interactive, dry_run=dry_run)

    def select_blocks(self, file_query: str, block_query: str, non_interactive: bool = False) -> tuple[Path, list[EvalUnit]]:
        """Choose blocks and compile them, in selection order."""
        root, index = self.block_index(file_query)
        if not index:
            self._print(f"No test blocks found in files matching {file_query!r}")
            return root, []
        keys = index.display_keys()
        if non_interactive:
            choices = self.finder.filter_blocks(keys, block_query)
        else:
            choices = self.finder.pick_blocks(keys, block_query, root, self.config.previewer)
        return root, compile_selection(choices, index)

    def run_blocks(
        self,
        file_query: str,
        block_query: str,
        non_interactive: bool = False,
        dry_run: bool = False,
    ) -> BatchResult | None:
        root, units = self.select_blocks(file_query, block_query, non_interactive)
        return self._run(units, root, dry_run)

    def select_files(self, file_query: str, non_interactive: bool = False) -> tuple[Path, list[EvalUnit]]:
        root, files = self.test_files()
        if non_interactive:
            chosen = self.matching_files(file_query, files)
        else:
            chosen = self.finder.pick_files(files, file_query, root, self.config.previewer)
        units: list[EvalUnit] = []
        for file_name in chosen:
            if not (root / file_name).is_file():
                print(f"Warning: test file not found: {root / file_name}", file=sys.stderr)
                continue
            units.append(compile_test_file(file_name, root, self.package.name))
        return root, units

    def run_files(self, file_query: str, non_interactive: bool = False, dry_run: bool = False) -> BatchResult | None:
        root, units = self.select_files(file_query, non_interactive)
        return self._run(units, root, dry_run)

    def run_latest(self, dry_run: bool = False) -> BatchResult | None:
        """Rerun the last selection."""
        units = self.latest.load()
        if not units:
            self._print("No previous selection to rerun")
            return None
        root = self.package.test_root(self.config.test_dir)
        return self._run(units, root, dry_run, remember=False)

    def _run(self, units: list[EvalUnit], root: Path, dry_run: bool, remember: bool = True) -> BatchResult | None:
        """Run a compiled selection; an empty one is a no-op."""
        if not units:
            return None
        if dry_run:
            self._print(build_script(units, root, self.config.activate_test_env))
            return None
        self.results.clear(self.package.name)
        if remember:
            self.latest.save(units)
        result = self.runner.run(units, root, self.package.name)
        self._print_summary(result)
        return result

    def _print_summary(self, result: BatchResult) -> None:
        total = len(result.units)
        failed = len(result.failures)
        self._print(f"\n{total - failed}/{total} selected test sets passed")
        if failed:
            self._print("Run 'testpicker @' to inspect the failures")

    def show_results(self) -> list[FailureRecord]:
        """Print the failures recorded by the last run."""
        self.results.load()
        failures = self.results.failures()
        if not failures:
            self._print("No failures recorded")
            return failures
        for failure in failures:
            name = failure.label or failure.file_name
            self._print(
                f"{name} ({failure.location()}): {failure.failed} failed, "
                f"{failure.errored} errored, {failure.passed} passed"
            )
            for detail in failure.details:
                for line in detail.splitlines():
                    self._print(f"    {line}")
        return failures

"""fzf adapter: non-interactive filtering and interactive picking.

Both modes feed the candidates to ``fzf`` on stdin, one per line, and
read the matching or selected lines back from its stdout.  fzf's exit
status is ignored: it exits non-zero both when nothing matches and when
the user cancels, and either way the answer is "no lines".
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from testpicker.discovery.index import SEPARATOR
from testpicker.errors import FinderNotFoundError

BLOCK_HEADER = "Selecting testset from filtered test files"
FILE_HEADER = "Selecting test files"


def block_preview_command(previewer: str | None = "bat") -> str:
    """Preview of a block display key: lines {3} to {4} of file {2}."""
    if previewer and shutil.which(previewer):
        return f"{previewer} --color always --line-range {{3}}:{{4}} {{2}}"
    return "sed -n '{3},{4}p' {2}"


def file_preview_command(previewer: str | None = "bat") -> str:
    if previewer and shutil.which(previewer):
        return f"{previewer} --color=always --style=numbers {{}}"
    return "cat {}"


def _lines(output: str) -> list[str]:
    return [line for line in output.splitlines() if line]


class FuzzyFinder:
    """Runs the fzf executable."""

    def __init__(self, executable: str = "fzf") -> None:
        self.executable = executable

    def _run(self, args: list[str], candidates: list[str], cwd: str | Path | None, interactive: bool) -> str:
        try:
            proc = subprocess.run(
                [self.executable, *args],
                input="\n".join(candidates),
                stdout=subprocess.PIPE,
                stderr=None if interactive else subprocess.PIPE,
                text=True,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            raise FinderNotFoundError(
                f"fuzzy finder not found: {self.executable} (install fzf or set "
                '"fzf" in .testpicker_config)'
            ) from e
        return proc.stdout

    def filter(
        self,
        query: str,
        candidates: list[str],
        delimiter: str | None = None,
        nth: str | None = None,
    ) -> list[str]:
        """All candidates matching ``query``, without any interaction.

        Raises:
            FinderNotFoundError: If the executable is missing.
        """
        if not candidates:
            return []
        args = ["--filter", query]
        if delimiter is not None:
            args.extend(["-d", delimiter])
        if nth is not None:
            args.extend(["--nth", nth])
        return _lines(self._run(args, candidates, None, False))

    def filter_blocks(self, display_keys: list[str], query: str) -> list[str]:
        """Display keys whose visible part matches ``query``."""
        return self.filter(query, display_keys, delimiter=SEPARATOR, nth="1")

    def pick(
        self,
        candidates: list[str],
        query: str = "",
        multi: bool = True,
        preview: str | None = None,
        header: str | None = None,
        delimiter: str | None = None,
        nth: str | None = None,
        with_nth: str | None = None,
        cwd: str | Path | None = None,
    ) -> list[str]:
        """Let the user choose among ``candidates``.

        Returns:
            Selected lines, empty when the user cancelled.

        Raises:
            FinderNotFoundError: If the executable is missing.
        """
        if not candidates:
            return []
        args: list[str] = []
        if multi:
            args.append("-m")
        if delimiter is not None:
            args.extend(["-d", delimiter])
        if nth is not None:
            args.extend(["--nth", nth])
        if with_nth is not None:
            args.extend(["--with-nth", with_nth])
        if preview is not None:
            args.extend(["--preview", preview])
        if header is not None:
            args.extend(["--header", header])
        args.extend(["--query", query])
        return _lines(self._run(args, candidates, cwd, True))

    def pick_blocks(
        self,
        display_keys: list[str],
        query: str,
        root: str | Path,
        previewer: str | None = "bat",
    ) -> list[str]:
        """Pick display keys; only the visible part is shown and searched."""
        return self.pick(
            display_keys,
            query=query,
            multi=True,
            preview=block_preview_command(previewer),
            header=BLOCK_HEADER,
            delimiter=SEPARATOR,
            nth="1",
            with_nth="{1}",
            cwd=root,
        )

    def pick_files(
        self,
        files: list[str],
        query: str,
        root: str | Path,
        previewer: str | None = "bat",
    ) -> list[str]:
        return self.pick(
            files,
            query=query,
            multi=True,
            preview=file_preview_command(previewer),
            header=FILE_HEADER,
            cwd=root,
        )

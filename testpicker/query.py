"""Query language of the picker."""

from __future__ import annotations

import enum
from dataclasses import dataclass

HELP_TEXT = """\
testpicker - quick reference

Test file selection
  testpicker myfile       open the file picker with "myfile" as query
                          and run the selected file(s)

Test block selection
  testpicker file:block   filter test files by "file", then open the
                          block picker with "block" as query
  testpicker :block       search blocks in every test file

Special queries
  testpicker -            rerun the last selection
  testpicker @            show failures recorded by the last run
  testpicker ?            show this help message

In the picker
  Enter                   run the selected file(s) or block(s)
  Tab / Shift+Tab         select / deselect several entries
  Ctrl+C / Escape         cancel, nothing is run

Notes
  A block runs after the statements that precede it in its file:
  calls (operator calls such as "x |> f" included), imports,
  assignments, macro calls and function definitions.  Other setup code
  (if, let, loops, "f() do ... end", "a && b") is not replayed, so a
  block that depends on it can fail alone yet pass in the full suite.
"""


class QueryKind(enum.Enum):
    TEST_FILE = "test_file"
    TEST_BLOCK = "test_block"
    LATEST_EVAL = "latest_eval"
    RESULTS = "results"
    HELP = "help"


@dataclass(frozen=True)
class Query:
    """A parsed query: its kind and the file and block parts."""

    kind: QueryKind
    file_query: str = ""
    block_query: str = ""


def parse_query(text: str) -> Query:
    """Classify user input.

    ``""``/``"foo"`` select files, ``"foo:bar"``, ``":bar"`` and ``":"``
    select blocks, and ``-``, ``@`` and ``?`` are the special queries.
    """
    text = text.strip()
    if text == "-":
        return Query(QueryKind.LATEST_EVAL)
    if text == "@":
        return Query(QueryKind.RESULTS)
    if text == "?":
        return Query(QueryKind.HELP)
    if ":" in text:
        file_query, block_query = text.split(":", 1)
        return Query(QueryKind.TEST_BLOCK, file_query.strip(), block_query.strip())
    return Query(QueryKind.TEST_FILE, text)

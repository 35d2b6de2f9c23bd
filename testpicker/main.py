"""Entry point for the test picker.

Finds the Julia package, reads its picker configuration and runs one
query: pick and run test files, pick and run test blocks, rerun the last
selection, show the recorded failures or print the help text.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from testpicker.config import CONFIG_FILE, PickerConfig
from testpicker.errors import TestPickerError
from testpicker.package import find_package
from testpicker.query import QueryKind, parse_query
from testpicker.session import Session


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="testpicker",
        description="Fuzzy-pick Julia test files or test blocks and run only those",
        epilog="Run 'testpicker ?' for the query syntax.",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default="",
        help='Query: "file", "file:block", "-" (rerun), "@" (failures), "?" (help)',
    )
    parser.add_argument(
        "--project",
        type=Path,
        default=None,
        help="Directory inside the Julia package (default: current directory)",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=None,
        help=f"Path to the picker config (default: <package>/{CONFIG_FILE})",
    )
    parser.add_argument(
        "--filter",
        action="store_true",
        default=False,
        help="Select every match non-interactively instead of opening fzf",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        default=False,
        help="List the test blocks of the matching files and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Print the Julia script instead of running it",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        package = find_package(args.project)
    except TestPickerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    config_path = args.config_file if args.config_file is not None else package.path / CONFIG_FILE
    config = PickerConfig(config_path)
    session = Session(package, config)

    try:
        if args.list:
            query = parse_query(args.query)
            file_query = query.file_query if query.kind in (QueryKind.TEST_FILE, QueryKind.TEST_BLOCK) else ""
            for line in session.list_blocks(file_query):
                print(line)
            return 0
        result = session.execute(args.query, non_interactive=args.filter, dry_run=args.dry_run)
    except TestPickerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    if result is not None and not result.passed:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

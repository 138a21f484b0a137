#!/usr/bin/env python
"""
Import a timesheet workbook into the task store.

Usage:
    python scripts/import_workbook.py data/2025_data.xlsx
    python scripts/import_workbook.py data/2025_data.xlsx --clear --db /path/to/tasks.db
"""
import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import config
from src.data.store import TaskStore
from src.ingest.importer import ImportFailedError, import_workbook


def main():
    parser = argparse.ArgumentParser(description="Import a 3e/scorebyTFS workbook")
    parser.add_argument("workbook", type=str, help="Path to the .xlsx workbook")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Override store path"
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete all tasks and developers before importing"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db_path = Path(args.db) if args.db else config.db_path

    print(f"Importing workbook...")
    print(f"  Source: {args.workbook}")
    print(f"  Store:  {db_path}")
    print()

    with TaskStore(db_path) as store:
        try:
            result = import_workbook(args.workbook, store, clear_existing=args.clear)
        except ImportFailedError as e:
            partial = e.partial_result
            print(f"ERROR: {e}")
            print(f"  Completed before failure: {partial.imported_count} new, {partial.updated_count} updated")
            sys.exit(1)

    print(f"✓ {result.message}")
    print(f"  Non-work rows skipped: {result.skipped_rows:,}")

    if result.row_errors:
        print()
        print(f"⚠ {len(result.row_errors)} malformed rows skipped:")
        for err in result.row_errors[:20]:
            print(f"    {err.sheet} row {err.row_number}: {err.reason}")
        if len(result.row_errors) > 20:
            print(f"    ... and {len(result.row_errors) - 20} more")

    if result.task_errors:
        print()
        print(f"✗ {len(result.task_errors)} tasks not saved:")
        for err in result.task_errors:
            print(f"    task {err.task_id}: {err.message}")
        sys.exit(2)


if __name__ == "__main__":
    main()

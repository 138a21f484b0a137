#!/usr/bin/env python
"""
Run the estimate / quality passes over the task store.

Usage:
    python scripts/recompute.py estimates --group-by matter --dry-run
    python scripts/recompute.py quality
    python scripts/recompute.py fix-estimates
    python scripts/recompute.py contributor-estimates
    python scripts/recompute.py all
"""
import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import config, pipeline_config
from src.data.store import TaskStore
from src.data.tasks import backfill_contributor_estimates
from src.modeling.estimation import GROUP_BY_OPTIONS, calculate_estimates, preview_estimates
from src.metrics.quality import (
    calculate_quality, fix_low_estimates, preview_low_estimates, preview_quality,
)

PASSES = ["estimates", "quality", "fix-estimates", "contributor-estimates", "all"]


def run_estimates(store, group_by: str, dry_run: bool):
    if dry_run:
        result = preview_estimates(store, group_by)
        print(f"Estimates (preview): {result.updated_count} tasks in {result.group_count} groups")
        if len(result.group_stats):
            print(result.group_stats.to_string(index=False))
        return
    result = calculate_estimates(store, group_by)
    print(f"Estimates: {result.updated_count} tasks updated, {result.group_count} groups")


def run_quality(store, dry_run: bool):
    if dry_run:
        result = preview_quality(store)
        print(f"Quality (preview): {result.total_candidates} candidates, histogram {result.histogram}")
        if len(result.candidates):
            print(result.candidates.to_string(index=False))
        return
    result = calculate_quality(store)
    print(f"Quality: {result.updated_count} tasks scored")


def run_fix(store, dry_run: bool):
    if dry_run:
        result = preview_low_estimates(store)
        print(f"Low estimates (preview): {len(result.tasks)} tasks")
        if len(result.tasks):
            print(result.tasks.to_string(index=False))
        return
    result = fix_low_estimates(store)
    print(f"Low estimates: {result.fixed_count} fixed")


def run_contributor(store, dry_run: bool):
    if not pipeline_config.special_contributor:
        print("Contributor estimates: SPECIAL_CONTRIBUTOR not set, skipped")
        return
    changed = backfill_contributor_estimates(store, pipeline_config, dry_run=dry_run)
    label = "would change" if dry_run else "updated"
    print(f"Contributor estimates: {len(changed)} tasks {label}")


def main():
    parser = argparse.ArgumentParser(description="Recompute estimates and quality scores")
    parser.add_argument("pass_name", choices=PASSES, help="Which pass to run")
    parser.add_argument(
        "--group-by",
        choices=GROUP_BY_OPTIONS,
        default="developer",
        help="Grouping for bell-curve estimates"
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Override store path"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview only, write nothing"
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
    if not db_path.exists():
        print(f"ERROR: store not found at {db_path}")
        sys.exit(1)

    with TaskStore(db_path) as store:
        if args.pass_name in ("estimates", "all"):
            run_estimates(store, args.group_by, args.dry_run)
        if args.pass_name in ("fix-estimates", "all"):
            run_fix(store, args.dry_run)
        if args.pass_name in ("contributor-estimates", "all"):
            run_contributor(store, args.dry_run)
        if args.pass_name in ("quality", "all"):
            run_quality(store, args.dry_run)


if __name__ == "__main__":
    main()

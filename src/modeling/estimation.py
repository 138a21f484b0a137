"""
Bell-curve estimation: fill missing estimates from the median and MAD of
comparable tasks' actual hours.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from src.config import ESTIMATE_SOURCE_BELL_CURVE
from src.data.models import CanonicalTask
from src.data.store import StoreError, TaskStore

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ("developer", "matter")
UNKNOWN_GROUP = "Unknown"

GROUP_STATS_COLUMNS = ["group", "task_count", "median", "mad", "estimate", "low", "high"]
PROPOSAL_COLUMNS = ["task_id", "title", "group", "total_actual_hours", "group_estimate", "estimate"]


@dataclass
class EstimationResult:
    updated_count: int = 0
    group_count: int = 0
    group_stats: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=GROUP_STATS_COLUMNS))
    proposals: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=PROPOSAL_COLUMNS))
    failed_task_ids: List[int] = field(default_factory=list)


# =============================================================================
# STATISTICS
# =============================================================================

def median(values: Sequence[float]) -> float:
    """Standard median; even-sized inputs average the two middle values."""
    if len(values) == 0:
        raise ValueError("median of empty sequence")
    return float(np.median(np.asarray(values, dtype=float)))


def median_absolute_deviation(values: Sequence[float]) -> float:
    center = median(values)
    return median([abs(v - center) for v in values])


def round_estimate(raw: float) -> int:
    """
    >= 100: round up to the next multiple of 10.
    Otherwise round half-up to an integer, never below 1.
    """
    raw = round(raw, 9)
    if raw >= 100:
        return int(math.ceil(raw / 10.0) * 10)
    return max(int(math.floor(raw + 0.5)), 1)


# =============================================================================
# GROUPING
# =============================================================================

def is_estimate_candidate(task: CanonicalTask) -> bool:
    return task.total_actual_hours > 0 and task.estimated is None


def group_key(task: CanonicalTask, group_by: str) -> str:
    if group_by == "developer":
        return task.primary_developer or UNKNOWN_GROUP
    if group_by == "matter":
        return task.matter_number or UNKNOWN_GROUP
    raise ValueError(f"group_by must be one of {GROUP_BY_OPTIONS}, got {group_by!r}")


def compute_estimates(tasks: Iterable[CanonicalTask], group_by: str = "developer") -> EstimationResult:
    """
    Compute bell-curve estimates for candidate tasks without writing.

    Returns group statistics and one proposal per candidate task. Each
    proposal is max(group estimate, ceil(actual)).
    """
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f"group_by must be one of {GROUP_BY_OPTIONS}, got {group_by!r}")

    candidates = [t for t in tasks if is_estimate_candidate(t)]
    if not candidates:
        return EstimationResult()

    df = pd.DataFrame({
        "task_id": [t.task_id for t in candidates],
        "title": [t.title for t in candidates],
        "group": [group_key(t, group_by) for t in candidates],
        "total_actual_hours": [t.total_actual_hours for t in candidates],
        "actual_ceiling": [t.actual_ceiling for t in candidates],
    })

    stats_rows = []
    for name, group in df.groupby("group", sort=True):
        values = group["total_actual_hours"].tolist()
        center = median(values)
        mad = median_absolute_deviation(values)
        stats_rows.append({
            "group": name,
            "task_count": len(values),
            "median": center,
            "mad": mad,
            "estimate": round_estimate(center + 0.5 * mad),
            "low": center - mad,
            "high": center + mad,
        })
    group_stats = pd.DataFrame(stats_rows, columns=GROUP_STATS_COLUMNS)

    estimates = group_stats.set_index("group")["estimate"]
    df["group_estimate"] = df["group"].map(estimates).astype(int)
    df["estimate"] = np.maximum(df["group_estimate"], df["actual_ceiling"]).astype(int)

    return EstimationResult(
        updated_count=len(df),
        group_count=len(group_stats),
        group_stats=group_stats,
        proposals=df[PROPOSAL_COLUMNS].reset_index(drop=True),
    )


def preview_estimates(store: TaskStore, group_by: str = "developer") -> EstimationResult:
    """Read-only: what calculate_estimates would write."""
    return compute_estimates(store.list_tasks(), group_by)


def calculate_estimates(store: TaskStore, group_by: str = "developer") -> EstimationResult:
    """Compute and persist estimates for every task with actuals and no estimate."""
    tasks = {t.task_id: t for t in store.list_tasks(is_estimate_candidate)}
    result = compute_estimates(tasks.values(), group_by)

    updated = 0
    for row in result.proposals.itertuples(index=False):
        task = tasks[row.task_id]
        task.estimated = float(row.estimate)
        task.estimate_source = ESTIMATE_SOURCE_BELL_CURVE
        task.estimate_group = row.group
        try:
            store.save_task(task, expected_version=task.version)
            updated += 1
        except StoreError as exc:
            logger.warning("Estimate for task %s not saved: %s", row.task_id, exc)
            result.failed_task_ids.append(int(row.task_id))

    result.updated_count = updated
    logger.info("Bell-curve estimates: %d tasks updated across %d groups (by %s)",
                updated, result.group_count, group_by)
    return result

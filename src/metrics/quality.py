"""
Variance-based quality scoring and the low-estimate repair.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from src.data.models import CanonicalTask
from src.data.store import StoreError, TaskStore

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 50

# (upper bound inclusive, score); anything above the last bound scores 2
SCORE_THRESHOLDS = [
    (-0.25, 5),
    (-0.10, 4),
    (0.25, 3),
]
OVERRUN_SCORE = 2

CANDIDATE_COLUMNS = ["task_id", "title", "estimated", "total_actual_hours", "variance", "score"]
FIX_COLUMNS = ["task_id", "title", "estimated", "total_actual_hours", "new_estimate"]


@dataclass
class QualityResult:
    updated_count: int = 0
    candidates: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=CANDIDATE_COLUMNS))
    histogram: Dict[int, int] = field(default_factory=dict)
    total_candidates: int = 0
    failed_task_ids: List[int] = field(default_factory=list)


@dataclass
class FixResult:
    fixed_count: int = 0
    tasks: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=FIX_COLUMNS))
    failed_task_ids: List[int] = field(default_factory=list)


# =============================================================================
# SCORING
# =============================================================================

def actual_variance(estimated: float, actual: float) -> float:
    """(actual - estimated) / estimated; positive means over budget."""
    return (actual - estimated) / estimated


def score_variance(variance: float) -> int:
    """
    Map a variance fraction to a 2-5 score.

    The bands are inclusive on their upper edge. Score 1 is never produced.
    """
    v = round(variance, 9)
    for upper, score in SCORE_THRESHOLDS:
        if v <= upper:
            return score
    return OVERRUN_SCORE


def is_quality_candidate(task: CanonicalTask) -> bool:
    return (
        task.total_actual_hours > 0
        and task.estimated is not None
        and task.estimated > 0
        and task.quality is None
    )


def _candidate_frame(tasks: Iterable[CanonicalTask]) -> pd.DataFrame:
    records = []
    for task in tasks:
        if not is_quality_candidate(task):
            continue
        variance = actual_variance(task.estimated, task.total_actual_hours)
        records.append({
            "task_id": task.task_id,
            "title": task.title,
            "estimated": task.estimated,
            "total_actual_hours": task.total_actual_hours,
            "variance": variance,
            "score": score_variance(variance),
        })
    return pd.DataFrame(records, columns=CANDIDATE_COLUMNS)


def _histogram(scores: pd.Series) -> Dict[int, int]:
    counts = scores.value_counts().to_dict()
    return {score: int(counts.get(score, 0)) for score in (5, 4, 3, 2)}


def preview_quality(store: TaskStore, limit: int = PREVIEW_LIMIT) -> QualityResult:
    """Up to ``limit`` candidates with predicted scores, plus a histogram over all candidates."""
    frame = _candidate_frame(store.list_tasks())
    return QualityResult(
        updated_count=0,
        candidates=frame.head(limit).reset_index(drop=True),
        histogram=_histogram(frame["score"]),
        total_candidates=len(frame),
    )


def calculate_quality(store: TaskStore) -> QualityResult:
    """Score every task with actuals and a positive estimate but no quality."""
    tasks = {t.task_id: t for t in store.list_tasks(is_quality_candidate)}
    frame = _candidate_frame(tasks.values())
    result = QualityResult(candidates=frame, histogram=_histogram(frame["score"]),
                           total_candidates=len(frame))

    for row in frame.itertuples(index=False):
        task = tasks[row.task_id]
        task.quality = int(row.score)
        try:
            store.save_task(task, expected_version=task.version)
            result.updated_count += 1
        except StoreError as exc:
            logger.warning("Quality for task %s not saved: %s", row.task_id, exc)
            result.failed_task_ids.append(int(row.task_id))

    logger.info("Quality scores: %d tasks updated", result.updated_count)
    return result


# =============================================================================
# LOW ESTIMATE REPAIR
# =============================================================================

def needs_estimate_fix(task: CanonicalTask) -> bool:
    return task.estimated is not None and task.estimated < task.actual_ceiling


def _fix_frame(tasks: Iterable[CanonicalTask]) -> pd.DataFrame:
    records = [
        {
            "task_id": t.task_id,
            "title": t.title,
            "estimated": t.estimated,
            "total_actual_hours": t.total_actual_hours,
            "new_estimate": t.actual_ceiling,
        }
        for t in tasks if needs_estimate_fix(t)
    ]
    return pd.DataFrame(records, columns=FIX_COLUMNS)


def preview_low_estimates(store: TaskStore) -> FixResult:
    frame = _fix_frame(store.list_tasks())
    return FixResult(fixed_count=0, tasks=frame)


def fix_low_estimates(store: TaskStore, task_ids: Optional[Iterable[int]] = None) -> FixResult:
    """
    Raise every estimate below ceil(actual) to ceil(actual).

    Re-running is a no-op once all tasks comply.
    """
    wanted = set(task_ids) if task_ids is not None else None
    tasks = [
        t for t in store.list_tasks(needs_estimate_fix)
        if wanted is None or t.task_id in wanted
    ]
    result = FixResult(tasks=_fix_frame(tasks))

    for task in tasks:
        task.estimated = float(task.actual_ceiling)
        try:
            store.save_task(task, expected_version=task.version)
            result.fixed_count += 1
        except StoreError as exc:
            logger.warning("Estimate fix for task %s not saved: %s", task.task_id, exc)
            result.failed_task_ids.append(task.task_id)

    logger.info("Fixed %d low estimates", result.fixed_count)
    return result

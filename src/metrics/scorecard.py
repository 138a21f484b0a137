"""
Developer scorecard: hours, tasks, quality and admin time per developer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from src.config import PipelineConfig, pipeline_config
from src.data.models import CanonicalTask, DeveloperProfile


@dataclass
class Scorecard:
    developers: pd.DataFrame
    quarters: List[str]
    quarterly_hours: pd.DataFrame
    quarterly_admin_hours: pd.DataFrame
    team_admin_hours_by_quarter: Dict[str, float] = field(default_factory=dict)


SCORECARD_COLUMNS = [
    "name", "total_hours", "task_count", "avg_quality", "admin_hours",
    "task_count_without_id", "hours_without_id",
]


def quarter_label(day) -> str:
    """'Q1 2025' style label for a date."""
    return f"Q{(day.month - 1) // 3 + 1} {day.year}"


def quarter_sort_key(label: str) -> int:
    quarter, year = label.replace("Q", "").split(" ")
    return int(year) * 4 + int(quarter)


def developer_scorecard(tasks: Iterable[CanonicalTask],
                        profiles: Iterable[DeveloperProfile] = (),
                        year: Optional[int] = None,
                        config: PipelineConfig = pipeline_config) -> Scorecard:
    """
    Per-developer totals across tasks with actual hours.

    With ``year`` set only entries dated in that year count, and tasks with
    no such entries are skipped. Average quality is over the tasks each
    developer worked on that have a score.
    """
    stats: Dict[str, Dict] = {}
    quarterly: Dict[str, Dict[str, float]] = {}
    quarterly_admin: Dict[str, Dict[str, float]] = {}

    for task in tasks:
        if task.total_actual_hours <= 0:
            continue
        is_admin = task.task_id == config.admin_task_id

        hours_by_dev: Dict[str, float] = {}
        for entry in task.time_entries:
            if year and (entry.work_date is None or entry.work_date.year != year):
                continue
            name = entry.developer_name
            hours_by_dev[name] = hours_by_dev.get(name, 0.0) + entry.work_hours
            if entry.work_date is not None:
                label = quarter_label(entry.work_date)
                dev_q = quarterly.setdefault(name, {})
                dev_q[label] = dev_q.get(label, 0.0) + entry.work_hours
                if is_admin:
                    dev_qa = quarterly_admin.setdefault(name, {})
                    dev_qa[label] = dev_qa.get(label, 0.0) + entry.work_hours

        if not year:
            hours_by_dev = dict(task.developer_breakdown) or hours_by_dev
        if not hours_by_dev:
            continue

        for name, hours in hours_by_dev.items():
            dev = stats.setdefault(name, {
                "name": name, "total_hours": 0.0, "task_count": 0,
                "quality_sum": 0.0, "quality_count": 0, "admin_hours": 0.0,
            })
            dev["total_hours"] += hours
            dev["task_count"] += 1
            if is_admin:
                dev["admin_hours"] += hours
            if task.quality is not None:
                dev["quality_sum"] += task.quality
                dev["quality_count"] += 1

    by_name = {p.full_name: p for p in profiles}
    rows = []
    for name, dev in stats.items():
        profile = by_name.get(name)
        rows.append({
            "name": name,
            "total_hours": round(dev["total_hours"], 2),
            "task_count": dev["task_count"],
            "avg_quality": (
                round(dev["quality_sum"] / dev["quality_count"], 2) if dev["quality_count"] else None
            ),
            "admin_hours": round(dev["admin_hours"], 2),
            "task_count_without_id": profile.task_count_without_id if profile else 0,
            "hours_without_id": round(profile.hours_without_id, 2) if profile else 0.0,
        })

    developers = pd.DataFrame(rows, columns=SCORECARD_COLUMNS)
    developers = developers.sort_values("total_hours", ascending=False, kind="mergesort").reset_index(drop=True)

    quarters = sorted({q for dev_q in quarterly.values() for q in dev_q}, key=quarter_sort_key)

    team_admin: Dict[str, float] = {}
    for dev_qa in quarterly_admin.values():
        for label, hours in dev_qa.items():
            team_admin[label] = team_admin.get(label, 0.0) + hours

    order = list(developers["name"])
    return Scorecard(
        developers=developers,
        quarters=quarters,
        quarterly_hours=_quarter_matrix(quarterly, order, quarters),
        quarterly_admin_hours=_quarter_matrix(quarterly_admin, order, quarters),
        team_admin_hours_by_quarter={q: team_admin[q] for q in quarters if q in team_admin},
    )


def _quarter_matrix(values: Dict[str, Dict[str, float]], names: List[str], quarters: List[str]) -> pd.DataFrame:
    """Developers as rows, quarters as columns, zeros where no hours."""
    df = pd.DataFrame(
        [[values.get(name, {}).get(q, 0.0) for q in quarters] for name in names],
        index=names,
        columns=quarters,
    )
    df.index.name = "name"
    return df

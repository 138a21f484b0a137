"""
Task list, summary statistics and chart series.

Everything here works on lists of CanonicalTask / DeveloperProfile and
returns DataFrames or plain dicts for the dashboard.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pandas as pd

from src.config import QUALITY_LABELS, TASK_FILTERS, PipelineConfig, pipeline_config
from src.data.models import CanonicalTask, DeveloperProfile

TASK_COLUMNS = [
    "task_id", "title", "application", "estimated", "quality",
    "total_actual_hours", "variance", "variance_percent", "developers",
    "entry_count", "first_date", "last_date", "years", "person_names",
    "id_not_entered", "estimate_source",
]


def tasks_frame(tasks: Iterable[CanonicalTask]) -> pd.DataFrame:
    """One row per task with derived columns."""
    records = []
    for task in tasks:
        years = sorted({e.work_date.year for e in task.time_entries if e.work_date is not None})
        names = " ".join(
            dict.fromkeys(f"{e.first_name} {e.last_name}" for e in task.time_entries)
        )
        records.append({
            "task_id": task.task_id,
            "title": task.title or "",
            "application": task.application or "",
            "estimated": task.estimated,
            "quality": task.quality,
            "total_actual_hours": task.total_actual_hours,
            "variance": task.variance,
            "variance_percent": task.variance_percent,
            "developers": task.developers,
            "entry_count": len(task.time_entries),
            "first_date": task.first_date,
            "last_date": task.last_date,
            "years": years,
            "person_names": names,
            "id_not_entered": task.id_not_entered,
            "estimate_source": task.estimate_source,
        })
    df = pd.DataFrame(records, columns=TASK_COLUMNS)
    for col in ["estimated", "quality", "total_actual_hours", "variance", "variance_percent"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


# =============================================================================
# FILTERING AND PAGINATION
# =============================================================================

@dataclass
class TaskPage:
    rows: pd.DataFrame
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def filter_mask(df: pd.DataFrame, filter_key: str) -> pd.Series:
    """Boolean mask for one of TASK_FILTERS."""
    if filter_key not in TASK_FILTERS:
        raise ValueError(f"Unknown filter: {filter_key}")

    has_actual = df["total_actual_hours"].fillna(0) > 0
    if filter_key == "needsEstimate":
        return df["estimated"].isna() & has_actual
    if filter_key == "needsQuality":
        return df["quality"].isna() & has_actual
    if filter_key == "complete":
        return df["estimated"].notna() & df["quality"].notna()
    if filter_key == "noActual":
        return ~has_actual | (df["entry_count"] == 0)
    return pd.Series(True, index=df.index)


def search_mask(df: pd.DataFrame, search: str) -> pd.Series:
    """
    Case-insensitive text match on title and developer names.
    A numeric search also matches the task id exactly.
    """
    search = (search or "").strip()
    if not search:
        return pd.Series(True, index=df.index)

    mask = (
        df["title"].str.contains(search, case=False, regex=False, na=False)
        | df["person_names"].str.contains(search, case=False, regex=False, na=False)
    )
    try:
        number = int(search)
    except ValueError:
        return mask
    return mask | (df["task_id"] == number)


def filter_tasks(tasks: Iterable[CanonicalTask],
                 search: str = "",
                 filter_key: str = "all",
                 year: Optional[int] = None,
                 sort_field: str = "task_id",
                 sort_order: str = "desc",
                 page: int = 1,
                 limit: int = 25) -> TaskPage:
    """Search, filter, sort and paginate the task list."""
    df = tasks_frame(tasks)
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    if df.empty:
        return TaskPage(rows=df, page=page, limit=limit, total=0)

    mask = filter_mask(df, filter_key) & search_mask(df, search)
    if year:
        mask &= df["years"].apply(lambda ys: int(year) in ys).astype(bool)
    df = df[mask.astype(bool)]

    if sort_field not in df.columns:
        sort_field = "task_id"
    df = df.sort_values(sort_field, ascending=(sort_order == "asc"), na_position="last", kind="mergesort")

    start = (page - 1) * limit
    return TaskPage(
        rows=df.iloc[start:start + limit].reset_index(drop=True),
        page=page,
        limit=limit,
        total=len(df),
    )


# =============================================================================
# SUMMARY
# =============================================================================

def summary_stats(tasks: Iterable[CanonicalTask], config: PipelineConfig = pipeline_config) -> Dict:
    """Headline numbers for the overview page."""
    df = tasks_frame(tasks)
    if df.empty:
        return {
            "total_tasks": 0,
            "tasks_with_estimates": 0,
            "tasks_with_quality": 0,
            "total_estimated_hours": 0.0,
            "total_actual_hours": 0.0,
            "avg_quality": None,
            "total_admin_hours": 0.0,
        }

    avg_quality = df["quality"].mean()
    return {
        "total_tasks": int(len(df)),
        "tasks_with_estimates": int(df["estimated"].notna().sum()),
        "tasks_with_quality": int(df["quality"].notna().sum()),
        "total_estimated_hours": float(df["estimated"].fillna(0).sum()),
        "total_actual_hours": float(df["total_actual_hours"].sum()),
        "avg_quality": None if pd.isna(avg_quality) else float(avg_quality),
        "total_admin_hours": float(
            df.loc[df["task_id"] == config.admin_task_id, "total_actual_hours"].sum()
        ),
    }


def available_years(tasks: Iterable[CanonicalTask]) -> List[int]:
    """Distinct entry years, newest first."""
    years = set()
    for task in tasks:
        years.update(e.work_date.year for e in task.time_entries if e.work_date is not None)
    return sorted(years, reverse=True)


def available_applications(tasks: Iterable[CanonicalTask]) -> List[str]:
    apps = {t.application.strip() for t in tasks if t.application and t.application.strip()}
    return sorted(apps, key=str.lower)


# =============================================================================
# CHART SERIES
# =============================================================================

def quality_distribution(tasks: Iterable[CanonicalTask]) -> pd.DataFrame:
    """Task counts per quality score 1-5, labelled."""
    counts = [0] * len(QUALITY_LABELS)
    for task in tasks:
        if task.quality is not None and 1 <= task.quality <= 5:
            counts[int(task.quality) - 1] += 1
    return pd.DataFrame({"label": QUALITY_LABELS, "count": counts})


def hours_by_developer(profiles: Iterable[DeveloperProfile], top_n: int = 10) -> pd.DataFrame:
    rows = sorted(profiles, key=lambda p: p.total_hours, reverse=True)[:top_n]
    return pd.DataFrame({
        "developer": [p.full_name for p in rows],
        "total_hours": [p.total_hours for p in rows],
    })


def estimate_accuracy(tasks: Iterable[CanonicalTask], limit: int = 20) -> pd.DataFrame:
    """Estimated vs actual for the most recent estimated tasks (by id)."""
    chosen = sorted(
        (t for t in tasks if t.estimated is not None and t.total_actual_hours > 0),
        key=lambda t: t.task_id,
        reverse=True,
    )[:limit]
    return pd.DataFrame({
        "label": [f"TFS {t.task_id}" for t in chosen],
        "estimated": [t.estimated for t in chosen],
        "actual": [t.total_actual_hours for t in chosen],
    })


def task_status_counts(tasks: Iterable[CanonicalTask]) -> pd.DataFrame:
    df = tasks_frame(tasks)
    has_actual = df["total_actual_hours"].fillna(0) > 0
    with_estimate = df["estimated"].notna()
    total = int(has_actual.sum())
    estimated = int((with_estimate & has_actual).sum())
    complete = int((with_estimate & df["quality"].notna()).sum())
    return pd.DataFrame({
        "status": ["Needs Estimate", "Needs Quality", "Complete"],
        "count": [total - estimated, max(estimated - complete, 0), complete],
    })


def task_developer_breakdown(task: CanonicalTask) -> Dict:
    """Per-developer hours for one task, largest first, with per-date detail."""
    developers = []
    for name, hours in task.developer_breakdown.items():
        by_date = task.developer_breakdown_by_date.get(name, {})
        developers.append({
            "name": name,
            "hours": round(float(hours), 2),
            "by_date": [
                {"date": day, "hours": round(float(h), 2)}
                for day, h in sorted(by_date.items())
            ],
        })
    developers.sort(key=lambda d: d["hours"], reverse=True)
    return {
        "task_id": task.task_id,
        "total_hours": task.total_actual_hours,
        "developers": developers,
    }


def breakdown_frame(task: CanonicalTask) -> pd.DataFrame:
    """Developer x date hours for one task (dates as columns)."""
    if not task.developer_breakdown_by_date:
        return pd.DataFrame()
    df = pd.DataFrame(task.developer_breakdown_by_date).T.fillna(0.0)
    df = df.reindex(sorted(df.columns), axis=1)
    df["Total"] = df.sum(axis=1)
    return df.sort_values("Total", ascending=False)

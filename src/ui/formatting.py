"""
Consistent number and display formatting.
"""
import pandas as pd
from typing import Union, Optional

from src.config import FORMAT_COUNT, FORMAT_HOURS, QUALITY_LABELS


# =============================================================================
# NUMBER FORMATTERS
# =============================================================================

def fmt_hours(value: Union[float, int, None]) -> str:
    """Format hours: 1,234.5"""
    if value is None or pd.isna(value):
        return "—"
    return FORMAT_HOURS.format(value)


def fmt_percent(value: Union[float, int, None], decimals: int = 1) -> str:
    """Format percentage: 12.3%"""
    if value is None or pd.isna(value):
        return "—"
    return f"{value:,.{decimals}f}%"


def fmt_count(value: Union[float, int, None]) -> str:
    """Format count: 1,234"""
    if value is None or pd.isna(value):
        return "—"
    return FORMAT_COUNT.format(int(value))


def fmt_variance(value: Union[float, int, None], is_percent: bool = False) -> str:
    """Format variance with +/- sign. Positive means under budget."""
    if value is None or pd.isna(value):
        return "—"

    sign = "+" if value > 0 else ""
    if is_percent:
        return f"{sign}{value:,.1f}%"
    return f"{sign}{value:,.1f}h"


def fmt_quality(value: Optional[float]) -> str:
    """Quality score with its label: '4 - Good'."""
    if value is None or pd.isna(value):
        return "—"
    score = int(value)
    if 1 <= score <= len(QUALITY_LABELS):
        return QUALITY_LABELS[score - 1]
    return str(score)


def fmt_task_id(value: int) -> str:
    """Placeholder ids (negative) are shown as 'pending'."""
    if value is None or pd.isna(value):
        return "—"
    if value < 0:
        return f"pending ({value})"
    return str(int(value))


# =============================================================================
# DATAFRAME FORMATTERS
# =============================================================================

def format_task_df(df: pd.DataFrame) -> pd.DataFrame:
    """
    Format a task list dataframe for display.

    Applies formatting to known column types and renames columns.
    """
    df = df.copy()

    hours_cols = ["estimated", "total_actual_hours", "total_hours", "admin_hours", "hours_without_id"]
    percent_cols = ["variance_percent"]
    count_cols = ["task_count", "task_count_without_id", "entry_count"]

    for col in df.columns:
        if col in hours_cols:
            df[col] = df[col].apply(fmt_hours)
        elif col in percent_cols:
            df[col] = df[col].apply(lambda v: fmt_variance(v, is_percent=True))
        elif col == "variance":
            df[col] = df[col].apply(fmt_variance)
        elif col in count_cols:
            df[col] = df[col].apply(fmt_count)
        elif col == "quality":
            df[col] = df[col].apply(fmt_quality)
        elif col == "task_id":
            df[col] = df[col].apply(fmt_task_id)
        elif col == "developers":
            df[col] = df[col].apply(lambda names: ", ".join(names) if isinstance(names, list) else "")

    return df.rename(columns=DISPLAY_NAMES)


DISPLAY_NAMES = {
    "task_id": "ID",
    "title": "Title",
    "application": "Application",
    "estimated": "Estimated",
    "quality": "Quality",
    "total_actual_hours": "Actual",
    "variance": "Variance",
    "variance_percent": "Variance %",
    "developers": "Developers",
    "first_date": "First Date",
    "last_date": "Last Date",
    "name": "Developer",
    "total_hours": "Total Hours",
    "task_count": "Tasks",
    "avg_quality": "Avg Quality",
    "admin_hours": "Admin Hours",
    "task_count_without_id": "Tasks w/o ID",
    "hours_without_id": "Hours w/o ID",
}


# =============================================================================
# KPI CARD HELPERS
# =============================================================================

def kpi_value(value: Union[float, int, None], format_type: str = "hours") -> str:
    """
    Format a KPI value for card display.

    Args:
        value: The value to format
        format_type: One of 'hours', 'percent', 'count', 'quality'
    """
    if format_type == "hours":
        return fmt_hours(value)
    elif format_type == "percent":
        return fmt_percent(value)
    elif format_type == "count":
        return fmt_count(value)
    elif format_type == "quality":
        return "—" if value is None or pd.isna(value) else f"{value:.2f}"
    else:
        return str(value) if value is not None else "—"

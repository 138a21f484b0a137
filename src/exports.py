"""
Export utilities for the task list.
"""
import pandas as pd
from typing import Iterable, Optional
from datetime import datetime
from io import BytesIO

from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from src.config import FORMAT_PERCENT
from src.data.models import CanonicalTask


EXPORT_COLUMNS = [
    ("ASD ID", 12),
    ("Title", 50),
    ("Application", 20),
    ("Estimated Hours", 15),
    ("Actual Hours", 15),
    ("Variance", 12),
    ("Variance %", 12),
    ("Quality", 10),
    ("Developers", 40),
]

HOURS_COLUMNS = ["Estimated Hours", "Actual Hours", "Variance"]


def task_export_frame(tasks: Iterable[CanonicalTask]) -> pd.DataFrame:
    """
    Task list in export layout, ordered by id ascending.

    Variance % is a formatted string ("12.5%"); developers are listed as
    "Name (1.50h)".
    """
    rows = []
    for task in sorted(tasks, key=lambda t: t.task_id):
        pct = task.variance_percent
        rows.append({
            "ASD ID": task.task_id,
            "Title": task.title or "",
            "Application": task.application or "",
            "Estimated Hours": task.estimated,
            "Actual Hours": task.total_actual_hours,
            "Variance": task.variance,
            "Variance %": FORMAT_PERCENT.format(pct) if pct is not None else None,
            "Quality": task.quality,
            "Developers": ", ".join(
                f"{name} ({hours:.2f}h)" for name, hours in task.developer_breakdown.items()
            ),
        })
    return pd.DataFrame(rows, columns=[name for name, _ in EXPORT_COLUMNS])


def export_dataframe_csv(df: pd.DataFrame, filename: Optional[str] = None) -> tuple:
    """
    Export dataframe to CSV bytes.

    Returns: (csv_bytes, filename)
    """
    if filename is None:
        filename = f"export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"

    csv_bytes = df.to_csv(index=False).encode('utf-8')

    return csv_bytes, filename


def export_tasks_csv(tasks: Iterable[CanonicalTask]) -> tuple:
    filename = f"tasks_export_{datetime.now().strftime('%Y-%m-%d')}.csv"
    return export_dataframe_csv(task_export_frame(tasks), filename)


def export_tasks_excel(tasks: Iterable[CanonicalTask], filename: Optional[str] = None) -> tuple:
    """
    Export the task list to an Excel workbook with a styled header row.

    Returns: (excel_bytes, filename)
    """
    if filename is None:
        filename = f"tasks_export_{datetime.now().strftime('%Y-%m-%d')}.xlsx"

    df = task_export_frame(tasks)
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name="Tasks", index=False)
        sheet = writer.sheets["Tasks"]

        header_fill = PatternFill(fill_type="solid", fgColor="FFE0E0E0")
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = header_fill

        for idx, (name, width) in enumerate(EXPORT_COLUMNS, start=1):
            letter = get_column_letter(idx)
            sheet.column_dimensions[letter].width = width
            if name in HOURS_COLUMNS:
                for cell in sheet[letter][1:]:
                    cell.number_format = "0.00"

    return buffer.getvalue(), filename

"""
Workbook reading and row parsing for the 3e and scorebyTFS sheets.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

import pandas as pd

from src.config import REQUIRED_COLUMNS, SHEET_NAMES, config
from src.data.models import RawTimeLogRow, TaskMetadataRow
from src.data.schema import SchemaValidationError, ensure_column_types, validate_schema

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".xlsx", ".xls"}
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

# Header is spreadsheet row 1, so data index 0 is row 2
HEADER_OFFSET = 2


@dataclass(frozen=True)
class RowError:
    """A sheet row that was skipped, with the reason."""
    sheet: str
    row_number: int
    reason: str


# =============================================================================
# UPLOADS
# =============================================================================

@contextmanager
def uploaded_workbook(data: bytes, filename: str,
                      upload_dir: Optional[Path] = None) -> Iterator[Path]:
    """
    Write uploaded bytes to a temporary workbook path and remove it afterwards.

    The file is deleted on every exit path, including parse and import errors.
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in ALLOWED_EXTENSIONS:
        raise ValueError("Only Excel files (.xlsx, .xls) are allowed")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValueError("Uploaded file exceeds the 50 MB limit")

    target_dir = Path(upload_dir) if upload_dir is not None else config.upload_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"import_{int(time.time() * 1000)}{suffix}"
    path.write_bytes(data)
    try:
        yield path
    finally:
        if path.exists():
            path.unlink()
            logger.debug("Removed temporary upload %s", path)


# =============================================================================
# WORKBOOK
# =============================================================================

def read_workbook(path: Union[str, Path]) -> Dict[str, pd.DataFrame]:
    """
    Load both sheets from the workbook.

    Returns {"timesheet": df, "metadata": df}. A missing sheet or a missing
    required header raises SchemaValidationError.
    """
    with pd.ExcelFile(path) as workbook:
        available = set(workbook.sheet_names)
        frames = {}
        for table_name, sheet_name in SHEET_NAMES.items():
            if sheet_name not in available:
                raise SchemaValidationError(f"Required sheet '{sheet_name}' not found in workbook")
            frames[table_name] = workbook.parse(sheet_name)

    for table_name, df in frames.items():
        validate_schema(df, table_name, strict=True)

    return frames


def _text(value) -> str:
    return "" if value is None else str(value)


def parse_timesheet_frame(df: pd.DataFrame, strict_headers: bool = True) -> Tuple[List[RawTimeLogRow], List[RowError]]:
    """
    Turn the 3e sheet into RawTimeLogRow records.

    Malformed rows (no timekeeper, no name, bad date, bad or negative hours)
    are skipped and reported; they never fail the batch.
    """
    if strict_headers:
        validate_schema(df, "timesheet", strict=True)
    else:
        df = df.reindex(columns=list(dict.fromkeys(list(df.columns) + REQUIRED_COLUMNS["timesheet"])))

    typed = ensure_column_types(df, "timesheet")
    rows: List[RawTimeLogRow] = []
    errors: List[RowError] = []
    sheet = SHEET_NAMES["timesheet"]

    for position, record in enumerate(typed.to_dict(orient="records")):
        row_number = position + HEADER_OFFSET
        reason = _timesheet_row_problem(record)
        if reason:
            errors.append(RowError(sheet, row_number, reason))
            continue

        rows.append(RawTimeLogRow(
            timekeeper_number=int(record["TimekeeperNumber"]),
            first_name=_text(record["FirstName"]),
            last_name=_text(record["LastName"]),
            title=_text(record["Title"]),
            work_date=pd.Timestamp(record["WorkDate"]).date(),
            work_hours=float(record["WorkHrs"]),
            narrative=_text(record["TimecardNarrative"]),
            activity_code=_text(record["ActivityCode"]),
            activity_description=_text(record["ActivityCodeDesc"]),
            matter_number=_text(record["MatterNumber"]),
            matter_name=_text(record["MatterName"]),
            row_number=row_number,
        ))

    if errors:
        logger.warning("Skipped %d malformed timesheet rows", len(errors))
    return rows, errors


def _timesheet_row_problem(record: dict) -> Optional[str]:
    if pd.isna(record.get("TimekeeperNumber")):
        return "missing or non-numeric TimekeeperNumber"
    if not record.get("FirstName") and not record.get("LastName"):
        return "missing FirstName/LastName"
    if pd.isna(record.get("WorkDate")):
        return "missing or unparsable WorkDate"
    hours = record.get("WorkHrs")
    if pd.isna(hours):
        return "missing or non-numeric WorkHrs"
    if hours < 0:
        return "negative WorkHrs"
    return None


def parse_timesheet_records(records: Iterable[dict]) -> Tuple[List[RawTimeLogRow], List[RowError]]:
    """Parse plain dict records; absent optional columns are treated as blank."""
    df = pd.DataFrame(list(records))
    return parse_timesheet_frame(df, strict_headers=False)


def parse_metadata_frame(df: pd.DataFrame, strict_headers: bool = True) -> Tuple[List[TaskMetadataRow], List[RowError]]:
    """
    Turn the scorebyTFS sheet into TaskMetadataRow records.

    Rows without an ID are dropped silently. Out-of-range quality or a
    negative estimate is dropped from the row and reported.
    """
    if strict_headers:
        validate_schema(df, "metadata", strict=True)
    else:
        df = df.reindex(columns=list(dict.fromkeys(list(df.columns) + REQUIRED_COLUMNS["metadata"])))

    typed = ensure_column_types(df, "metadata")
    rows: List[TaskMetadataRow] = []
    errors: List[RowError] = []
    sheet = SHEET_NAMES["metadata"]

    for position, record in enumerate(typed.to_dict(orient="records")):
        row_number = position + HEADER_OFFSET
        task_id = record.get("ID")
        if pd.isna(task_id):
            continue

        estimated = record.get("Estimated")
        if pd.isna(estimated):
            estimated = None
        elif estimated < 0:
            errors.append(RowError(sheet, row_number, "negative Estimated ignored"))
            estimated = None

        quality = record.get("Quality")
        if pd.isna(quality):
            quality = None
        elif not (1 <= quality <= 5) or not float(quality).is_integer():
            errors.append(RowError(sheet, row_number, f"Quality {quality} outside 1-5 ignored"))
            quality = None

        title = record.get("Title") or None
        application = record.get("Application") or None
        rows.append(TaskMetadataRow(
            task_id=int(task_id),
            title=title,
            estimated=float(estimated) if estimated is not None else None,
            quality=int(quality) if quality is not None else None,
            application=application,
        ))

    return rows, errors


def parse_metadata_records(records: Iterable[dict]) -> Tuple[List[TaskMetadataRow], List[RowError]]:
    """Parse plain dict records; absent columns are treated as blank."""
    df = pd.DataFrame(list(records))
    return parse_metadata_frame(df, strict_headers=False)

"""
Schema validation and column type coercion for the import workbook.
"""
import numbers

import pandas as pd
import streamlit as st
from typing import List, Tuple, Dict

from src.config import REQUIRED_COLUMNS, OPTIONAL_COLUMNS


class SchemaValidationError(Exception):
    """Raised when a required sheet or column is missing."""
    pass


def validate_required_columns(df: pd.DataFrame, table_name: str) -> Tuple[bool, List[str]]:
    """
    Validate that required columns exist in dataframe.
    Returns (is_valid, missing_columns).

    Header names must match exactly; no case folding or trimming.
    """
    if table_name not in REQUIRED_COLUMNS:
        return True, []

    required = REQUIRED_COLUMNS[table_name]
    missing = [col for col in required if col not in df.columns]

    return len(missing) == 0, missing


def check_optional_columns(df: pd.DataFrame, table_name: str) -> List[str]:
    """
    Check which optional columns are missing.
    Returns list of missing optional columns.
    """
    if table_name not in OPTIONAL_COLUMNS:
        return []

    optional = OPTIONAL_COLUMNS[table_name]
    return [col for col in optional if col not in df.columns]


def validate_schema(df: pd.DataFrame, table_name: str, strict: bool = True) -> Dict:
    """
    Full schema validation.

    Args:
        df: DataFrame to validate
        table_name: Name of table for column requirements lookup
        strict: If True, raise error on missing required columns

    Returns:
        Dict with validation results
    """
    is_valid, missing_required = validate_required_columns(df, table_name)
    missing_optional = check_optional_columns(df, table_name)

    result = {
        "is_valid": is_valid,
        "missing_required": missing_required,
        "missing_optional": missing_optional,
        "total_columns": len(df.columns),
        "total_rows": len(df),
    }

    if strict and not is_valid:
        raise SchemaValidationError(
            f"Missing required columns in {table_name}: {missing_required}"
        )

    return result


def display_validation_result(result: Dict, table_name: str):
    """Display validation result in Streamlit."""
    if result["is_valid"]:
        st.success(f"{table_name}: Schema valid ({result['total_rows']:,} rows, {result['total_columns']} columns)")
    else:
        st.error(f"{table_name}: Missing required columns: {result['missing_required']}")

    if result["missing_optional"]:
        st.warning(f"{table_name}: Missing optional columns (will degrade gracefully): {result['missing_optional']}")


EXCEL_EPOCH = pd.Timestamp("1899-12-30")
# 1900-01-01 .. 2199-12-31
EXCEL_SERIAL_RANGE = (1, 109574)


def parse_work_date(value) -> pd.Timestamp:
    """Parse a WorkDate cell: datetime, date string, or Excel serial number."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return pd.NaT
    if _is_number(value):
        serial = float(value)
        if not EXCEL_SERIAL_RANGE[0] <= serial <= EXCEL_SERIAL_RANGE[1]:
            return pd.NaT
        return EXCEL_EPOCH + pd.to_timedelta(serial, unit="D")
    return pd.to_datetime(value, errors="coerce")


def ensure_column_types(df: pd.DataFrame, table_name: str) -> pd.DataFrame:
    """
    Ensure consistent column types.

    Unparsable values become NaN/NaT so row parsing can report them;
    nothing is dropped here.
    """
    df = df.copy()

    if table_name == "timesheet":
        for col in ["TimekeeperNumber", "WorkHrs"]:
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors="coerce")

        if "WorkDate" in df.columns:
            df["WorkDate"] = df["WorkDate"].apply(parse_work_date)

        text_cols = [
            "FirstName", "LastName", "Title", "TimecardNarrative",
            "ActivityCode", "ActivityCodeDesc", "MatterNumber", "MatterName",
        ]
        for col in text_cols:
            if col in df.columns:
                df[col] = df[col].apply(_clean_text)

    elif table_name == "metadata":
        for col in ["ID", "Estimated", "Quality"]:
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors="coerce")
        for col in ["Title", "Application"]:
            if col in df.columns:
                df[col] = df[col].apply(_clean_text)

    return df


def _is_number(value) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool) and not pd.isna(value)


def _clean_text(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()

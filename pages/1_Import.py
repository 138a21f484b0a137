"""
Import Page

Upload the monthly workbook (3e + scorebyTFS sheets) and merge it into the task store.
"""
import streamlit as st
import pandas as pd
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ui.state import init_state, set_state, get_state
from src.ui.layout import render_header, section_header
from src.data.loader import get_store, invalidate_caches
from src.data.schema import validate_schema, display_validation_result
from src.data.sheets import (
    uploaded_workbook, read_workbook, parse_timesheet_frame, parse_metadata_frame,
)
from src.data.schema import SchemaValidationError
from src.data.tasks import delete_all
from src.ingest.importer import ImportFailedError, import_upload, preview_import
from src.metrics.task_summary import tasks_frame
from src.ui.formatting import format_task_df
from src.config import SHEET_NAMES, pipeline_config


st.set_page_config(page_title="Import", page_icon="📥", layout="wide")

init_state()


def render_preview(data: bytes, filename: str):
    """Validate the workbook and show what the import would produce."""
    try:
        with uploaded_workbook(data, filename) as path:
            frames = read_workbook(path)
    except (SchemaValidationError, ValueError, OSError) as e:
        st.error(f"Workbook rejected: {e}")
        return

    for table_name, df in frames.items():
        result = validate_schema(df, table_name, strict=False)
        display_validation_result(result, SHEET_NAMES[table_name])

    rows, row_errors = parse_timesheet_frame(frames["timesheet"])
    metadata, meta_errors = parse_metadata_frame(frames["metadata"])
    preview = preview_import(rows, metadata, pipeline_config)

    c1, c2, c3 = st.columns(3)
    c1.metric("Timesheet rows", f"{len(rows):,}")
    c2.metric("Tasks after merge", f"{len(preview):,}")
    c3.metric("Skipped rows", f"{len(row_errors) + len(meta_errors):,}")

    display_cols = ["task_id", "title", "estimated", "quality", "total_actual_hours", "developers"]
    st.dataframe(
        format_task_df(tasks_frame(preview)[display_cols]),
        use_container_width=True,
        hide_index=True,
    )
    render_row_errors(row_errors + meta_errors)


def render_row_errors(errors):
    if not errors:
        return
    with st.expander(f"{len(errors)} rows skipped"):
        st.dataframe(
            pd.DataFrame([{"Sheet": e.sheet, "Row": e.row_number, "Reason": e.reason} for e in errors]),
            use_container_width=True,
            hide_index=True,
        )


def render_danger_zone():
    with st.expander("Delete all data"):
        st.warning("Removes every task and developer profile from the store.")
        confirm = st.text_input("Type DELETE to confirm")
        if st.button("Delete everything", disabled=confirm != "DELETE"):
            counts = delete_all(get_store())
            invalidate_caches()
            set_state("last_import_result", None)
            set_state("selected_task_id", None)
            st.success(
                f"Deleted {counts['tasks_deleted']:,} tasks and {counts['developers_deleted']:,} developers"
            )


def main():
    render_header("Import timesheet workbook")

    section_header(
        "Upload",
        "Excel workbook with a '3e' timesheet sheet and a 'scorebyTFS' metadata sheet (max 50 MB).",
    )
    uploaded = st.file_uploader("Workbook", type=["xlsx", "xls"])
    clear_existing = st.checkbox(
        "Clear all existing data before importing",
        value=False,
        help="Deletes ALL tasks and developers first. This cannot be undone.",
    )

    if uploaded is None:
        last = get_state("last_import_result")
        if last:
            st.info(last)
        render_danger_zone()
        return

    data = uploaded.getvalue()

    col1, col2 = st.columns(2)
    with col1:
        do_preview = st.button("Preview", use_container_width=True)
    with col2:
        do_import = st.button("Import", type="primary", use_container_width=True)

    if do_preview:
        render_preview(data, uploaded.name)

    if do_import:
        with st.spinner("Importing..."):
            try:
                result = import_upload(data, uploaded.name, get_store(), clear_existing=clear_existing)
            except ImportFailedError as e:
                partial = e.partial_result
                st.error(
                    f"Import failed: {e} "
                    f"({partial.imported_count} new, {partial.updated_count} updated before failure)"
                )
                invalidate_caches()
                return

        invalidate_caches()
        set_state("last_import_result", result.message)
        st.success(result.message)
        if result.skipped_rows:
            st.caption(f"{result.skipped_rows:,} non-work rows (leave, holidays) were skipped.")
        render_row_errors(result.row_errors)
        if result.task_errors:
            st.warning(f"{len(result.task_errors)} tasks could not be saved")
            st.dataframe(
                pd.DataFrame([{"Task": e.task_id, "Error": e.message} for e in result.task_errors]),
                use_container_width=True,
                hide_index=True,
            )


main()

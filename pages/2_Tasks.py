"""
Tasks Page

Search, filter and edit tasks; per-task developer breakdown; exports.
"""
import streamlit as st
import pandas as pd
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ui.state import init_state, get_state, set_state, reset_task_page
from src.ui.layout import render_header, render_year_filter, section_header
from src.ui.formatting import format_task_df, fmt_hours
from src.data.loader import get_store, load_tasks, invalidate_caches
from src.data.store import StoreError
from src.data.tasks import DeveloperHours, create_task, delete_task, update_task
from src.metrics.task_summary import (
    available_applications, available_years, filter_tasks, task_developer_breakdown, breakdown_frame,
)
from src.exports import export_tasks_csv, export_tasks_excel
from src.config import TASK_FILTERS, config


st.set_page_config(page_title="Tasks", page_icon="📋", layout="wide")

init_state()

LIST_COLUMNS = [
    "task_id", "title", "application", "estimated", "total_actual_hours",
    "variance", "variance_percent", "quality", "developers", "first_date", "last_date",
]

SORT_FIELDS = {
    "task_id": "ID",
    "total_actual_hours": "Actual hours",
    "estimated": "Estimate",
    "quality": "Quality",
    "variance": "Variance",
    "last_date": "Last date",
}


def parse_developer_lines(text: str):
    """'First Last: 3.5' per line -> DeveloperHours list."""
    developers = []
    for line in (text or "").splitlines():
        if ":" not in line:
            continue
        name, _, hours = line.rpartition(":")
        try:
            developers.append(DeveloperHours(name=name.strip(), hours=float(hours)))
        except ValueError:
            st.warning(f"Ignored line: {line}")
    return developers


def render_sidebar(tasks):
    st.sidebar.header("Filters")
    search = st.sidebar.text_input("Search (ID, title, developer)", value=get_state("task_search"),
                                   on_change=reset_task_page)
    set_state("task_search", search)

    filter_keys = list(TASK_FILTERS.keys())
    current = get_state("task_filter")
    filter_key = st.sidebar.selectbox(
        "Show",
        options=filter_keys,
        format_func=lambda k: TASK_FILTERS[k],
        index=filter_keys.index(current) if current in filter_keys else 0,
        on_change=reset_task_page,
    )
    set_state("task_filter", filter_key)

    set_state("task_year", render_year_filter(available_years(tasks), key="task_year_select"))

    st.sidebar.divider()
    fields = list(SORT_FIELDS.keys())
    sort_field = st.sidebar.selectbox("Sort by", options=fields, format_func=lambda k: SORT_FIELDS[k],
                                      index=fields.index(get_state("task_sort_field")))
    set_state("task_sort_field", sort_field)
    order = st.sidebar.radio("Order", options=["desc", "asc"], horizontal=True,
                             index=0 if get_state("task_sort_order") == "desc" else 1)
    set_state("task_sort_order", order)


def render_task_list(tasks):
    page = filter_tasks(
        tasks,
        search=get_state("task_search"),
        filter_key=get_state("task_filter"),
        year=get_state("task_year"),
        sort_field=get_state("task_sort_field"),
        sort_order=get_state("task_sort_order"),
        page=get_state("task_page"),
        limit=config.page_size,
    )

    st.caption(f"{page.total:,} tasks · page {page.page} of {max(page.pages, 1)}")
    if page.total == 0:
        st.info("No tasks match the current filters.")
        return

    st.dataframe(format_task_df(page.rows[LIST_COLUMNS]), use_container_width=True, hide_index=True)

    c1, c2, c3 = st.columns([1, 1, 6])
    with c1:
        if st.button("◀ Prev", disabled=page.page <= 1):
            set_state("task_page", page.page - 1)
            st.rerun()
    with c2:
        if st.button("Next ▶", disabled=page.page >= page.pages):
            set_state("task_page", page.page + 1)
            st.rerun()

    ids = [int(i) for i in page.rows["task_id"]]
    selected = get_state("selected_task_id")
    chosen = st.selectbox("Open task", options=ids, index=ids.index(selected) if selected in ids else 0)
    set_state("selected_task_id", chosen)


def render_task_detail(store, task_id: int):
    task = store.get_task(task_id)
    if task is None:
        return

    section_header(f"Task {task.task_id}", task.title or None)
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Actual", fmt_hours(task.total_actual_hours))
    m2.metric("Estimated", fmt_hours(task.estimated))
    m3.metric("Quality", task.quality if task.quality is not None else "—")
    m4.metric("Entries", len(task.time_entries))
    if task.estimate_source:
        st.caption(f"Estimate source: {task.estimate_source} (group: {task.estimate_group})")

    breakdown = task_developer_breakdown(task)
    if breakdown["developers"]:
        st.dataframe(
            pd.DataFrame([{"Developer": d["name"], "Hours": d["hours"]} for d in breakdown["developers"]]),
            use_container_width=True,
            hide_index=True,
        )
        with st.expander("Hours by date"):
            st.dataframe(breakdown_frame(task), use_container_width=True)

    with st.form(f"edit_{task.task_id}"):
        st.markdown("**Edit**")
        c1, c2 = st.columns(2)
        new_id = c1.number_input("ID", value=int(task.task_id), step=1)
        merge = c2.checkbox("Merge into existing task if the ID is taken")
        title = st.text_input("Title", value=task.title or "")
        application = st.text_input("Application", value=task.application or "")
        c3, c4 = st.columns(2)
        estimated = c3.number_input("Estimated hours (0 = none)", min_value=0.0,
                                    value=float(task.estimated or 0.0), step=0.5)
        quality = c4.selectbox("Quality", options=[None, 1, 2, 3, 4, 5],
                               index=[None, 1, 2, 3, 4, 5].index(task.quality))
        submitted = st.form_submit_button("Save")

    if submitted:
        changes = {}
        if title != (task.title or ""):
            changes["title"] = title
        if application != (task.application or ""):
            changes["application"] = application
        if (estimated or None) != task.estimated:
            changes["estimated"] = estimated or None
        if quality != task.quality:
            changes["quality"] = quality
        try:
            update_task(
                store,
                task.task_id,
                new_task_id=int(new_id),
                merge_with_existing=merge,
                **changes,
            )
        except (StoreError, ValueError) as e:
            st.error(str(e))
        else:
            invalidate_caches()
            set_state("selected_task_id", int(new_id))
            st.success("Saved")
            st.rerun()

    if st.button("Delete task", type="secondary", key=f"delete_{task.task_id}"):
        try:
            delete_task(store, task.task_id)
        except StoreError as e:
            st.error(str(e))
        else:
            invalidate_caches()
            set_state("selected_task_id", None)
            st.rerun()


def render_create_form(store, tasks):
    applications = available_applications(tasks)
    with st.expander("Create task"):
        with st.form("create_task"):
            c1, c2 = st.columns(2)
            task_id = c1.number_input("ID", min_value=1, step=1)
            work_date = c2.date_input("Work date")
            title = st.text_input("Title")
            application = st.text_input(
                "Application",
                help=("Known: " + ", ".join(applications)) if applications else None,
            )
            c3, c4 = st.columns(2)
            estimated = c3.number_input("Estimated hours (0 = none)", min_value=0.0, step=0.5)
            quality = c4.selectbox("Quality", options=[None, 1, 2, 3, 4, 5])
            developers = st.text_area("Developer hours, one per line (Name: hours)")
            submitted = st.form_submit_button("Create")
        if submitted:
            try:
                create_task(
                    store,
                    int(task_id),
                    title=title,
                    application=application,
                    estimated=estimated or None,
                    quality=quality,
                    developers=parse_developer_lines(developers),
                    work_date=work_date,
                )
            except (StoreError, ValueError) as e:
                st.error(str(e))
            else:
                invalidate_caches()
                st.success(f"Created task {int(task_id)}")


def main():
    render_header("Tasks")

    store = get_store()
    tasks = load_tasks()
    render_sidebar(tasks)

    render_task_list(tasks)

    selected = get_state("selected_task_id")
    if selected is not None:
        st.markdown("---")
        render_task_detail(store, selected)

    st.markdown("---")
    render_create_form(store, tasks)

    st.markdown("---")
    section_header("Export")
    c1, c2 = st.columns(2)
    xlsx_bytes, xlsx_name = export_tasks_excel(tasks)
    c1.download_button("Download Excel", xlsx_bytes, file_name=xlsx_name,
                       mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    csv_bytes, csv_name = export_tasks_csv(tasks)
    c2.download_button("Download CSV", csv_bytes, file_name=csv_name, mime="text/csv")


main()

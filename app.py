"""
Task Time Tracker

Main entry point for Streamlit app.
"""
import logging
import streamlit as st
from pathlib import Path

# Page config must be first Streamlit command
st.set_page_config(
    page_title="Task Time Tracker",
    page_icon="⏱️",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Add src to path
import sys
sys.path.insert(0, str(Path(__file__).parent))

from src.ui.state import init_state
from src.ui.layout import render_header, render_kpi_strip, section_header
from src.ui.charts import (
    quality_distribution_chart, task_status_donut,
    estimate_accuracy_chart, hours_by_developer_chart,
)
from src.data.loader import load_tasks, load_developers, get_data_status
from src.metrics.task_summary import (
    summary_stats, quality_distribution, task_status_counts,
    estimate_accuracy, hours_by_developer,
)
from src.config import config, pipeline_config


def main():
    """Main app entry point."""

    logging.basicConfig(
        level=logging.INFO if config.is_prod else logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize session state
    init_state()

    render_header("Timesheet import, estimates and quality scoring")

    status = get_data_status()

    if status["task_count"] == 0:
        st.warning("No tasks yet.")
        st.markdown(f"""
        ### Setup Required

        Upload the monthly workbook on the **Import** page, or run:

        `python scripts/import_workbook.py path/to/workbook.xlsx`

        The workbook needs two sheets:
        - `3e`: timesheet export (one row per time entry)
        - `scorebyTFS`: task id, title, estimate and quality

        Tasks are stored in `{config.db_path}`.
        """)
        st.page_link("pages/1_Import.py", label="Go to Import", icon="📥")
        return

    tasks = load_tasks()
    developers = load_developers()

    render_kpi_strip(summary_stats(tasks, pipeline_config))

    st.markdown("---")

    col1, col2 = st.columns([1, 4])

    with col1:
        st.markdown("### Quick Links")
        st.page_link("pages/1_Import.py", label="Import", icon="📥")
        st.page_link("pages/2_Tasks.py", label="Tasks", icon="📋")
        st.page_link("pages/3_Estimates_and_Quality.py", label="Estimates & Quality", icon="📐")
        st.page_link("pages/4_Developer_Scorecard.py", label="Developer Scorecard", icon="👩‍💻")

    with col2:
        c1, c2 = st.columns(2)
        with c1:
            st.plotly_chart(quality_distribution_chart(quality_distribution(tasks)), use_container_width=True)
        with c2:
            st.plotly_chart(task_status_donut(task_status_counts(tasks)), use_container_width=True)

        c3, c4 = st.columns(2)
        with c3:
            accuracy = estimate_accuracy(tasks)
            if len(accuracy):
                st.plotly_chart(estimate_accuracy_chart(accuracy), use_container_width=True)
            else:
                st.info("No estimated tasks with actual hours yet.")
        with c4:
            if developers:
                st.plotly_chart(hours_by_developer_chart(hours_by_developer(developers)), use_container_width=True)

    st.markdown("---")
    with st.expander("Data Status"):
        section_header("Store", status["db_path"])
        st.markdown(f"- Tasks: `{status['task_count']:,}`")
        st.markdown(f"- Developers: `{status['developer_count']:,}`")
        if status["modified_utc"]:
            st.markdown(f"- Last modified (UTC): `{status['modified_utc']}` ({status['size_mb']} MB)")


if __name__ == "__main__":
    main()

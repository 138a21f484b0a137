"""
Developer Scorecard Page

Hours, task counts, average quality and admin time per developer, by quarter.
"""
import streamlit as st
import pandas as pd
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ui.state import init_state, set_state
from src.ui.layout import render_header, render_year_filter, section_header
from src.ui.charts import quarterly_hours_chart
from src.ui.formatting import format_task_df, fmt_hours
from src.data.loader import load_tasks, load_developers
from src.metrics.scorecard import developer_scorecard
from src.metrics.task_summary import available_years
from src.config import pipeline_config


st.set_page_config(page_title="Developer Scorecard", page_icon="👩‍💻", layout="wide")

init_state()


def main():
    render_header("Developer Scorecard")

    tasks = load_tasks()
    year = render_year_filter(available_years(tasks), key="scorecard_year_select")
    set_state("scorecard_year", year)

    card = developer_scorecard(tasks, load_developers(), year=year, config=pipeline_config)
    if card.developers.empty:
        st.info("No logged hours for this period.")
        return

    section_header("Developers", "Tasks w/o ID count tasks whose narrative carried no recognisable task id.")
    st.dataframe(format_task_df(card.developers), use_container_width=True, hide_index=True)

    if card.quarters:
        section_header("Quarterly hours")
        st.plotly_chart(quarterly_hours_chart(card.quarterly_hours), use_container_width=True)
        st.dataframe(card.quarterly_hours.round(2), use_container_width=True)

        section_header(f"Admin hours (task {pipeline_config.admin_task_id})")
        team = pd.DataFrame({
            "Quarter": card.quarters,
            "Team admin hours": [fmt_hours(card.team_admin_hours_by_quarter.get(q, 0.0)) for q in card.quarters],
        })
        st.dataframe(team, use_container_width=True, hide_index=True)
        st.dataframe(card.quarterly_admin_hours.round(2), use_container_width=True)


main()

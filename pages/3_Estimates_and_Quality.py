"""
Estimates & Quality Page

Run the bell-curve estimator, variance-based quality scoring and the
low-estimate repair, each with a preview first.
"""
import streamlit as st
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ui.state import init_state, get_state, set_state
from src.ui.layout import render_header, section_header
from src.ui.charts import estimate_group_chart, score_histogram_chart
from src.ui.formatting import format_task_df
from src.data.loader import get_store, invalidate_caches
from src.data.tasks import backfill_contributor_estimates
from src.modeling.estimation import GROUP_BY_OPTIONS, calculate_estimates, preview_estimates
from src.metrics.quality import (
    calculate_quality, fix_low_estimates, preview_low_estimates, preview_quality,
)
from src.config import pipeline_config


st.set_page_config(page_title="Estimates & Quality", page_icon="📐", layout="wide")

init_state()


def render_estimates(store):
    section_header(
        "Bell-curve estimates",
        "Tasks with actual hours and no estimate get median + 0.5 × MAD of their group, "
        "never below their own actual hours.",
    )
    current = get_state("estimate_group_by")
    group_by = st.radio(
        "Group by",
        options=list(GROUP_BY_OPTIONS),
        format_func=lambda g: "Primary developer" if g == "developer" else "Matter number",
        index=list(GROUP_BY_OPTIONS).index(current),
        horizontal=True,
    )
    set_state("estimate_group_by", group_by)

    preview = preview_estimates(store, group_by)
    if preview.updated_count == 0:
        st.success("Every task with actual hours already has an estimate.")
        return

    st.caption(f"{preview.updated_count} tasks in {preview.group_count} groups")
    st.plotly_chart(estimate_group_chart(preview.group_stats), use_container_width=True)
    with st.expander("Group statistics"):
        st.dataframe(preview.group_stats, use_container_width=True, hide_index=True)
    with st.expander("Proposed estimates"):
        st.dataframe(preview.proposals, use_container_width=True, hide_index=True)

    if st.button("Apply estimates", type="primary"):
        result = calculate_estimates(store, group_by)
        invalidate_caches()
        st.success(f"Updated {result.updated_count} tasks across {result.group_count} groups")
        if result.failed_task_ids:
            st.warning(f"Not saved (changed meanwhile): {result.failed_task_ids}")


def render_quality(store):
    section_header(
        "Quality scores",
        "Variance = (actual − estimate) / estimate. ≤ −25% → 5, ≤ −10% → 4, ≤ +25% → 3, above → 2.",
    )
    preview = preview_quality(store)
    if preview.total_candidates == 0:
        st.success("No tasks are waiting for a quality score.")
        return

    c1, c2 = st.columns([2, 1])
    with c1:
        shown = preview.candidates.copy()
        shown["variance"] = shown["variance"] * 100
        st.caption(f"Showing {len(shown)} of {preview.total_candidates} candidates")
        st.dataframe(
            format_task_df(shown.rename(columns={"variance": "variance_percent"})),
            use_container_width=True,
            hide_index=True,
        )
    with c2:
        st.plotly_chart(score_histogram_chart(preview.histogram), use_container_width=True)

    if st.button("Apply quality scores", type="primary"):
        result = calculate_quality(store)
        invalidate_caches()
        st.success(f"Scored {result.updated_count} tasks")


def render_fixes(store):
    section_header("Low estimates", "Estimates below the actual hours are raised to ceil(actual).")
    preview = preview_low_estimates(store)
    if len(preview.tasks) == 0:
        st.success("No estimates below actual hours.")
    else:
        st.dataframe(preview.tasks, use_container_width=True, hide_index=True)
        if st.button("Fix low estimates"):
            result = fix_low_estimates(store)
            invalidate_caches()
            st.success(f"Fixed {result.fixed_count} estimates")

    if pipeline_config.special_contributor:
        st.markdown("---")
        section_header(
            "Contributor estimates",
            f"Set the estimate to the actual hours on tasks {pipeline_config.special_contributor} worked on.",
        )
        pending = backfill_contributor_estimates(store, pipeline_config, dry_run=True)
        st.caption(f"{len(pending)} tasks would change")
        if pending and st.button("Backfill contributor estimates"):
            changed = backfill_contributor_estimates(store, pipeline_config)
            invalidate_caches()
            st.success(f"Updated {len(changed)} tasks")


def main():
    render_header("Estimates & Quality")
    store = get_store()

    tab1, tab2, tab3 = st.tabs(["Estimates", "Quality", "Repairs"])
    with tab1:
        render_estimates(store)
    with tab2:
        render_quality(store)
    with tab3:
        render_fixes(store)


main()

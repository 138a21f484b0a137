"""
Layout components: header, sidebar, KPI strip, section headers.
"""
import streamlit as st
from typing import Dict, List, Optional

from src.config import config
from src.ui.formatting import kpi_value


# =============================================================================
# HEADER
# =============================================================================

def render_header(subtitle: Optional[str] = None):
    """Render page header with app title."""
    col1, col2 = st.columns([3, 1])

    with col1:
        st.title("Task Time Tracker")
        if subtitle:
            st.caption(subtitle)

    with col2:
        st.caption(f"Store: {config.db_path}")


# =============================================================================
# SIDEBAR
# =============================================================================

def render_year_filter(years: List[int], key: str, label: str = "Year") -> Optional[int]:
    """Sidebar year selector; returns None for all years."""
    options = ["All"] + [str(y) for y in years]
    selected = st.sidebar.selectbox(label, options=options, index=0, key=key)
    return None if selected == "All" else int(selected)


# =============================================================================
# KPI CARDS
# =============================================================================

def render_kpi_strip(stats: Dict):
    """
    Render horizontal strip of KPI cards from summary_stats().
    """
    format_map = {
        "total_tasks": ("Tasks", "count"),
        "tasks_with_estimates": ("With Estimates", "count"),
        "tasks_with_quality": ("With Quality", "count"),
        "total_estimated_hours": ("Estimated Hours", "hours"),
        "total_actual_hours": ("Actual Hours", "hours"),
        "avg_quality": ("Avg Quality", "quality"),
        "total_admin_hours": ("Admin Hours", "hours"),
    }

    keys = [k for k in format_map if k in stats]
    cols = st.columns(len(keys))
    for i, key in enumerate(keys):
        label, format_type = format_map[key]
        with cols[i]:
            st.metric(label=label, value=kpi_value(stats[key], format_type))


# =============================================================================
# SECTION HEADERS
# =============================================================================

def section_header(title: str, description: Optional[str] = None):
    """Render section header with optional description."""
    st.subheader(title)
    if description:
        st.caption(description)

"""
Session state management for Streamlit app.
"""
import streamlit as st
from typing import Any


# =============================================================================
# DEFAULT VALUES
# =============================================================================

DEFAULTS = {
    "task_search": "",
    "task_filter": "all",
    "task_year": None,
    "task_sort_field": "task_id",
    "task_sort_order": "desc",
    "task_page": 1,
    "selected_task_id": None,
    "estimate_group_by": "developer",
    "scorecard_year": None,
    "last_import_result": None,
}

# =============================================================================
# STATE HELPERS
# =============================================================================

def init_state():
    """Initialize all session state keys with defaults."""
    for key, default in DEFAULTS.items():
        if key not in st.session_state:
            st.session_state[key] = default


def get_state(key: str) -> Any:
    """Get state value with default fallback."""
    init_state()
    return st.session_state.get(key, DEFAULTS.get(key))


def set_state(key: str, value: Any):
    """Set state value."""
    st.session_state[key] = value


def reset_task_page():
    """Go back to the first page after a filter change."""
    set_state("task_page", 1)

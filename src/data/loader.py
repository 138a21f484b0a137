"""
Data loading utilities with Streamlit caching.
"""
import streamlit as st
from datetime import datetime, timezone
from typing import Any, Dict, List

from src.config import config
from src.data.models import CanonicalTask, DeveloperProfile
from src.data.store import TaskStore


@st.cache_resource
def get_store() -> TaskStore:
    """One shared store per server process."""
    return TaskStore(config.db_path)


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_tasks() -> List[CanonicalTask]:
    """All canonical tasks, id descending."""
    return get_store().list_tasks()


@st.cache_data(ttl=config.cache_ttl_seconds)
def load_developers() -> List[DeveloperProfile]:
    """Developer profiles, most hours first."""
    return get_store().list_developers()


def invalidate_caches():
    """Drop cached task data after any write."""
    load_tasks.clear()
    load_developers.clear()


def get_data_status() -> Dict[str, Any]:
    """Get status of the task store."""
    path = config.db_path
    store = get_store()
    status = {
        "db_path": str(path),
        "db_exists": path.exists(),
        "task_count": store.count_tasks(),
        "developer_count": len(store.list_developers()),
        "modified_utc": None,
        "size_mb": None,
    }
    if path.exists():
        stat = path.stat()
        status["modified_utc"] = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
        status["size_mb"] = round(stat.st_size / (1024 * 1024), 2)
    return status

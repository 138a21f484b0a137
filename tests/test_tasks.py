"""
Tests for manual task editing.
"""
import pytest
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import PipelineConfig
from src.data.models import CanonicalTask, TimeEntry
from src.data.store import TaskConflictError, TaskNotFoundError, TaskStore
from src.data.tasks import (
    MANUAL_NARRATIVE,
    DeveloperHours,
    backfill_contributor_estimates,
    create_task,
    delete_task,
    manual_entries,
    update_task,
)

DAY = date(2025, 7, 1)


def _store_with(*specs) -> TaskStore:
    """specs: (task_id, estimated, [(name, hours), ...])"""
    store = TaskStore(":memory:")
    for task_id, estimated, devs in specs:
        create_task(store, task_id, title=f"Task {task_id}", estimated=estimated,
                    developers=[DeveloperHours(n, h) for n, h in devs], work_date=DAY)
    return store


class TestManualEntries:
    """Hand-typed developer hours."""

    def test_entries(self):
        """Names split on the first space; zero hours are skipped."""
        entries = manual_entries(
            [DeveloperHours("Mary Ann Lee", 2), DeveloperHours("Bo", 0), DeveloperHours("Cher", 1.5)],
            DAY,
        )
        assert [(e.first_name, e.last_name, e.work_hours) for e in entries] == [
            ("Mary", "Ann Lee", 2.0),
            ("Cher", "", 1.5),
        ]
        assert all(e.timekeeper_number == 0 for e in entries)
        assert all(e.narrative == MANUAL_NARRATIVE for e in entries)


class TestCreateTask:
    """Creating tasks by hand."""

    def test_create(self):
        """Totals are built from the typed hours."""
        store = _store_with((500, 6.0, [("Ann Lee", 2), ("Bo Chen", 3)]))
        task = store.get_task(500)
        assert task.total_actual_hours == 5.0
        assert task.developer_breakdown == {"Ann Lee": 2.0, "Bo Chen": 3.0}
        assert task.developer_breakdown_by_date["Ann Lee"] == {"2025-07-01": 2.0}

    def test_duplicate_id(self):
        """Creating an existing id is a conflict."""
        store = _store_with((500, None, []))
        with pytest.raises(TaskConflictError):
            create_task(store, 500, title="again")

    def test_quality_range(self):
        """Quality outside 1-5 is rejected."""
        with pytest.raises(ValueError):
            create_task(TaskStore(":memory:"), 1, quality=7)


class TestUpdateTask:
    """Editing, re-keying and merging."""

    def test_partial_update(self):
        """Only the passed fields change."""
        store = _store_with((500, 6.0, [("Ann Lee", 2)]))
        update_task(store, 500, quality=4)
        task = store.get_task(500)
        assert task.quality == 4
        assert task.estimated == 6.0
        assert task.title == "Task 500"
        assert task.version == 2

    def test_clear_estimate(self):
        """Passing None clears a field."""
        store = _store_with((500, 6.0, [("Ann Lee", 2)]))
        update_task(store, 500, estimated=None)
        assert store.get_task(500).estimated is None

    def test_replace_developers(self):
        """A developer list replaces all entries and recalculates totals."""
        store = _store_with((500, 6.0, [("Ann Lee", 2)]))
        update_task(store, 500, developers=[DeveloperHours("Bo Chen", 4)], work_date=DAY)
        task = store.get_task(500)
        assert task.developer_breakdown == {"Bo Chen": 4.0}
        assert task.total_actual_hours == 4.0

    def test_missing_task(self):
        """Updating an unknown id raises TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError):
            update_task(TaskStore(":memory:"), 1, title="x")

    def test_rekey(self):
        """A free new id moves the task."""
        store = _store_with((-17, None, [("Ann Lee", 2)]))
        update_task(store, -17, new_task_id=19479)
        assert store.get_task(-17) is None
        moved = store.get_task(19479)
        assert moved.total_actual_hours == 2.0
        assert moved.title == "Task -17"

    def test_rekey_conflict(self):
        """A taken id without merge is refused and nothing changes."""
        store = _store_with((-17, None, [("Ann Lee", 2)]), (19479, 5.0, [("Bo Chen", 3)]))
        with pytest.raises(TaskConflictError) as exc_info:
            update_task(store, -17, new_task_id=19479)
        assert str(exc_info.value) == "Target ID already exists. Enable merge to combine tasks."
        assert store.get_task(-17) is not None
        assert store.get_task(19479).total_actual_hours == 3.0

    def test_merge(self):
        """Merging concatenates entries, sums estimates and deletes the source."""
        store = _store_with((-17, 2.0, [("Ann Lee", 2)]), (19479, 5.0, [("Bo Chen", 3)]))
        update_task(store, -17, new_task_id=19479, merge_with_existing=True)

        assert store.get_task(-17) is None
        target = store.get_task(19479)
        assert target.total_actual_hours == 5.0
        assert target.estimated == 7.0
        assert set(target.developer_breakdown) == {"Ann Lee", "Bo Chen"}
        assert target.title == "Task 19479"


class TestDelete:
    """Deleting tasks."""

    def test_delete(self):
        """Deleted tasks are gone; unknown ids raise."""
        store = _store_with((500, None, []))
        delete_task(store, 500)
        assert store.get_task(500) is None
        with pytest.raises(TaskNotFoundError):
            delete_task(store, 500)


class TestBackfill:
    """Contributor estimate backfill."""

    def _store(self):
        store = TaskStore(":memory:")
        task = CanonicalTask(task_id=300, title="shared", estimated=1.0, time_entries=[
            TimeEntry(9, "Casey", "Doe", "", DAY, 4.0),
            TimeEntry(1, "Ann", "Lee", "", DAY, 2.0),
        ])
        store.insert_task(task.recalculate_totals())
        store.insert_task(CanonicalTask(task_id=301, title="other", estimated=1.0, time_entries=[
            TimeEntry(1, "Ann", "Lee", "", DAY, 2.0),
        ]).recalculate_totals())
        return store

    def test_backfill(self):
        """Tasks the contributor touched get estimate = actual."""
        store = self._store()
        changed = backfill_contributor_estimates(store, PipelineConfig(special_contributor="Casey Doe"))
        assert changed == [300]
        assert store.get_task(300).estimated == 6.0
        assert store.get_task(301).estimated == 1.0

    def test_dry_run(self):
        """Dry run reports without writing."""
        store = self._store()
        changed = backfill_contributor_estimates(store, PipelineConfig(special_contributor="Casey Doe"),
                                                 dry_run=True)
        assert changed == [300]
        assert store.get_task(300).estimated == 1.0

    def test_no_contributor(self):
        """Without a configured contributor nothing happens."""
        assert backfill_contributor_estimates(self._store(), PipelineConfig(special_contributor=None)) == []

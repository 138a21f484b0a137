"""
Tests for bell-curve estimation.
"""
import pytest
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import ESTIMATE_SOURCE_BELL_CURVE
from src.data.models import CanonicalTask, TimeEntry
from src.data.store import TaskStore
from src.modeling.estimation import (
    UNKNOWN_GROUP,
    calculate_estimates,
    compute_estimates,
    median,
    median_absolute_deviation,
    preview_estimates,
    round_estimate,
)


def _make_task(task_id: int, hours: dict, matter: str = "", estimated=None) -> CanonicalTask:
    entries = []
    for name, value in hours.items():
        first, _, last = name.partition(" ")
        entries.append(TimeEntry(
            timekeeper_number=len(name),
            first_name=first,
            last_name=last,
            title="Developer",
            work_date=date(2025, 4, 1),
            work_hours=value,
            matter_number=matter,
        ))
    task = CanonicalTask(task_id=task_id, title=f"Task {task_id}", estimated=estimated, time_entries=entries)
    return task.recalculate_totals()


def _make_store(tasks) -> TaskStore:
    store = TaskStore(":memory:")
    for task in tasks:
        store.insert_task(task)
    return store


class TestStatistics:
    """Median, MAD and rounding."""

    def test_median_even(self):
        """Even-sized inputs average the two middle values."""
        assert median([2, 4, 4, 4, 5, 5, 7, 9]) == 4.5

    def test_median_odd(self):
        """Odd-sized inputs take the middle value."""
        assert median([9, 1, 5]) == 5

    def test_median_empty(self):
        """The median of nothing is an error."""
        with pytest.raises(ValueError):
            median([])

    def test_mad(self):
        """MAD is the median of absolute deviations from the median."""
        assert median_absolute_deviation([2, 4, 4, 4, 5, 5, 7, 9]) == 0.5

    def test_mad_single_value(self):
        """A one-task group has zero spread."""
        assert median_absolute_deviation([3.2]) == 0

    @pytest.mark.parametrize("raw,expected", [
        (0.2, 1),
        (2.5, 3),
        (4.4, 4),
        (99.6, 100),
        (100, 100),
        (101, 110),
        (154.2, 160),
    ])
    def test_round_estimate(self, raw, expected):
        """Half-up below 100, next multiple of 10 from 100, never below 1."""
        assert round_estimate(raw) == expected


class TestComputeEstimates:
    """Group statistics and per-task proposals."""

    def test_group_estimate_and_floor(self):
        """Each task gets max(group estimate, ceil(actual))."""
        actuals = [2, 4, 4, 4, 5, 5, 7, 9]
        tasks = [_make_task(100 + i, {"Ann Lee": h}) for i, h in enumerate(actuals)]
        result = compute_estimates(tasks, "developer")

        assert result.group_count == 1
        stats = result.group_stats.iloc[0]
        assert stats["group"] == "Ann Lee"
        assert stats["median"] == 4.5
        assert stats["mad"] == 0.5
        # 4.5 + 0.5 * 0.5 = 4.75
        assert stats["estimate"] == 5

        proposals = result.proposals.set_index("task_id")["estimate"].to_dict()
        assert proposals[100] == 5
        assert proposals[106] == 7
        assert proposals[107] == 9

    def test_single_task_group(self):
        """A single task is estimated at its rounded actual, floored at the ceiling."""
        result = compute_estimates([_make_task(1, {"Ann Lee": 3.2})], "developer")
        assert result.group_stats.iloc[0]["estimate"] == 3
        assert result.proposals.iloc[0]["estimate"] == 4

    def test_estimate_never_below_actual(self):
        """No proposal is below the task's own rounded-up actual."""
        tasks = [_make_task(i, {"Ann Lee": h}) for i, h in enumerate([0.5, 1, 1, 1, 30.2])]
        result = compute_estimates(tasks, "developer")
        actual = {t.task_id: t.actual_ceiling for t in tasks}
        for row in result.proposals.itertuples(index=False):
            assert row.estimate >= actual[row.task_id]

    def test_primary_developer_groups(self):
        """Tasks group by the developer with the most hours."""
        tasks = [
            _make_task(1, {"Ann Lee": 1, "Bo Chen": 5}),
            _make_task(2, {"Ann Lee": 3}),
        ]
        result = compute_estimates(tasks, "developer")
        groups = dict(zip(result.proposals["task_id"], result.proposals["group"]))
        assert groups == {1: "Bo Chen", 2: "Ann Lee"}

    def test_group_by_matter_with_unknown(self):
        """Tasks without a matter number share the Unknown group."""
        tasks = [
            _make_task(1, {"Ann Lee": 2}, matter="5001"),
            _make_task(2, {"Ann Lee": 2}),
            _make_task(3, {"Bo Chen": 4}),
        ]
        result = compute_estimates(tasks, "matter")
        assert set(result.group_stats["group"]) == {"5001", UNKNOWN_GROUP}
        unknown = result.group_stats.set_index("group").loc[UNKNOWN_GROUP]
        assert unknown["task_count"] == 2

    def test_only_candidates_considered(self):
        """Estimated tasks and tasks without hours are ignored."""
        tasks = [
            _make_task(1, {"Ann Lee": 2}, estimated=10.0),
            CanonicalTask(task_id=2, title="empty"),
        ]
        result = compute_estimates(tasks, "developer")
        assert result.updated_count == 0
        assert result.group_count == 0

    def test_invalid_group_by(self):
        """Unknown grouping raises ValueError."""
        with pytest.raises(ValueError):
            compute_estimates([_make_task(1, {"Ann Lee": 2})], "application")


class TestCalculateEstimates:
    """Persisting estimates to the store."""

    def test_writes_estimate_and_source(self):
        """Candidates are updated with estimate, source and group."""
        store = _make_store([
            _make_task(1, {"Ann Lee": 3.2}),
            _make_task(2, {"Ann Lee": 4.0}, estimated=6.0),
        ])
        result = calculate_estimates(store, "developer")

        assert result.updated_count == 1
        task = store.get_task(1)
        assert task.estimated == 4.0
        assert task.estimate_source == ESTIMATE_SOURCE_BELL_CURVE
        assert task.estimate_group == "Ann Lee"
        assert task.version == 2
        assert store.get_task(2).estimated == 6.0

    def test_second_run_is_noop(self):
        """Once estimated, tasks are no longer candidates."""
        store = _make_store([_make_task(1, {"Ann Lee": 3.2})])
        calculate_estimates(store, "developer")
        assert calculate_estimates(store, "developer").updated_count == 0

    def test_preview_writes_nothing(self):
        """Preview returns proposals but leaves the store untouched."""
        store = _make_store([_make_task(1, {"Ann Lee": 3.2})])
        result = preview_estimates(store, "developer")
        assert len(result.proposals) == 1
        assert store.get_task(1).estimated is None

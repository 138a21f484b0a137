"""
Tests for the task list, summary numbers, scorecard and exports.
"""
import pytest
import pandas as pd
import sys
from datetime import date
from io import BytesIO
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import PipelineConfig
from src.data.models import CanonicalTask, DeveloperProfile, TimeEntry
from src.exports import export_tasks_csv, export_tasks_excel, task_export_frame
from src.metrics.scorecard import developer_scorecard, quarter_label, quarter_sort_key
from src.metrics.task_summary import (
    available_applications,
    available_years,
    estimate_accuracy,
    filter_tasks,
    hours_by_developer,
    quality_distribution,
    summary_stats,
    task_developer_breakdown,
    task_status_counts,
)

CONFIG = PipelineConfig(special_contributor=None, admin_task_id=7300)


def _entry(name: str, day: date, hours: float) -> TimeEntry:
    first, _, last = name.partition(" ")
    return TimeEntry(timekeeper_number=len(name), first_name=first, last_name=last,
                     title="Developer", work_date=day, work_hours=hours)


def _make_task(task_id, title="", estimated=None, quality=None, entries=(), application=None):
    task = CanonicalTask(task_id=task_id, title=title, estimated=estimated, quality=quality,
                         time_entries=list(entries), application=application)
    return task.recalculate_totals()


def _sample_tasks():
    return [
        _make_task(19479, "Login bug", estimated=8.0, quality=4, application="Portal",
                   entries=[_entry("Ann Lee", date(2025, 1, 6), 6.0)]),
        _make_task(19542, "UI updates", estimated=4.0,
                   entries=[_entry("Bo Chen", date(2024, 11, 4), 5.0)]),
        _make_task(19600, "Reports", entries=[_entry("Ann Lee", date(2025, 4, 2), 3.0),
                                              _entry("Bo Chen", date(2025, 4, 3), 1.0)]),
        _make_task(7300, "Admin", entries=[_entry("Ann Lee", date(2025, 2, 1), 2.0)]),
        _make_task(20001, "Planned", estimated=5.0, application="billing"),
    ]


class TestFilterTasks:
    """Search, filters, year and pagination."""

    @pytest.mark.parametrize("filter_key,expected", [
        ("all", [20001, 19600, 19542, 19479, 7300]),
        ("needsEstimate", [19600, 7300]),
        ("needsQuality", [19600, 19542, 7300]),
        ("complete", [19479]),
        ("noActual", [20001]),
    ])
    def test_filters(self, filter_key, expected):
        """Each named filter selects the matching tasks."""
        page = filter_tasks(_sample_tasks(), filter_key=filter_key, limit=50)
        assert page.rows["task_id"].tolist() == expected

    def test_unknown_filter(self):
        """Unknown filters raise ValueError."""
        with pytest.raises(ValueError):
            filter_tasks(_sample_tasks(), filter_key="archived")

    def test_search_text_and_id(self):
        """Search matches titles, developer names and exact ids."""
        assert filter_tasks(_sample_tasks(), search="login").rows["task_id"].tolist() == [19479]
        assert filter_tasks(_sample_tasks(), search="bo chen").rows["task_id"].tolist() == [19600, 19542]
        assert filter_tasks(_sample_tasks(), search="7300").rows["task_id"].tolist() == [7300]

    def test_year(self):
        """The year filter keeps tasks with an entry in that year."""
        page = filter_tasks(_sample_tasks(), year=2024)
        assert page.rows["task_id"].tolist() == [19542]

    def test_sort_and_paginate(self):
        """Sorting and paging work together."""
        page = filter_tasks(_sample_tasks(), sort_field="total_actual_hours", sort_order="desc",
                            page=2, limit=2)
        assert page.total == 5
        assert page.pages == 3
        assert page.rows["task_id"].tolist() == [19600, 7300]

    def test_empty(self):
        """No tasks gives an empty page."""
        page = filter_tasks([], search="x")
        assert page.total == 0
        assert page.rows.empty


class TestSummary:
    """Headline numbers and lookups."""

    def test_summary_stats(self):
        """Counts, totals, average quality and admin hours."""
        stats = summary_stats(_sample_tasks(), CONFIG)
        assert stats["total_tasks"] == 5
        assert stats["tasks_with_estimates"] == 3
        assert stats["tasks_with_quality"] == 1
        assert stats["total_estimated_hours"] == 17.0
        assert stats["total_actual_hours"] == 17.0
        assert stats["avg_quality"] == 4.0
        assert stats["total_admin_hours"] == 2.0

    def test_summary_empty(self):
        """An empty store has no average quality."""
        assert summary_stats([], CONFIG)["avg_quality"] is None

    def test_years_and_applications(self):
        """Years newest first; applications sorted case-insensitively."""
        assert available_years(_sample_tasks()) == [2025, 2024]
        assert available_applications(_sample_tasks()) == ["billing", "Portal"]


class TestChartSeries:
    """Data behind the overview charts."""

    def test_quality_distribution(self):
        """Counts per score with labels."""
        df = quality_distribution(_sample_tasks())
        assert df["count"].tolist() == [0, 0, 0, 1, 0]
        assert df["label"].iloc[3] == "4 - Good"

    def test_task_status(self):
        """Needs estimate, needs quality and complete counts."""
        df = task_status_counts(_sample_tasks())
        assert dict(zip(df["status"], df["count"])) == {
            "Needs Estimate": 2, "Needs Quality": 1, "Complete": 1,
        }

    def test_estimate_accuracy(self):
        """Most recent estimated tasks with hours, capped."""
        df = estimate_accuracy(_sample_tasks(), limit=1)
        assert df["label"].tolist() == ["TFS 19542"]
        assert df["actual"].tolist() == [5.0]

    def test_hours_by_developer(self):
        """Top developers by total hours."""
        profiles = [DeveloperProfile(i, f"Dev{i}", "X", total_hours=float(i)) for i in range(1, 13)]
        df = hours_by_developer(profiles)
        assert len(df) == 10
        assert df["developer"].iloc[0] == "Dev12 X"

    def test_developer_breakdown(self):
        """Largest contributor first, with dated detail."""
        task = _sample_tasks()[2]
        breakdown = task_developer_breakdown(task)
        assert breakdown["total_hours"] == 4.0
        assert [d["name"] for d in breakdown["developers"]] == ["Ann Lee", "Bo Chen"]
        assert breakdown["developers"][0]["by_date"] == [{"date": "2025-04-02", "hours": 3.0}]


class TestScorecard:
    """Per-developer scorecard."""

    def test_quarter_labels(self):
        """Quarters label and sort chronologically."""
        assert quarter_label(date(2025, 4, 2)) == "Q2 2025"
        labels = ["Q1 2025", "Q4 2024", "Q2 2025"]
        assert sorted(labels, key=quarter_sort_key) == ["Q4 2024", "Q1 2025", "Q2 2025"]

    def test_scorecard(self):
        """Totals, task counts, average quality and admin hours."""
        card = developer_scorecard(_sample_tasks(), config=CONFIG)
        rows = card.developers.set_index("name")

        assert rows.loc["Ann Lee", "total_hours"] == 11.0
        assert rows.loc["Ann Lee", "task_count"] == 3
        assert rows.loc["Ann Lee", "avg_quality"] == 4.0
        assert rows.loc["Ann Lee", "admin_hours"] == 2.0
        assert pd.isna(rows.loc["Bo Chen", "avg_quality"])
        assert card.developers["name"].tolist() == ["Ann Lee", "Bo Chen"]

        assert card.quarters == ["Q4 2024", "Q1 2025", "Q2 2025"]
        assert card.quarterly_hours.loc["Ann Lee", "Q1 2025"] == 8.0
        assert card.team_admin_hours_by_quarter == {"Q1 2025": 2.0}

    def test_year_filter(self):
        """Only entries in the chosen year count."""
        card = developer_scorecard(_sample_tasks(), year=2024, config=CONFIG)
        assert card.developers["name"].tolist() == ["Bo Chen"]
        assert card.developers["total_hours"].tolist() == [5.0]
        assert card.quarters == ["Q4 2024"]

    def test_profile_columns(self):
        """Not-entered counts come from the stored profiles."""
        profiles = [DeveloperProfile(7, "Ann", "Lee", task_count_without_id=2, hours_without_id=1.5)]
        card = developer_scorecard(_sample_tasks(), profiles, config=CONFIG)
        rows = card.developers.set_index("name")
        assert rows.loc["Ann Lee", "task_count_without_id"] == 2
        assert rows.loc["Bo Chen", "task_count_without_id"] == 0


class TestExports:
    """CSV and Excel exports."""

    def test_export_frame(self):
        """Rows ascend by id with formatted variance and developers."""
        df = task_export_frame(_sample_tasks())
        assert df["ASD ID"].tolist() == [7300, 19479, 19542, 19600, 20001]
        row = df.set_index("ASD ID").loc[19479]
        assert row["Variance %"] == "25.0%"
        assert row["Developers"] == "Ann Lee (6.00h)"

    def test_csv(self):
        """CSV bytes carry the header row."""
        data, filename = export_tasks_csv(_sample_tasks())
        assert filename.endswith(".csv")
        assert data.decode("utf-8").splitlines()[0].startswith("ASD ID,Title,Application")

    def test_excel(self):
        """The workbook reads back with the same rows."""
        data, filename = export_tasks_excel(_sample_tasks())
        assert filename.endswith(".xlsx")
        df = pd.read_excel(BytesIO(data), sheet_name="Tasks")
        assert df["ASD ID"].tolist() == [7300, 19479, 19542, 19600, 20001]

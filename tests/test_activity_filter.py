"""
Tests for non-work activity filtering and contributor splitting.
"""
import pandas as pd
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import DEFAULT_SKIP_ACTIVITIES, PipelineConfig
from src.data.models import RawTimeLogRow
from src.ingest.activity_filter import (
    activity_exclusion_mask,
    filter_work_rows,
    is_contributor,
    should_skip_activity,
    split_contributor_rows,
)


CONFIG = PipelineConfig(skip_activities=DEFAULT_SKIP_ACTIVITIES, special_contributor=None)


def _make_row(activity: str, first: str = "A", last: str = "B", hours: float = 1.0) -> RawTimeLogRow:
    return RawTimeLogRow(
        timekeeper_number=1,
        first_name=first,
        last_name=last,
        title="Developer",
        work_date=date(2025, 1, 6),
        work_hours=hours,
        narrative="TFS 19479",
        activity_description=activity,
    )


class TestShouldSkipActivity:
    """Tests for the skip-list match."""

    def test_pto_any_case_is_skipped(self):
        """PTO/Vacation is excluded regardless of case."""
        assert should_skip_activity("pto/vacation", CONFIG) is True
        assert should_skip_activity("PTO/VACATION", CONFIG) is True

    def test_development_is_kept(self):
        """Ordinary work is never excluded."""
        assert should_skip_activity("Development", CONFIG) is False

    def test_substring_match(self):
        """Skip entries match anywhere in the description."""
        assert should_skip_activity("Company Holiday - New Year", CONFIG) is True
        assert should_skip_activity("Administrative Shutdown (Dec)", CONFIG) is True

    def test_missing_description(self):
        """Blank descriptions are kept."""
        assert should_skip_activity(None, CONFIG) is False
        assert should_skip_activity("", CONFIG) is False

    def test_skip_list_comes_from_config(self):
        """A custom skip list replaces the defaults."""
        custom = PipelineConfig(skip_activities=("Training",), special_contributor=None)
        assert should_skip_activity("Training day", custom) is True
        assert should_skip_activity("Holiday", custom) is False


class TestExclusionMask:
    """Tests for the vectorised mask."""

    def test_mask_marks_non_work(self):
        """Mask is True for rows to exclude."""
        df = pd.DataFrame({"ActivityCodeDesc": ["Development", "pto/vacation", None, "Death in Family"]})
        mask = activity_exclusion_mask(df, CONFIG)
        assert mask.tolist() == [False, True, False, True]

    def test_missing_column(self):
        """Without the column nothing is excluded."""
        df = pd.DataFrame({"WorkHrs": [1, 2]})
        assert not activity_exclusion_mask(df, CONFIG).any()


class TestFilterRows:
    """Tests for filtering parsed rows."""

    def test_counts_skipped(self):
        """Skipped rows are counted, kept rows returned in order."""
        rows = [_make_row("Development"), _make_row("Holiday"), _make_row("Testing")]
        kept, skipped = filter_work_rows(rows, CONFIG)
        assert [r.activity_description for r in kept] == ["Development", "Testing"]
        assert skipped == 1


class TestContributor:
    """Tests for the special-contributor split."""

    def test_no_contributor_configured(self):
        """Without a contributor everyone is general."""
        rows = [_make_row("Development")]
        general, contributor = split_contributor_rows(rows, CONFIG)
        assert len(general) == 1
        assert contributor == []

    def test_split_by_full_name(self):
        """Contributor rows are split off by full name, any case."""
        config = PipelineConfig(special_contributor="Casey Doe")
        rows = [_make_row("Development"), _make_row("Development", first="casey", last="DOE")]
        general, contributor = split_contributor_rows(rows, config)
        assert len(general) == 1
        assert len(contributor) == 1
        assert is_contributor("Casey Doe", config)
        assert not is_contributor("Casey", config)

"""
Tests for merging draft tasks with the scorebyTFS metadata.
"""
import pytest
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import PipelineConfig
from src.data.models import (
    DraftTask,
    MatterId,
    PlaceholderId,
    RecoveredId,
    TaskMetadataRow,
    TimeEntry,
)
from src.ingest.merge import build_metadata_lookup, mark_not_entered, merge_metadata

MARKER = "[TFS ID Not Entered]"
CONFIG = PipelineConfig(special_contributor=None)


def _make_draft(key, hours: float = 2.0, title: str = "", dev=("Ann", "Lee")) -> DraftTask:
    draft = DraftTask(key=key, title=title)
    draft.add_entry(TimeEntry(
        timekeeper_number=1,
        first_name=dev[0],
        last_name=dev[1],
        title="Developer",
        work_date=date(2025, 3, 3),
        work_hours=hours,
        narrative="work",
    ))
    return draft


class TestMarkNotEntered:
    """Tests for the not-entered title marker."""

    def test_prefixes_marker(self):
        """The marker goes in front of the title."""
        assert mark_not_entered("Support - Ann Lee", MARKER) == f"{MARKER} Support - Ann Lee"

    def test_empty_title_is_marker(self):
        """An empty title becomes the bare marker."""
        assert mark_not_entered("", MARKER) == MARKER
        assert mark_not_entered(None, MARKER) == MARKER

    def test_idempotent(self):
        """Applying the marker twice does not duplicate it."""
        once = mark_not_entered("Support", MARKER)
        assert mark_not_entered(once, MARKER) == once

    def test_marker_anywhere_is_respected(self):
        """A title already containing the marker is left alone."""
        title = f"Support {MARKER}"
        assert mark_not_entered(title, MARKER) == title


class TestMetadataLookup:
    """Tests for metadata indexing."""

    def test_duplicate_last_wins(self):
        """With duplicate ids the later row is used."""
        rows = [
            TaskMetadataRow(task_id=100, estimated=4.0),
            TaskMetadataRow(task_id=100, estimated=9.0),
        ]
        assert build_metadata_lookup(rows)[100].estimated == 9.0


class TestMergeMetadata:
    """Tests for the merge step."""

    def test_metadata_fields_applied(self):
        """Title, estimate, quality and application come from metadata."""
        drafts = [_make_draft(RecoveredId(19479))]
        meta = [TaskMetadataRow(task_id=19479, title="Login bug", estimated=8.0, quality=4,
                                application="Portal")]
        task = merge_metadata(drafts, meta, CONFIG)[0]
        assert task.title == "Login bug"
        assert task.estimated == 8.0
        assert task.quality == 4
        assert task.application == "Portal"
        assert task.total_actual_hours == pytest.approx(2.0)

    def test_blank_metadata_title_keeps_draft_title(self):
        """An empty metadata title does not wipe the grouped title."""
        drafts = [_make_draft(PlaceholderId(-5, original_id=19479), title="TFS 19479 - Ann Lee")]
        meta = [TaskMetadataRow(task_id=-5, title=None, estimated=3.0)]
        task = merge_metadata(drafts, meta, CONFIG)[0]
        assert task.title == "TFS 19479 - Ann Lee"
        assert task.estimated == 3.0

    def test_unmatched_draft_has_no_estimate(self):
        """Drafts without metadata keep null estimate and quality."""
        task = merge_metadata([_make_draft(RecoveredId(19479))], [], CONFIG)[0]
        assert task.estimated is None
        assert task.quality is None
        assert task.title == ""

    def test_not_entered_marker_applied(self):
        """Tasks without a recovered id get the marker prefixed."""
        drafts = [_make_draft(PlaceholderId(-42), title="Support - Ann Lee - 2025-03-03")]
        task = merge_metadata(drafts, [], CONFIG)[0]
        assert task.id_not_entered is True
        assert task.title == f"{MARKER} Support - Ann Lee - 2025-03-03"

    def test_matter_key_is_not_entered(self):
        """Matter-keyed tasks carry the flag and marker too."""
        task = merge_metadata([_make_draft(MatterId(5003), title="Support")], [], CONFIG)[0]
        assert task.task_id == 5003
        assert task.id_not_entered is True
        assert task.title == f"{MARKER} Support"

    def test_leftover_metadata_becomes_task(self):
        """Metadata rows without time entries become empty tasks."""
        meta = [TaskMetadataRow(task_id=20001, title="Planned", estimated=5.0)]
        task = merge_metadata([], meta, CONFIG)[0]
        assert task.task_id == 20001
        assert task.title == "Planned"
        assert task.time_entries == []
        assert task.total_actual_hours == 0
        assert task.id_not_entered is False

    def test_sorted_by_id_descending(self):
        """The canonical set is ordered by id, highest first."""
        drafts = [_make_draft(RecoveredId(19479)), _make_draft(PlaceholderId(-7)),
                  _make_draft(RecoveredId(19542))]
        meta = [TaskMetadataRow(task_id=20001, title="Planned")]
        ids = [t.task_id for t in merge_metadata(drafts, meta, CONFIG)]
        assert ids == [20001, 19542, 19479, -7]

    def test_same_integer_id_combined(self):
        """A recovered id and a matter number with the same value make one task."""
        drafts = [
            _make_draft(RecoveredId(5003), hours=1.0),
            _make_draft(MatterId(5003), hours=2.5, title="Support", dev=("Bo", "Chen")),
        ]
        tasks = merge_metadata(drafts, [], CONFIG)
        assert len(tasks) == 1
        task = tasks[0]
        assert task.total_actual_hours == pytest.approx(3.5)
        assert task.developer_breakdown == {"Ann Lee": 1.0, "Bo Chen": 2.5}
        assert task.id_not_entered is False

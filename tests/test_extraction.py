"""
Tests for narrative task-id extraction.
"""
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ingest.extraction import (
    EXTRACTION_POLICIES,
    extract_task_id,
    extract_task_id_with_pattern,
    get_extraction_policy,
)


class TestDocumentedExamples:
    """The canonical narrative shapes."""

    def test_tfs_task_prefix(self):
        """'TFS Task <id>' resolves to the id."""
        assert extract_task_id("TFS Task 19479 - Bug fix") == 19479

    def test_tfs_prefix(self):
        """'TFS <id>' resolves to the id."""
        assert extract_task_id("TFS 19455 development") == 19455

    def test_task_prefix(self):
        """'Task <id>' resolves to the id."""
        assert extract_task_id("Task 19532 complete") == 19532

    def test_leading_id_with_hyphen(self):
        """Five digits then a hyphen at the start resolves to the id."""
        assert extract_task_id("19542 - UI updates") == 19542

    def test_no_match(self):
        """Plain text without an id yields None."""
        assert extract_task_id("no identifying text here") is None


class TestPatternDetails:
    """Pattern precedence and edge cases."""

    def test_case_insensitive_prefixes(self):
        """Prefixes are matched in any case."""
        assert extract_task_id("tfs task 19479 bug") == 19479
        assert extract_task_id("TASK 19532") == 19532

    def test_tfs_task_without_spaces(self):
        """'TFSTask19479' still matches the first pattern."""
        assert extract_task_id_with_pattern("TFSTask19479 fix") == (19479, "tfs_task")

    def test_en_dash_leading_id(self):
        """An en dash works like a hyphen after a leading id."""
        assert extract_task_id("19542 – UI updates") == 19542

    def test_tag_delimited(self):
        """Digits after pasted markup are found."""
        value, pattern = extract_task_id_with_pattern("<b>ref</b> 19600 done")
        assert value == 19600
        assert pattern == "tag"

    def test_caret_delimited(self):
        """Digits after a caret are found."""
        assert extract_task_id_with_pattern("Fixed ^ 19700") == (19700, "caret")

    def test_standalone_fallback(self):
        """A bare five-digit number followed by a word is the last resort."""
        assert extract_task_id_with_pattern("worked on 19800 today") == (19800, "standalone")

    def test_prefixed_pattern_wins_over_leading(self):
        """Earlier patterns win even if a later one also matches."""
        assert extract_task_id("19542 - see TFS 19999") == 19999

    def test_empty_and_none(self):
        """Empty narratives yield None."""
        assert extract_task_id("") is None
        assert extract_task_id(None) is None


class TestPolicies:
    """Versioned pattern sets and range validation."""

    def test_short_prefixed_id_trusted_by_default(self):
        """The default policy accepts short ids behind an explicit prefix."""
        assert extract_task_id("TFS Task 100 - fix") == 100

    def test_strict_policy_rejects_out_of_range(self):
        """The strict policy range-checks every pattern."""
        strict = get_extraction_policy("strict")
        assert extract_task_id("TFS Task 100 - fix", strict) is None
        assert extract_task_id("TFS Task 19479 - fix", strict) == 19479

    def test_rejected_value_falls_through(self):
        """An out-of-range leading id is skipped and later patterns are tried."""
        assert extract_task_id("00123 - see ^19700") == 19700
        assert extract_task_id("00123 - nothing else") is None

    @pytest.mark.parametrize("name", ["legacy", "current", "strict"])
    def test_zero_is_not_an_id(self, name):
        """A prefixed zero is never returned, whatever the policy."""
        policy = get_extraction_policy(name)
        assert extract_task_id("TFS 0 standup", policy) is None
        assert extract_task_id("TFS Task 000 - fix", policy) is None

    def test_zero_falls_through(self):
        """A rejected zero lets later patterns match."""
        assert extract_task_id("Task 0 then ^19700") == 19700

    def test_legacy_policy_has_no_range_check(self):
        """The legacy policy keeps out-of-range leading ids."""
        legacy = get_extraction_policy("legacy")
        assert extract_task_id("00123 - nothing else", legacy) == 123

    def test_legacy_policy_has_no_caret_pattern(self):
        """Caret-delimited ids arrived after the legacy pattern set."""
        legacy = get_extraction_policy("legacy")
        assert extract_task_id("Fixed ^ 19700", legacy) is None

    def test_custom_id_range(self):
        """The id range can be overridden per policy."""
        policy = get_extraction_policy("current", id_range=(20000, 29999))
        assert extract_task_id("19542 - UI", policy) is None
        assert extract_task_id("21000 - UI", policy) == 21000

    def test_unknown_policy(self):
        """Unknown policy names raise ValueError."""
        with pytest.raises(ValueError):
            get_extraction_policy("newest")

    def test_registry_names(self):
        """All three policies are registered."""
        assert set(EXTRACTION_POLICIES) == {"legacy", "current", "strict"}

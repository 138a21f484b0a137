"""
Task identifier extraction from timecard narratives.

Narratives are free text typed by developers ("TFS Task 19479 - Bug fix",
"19542 - UI updates", pasted HTML, ...). Patterns are tried in priority
order and the first acceptable match wins; there is no scoring across
patterns.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class IdPattern:
    """One narrative pattern. ``range_checked`` captures must be in the id range."""
    name: str
    regex: "re.Pattern[str]"
    range_checked: bool = False


@dataclass(frozen=True)
class ExtractionPolicy:
    """An ordered, versioned set of narrative patterns."""
    name: str
    patterns: Tuple[IdPattern, ...]
    id_range: Tuple[int, int] = (10000, 99999)

    def accepts(self, pattern: IdPattern, value: int) -> bool:
        if not pattern.range_checked:
            return True
        low, high = self.id_range
        return low <= value <= high


# =============================================================================
# PATTERNS
# =============================================================================

TFS_TASK = r"TFS\s*Task\s*(\d+)"
TFS_NUMBER = r"TFS\s+(\d+)"
TASK_NUMBER = r"Task\s+(\d+)"
LEADING_ID = r"^(\d{5})\s*[-–]"
TAG_DELIMITED = r"<[^>]*>.*?(\d{5})"
CARET_DELIMITED = r"\^\s*(\d{5})"
STANDALONE_ID = r"\b(\d{5})\s+\w"


def _pattern(name: str, expr: str, range_checked: bool, flags: int = 0) -> IdPattern:
    return IdPattern(name=name, regex=re.compile(expr, flags), range_checked=range_checked)


def _build_policies() -> Dict[str, ExtractionPolicy]:
    legacy = ExtractionPolicy(
        name="legacy",
        patterns=(
            _pattern("tfs_task", TFS_TASK, False, re.IGNORECASE),
            _pattern("tfs", TFS_NUMBER, False, re.IGNORECASE),
            _pattern("task", TASK_NUMBER, False, re.IGNORECASE),
            _pattern("leading_id", LEADING_ID, False),
            _pattern("tag", TAG_DELIMITED, False, re.DOTALL),
        ),
    )
    current = ExtractionPolicy(
        name="current",
        patterns=(
            _pattern("tfs_task", TFS_TASK, False, re.IGNORECASE),
            _pattern("tfs", TFS_NUMBER, False, re.IGNORECASE),
            _pattern("task", TASK_NUMBER, False, re.IGNORECASE),
            _pattern("leading_id", LEADING_ID, True),
            _pattern("tag", TAG_DELIMITED, True, re.DOTALL),
            _pattern("caret", CARET_DELIMITED, True),
            _pattern("standalone", STANDALONE_ID, True),
        ),
    )
    strict = ExtractionPolicy(
        name="strict",
        patterns=tuple(
            IdPattern(name=p.name, regex=p.regex, range_checked=True) for p in current.patterns
        ),
    )
    return {p.name: p for p in (legacy, current, strict)}


EXTRACTION_POLICIES = _build_policies()
DEFAULT_EXTRACTION_POLICY = EXTRACTION_POLICIES["current"]


def get_extraction_policy(name: str, id_range: Optional[Tuple[int, int]] = None) -> ExtractionPolicy:
    """Look up a policy by name, optionally overriding its id range."""
    try:
        policy = EXTRACTION_POLICIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown extraction policy: {name} (expected one of {sorted(EXTRACTION_POLICIES)})"
        ) from None
    if id_range is not None and tuple(id_range) != policy.id_range:
        policy = ExtractionPolicy(name=policy.name, patterns=policy.patterns, id_range=tuple(id_range))
    return policy


# =============================================================================
# EXTRACTION
# =============================================================================

def extract_task_id_with_pattern(narrative: Optional[str],
                                 policy: ExtractionPolicy = DEFAULT_EXTRACTION_POLICY) -> Tuple[Optional[int], Optional[str]]:
    """
    Return (task_id, pattern_name) for the first accepted pattern match.

    Only the first match of each pattern is considered; a rejected value
    (zero, or outside the policy range) falls through to the next pattern.
    """
    if not narrative:
        return None, None

    text = str(narrative)
    for pattern in policy.patterns:
        match = pattern.regex.search(text)
        if not match:
            continue
        value = int(match.group(1))
        if value > 0 and policy.accepts(pattern, value):
            return value, pattern.name

    return None, None


def extract_task_id(narrative: Optional[str],
                    policy: ExtractionPolicy = DEFAULT_EXTRACTION_POLICY) -> Optional[int]:
    """Return the task identifier found in a narrative, or None."""
    task_id, _ = extract_task_id_with_pattern(narrative, policy)
    return task_id

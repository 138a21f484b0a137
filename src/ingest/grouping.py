"""
Timesheet grouping: turn filtered time-log rows into draft tasks.

Grouping is a pluggable policy. Each policy maps a row (plus its recovered
narrative id) to a hashable grouping token; rows sharing a token become one
draft task. Tokens are then turned into task keys:

    ("id", n)              -> RecoveredId(n)
    ("matter", n)          -> MatterId(n)
    ("matter_text", s)     -> PlaceholderId(...), not-entered
    ("split", n, tk)       -> PlaceholderId(..., original_id=n)
    ("orphan", ..., k)     -> PlaceholderId(...), not-entered

Placeholder values are negative and derived from a hash of the token, so the
same filtered row set always yields the same identifiers regardless of row
order.
"""
from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.config import PipelineConfig, pipeline_config
from src.data.models import (
    DraftTask,
    MatterId,
    PlaceholderId,
    RawTimeLogRow,
    RecoveredId,
    TaskKey,
    TimeEntry,
)
from src.ingest.activity_filter import split_contributor_rows
from src.ingest.extraction import ExtractionPolicy, extract_task_id, get_extraction_policy

logger = logging.getLogger(__name__)

Token = Tuple

PLACEHOLDER_SPACE = 999_999_999


# =============================================================================
# POLICIES
# =============================================================================

class GroupingPolicy(ABC):
    """Abstract base class for grouping policies."""

    name = ""

    def prepare(self, rows: Sequence[RawTimeLogRow], recovered: Sequence[Optional[int]]) -> None:
        """Batch-wide precomputation before tokens are assigned."""
        return None

    @abstractmethod
    def token_for(self, row: RawTimeLogRow, recovered_id: Optional[int]) -> Optional[Token]:
        """Grouping token for a row, or None to drop the row."""
        pass

    def get_policy_name(self) -> str:
        return self.name


class SimpleIdGrouping(GroupingPolicy):
    """Group by recovered id, falling back to the matter number."""

    name = "simple"

    def token_for(self, row, recovered_id):
        if recovered_id is not None:
            return ("id", recovered_id)
        matter = (row.matter_number or "").strip()
        if not matter:
            return None
        if matter.isdigit() and int(matter) > 0:
            return ("matter", int(matter))
        return ("matter_text", matter)


class OrphanPerRowGrouping(GroupingPolicy):
    """Group by recovered id; every row without one becomes its own task."""

    name = "orphan"

    def token_for(self, row, recovered_id):
        if recovered_id is not None:
            return ("id", recovered_id)
        return ("orphan",) + _row_fingerprint(row)


class DeveloperSplitGrouping(OrphanPerRowGrouping):
    """
    Like the orphan policy, but an id logged by more than one developer in
    the batch is split into one task per developer.
    """

    name = "developer_split"

    def __init__(self):
        self._developers_by_id: Dict[int, Set[int]] = {}

    def prepare(self, rows, recovered):
        developers: Dict[int, Set[int]] = defaultdict(set)
        for row, task_id in zip(rows, recovered):
            if task_id is not None:
                developers[task_id].add(row.timekeeper_number)
        self._developers_by_id = dict(developers)

    def token_for(self, row, recovered_id):
        if recovered_id is not None and len(self._developers_by_id.get(recovered_id, ())) > 1:
            return ("split", recovered_id, row.timekeeper_number)
        return super().token_for(row, recovered_id)


GROUPING_POLICIES = {
    SimpleIdGrouping.name: SimpleIdGrouping,
    OrphanPerRowGrouping.name: OrphanPerRowGrouping,
    DeveloperSplitGrouping.name: DeveloperSplitGrouping,
}


def get_grouping_policy(name: str) -> GroupingPolicy:
    """Create a fresh policy instance by name."""
    try:
        return GROUPING_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown grouping policy: {name} (expected one of {sorted(GROUPING_POLICIES)})"
        ) from None


# =============================================================================
# TOKENS AND KEYS
# =============================================================================

def _row_fingerprint(row: RawTimeLogRow) -> Tuple:
    return (
        row.timekeeper_number,
        row.work_date.isoformat() if row.work_date else "",
        round(float(row.work_hours), 6),
        row.narrative,
        row.matter_number,
        row.activity_code,
    )


def _number_orphans(tokens: List[Optional[Token]]) -> List[Optional[Token]]:
    """Append an occurrence index so identical orphan rows stay separate tasks."""
    seen: Dict[Token, int] = defaultdict(int)
    numbered = []
    for token in tokens:
        if token is not None and token[0] == "orphan":
            occurrence = seen[token]
            seen[token] += 1
            token = token + (occurrence,)
        numbered.append(token)
    return numbered


def _placeholder_seed(token: Token) -> int:
    digest = hashlib.sha1(repr(token).encode("utf-8")).hexdigest()
    return -(int(digest[:12], 16) % PLACEHOLDER_SPACE + 1)


def allocate_placeholders(tokens: Iterable[Token]) -> Dict[Token, int]:
    """
    Map placeholder tokens to unique negative ids.

    Tokens are processed in sorted order and collisions step downwards, so
    the mapping depends only on the set of tokens.
    """
    allocated: Dict[Token, int] = {}
    used: Set[int] = set()
    for token in sorted(set(tokens), key=repr):
        value = _placeholder_seed(token)
        while value in used:
            value -= 1
            if value < -PLACEHOLDER_SPACE:
                value = -1
        used.add(value)
        allocated[token] = value
    return allocated


def _needs_placeholder(token: Token) -> bool:
    return token[0] not in ("id", "matter")


def _key_for(token: Token, placeholders: Dict[Token, int]) -> TaskKey:
    kind = token[0]
    if kind == "id":
        return RecoveredId(token[1])
    if kind == "matter":
        return MatterId(token[1])
    if kind == "split":
        return PlaceholderId(placeholders[token], original_id=token[1])
    if kind == "contributor":
        inner = token[1]
        original = inner[1] if inner[0] in ("id", "split") else None
        return PlaceholderId(placeholders[token], original_id=original)
    return PlaceholderId(placeholders[token], original_id=None)


def _title_for(token: Token, row: RawTimeLogRow) -> str:
    kind = token[0]
    if kind == "contributor":
        return _title_for(token[1], row) if token[1][0] != "id" else f"TFS {token[1][1]} - {row.developer_name}"
    if kind in ("matter", "matter_text"):
        return row.matter_name or ""
    if kind == "split":
        return f"TFS {token[1]} - {row.developer_name}"
    if kind == "orphan":
        day = row.work_date.isoformat() if row.work_date else ""
        parts = [row.matter_name, row.developer_name, day]
        return " - ".join(p for p in parts if p)
    return ""


# =============================================================================
# GROUPING
# =============================================================================

def _tokens(rows: Sequence[RawTimeLogRow], policy: GroupingPolicy,
            extraction: ExtractionPolicy) -> List[Optional[Token]]:
    recovered = [extract_task_id(row.narrative, extraction) for row in rows]
    policy.prepare(rows, recovered)
    return [policy.token_for(row, task_id) for row, task_id in zip(rows, recovered)]


def group_rows(rows: Iterable[RawTimeLogRow],
               config: PipelineConfig = pipeline_config,
               policy: Optional[GroupingPolicy] = None,
               extraction: Optional[ExtractionPolicy] = None) -> List[DraftTask]:
    """
    Group filtered rows into draft tasks.

    Rows of the configured special contributor are grouped on their own; a
    contributor token that collides with a general one is moved to a
    placeholder key that keeps the original id.
    """
    policy = policy or get_grouping_policy(config.grouping_policy)
    extraction = extraction or get_extraction_policy(config.extraction_policy, config.id_range)

    general_rows, contributor_rows = split_contributor_rows(list(rows), config)

    general_tokens = _tokens(general_rows, policy, extraction)
    contributor_tokens = _tokens(contributor_rows, get_grouping_policy(policy.name), extraction)

    taken = {t for t in general_tokens if t is not None}
    taken_ids = {t[1] for t in taken if t[0] in ("id", "split")}
    moved = []
    for row, token in zip(contributor_rows, contributor_tokens):
        if token is not None and (token in taken or (token[0] == "id" and token[1] in taken_ids)):
            token = ("contributor", token, row.timekeeper_number)
        moved.append(token)

    all_rows = list(general_rows) + list(contributor_rows)
    all_tokens = _number_orphans(general_tokens + moved)

    placeholders = allocate_placeholders(t for t in all_tokens if t is not None and _needs_placeholder(t))

    drafts: Dict[Token, DraftTask] = {}
    dropped = 0
    for row, token in zip(all_rows, all_tokens):
        if token is None:
            dropped += 1
            continue
        draft = drafts.get(token)
        if draft is None:
            draft = DraftTask(key=_key_for(token, placeholders), title=_title_for(token, row))
            drafts[token] = draft
        elif not draft.title and token[0] in ("matter", "matter_text") and row.matter_name:
            draft.title = row.matter_name
        draft.add_entry(TimeEntry.from_row(row))

    if dropped:
        logger.info("Dropped %d rows with no task id or matter number", dropped)
    logger.debug("Grouped %d rows into %d drafts with policy %s",
                 len(all_rows) - dropped, len(drafts), policy.get_policy_name())
    return list(drafts.values())

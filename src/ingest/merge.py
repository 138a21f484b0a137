"""
Metadata merge: combine draft tasks with the scorebyTFS sheet.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from src.config import PipelineConfig, pipeline_config
from src.data.models import CanonicalTask, DraftTask, TaskMetadataRow

logger = logging.getLogger(__name__)


def build_metadata_lookup(rows: Iterable[TaskMetadataRow]) -> Dict[int, TaskMetadataRow]:
    """Index metadata rows by task id. Duplicate ids: the last row wins."""
    lookup: Dict[int, TaskMetadataRow] = {}
    for row in rows:
        if row.task_id is None:
            continue
        if row.task_id in lookup:
            logger.debug("Duplicate metadata row for task %s; keeping the later one", row.task_id)
        lookup[row.task_id] = row
    return lookup


def mark_not_entered(title: Optional[str], marker: str) -> str:
    """Prefix the not-entered marker once."""
    title = (title or "").strip()
    if not title:
        return marker
    if marker in title:
        return title
    return f"{marker} {title}"


def _combine(target: CanonicalTask, other: CanonicalTask) -> None:
    # Two keys of different kinds resolved to the same integer id
    target.time_entries.extend(other.time_entries)
    target.recalculate_totals()
    target.id_not_entered = target.id_not_entered and other.id_not_entered
    if not target.title:
        target.title = other.title
    if target.estimated is None:
        target.estimated = other.estimated
    if target.quality is None:
        target.quality = other.quality


def merge_metadata(drafts: Iterable[DraftTask],
                   metadata_rows: Iterable[TaskMetadataRow],
                   config: PipelineConfig = pipeline_config) -> List[CanonicalTask]:
    """
    Produce the canonical task set from drafts and metadata.

    Metadata is authoritative for estimated and quality on matched tasks.
    Unmatched metadata rows become tasks with no time entries. The result
    is sorted by task id descending.
    """
    lookup = build_metadata_lookup(metadata_rows)
    merged: Dict[int, CanonicalTask] = {}

    for draft in drafts:
        task = CanonicalTask.from_draft(draft)
        existing = merged.get(task.task_id)
        if existing is not None:
            _combine(existing, task)
        else:
            merged[task.task_id] = task

    for task in merged.values():
        meta = lookup.pop(task.task_id, None)
        if meta is not None:
            if meta.title:
                task.title = meta.title
            task.estimated = meta.estimated
            task.quality = meta.quality
            if meta.application:
                task.application = meta.application
        if task.id_not_entered:
            task.title = mark_not_entered(task.title, config.not_entered_marker)

    for meta in lookup.values():
        merged[meta.task_id] = CanonicalTask(
            task_id=meta.task_id,
            title=meta.title or "",
            application=meta.application,
            estimated=meta.estimated,
            quality=meta.quality,
        )

    logger.debug("Merged %d tasks (%d from metadata only)", len(merged), len(lookup))
    return sorted(merged.values(), key=lambda t: t.task_id, reverse=True)

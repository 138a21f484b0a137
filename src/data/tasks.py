"""
Manual task editing on top of the store: create, update, re-key, delete.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from src.config import PipelineConfig, pipeline_config
from src.data.models import CanonicalTask, TimeEntry
from src.data.store import TaskConflictError, TaskStore
from src.ingest.activity_filter import is_contributor

logger = logging.getLogger(__name__)

MANUAL_NARRATIVE = "Manually entered"

_UNSET = object()


@dataclass(frozen=True)
class DeveloperHours:
    """Hours typed in by hand for one developer ("First Last")."""
    name: str
    hours: float


def manual_entries(developers: Iterable[DeveloperHours], work_date: Optional[date] = None) -> List[TimeEntry]:
    """One time entry per developer with positive hours."""
    work_date = work_date or date.today()
    entries = []
    for dev in developers:
        name = (dev.name or "").strip()
        if not name or dev.hours is None or dev.hours <= 0:
            continue
        first, _, last = name.partition(" ")
        entries.append(TimeEntry(
            timekeeper_number=0,
            first_name=first,
            last_name=last.strip(),
            title="",
            work_date=work_date,
            work_hours=float(dev.hours),
            narrative=MANUAL_NARRATIVE,
        ))
    return entries


def create_task(store: TaskStore,
                task_id: int,
                title: Optional[str] = None,
                application: Optional[str] = None,
                estimated: Optional[float] = None,
                quality: Optional[int] = None,
                developers: Iterable[DeveloperHours] = (),
                work_date: Optional[date] = None) -> CanonicalTask:
    """Create a task by hand. Raises TaskConflictError if the id exists."""
    task = CanonicalTask(
        task_id=int(task_id),
        title=(title or "").strip(),
        application=(application or "").strip() or None,
        estimated=estimated,
        quality=_check_quality(quality),
        time_entries=manual_entries(developers, work_date),
    )
    task.recalculate_totals()
    store.insert_task(task)
    logger.info("Created task %s", task.task_id)
    return task


def update_task(store: TaskStore,
                task_id: int,
                title=_UNSET,
                application=_UNSET,
                estimated=_UNSET,
                quality=_UNSET,
                developers: Optional[Iterable[DeveloperHours]] = None,
                work_date: Optional[date] = None,
                new_task_id: Optional[int] = None,
                merge_with_existing: bool = False) -> CanonicalTask:
    """
    Update fields of a task; only the arguments passed are changed.

    ``developers`` replaces all time entries with manual ones. Passing a
    ``new_task_id`` that is already taken raises TaskConflictError unless
    ``merge_with_existing`` is set, in which case this task is folded into
    the target and deleted.
    """
    task = store.require_task(task_id)
    expected_version = task.version

    if new_task_id is not None and int(new_task_id) != task.task_id:
        target = store.get_task(new_task_id)
        if target is not None:
            if not merge_with_existing:
                raise TaskConflictError(
                    "Target ID already exists. Enable merge to combine tasks.", int(new_task_id)
                )
            return _merge_into(store, task, target, title, estimated, quality)
        return _rekey(store, task, int(new_task_id), title, application, estimated, quality,
                      developers, work_date)

    _apply_fields(task, title, application, estimated, quality, developers, work_date)
    return store.save_task(task, expected_version=expected_version)


def _apply_fields(task, title, application, estimated, quality, developers, work_date) -> None:
    if title is not _UNSET:
        task.title = (title or "").strip()
    if application is not _UNSET:
        task.application = (application or "").strip() or None
    if estimated is not _UNSET:
        task.estimated = None if estimated is None else float(estimated)
        task.estimate_source = None
        task.estimate_group = None
    if quality is not _UNSET:
        task.quality = _check_quality(quality)
    if developers is not None:
        task.time_entries = manual_entries(developers, work_date)
        task.recalculate_totals()


def _rekey(store, task, new_id, title, application, estimated, quality, developers, work_date):
    old_id = task.task_id
    _apply_fields(task, title, application, estimated, quality, developers, work_date)
    task.task_id = new_id
    task.version = 0
    task.created_at = None
    store.insert_task(task)
    store.delete_task(old_id)
    logger.info("Moved task %s to %s", old_id, new_id)
    return task


def _merge_into(store, source: CanonicalTask, target: CanonicalTask, title, estimated, quality):
    expected_version = target.version
    target.time_entries = list(target.time_entries) + list(source.time_entries)
    target.recalculate_totals()

    extra = estimated if estimated is not _UNSET and estimated is not None else source.estimated
    if extra is not None:
        target.estimated = float(extra) if target.estimated is None else target.estimated + float(extra)
    if quality is not _UNSET and quality is not None:
        target.quality = _check_quality(quality)
    if title is not _UNSET and title and title.strip():
        target.title = title.strip()

    store.save_task(target, expected_version=expected_version)
    store.delete_task(source.task_id)
    logger.info("Merged task %s into %s", source.task_id, target.task_id)
    return target


def _check_quality(quality) -> Optional[int]:
    if quality is None:
        return None
    quality = int(quality)
    if not 1 <= quality <= 5:
        raise ValueError(f"Quality must be between 1 and 5, got {quality}")
    return quality


def delete_task(store: TaskStore, task_id: int) -> None:
    """Delete one task; raises TaskNotFoundError if missing."""
    store.require_task(task_id)
    store.delete_task(task_id)
    logger.info("Deleted task %s", task_id)


def delete_all(store: TaskStore) -> dict:
    return store.clear()


def backfill_contributor_estimates(store: TaskStore,
                                   config: PipelineConfig = pipeline_config,
                                   dry_run: bool = False) -> List[int]:
    """
    Set estimated = total actual hours on every task the special contributor
    worked on. Returns the affected task ids.
    """
    if not config.special_contributor:
        return []

    def involves_contributor(task: CanonicalTask) -> bool:
        return task.total_actual_hours > 0 and any(
            is_contributor(name, config) for name in task.developer_breakdown
        )

    changed = []
    for task in store.list_tasks(involves_contributor):
        if task.estimated == task.total_actual_hours:
            continue
        changed.append(task.task_id)
        if dry_run:
            continue
        task.estimated = task.total_actual_hours
        store.save_task(task, expected_version=task.version)

    logger.info("Contributor estimate backfill: %d tasks%s", len(changed), " (dry run)" if dry_run else "")
    return changed

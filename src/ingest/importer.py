"""
Import orchestration: filter -> group -> merge -> persist -> developer profiles.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from src.config import PipelineConfig, pipeline_config
from src.data.models import CanonicalTask, DeveloperProfile, RawTimeLogRow, TaskMetadataRow
from src.data.schema import SchemaValidationError
from src.data.sheets import (
    RowError,
    parse_metadata_frame,
    parse_timesheet_frame,
    read_workbook,
    uploaded_workbook,
)
from src.data.store import StoreError, TaskStore
from src.ingest.activity_filter import filter_work_rows, is_contributor
from src.ingest.grouping import group_rows
from src.ingest.merge import merge_metadata

logger = logging.getLogger(__name__)


@dataclass
class TaskError:
    """A task that could not be written; the rest of the batch continued."""
    task_id: int
    message: str


@dataclass
class ImportResult:
    imported_count: int = 0
    updated_count: int = 0
    developer_count: int = 0
    skipped_rows: int = 0
    row_errors: List[RowError] = field(default_factory=list)
    task_errors: List[TaskError] = field(default_factory=list)

    @property
    def message(self) -> str:
        return (
            f"Import complete: {self.imported_count} new tasks, "
            f"{self.updated_count} updated, {self.developer_count} developers"
        )


class ImportFailedError(Exception):
    """The whole import failed; ``partial_result`` holds what completed first."""

    def __init__(self, message: str, partial_result: Optional[ImportResult] = None):
        super().__init__(message)
        self.partial_result = partial_result or ImportResult()


# =============================================================================
# PIPELINE
# =============================================================================

def preview_import(rows: Iterable[RawTimeLogRow],
                   metadata_rows: Iterable[TaskMetadataRow],
                   config: Optional[PipelineConfig] = None) -> List[CanonicalTask]:
    """Run filter, grouping and merge without touching the store."""
    config = config or pipeline_config
    kept, _ = filter_work_rows(rows, config)
    drafts = group_rows(kept, config)
    return merge_metadata(drafts, metadata_rows, config)


def belongs_to_contributor(task: CanonicalTask, config: PipelineConfig) -> bool:
    if not config.special_contributor or not task.time_entries:
        return False
    return all(is_contributor(e.developer_name, config) for e in task.time_entries)


def apply_contributor_defaults(task: CanonicalTask, config: PipelineConfig) -> bool:
    """Default quality and estimate on a contributor-only task. Returns True if changed."""
    if not belongs_to_contributor(task, config):
        return False
    changed = False
    if task.quality is None:
        task.quality = config.contributor_default_quality
        changed = True
    if task.estimated is None:
        task.estimated = task.total_actual_hours
        changed = True
    return changed


def build_developer_profiles(tasks: Iterable[CanonicalTask]) -> List[DeveloperProfile]:
    """Aggregate hours and task counts per timekeeper across the imported tasks."""
    profiles: Dict[int, DeveloperProfile] = {}
    task_ids: Dict[int, set] = {}
    task_ids_without_id: Dict[int, set] = {}

    for task in tasks:
        for entry in task.time_entries:
            key = entry.timekeeper_number
            profile = profiles.get(key)
            if profile is None:
                profile = DeveloperProfile(
                    timekeeper_number=key,
                    first_name=entry.first_name,
                    last_name=entry.last_name,
                    title=entry.title,
                )
                profiles[key] = profile
                task_ids[key] = set()
                task_ids_without_id[key] = set()
            profile.total_hours += entry.work_hours
            task_ids[key].add(task.task_id)
            if task.id_not_entered:
                task_ids_without_id[key].add(task.task_id)
                profile.hours_without_id += entry.work_hours

    for key, profile in profiles.items():
        profile.task_count = len(task_ids[key])
        profile.task_count_without_id = len(task_ids_without_id[key])
    return list(profiles.values())


def _apply_to_existing(existing: CanonicalTask, incoming: CanonicalTask) -> CanonicalTask:
    existing.time_entries = list(incoming.time_entries)
    existing.recalculate_totals()
    existing.title = incoming.title or existing.title
    existing.id_not_entered = incoming.id_not_entered
    existing.original_task_id = incoming.original_task_id
    # Keep engine or manual values unless the sheet supplies one
    if incoming.estimated is not None:
        existing.estimated = incoming.estimated
        existing.estimate_source = None
        existing.estimate_group = None
    if incoming.quality is not None:
        existing.quality = incoming.quality
    if incoming.application:
        existing.application = incoming.application
    return existing


def import_tasks(rows: Iterable[RawTimeLogRow],
                 metadata_rows: Iterable[TaskMetadataRow],
                 store: TaskStore,
                 clear_existing: bool = False,
                 config: Optional[PipelineConfig] = None,
                 row_errors: Optional[List[RowError]] = None) -> ImportResult:
    """
    Import parsed rows into the store.

    Existing tasks have their time entries replaced and totals recalculated;
    new identifiers create new tasks. A failing task write is recorded in
    ``task_errors`` and the batch continues.
    """
    config = config or pipeline_config
    result = ImportResult(row_errors=list(row_errors or []))

    kept, result.skipped_rows = filter_work_rows(rows, config)
    drafts = group_rows(kept, config)
    canonical = merge_metadata(drafts, metadata_rows, config)
    logger.info("Importing %d tasks from %d work rows (%d non-work rows skipped)",
                len(canonical), len(kept), result.skipped_rows)

    if clear_existing:
        store.clear()

    try:
        for task in canonical:
            try:
                existing = store.get_task(task.task_id)
                if existing is not None:
                    merged = _apply_to_existing(existing, task)
                    apply_contributor_defaults(merged, config)
                    store.save_task(merged, expected_version=existing.version)
                    result.updated_count += 1
                else:
                    apply_contributor_defaults(task, config)
                    store.insert_task(task)
                    result.imported_count += 1
            except StoreError as exc:
                logger.warning("Task %s not saved: %s", task.task_id, exc)
                result.task_errors.append(TaskError(task.task_id, str(exc)))

        profiles = build_developer_profiles(canonical)
        result.developer_count = store.upsert_developers(profiles)
    except sqlite3.Error as exc:
        raise ImportFailedError(f"Import aborted: {exc}", result) from exc

    logger.info(result.message)
    return result


# =============================================================================
# WORKBOOKS
# =============================================================================

def import_workbook(path: Union[str, Path],
                    store: TaskStore,
                    clear_existing: bool = False,
                    config: Optional[PipelineConfig] = None) -> ImportResult:
    """Read, validate and import a workbook from disk."""
    try:
        frames = read_workbook(path)
    except (SchemaValidationError, OSError, ValueError) as exc:
        raise ImportFailedError(f"Could not read workbook: {exc}") from exc

    rows, timesheet_errors = parse_timesheet_frame(frames["timesheet"])
    metadata, metadata_errors = parse_metadata_frame(frames["metadata"])
    return import_tasks(
        rows,
        metadata,
        store,
        clear_existing=clear_existing,
        config=config,
        row_errors=timesheet_errors + metadata_errors,
    )


def import_upload(data: bytes,
                  filename: str,
                  store: TaskStore,
                  clear_existing: bool = False,
                  config: Optional[PipelineConfig] = None,
                  upload_dir: Optional[Path] = None) -> ImportResult:
    """Import uploaded workbook bytes; the temporary file is always removed."""
    try:
        with uploaded_workbook(data, filename, upload_dir) as path:
            return import_workbook(path, store, clear_existing=clear_existing, config=config)
    except ValueError as exc:
        raise ImportFailedError(str(exc)) from exc

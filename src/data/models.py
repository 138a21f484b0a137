"""
Record types for the timesheet import and the persisted task set.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union


# =============================================================================
# SHEET ROWS
# =============================================================================

@dataclass(frozen=True)
class RawTimeLogRow:
    """One line of the 3e timesheet export."""
    timekeeper_number: int
    first_name: str
    last_name: str
    title: str
    work_date: date
    work_hours: float
    narrative: str = ""
    activity_code: str = ""
    activity_description: str = ""
    matter_number: str = ""
    matter_name: str = ""
    row_number: int = 0

    @property
    def developer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class TaskMetadataRow:
    """One line of the scorebyTFS sheet."""
    task_id: int
    title: Optional[str] = None
    estimated: Optional[float] = None
    quality: Optional[int] = None
    application: Optional[str] = None


# =============================================================================
# TASK KEYS
# =============================================================================
# Drafts are keyed by one of three variants. Only the integer ``task_id`` is
# persisted; the variant decides flags and title handling upstream of the store.

@dataclass(frozen=True)
class RecoveredId:
    """Identifier read out of the narrative."""
    value: int

    @property
    def task_id(self) -> int:
        return self.value

    @property
    def id_not_entered(self) -> bool:
        return False

    @property
    def original_id(self) -> Optional[int]:
        return None


@dataclass(frozen=True)
class MatterId:
    """Identifier taken from the row's matter number."""
    value: int

    @property
    def task_id(self) -> int:
        return self.value

    @property
    def id_not_entered(self) -> bool:
        return True

    @property
    def original_id(self) -> Optional[int]:
        return None


@dataclass(frozen=True)
class PlaceholderId:
    """Synthetic identifier, optionally pointing back at a recovered one."""
    value: int
    original_id: Optional[int] = None

    @property
    def task_id(self) -> int:
        return self.value

    @property
    def id_not_entered(self) -> bool:
        return self.original_id is None


TaskKey = Union[RecoveredId, MatterId, PlaceholderId]


# =============================================================================
# TIME ENTRIES AND TASKS
# =============================================================================

@dataclass
class TimeEntry:
    """A single logged block of work, embedded in a task."""
    timekeeper_number: int
    first_name: str
    last_name: str
    title: str
    work_date: Optional[date]
    work_hours: float
    narrative: str = ""
    activity_code: str = ""
    activity_description: str = ""
    matter_number: str = ""

    @property
    def developer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def work_date_only(self) -> Optional[str]:
        if self.work_date is None:
            return None
        return self.work_date.isoformat()

    @classmethod
    def from_row(cls, row: RawTimeLogRow) -> "TimeEntry":
        return cls(
            timekeeper_number=row.timekeeper_number,
            first_name=row.first_name,
            last_name=row.last_name,
            title=row.title,
            work_date=row.work_date,
            work_hours=row.work_hours,
            narrative=row.narrative,
            activity_code=row.activity_code,
            activity_description=row.activity_description,
            matter_number=row.matter_number,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["work_date"] = self.work_date_only
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TimeEntry":
        data = dict(data)
        raw_date = data.get("work_date")
        data["work_date"] = date.fromisoformat(raw_date) if raw_date else None
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


def build_breakdowns(entries: List[TimeEntry]):
    """Return (total_hours, breakdown, breakdown_by_date) for a list of entries."""
    total = 0.0
    breakdown: Dict[str, float] = {}
    by_date: Dict[str, Dict[str, float]] = {}
    for entry in entries:
        name = entry.developer_name
        total += entry.work_hours
        breakdown[name] = breakdown.get(name, 0.0) + entry.work_hours
        day = entry.work_date_only
        if day:
            dev_dates = by_date.setdefault(name, {})
            dev_dates[day] = dev_dates.get(day, 0.0) + entry.work_hours
    return total, breakdown, by_date


@dataclass
class DraftTask:
    """Pre-merge aggregation of time entries sharing a grouping key."""
    key: TaskKey
    title: str = ""
    time_entries: List[TimeEntry] = field(default_factory=list)
    total_actual_hours: float = 0.0
    developer_breakdown: Dict[str, float] = field(default_factory=dict)
    developer_breakdown_by_date: Dict[str, Dict[str, float]] = field(default_factory=dict)
    estimated: Optional[float] = None
    quality: Optional[int] = None

    @property
    def task_id(self) -> int:
        return self.key.task_id

    @property
    def id_not_entered(self) -> bool:
        return self.key.id_not_entered

    @property
    def original_task_id(self) -> Optional[int]:
        return self.key.original_id

    def add_entry(self, entry: TimeEntry) -> None:
        name = entry.developer_name
        self.time_entries.append(entry)
        self.total_actual_hours += entry.work_hours
        self.developer_breakdown[name] = self.developer_breakdown.get(name, 0.0) + entry.work_hours
        day = entry.work_date_only
        if day:
            dev_dates = self.developer_breakdown_by_date.setdefault(name, {})
            dev_dates[day] = dev_dates.get(day, 0.0) + entry.work_hours


@dataclass
class CanonicalTask:
    """Persisted, merge-resolved task record."""
    task_id: int
    title: str = ""
    application: Optional[str] = None
    estimated: Optional[float] = None
    quality: Optional[int] = None
    time_entries: List[TimeEntry] = field(default_factory=list)
    total_actual_hours: float = 0.0
    developer_breakdown: Dict[str, float] = field(default_factory=dict)
    developer_breakdown_by_date: Dict[str, Dict[str, float]] = field(default_factory=dict)
    id_not_entered: bool = False
    original_task_id: Optional[int] = None
    estimate_source: Optional[str] = None
    estimate_group: Optional[str] = None
    version: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def variance(self) -> Optional[float]:
        if self.estimated is None:
            return None
        return self.estimated - self.total_actual_hours

    @property
    def variance_percent(self) -> Optional[float]:
        if self.estimated is None or self.estimated == 0:
            return None
        return (self.estimated - self.total_actual_hours) / self.estimated * 100

    @property
    def developers(self) -> List[str]:
        return list(self.developer_breakdown.keys())

    @property
    def primary_developer(self) -> Optional[str]:
        """Developer with the most hours; ties go to the first one seen."""
        best_name, best_hours = None, None
        for name, hours in self.developer_breakdown.items():
            if best_hours is None or hours > best_hours:
                best_name, best_hours = name, hours
        return best_name

    @property
    def matter_number(self) -> Optional[str]:
        for entry in self.time_entries:
            if entry.matter_number:
                return entry.matter_number
        return None

    @property
    def first_date(self) -> Optional[str]:
        dates = sorted(e.work_date_only for e in self.time_entries if e.work_date_only)
        return dates[0] if dates else None

    @property
    def last_date(self) -> Optional[str]:
        dates = sorted(e.work_date_only for e in self.time_entries if e.work_date_only)
        return dates[-1] if dates else None

    @property
    def actual_ceiling(self) -> int:
        return int(math.ceil(round(self.total_actual_hours, 9)))

    # -------------------------------------------------------------------------
    # Mutation helpers
    # -------------------------------------------------------------------------

    def recalculate_totals(self) -> "CanonicalTask":
        """Rebuild totals and both breakdowns from the time entries."""
        total, breakdown, by_date = build_breakdowns(self.time_entries)
        self.total_actual_hours = total
        self.developer_breakdown = breakdown
        self.developer_breakdown_by_date = by_date
        return self

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "application": self.application,
            "estimated": self.estimated,
            "quality": self.quality,
            "time_entries": [e.to_dict() for e in self.time_entries],
            "total_actual_hours": self.total_actual_hours,
            "developer_breakdown": dict(self.developer_breakdown),
            "developer_breakdown_by_date": {
                name: dict(dates) for name, dates in self.developer_breakdown_by_date.items()
            },
            "id_not_entered": self.id_not_entered,
            "original_task_id": self.original_task_id,
            "estimate_source": self.estimate_source,
            "estimate_group": self.estimate_group,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CanonicalTask":
        data = dict(data)
        data["time_entries"] = [TimeEntry.from_dict(e) for e in data.get("time_entries") or []]
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_draft(cls, draft: DraftTask) -> "CanonicalTask":
        return cls(
            task_id=draft.task_id,
            title=draft.title,
            estimated=draft.estimated,
            quality=draft.quality,
            time_entries=list(draft.time_entries),
            total_actual_hours=draft.total_actual_hours,
            developer_breakdown=dict(draft.developer_breakdown),
            developer_breakdown_by_date={
                name: dict(dates) for name, dates in draft.developer_breakdown_by_date.items()
            },
            id_not_entered=draft.id_not_entered,
            original_task_id=draft.original_task_id,
        )


# =============================================================================
# DEVELOPERS
# =============================================================================

@dataclass
class DeveloperProfile:
    """Per-timekeeper aggregate, rebuilt on every import."""
    timekeeper_number: int
    first_name: str
    last_name: str
    title: str = ""
    total_hours: float = 0.0
    task_count: int = 0
    task_count_without_id: int = 0
    hours_without_id: float = 0.0

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "DeveloperProfile":
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

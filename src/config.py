"""
Application configuration management.
"""
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple


def _default_data_dir() -> Path:
    env_dir = os.getenv("DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path("./data")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class AppConfig:
    """Application configuration with environment overrides."""

    # Paths
    data_dir: Path = field(default_factory=_default_data_dir)
    db_path_override: Optional[str] = field(default_factory=lambda: os.getenv("DB_PATH"))
    upload_dir_override: Optional[str] = field(default_factory=lambda: os.getenv("UPLOAD_DIR"))

    # Environment
    app_env: str = field(default_factory=lambda: os.getenv("APP_ENV", "dev"))

    # Cache settings
    cache_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("CACHE_TTL_SECONDS", "300")))

    # Task list
    page_size: int = field(default_factory=lambda: int(os.getenv("PAGE_SIZE", "25")))

    @property
    def db_path(self) -> Path:
        if self.db_path_override:
            return Path(self.db_path_override)
        return self.data_dir / "tasks.db"

    @property
    def upload_dir(self) -> Path:
        if self.upload_dir_override:
            return Path(self.upload_dir_override)
        return self.data_dir / "uploads"

    @property
    def is_prod(self) -> bool:
        return self.app_env.lower() == "prod"


DEFAULT_SKIP_ACTIVITIES = (
    "PTO/Vacation",
    "Holiday",
    "Death in Family",
    "Leave Without Pay",
    "Administrative Shutdown",
)


@dataclass(frozen=True)
class PipelineConfig:
    """
    Business rules for the timesheet import.

    These change over time and between teams, so they are passed into the
    activity filter, grouper and merger instead of living in those modules.
    """

    skip_activities: Tuple[str, ...] = field(
        default_factory=lambda: _env_list("SKIP_ACTIVITIES", DEFAULT_SKIP_ACTIVITIES)
    )

    # Contributor whose rows are grouped apart and defaulted (full name, "First Last")
    special_contributor: Optional[str] = field(
        default_factory=lambda: os.getenv("SPECIAL_CONTRIBUTOR") or None
    )
    contributor_default_quality: int = 4

    # Task that collects administrative time
    admin_task_id: int = field(default_factory=lambda: int(os.getenv("ADMIN_TASK_ID", "7300")))

    not_entered_marker: str = "[TFS ID Not Entered]"

    extraction_policy: str = field(default_factory=lambda: os.getenv("EXTRACTION_POLICY", "current"))
    grouping_policy: str = field(default_factory=lambda: os.getenv("GROUPING_POLICY", "developer_split"))

    # Valid range for bare-number task ids
    id_range: Tuple[int, int] = (10000, 99999)


# Global config instances
config = AppConfig()
pipeline_config = PipelineConfig()


# Workbook sheet names
SHEET_NAMES = {
    "timesheet": "3e",
    "metadata": "scorebyTFS",
}

# Required columns (hard fail if missing)
REQUIRED_COLUMNS = {
    "timesheet": [
        "TimekeeperNumber",
        "FirstName",
        "LastName",
        "Title",
        "WorkDate",
        "WorkHrs",
        "TimecardNarrative",
        "ActivityCode",
        "ActivityCodeDesc",
        "MatterNumber",
        "MatterName",
    ],
    "metadata": [
        "ID",
        "Title",
        "Estimated",
        "Quality",
    ],
}

# Optional columns (soft warn if missing)
OPTIONAL_COLUMNS = {
    "metadata": [
        "Application",
    ],
}

# Task list filters
TASK_FILTERS = {
    "all": "All tasks",
    "needsEstimate": "Needs estimate",
    "needsQuality": "Needs quality",
    "complete": "Complete",
    "noActual": "No actual hours",
}

QUALITY_LABELS = ["1 - Poor", "2 - Below Avg", "3 - Average", "4 - Good", "5 - Excellent"]

ESTIMATE_SOURCE_BELL_CURVE = "bell-curve"

# Formatting constants
FORMAT_HOURS = "{:,.1f}"
FORMAT_PERCENT = "{:.1f}%"
FORMAT_COUNT = "{:,}"

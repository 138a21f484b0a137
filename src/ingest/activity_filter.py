"""
Activity filtering: drop non-work rows and split off the special contributor.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import pandas as pd

from src.config import PipelineConfig, pipeline_config
from src.data.models import RawTimeLogRow


# =============================================================================
# NON-WORK ACTIVITIES
# =============================================================================

def should_skip_activity(description: Optional[str], config: PipelineConfig = pipeline_config) -> bool:
    """True if the activity description contains any skip-list entry (any case)."""
    if not description:
        return False
    desc = str(description).lower()
    return any(skip.lower() in desc for skip in config.skip_activities)


def activity_exclusion_mask(df: pd.DataFrame, config: PipelineConfig = pipeline_config,
                            column: str = "ActivityCodeDesc") -> pd.Series:
    """
    Returns boolean mask where True = row should be EXCLUDED (non-work activity).
    Usage: df_filtered = df[~activity_exclusion_mask(df)]
    """
    if column not in df.columns or not config.skip_activities:
        return pd.Series(False, index=df.index)

    desc = df[column].astype("string").str.lower()
    mask = pd.Series(False, index=df.index)
    for skip in config.skip_activities:
        mask |= desc.str.contains(skip.lower(), regex=False, na=False)
    return mask.astype(bool)


def filter_work_rows(rows: Iterable[RawTimeLogRow],
                     config: PipelineConfig = pipeline_config) -> Tuple[List[RawTimeLogRow], int]:
    """Return (kept_rows, skipped_count)."""
    kept = []
    skipped = 0
    for row in rows:
        if should_skip_activity(row.activity_description, config):
            skipped += 1
            continue
        kept.append(row)
    return kept, skipped


# =============================================================================
# SPECIAL CONTRIBUTOR
# =============================================================================

def is_contributor(name: Optional[str], config: PipelineConfig = pipeline_config) -> bool:
    if not config.special_contributor or not name:
        return False
    return name.strip().lower() == config.special_contributor.strip().lower()


def split_contributor_rows(rows: Iterable[RawTimeLogRow],
                           config: PipelineConfig = pipeline_config) -> Tuple[List[RawTimeLogRow], List[RawTimeLogRow]]:
    """Return (general_rows, contributor_rows)."""
    general, contributor = [], []
    for row in rows:
        if is_contributor(row.developer_name, config):
            contributor.append(row)
        else:
            general.append(row)
    return general, contributor

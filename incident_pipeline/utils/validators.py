"""
Input validation utilities.
Reusable validators for column names, required columns and config mappings.
"""
import re
from typing import Iterable

import pandas as pd

from incident_pipeline.utils.exceptions import ConfigurationError, SchemaError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


def normalize_column_name(name: str) -> str:
    """Lower-case a column name and replace non-word characters with underscores."""
    return re.sub(r"[^\w]+", "_", str(name)).strip("_").lower()


def sanitize_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of the DataFrame with normalized, de-duplicated column names.

    Args:
        df: Input DataFrame.

    Returns:
        DataFrame with sanitized column names.
    """
    original_cols = list(df.columns)
    new_cols = [normalize_column_name(c) for c in original_cols]

    # Handle duplicate names after sanitization
    seen: dict[str, int] = {}
    deduped_cols = []
    for col in new_cols:
        if col in seen:
            seen[col] += 1
            deduped_cols.append(f"{col}_{seen[col]}")
        else:
            seen[col] = 0
            deduped_cols.append(col)

    out = df.copy()
    out.columns = deduped_cols
    renamed = {o: n for o, n in zip(original_cols, deduped_cols) if o != n}
    if renamed:
        log.debug(f"Sanitized column names: {renamed}")
    return out


def validate_required_columns(df: pd.DataFrame, required: Iterable[str]) -> None:
    """Check that every required column is present.

    Raises:
        SchemaError: If any required column is absent.
    """
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(
            f"Source table is missing {len(missing)} expected column(s)",
            missing=missing,
        )
    log.debug(f"Schema validated: {len(df.columns)} columns present")


def validate_config_keys(section: str, config: dict, allowed: Iterable[str]) -> None:
    """Reject unknown keys in a configuration mapping.

    Raises:
        ConfigurationError: If the mapping is not a dict or has unknown keys.
    """
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Config section '{section}' must be a mapping, got {type(config).__name__}"
        )
    unknown = sorted(set(config) - set(allowed))
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in config section '{section}': {unknown}",
            {"section": section, "unknown_keys": unknown},
        )

"""
Descriptive tables for the human reviewer.
Missingness and category frequency summaries of the cleaned dataset.
"""
from typing import Iterable, Optional

import pandas as pd

from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


def missingness_table(
    df: pd.DataFrame,
    sentinels: Optional[dict[str, Iterable]] = None,
    only_missing: bool = True,
) -> pd.DataFrame:
    """Per-column count and percentage of missing cells.

    A cell counts as missing when it is null or, for columns listed in
    ``sentinels``, equals one of the listed literal values.

    Args:
        df: DataFrame to analyze.
        sentinels: Optional mapping of column -> literals treated as missing.
        only_missing: Drop columns with no missing cells from the result.

    Returns:
        DataFrame indexed by column with missing_count, missing_pct, dtype,
        sorted by missing_pct descending.
    """
    sentinels = sentinels or {}
    mask = df.isnull()
    for col, values in sentinels.items():
        if col in df.columns:
            mask[col] = mask[col] | df[col].isin(list(values))

    n = max(len(df), 1)
    stats = pd.DataFrame({
        "missing_count": mask.sum().astype(int),
        "missing_pct": (mask.sum() / n * 100).round(2),
        "dtype": df.dtypes.astype(str),
    })
    if only_missing:
        stats = stats[stats["missing_count"] > 0]
    return stats.sort_values("missing_pct", ascending=False)


def frequency_table(df: pd.DataFrame, column: str, top: Optional[int] = None) -> pd.DataFrame:
    """Counts and shares of each value of ``column``, nulls included."""
    counts = df[column].value_counts(dropna=False)
    if top is not None:
        counts = counts.head(top)
    return pd.DataFrame({
        "count": counts,
        "pct": (counts / max(len(df), 1) * 100).round(2),
    })


def profile_categoricals(
    df: pd.DataFrame,
    columns: Iterable[str],
    top: Optional[int] = 10,
) -> dict[str, pd.DataFrame]:
    """Frequency tables for each listed column present in ``df``."""
    tables = {}
    for col in columns:
        if col not in df.columns:
            log.warning(f"Skipping frequency table for absent column '{col}'")
            continue
        tables[col] = frequency_table(df, col, top=top)
    return tables

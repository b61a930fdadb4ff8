"""
Dataset normalization and validation.
Unifies column naming, enforces the source schema, removes duplicate
rows and reports basic quality issues before any cleaning happens.
"""
from typing import Optional, Sequence

import pandas as pd

from incident_pipeline.utils.exceptions import SchemaError
from incident_pipeline.utils.logger import get_logger
from incident_pipeline.utils.validators import (
    normalize_column_name,
    sanitize_column_names,
    validate_required_columns,
)

log = get_logger(__name__)


class DataValidator:
    """Normalizes the raw table and validates it against the expected schema.

    Example:
        >>> validator = DataValidator(required_columns=["occur_date", "boro"])
        >>> df, report = validator.normalize(raw_df, target_column="statistical_murder_flag")
    """

    def __init__(
        self,
        required_columns: Optional[Sequence[str]] = None,
        drop_duplicates: bool = True,
    ) -> None:
        self.required_columns = [normalize_column_name(c) for c in (required_columns or [])]
        self.drop_duplicates = drop_duplicates

    def normalize(
        self,
        df: pd.DataFrame,
        target_column: Optional[str] = None,
    ) -> tuple[pd.DataFrame, dict]:
        """Return a normalized copy of ``df`` and a validation report.

        Raises:
            SchemaError: If a required column or the target is absent,
                or the table is empty.
        """
        if df.empty:
            raise SchemaError("Source table has no rows")

        out = sanitize_column_names(df)
        validate_required_columns(out, self.required_columns)
        if target_column is not None and target_column not in out.columns:
            raise SchemaError(
                f"Target column '{target_column}' not found",
                missing=[target_column],
            )

        report: dict = {"warnings": [], "stats": {"n_rows_raw": len(out)}}

        n_dupes = int(out.duplicated().sum())
        report["stats"]["duplicate_rows"] = n_dupes
        if n_dupes and self.drop_duplicates:
            out = out.drop_duplicates().reset_index(drop=True)
            log.info(f"Dropped {n_dupes} duplicate rows")

        self._check_constant_columns(out, report)
        if target_column is not None:
            self._check_target(out, target_column, report)

        report["stats"]["n_rows"] = len(out)
        report["stats"]["n_cols"] = len(out.columns)
        self._log_report(report)
        return out, report

    # ── Private checks ────────────────────────────────────────────────────────

    def _check_constant_columns(self, df: pd.DataFrame, report: dict) -> None:
        constant_cols = [c for c in df.columns if df[c].nunique(dropna=False) <= 1]
        report["stats"]["constant_columns"] = constant_cols
        for col in constant_cols:
            report["warnings"].append({
                "rule": "constant_column",
                "column": col,
                "message": f"Column '{col}' has only one distinct value",
            })

    def _check_target(self, df: pd.DataFrame, target_column: str, report: dict) -> None:
        target = df[target_column]
        report["stats"]["target_nunique"] = int(target.nunique())
        if target.isnull().any():
            report["warnings"].append({
                "rule": "target_has_nulls",
                "column": target_column,
                "message": f"Target has {int(target.isnull().sum())} null values",
            })
        if target.nunique() < 2:
            report["warnings"].append({
                "rule": "target_single_class",
                "column": target_column,
                "message": "Target column has only one distinct class",
            })

    @staticmethod
    def _log_report(report: dict) -> None:
        n_warnings = len(report["warnings"])
        if n_warnings == 0:
            log.info(f"Data validation passed | rows={report['stats']['n_rows']}")
        else:
            for w in report["warnings"]:
                log.warning(w["message"])

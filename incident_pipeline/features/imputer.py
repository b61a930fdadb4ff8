"""
Missing value imputation.
Categorical gaps and sentinel literals become an explicit UNKNOWN
category, continuous gaps take the column mean, and rare categories in
declared columns are dropped instead of imputed.
"""
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from incident_pipeline.data.profiling import missingness_table
from incident_pipeline.utils.exceptions import ImputationPolicyError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

UNKNOWN = "UNKNOWN"


class IncidentImputer(BaseEstimator, TransformerMixin):
    """Sklearn-style imputer for the incident table.

    ``fit`` learns column means (and validates the policy against the
    data); ``transform`` returns a new DataFrame and never mutates its input.

    Args:
        categorical_cols: Columns whose nulls and sentinels become ``unknown_label``.
        continuous_cols: Columns whose nulls become the fitted column mean.
        sentinels: Column -> literal values treated as missing.
        composite: Optional rebuild rule for a text field derived from two
            continuous columns, e.g.
            ``{"column": "lon_lat", "from": ["longitude", "latitude"],
            "template": "POINT ({0} {1})"}``.
        rare_categories: Column -> minimum row count. Rows whose value in the
            column (a missing value included) occurs fewer times are dropped.
        unknown_label: Category used for missing categorical cells.

    Example:
        >>> imputer = IncidentImputer(categorical_cols=["perp_sex"], continuous_cols=["latitude"])
        >>> clean = imputer.fit_transform(df)
    """

    def __init__(
        self,
        categorical_cols: Optional[list[str]] = None,
        continuous_cols: Optional[list[str]] = None,
        sentinels: Optional[dict[str, list]] = None,
        composite: Optional[dict] = None,
        rare_categories: Optional[dict[str, int]] = None,
        unknown_label: str = UNKNOWN,
    ) -> None:
        self.categorical_cols = categorical_cols
        self.continuous_cols = continuous_cols
        self.sentinels = sentinels
        self.composite = composite
        self.rare_categories = rare_categories
        self.unknown_label = unknown_label

        self.means_: dict[str, float] = {}

    def fit(self, X: pd.DataFrame, y=None) -> "IncidentImputer":
        """Validate the policy against ``X`` and learn continuous column means.

        Raises:
            ImputationPolicyError: If any referenced column is absent from ``X``.
        """
        X = self._validate_input(X)
        self._check_policy_columns(X)

        X = self._drop_rare(X)
        self.means_ = {}
        for col in self.continuous_cols or []:
            values = self._to_numeric(self._mask_sentinels(X[col], col))
            mean = values.mean()
            if pd.isna(mean):
                log.warning(f"Column '{col}' has no observed values; mean is undefined")
            self.means_[col] = float(mean)
        log.debug(f"Fitted means for {len(self.means_)} continuous columns")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Return an imputed copy of ``X``."""
        X = self._validate_input(X)
        self._check_policy_columns(X)
        n_before = len(X)

        X = self._drop_rare(X).copy()

        for col in self.categorical_cols or []:
            series = self._mask_sentinels(X[col], col)
            n_missing = int(series.isnull().sum())
            if n_missing:
                log.debug(f"'{col}': {n_missing} cells -> {self.unknown_label}")
            X[col] = series.astype(object).where(series.notnull(), self.unknown_label)

        composite_missing = None
        if self.composite:
            composite_col = self.composite["column"]
            composite_missing = X[composite_col].isnull()
            X[composite_col] = X[composite_col].astype(object)

        for col in self.continuous_cols or []:
            values = self._to_numeric(self._mask_sentinels(X[col], col))
            X[col] = values.fillna(self.means_[col])

        if composite_missing is not None and composite_missing.any():
            X.loc[composite_missing, self.composite["column"]] = self._build_composite(
                X.loc[composite_missing]
            )
            log.debug(f"Rebuilt {int(composite_missing.sum())} '{self.composite['column']}' values")

        n_dropped = n_before - len(X)
        if n_dropped:
            log.info(f"Dropped {n_dropped} rows with rare categories")
        return X

    def get_missing_stats(self, X: pd.DataFrame) -> pd.DataFrame:
        """Per-column missing counts and percentages, sentinels included.

        Returns:
            DataFrame with missing_count, missing_pct and dtype per column.
        """
        return missingness_table(X, sentinels=self.sentinels)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _check_policy_columns(self, X: pd.DataFrame) -> None:
        referenced = (
            list(self.categorical_cols or [])
            + list(self.continuous_cols or [])
            + list((self.sentinels or {}).keys())
            + list((self.rare_categories or {}).keys())
        )
        if self.composite:
            referenced += [self.composite["column"], *self.composite["from"]]
        missing = sorted({c for c in referenced if c not in X.columns})
        if missing:
            raise ImputationPolicyError(missing, list(X.columns))

    def _mask_sentinels(self, series: pd.Series, col: str) -> pd.Series:
        values = (self.sentinels or {}).get(col)
        if not values:
            return series
        return series.mask(series.isin(list(values)))

    def _drop_rare(self, X: pd.DataFrame) -> pd.DataFrame:
        # dropping rows for one column can push another column under its floor
        while True:
            keep = np.ones(len(X), dtype=bool)
            for col, min_count in (self.rare_categories or {}).items():
                keys = X[col].astype(object).where(X[col].notnull(), "__missing__")
                rare = keys.map(keys.value_counts()) < min_count
                if rare.any():
                    log.debug(
                        f"'{col}': dropping {int(rare.sum())} rows of categories "
                        f"{sorted(map(str, keys[rare].unique()))} (< {min_count} rows)"
                    )
                keep &= ~rare.to_numpy()
            if keep.all():
                return X
            X = X.loc[keep]

    def _build_composite(self, rows: pd.DataFrame) -> pd.Series:
        template = self.composite.get("template", "POINT ({0} {1})")
        sources = self.composite["from"]
        return pd.Series(
            [template.format(*vals) for vals in rows[sources].itertuples(index=False)],
            index=rows.index,
            dtype=object,
        )

    @staticmethod
    def _to_numeric(series: pd.Series) -> pd.Series:
        return pd.to_numeric(series, errors="coerce").astype(float)

    @staticmethod
    def _validate_input(X) -> pd.DataFrame:
        if not isinstance(X, pd.DataFrame):
            raise TypeError(f"Expected pd.DataFrame, got {type(X).__name__}")
        return X


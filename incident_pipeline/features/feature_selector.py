"""
Near-zero-variance column filtering.
Fitted on the training partition; the same columns are removed from
every frame it transforms afterwards.
"""
from typing import Optional

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


class NearZeroVarianceFilter(BaseEstimator, TransformerMixin):
    """Drops feature columns that carry negligible signal.

    A column is near-zero-variance when its most frequent value covers more
    than ``freq_share`` of the rows, or it has fewer than ``min_distinct``
    distinct non-null values.

    Example:
        >>> nzv = NearZeroVarianceFilter(freq_share=0.95)
        >>> train = nzv.fit_transform(train)
        >>> test = nzv.transform(test)
    """

    def __init__(
        self,
        freq_share: float = 0.95,
        min_distinct: int = 2,
        cols: Optional[list[str]] = None,
    ) -> None:
        self.freq_share = freq_share
        self.min_distinct = min_distinct
        self.cols = cols

        self.dropped_: list[str] = []
        self.stats_: pd.DataFrame = pd.DataFrame()

    def fit(self, X: pd.DataFrame, y=None) -> "NearZeroVarianceFilter":
        cols = [c for c in (self.cols if self.cols is not None else X.columns) if c in X.columns]
        rows = []
        for col in cols:
            counts = X[col].value_counts(dropna=True)
            counts = counts[counts > 0]
            n = int(counts.sum())
            share = float(counts.iloc[0] / n) if n else 1.0
            rows.append({
                "column": col,
                "top_share": share,
                "n_distinct": int(len(counts)),
                "nzv": share > self.freq_share or len(counts) < self.min_distinct,
            })
        self.stats_ = pd.DataFrame(rows, columns=["column", "top_share", "n_distinct", "nzv"])
        self.stats_ = self.stats_.set_index("column")
        self.dropped_ = [c for c, flag in self.stats_["nzv"].items() if flag]
        if self.dropped_:
            log.warning(f"Dropping {len(self.dropped_)} near-zero-variance columns: {self.dropped_}")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        return X.drop(columns=[c for c in self.dropped_ if c in X.columns])

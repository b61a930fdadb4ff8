"""
Categorical vocabulary alignment.
The held-out partition may only use category values seen in training;
anything else becomes undefined (NaN) rather than a new level.
"""
from typing import Optional

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


class VocabularyAligner(BaseEstimator, TransformerMixin):
    """Restricts categorical columns to the vocabulary observed at fit time.

    Example:
        >>> aligner = VocabularyAligner().fit(train)
        >>> test = aligner.transform(test)
    """

    def __init__(self, cols: Optional[list[str]] = None) -> None:
        self.cols = cols
        self.dtypes_: dict[str, pd.CategoricalDtype] = {}
        self.unseen_: dict[str, int] = {}

    def fit(self, X: pd.DataFrame, y=None) -> "VocabularyAligner":
        cols = self.cols if self.cols is not None else [
            c for c in X.columns if isinstance(X[c].dtype, pd.CategoricalDtype)
        ]
        self.dtypes_ = {}
        for col in cols:
            if col not in X.columns:
                continue
            dtype = X[col].dtype
            observed = set(X[col].dropna().unique())
            # keep the declared level order, minus levels never observed
            levels = [lvl for lvl in dtype.categories if lvl in observed]
            self.dtypes_[col] = pd.CategoricalDtype(levels, ordered=dtype.ordered)
        log.debug(f"Vocabulary fitted for {len(self.dtypes_)} categorical columns")
        return self

    @property
    def vocabulary(self) -> dict[str, list]:
        return {col: list(dtype.categories) for col, dtype in self.dtypes_.items()}

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        X = X.copy()
        self.unseen_ = {}
        for col, dtype in self.dtypes_.items():
            if col not in X.columns:
                continue
            before = X[col].notnull()
            values = X[col].astype(object)
            X[col] = values.where(values.isin(dtype.categories)).astype(dtype)
            n_unseen = int((before & X[col].isnull()).sum())
            if n_unseen:
                self.unseen_[col] = n_unseen
                log.warning(f"'{col}': {n_unseen} values unseen in training set to undefined")
        return X

"""
Abstract base model class.
All binary classifiers used by the pipeline inherit from this and
implement the interface.
"""
import abc
from typing import Optional

import numpy as np
import pandas as pd

from incident_pipeline.features.encoder import NEGATIVE_LABEL, POSITIVE_LABEL
from incident_pipeline.utils.exceptions import ModelError, ModelNotFittedError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


class BaseModel(abc.ABC):
    """Abstract base class for the pipeline's binary classifiers.

    A model is fitted once from a training Feature Table and is read-only
    afterwards. Subclasses must implement:
        - _fit(X, y)
        - _predict_proba(X)   positive-class probability per row
    """

    def __init__(
        self,
        name: str,
        feature_columns: list[str],
        positive_label: str = POSITIVE_LABEL,
        negative_label: str = NEGATIVE_LABEL,
    ) -> None:
        self.name = name
        self.feature_columns = list(feature_columns)
        self.positive_label = positive_label
        self.negative_label = negative_label
        self._model = None
        self._is_fitted = False

    def fit(self, train: pd.DataFrame, target_column: str) -> "BaseModel":
        """Fit the model on the feature columns of ``train``.

        Raises:
            ModelError: If the model is already fitted or the target is not binary.
        """
        if self._is_fitted:
            raise ModelError(f"Model '{self.name}' is already fitted; create a new instance")
        y = (train[target_column] == self.positive_label).astype(int)
        if y.nunique() < 2:
            raise ModelError(
                f"Training target '{target_column}' has a single class",
                {"class_counts": train[target_column].value_counts().to_dict()},
            )
        self._fit(train[self.feature_columns], y)
        self._is_fitted = True
        log.info(f"Model '{self.name}' fitted on {len(train)} rows")
        return self

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Positive-class probability per row; NaN where a feature is undefined."""
        self._check_fitted()
        return self._predict_proba(X[self.feature_columns])

    def predict(self, X: pd.DataFrame, threshold: float = 0.5) -> pd.Series:
        """Hard labels at ``threshold``; missing where the probability is undefined."""
        proba = pd.Series(self.predict_proba(X), index=X.index)
        labels = np.where(proba >= threshold, self.positive_label, self.negative_label)
        return pd.Series(labels, index=X.index, dtype=object).where(proba.notnull())

    @abc.abstractmethod
    def _fit(self, X: pd.DataFrame, y: pd.Series) -> None:
        ...

    @abc.abstractmethod
    def _predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        ...

    def get_feature_importance(self) -> Optional[pd.Series]:
        """Return feature importance as a Series indexed by feature name, or None."""
        return None

    @property
    def is_fitted(self) -> bool:
        return self._is_fitted

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise ModelNotFittedError(self.name)

    def __repr__(self) -> str:
        status = "fitted" if self._is_fitted else "unfitted"
        return f"{self.__class__.__name__}(name={self.name!r}, status={status})"

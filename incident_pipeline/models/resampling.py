"""
Class rebalancing of the training partition.
Wraps imbalanced-learn's random samplers; the held-out partition is
passed through untouched.
"""
import numpy as np
import pandas as pd
from imblearn.over_sampling import RandomOverSampler
from imblearn.under_sampling import RandomUnderSampler

from incident_pipeline.data.splitter import TrainTestSplit
from incident_pipeline.utils.exceptions import ConfigurationError, DataError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

RESAMPLING_METHODS = ["undersample", "oversample", "none"]


class ClassRebalancer:
    """Equalize class counts in the training partition.

    ``undersample`` drops majority rows at random until the classes are
    equal; ``oversample`` repeats minority rows; ``none`` is a pass-through.

    Example:
        >>> rebalancer = ClassRebalancer(method="undersample", random_state=42)
        >>> balanced = rebalancer.rebalance(split, target_column="statistical_murder_flag")
    """

    def __init__(self, method: str = "undersample", random_state: int = 42) -> None:
        if method not in RESAMPLING_METHODS:
            raise ConfigurationError(
                f"Unknown resampling method '{method}'. Choose from: {RESAMPLING_METHODS}"
            )
        self.method = method
        self.random_state = random_state

    def resample(self, train: pd.DataFrame, target_column: str) -> pd.DataFrame:
        """Return a rebalanced copy of ``train``.

        Raises:
            DataError: If the target has null values.
        """
        n_null = int(train[target_column].isnull().sum())
        if n_null:
            raise DataError(
                f"Target '{target_column}' has {n_null} null values; cannot rebalance"
            )
        if self.method == "none":
            return train.copy()

        y = train[target_column].astype(str).to_numpy()
        positions = np.arange(len(train)).reshape(-1, 1)
        sampler = self._build_sampler()
        sampler.fit_resample(positions, y)
        # sample_indices_ are positions into the input rows
        out = train.iloc[np.sort(sampler.sample_indices_)]

        log.info(
            f"Rebalanced training set ({self.method}): {len(train)} -> {len(out)} rows | "
            f"classes={out[target_column].value_counts().to_dict()}"
        )
        return out

    def rebalance(self, split: TrainTestSplit, target_column: str) -> TrainTestSplit:
        """Rebalance the training partition; the test partition is returned as is."""
        return TrainTestSplit(
            train=self.resample(split.train, target_column),
            test=split.test,
        )

    def _build_sampler(self):
        if self.method == "undersample":
            return RandomUnderSampler(random_state=self.random_state)
        return RandomOverSampler(random_state=self.random_state)

"""
Train/test partitioning.
Stratified random split of the Feature Table with a fixed seed.
"""
from dataclasses import dataclass

import pandas as pd
from sklearn.model_selection import StratifiedShuffleSplit

from incident_pipeline.utils.exceptions import DataError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class TrainTestSplit:
    """Training and held-out partitions of a Feature Table.

    Both frames keep the row labels of the table they were cut from.
    """
    train: pd.DataFrame
    test: pd.DataFrame

    @property
    def sizes(self) -> dict:
        return {"train": len(self.train), "test": len(self.test)}


class DataSplitter:
    """Split a Feature Table into train / test, stratified on the target.

    Example:
        >>> splitter = DataSplitter(test_size=0.2, random_state=42)
        >>> split = splitter.split(table, target_column="statistical_murder_flag")
        >>> split.train.shape, split.test.shape
    """

    def __init__(self, test_size: float = 0.20, random_state: int = 42) -> None:
        if not 0.0 < test_size < 1.0:
            raise ValueError(f"test_size must be in (0, 1), got {test_size}")
        self.test_size = test_size
        self.random_state = random_state

    def split(self, df: pd.DataFrame, target_column: str) -> TrainTestSplit:
        """Partition ``df`` preserving the target's class proportions.

        Raises:
            DataError: If the target has nulls, or a class is too small to stratify.
        """
        y = df[target_column]
        if y.isnull().any():
            raise DataError(
                f"Target '{target_column}' has {int(y.isnull().sum())} null values; cannot stratify"
            )

        sss = StratifiedShuffleSplit(
            n_splits=1,
            test_size=self.test_size,
            random_state=self.random_state,
        )
        try:
            train_idx, test_idx = next(sss.split(df, y.astype(str)))
        except ValueError as exc:
            raise DataError(
                f"Stratified split failed: {exc}",
                {"class_counts": y.value_counts().to_dict()},
            ) from exc

        result = TrainTestSplit(train=df.iloc[train_idx], test=df.iloc[test_idx])
        log.info(f"Split sizes: train={len(result.train)}, test={len(result.test)}")
        return result

"""
Post-split feature pipeline.
Near-zero-variance filtering followed by vocabulary alignment, both
fitted on the training partition and mirrored onto the held-out one.
"""
import pandas as pd

from incident_pipeline.features.feature_selector import NearZeroVarianceFilter
from incident_pipeline.features.roles import CATEGORICAL_ROLES, FeatureRoles
from incident_pipeline.features.vocabulary import VocabularyAligner
from incident_pipeline.utils.exceptions import ConfigurationError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


class FeaturePipeline:
    """Fit/transform wrapper around the post-split feature steps.

    Example:
        >>> pipe = FeaturePipeline(roles).fit(split.train)
        >>> train, test = pipe.transform(split.train), pipe.transform(split.test)
        >>> pipe.feature_columns
    """

    def __init__(
        self,
        roles: FeatureRoles,
        nzv_freq_share: float = 0.95,
        nzv_min_distinct: int = 2,
    ) -> None:
        self.roles = roles
        self.nzv = NearZeroVarianceFilter(
            freq_share=nzv_freq_share,
            min_distinct=nzv_min_distinct,
            cols=roles.model_columns,
        )
        self.aligner: VocabularyAligner | None = None
        self.feature_columns: list[str] = []
        self._is_fitted = False

    def fit(self, train: pd.DataFrame) -> "FeaturePipeline":
        """Learn dropped columns and vocabularies from the training partition.

        Raises:
            ConfigurationError: If every feature column is near-zero-variance.
        """
        self.nzv.fit(train)
        self.feature_columns = [c for c in self.roles.model_columns if c not in self.nzv.dropped_]
        if not self.feature_columns:
            raise ConfigurationError(
                "All feature columns were removed as near-zero-variance",
                {"dropped": self.nzv.dropped_},
            )
        categorical = [
            c for c in self.roles.columns_with_role(*CATEGORICAL_ROLES)
            if c in self.feature_columns
        ]
        self.aligner = VocabularyAligner(cols=categorical).fit(train)
        self._is_fitted = True
        log.info(
            f"Feature pipeline fitted | kept={len(self.feature_columns)} "
            f"| dropped={self.nzv.dropped_}"
        )
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        if not self._is_fitted:
            raise RuntimeError("FeaturePipeline.transform called before fit")
        return self.aligner.transform(self.nzv.transform(df))

    def fit_transform(self, train: pd.DataFrame) -> pd.DataFrame:
        return self.fit(train).transform(train)

    @property
    def unseen_counts(self) -> dict[str, int]:
        """Values set to undefined per column by the last transform."""
        return dict(self.aligner.unseen_) if self.aligner else {}

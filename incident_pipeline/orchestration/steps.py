"""
Pipeline steps.
Each step takes the previous step's output and returns new objects;
no step mutates its inputs.
"""
from typing import Optional

import pandas as pd

from incident_pipeline.config import PipelineConfig
from incident_pipeline.data.ingestion import DataIngestion
from incident_pipeline.data.splitter import DataSplitter, TrainTestSplit
from incident_pipeline.data.validation import DataValidator
from incident_pipeline.evaluation.metrics import EvaluationReport, compute_binary_metrics
from incident_pipeline.features.datetime_features import CalendarFeatureExtractor
from incident_pipeline.features.encoder import FeatureEncoder
from incident_pipeline.features.imputer import IncidentImputer
from incident_pipeline.features.pipeline import FeaturePipeline
from incident_pipeline.features.roles import ColumnRole
from incident_pipeline.models.linear_model import LogitModel
from incident_pipeline.models.resampling import ClassRebalancer
from incident_pipeline.utils.exceptions import ConfigurationError
from incident_pipeline.utils.logger import get_logger
from incident_pipeline.utils.timer import Timer

log = get_logger(__name__)

CALENDAR_FIELDS = ("timestamp", "hour", "weekday", "month")


def ingest_data(source: str, timeout: float = 60.0) -> tuple[pd.DataFrame, dict]:
    """Load the raw table. Returns (DataFrame, metadata)."""
    return DataIngestion(timeout=timeout).load(source)


def normalize_data(df: pd.DataFrame, config: PipelineConfig) -> tuple[pd.DataFrame, dict]:
    """Normalize column names, enforce the schema, drop duplicates and check
    that every declared role column will exist once calendar fields are derived.
    """
    validator = DataValidator(required_columns=config.source.required_columns)
    out, report = validator.normalize(df, target_column=config.roles.target)

    available = set(out.columns)
    if config.calendar.date_column:
        available |= {f"{config.calendar.prefix}{name}" for name in CALENDAR_FIELDS}
    config.roles.check_columns(available)
    return out, report


def build_imputer(config: PipelineConfig, include_continuous: bool = True) -> IncidentImputer:
    imp = config.imputation
    return IncidentImputer(
        categorical_cols=imp.categorical,
        continuous_cols=imp.continuous if include_continuous else [],
        sentinels=imp.sentinels,
        composite=imp.composite if include_continuous else None,
        rare_categories=imp.rare_categories,
        unknown_label=imp.unknown_label,
    )


def impute_data(df: pd.DataFrame, config: PipelineConfig) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Impute the full dataset. Returns (imputed DataFrame, missingness table).

    With ``imputation.fit_on == "train"`` continuous means are left for
    :func:`impute_continuous_on_train` after the split.
    """
    imputer = build_imputer(config, include_continuous=config.imputation.fit_on == "full")
    missingness = imputer.get_missing_stats(df)
    with Timer("impute"):
        out = imputer.fit_transform(df)
    return out, missingness


def derive_calendar(df: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    cal = config.calendar
    if not cal.date_column:
        return df
    extractor = CalendarFeatureExtractor(
        date_col=cal.date_column,
        time_col=cal.time_column,
        date_format=cal.date_format,
        time_format=cal.time_format,
        prefix=cal.prefix,
    )
    return extractor.fit_transform(df)


def build_feature_table(df: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    encoder = FeatureEncoder(config.roles, positive_label=config.positive_label)
    return encoder.build(df)


def split_table(table: pd.DataFrame, config: PipelineConfig) -> TrainTestSplit:
    splitter = DataSplitter(test_size=config.split.test_size, random_state=config.split.seed)
    return splitter.split(table, target_column=config.roles.target)


def impute_continuous_on_train(split: TrainTestSplit, config: PipelineConfig) -> TrainTestSplit:
    """Fill numeric feature gaps with means computed on the training partition only."""
    numeric = [
        c for c in config.imputation.continuous
        if c in config.roles.columns_with_role(ColumnRole.NUMERIC)
    ]
    if not numeric:
        return split
    imputer = IncidentImputer(continuous_cols=numeric).fit(split.train)
    log.info(f"Imputed {numeric} with training-set means")
    return TrainTestSplit(train=imputer.transform(split.train), test=imputer.transform(split.test))


def prepare_features(
    split: TrainTestSplit, config: PipelineConfig
) -> tuple[TrainTestSplit, FeaturePipeline]:
    """Fit near-zero-variance filtering and vocabulary alignment on train, apply to both."""
    pipe = FeaturePipeline(
        config.roles,
        nzv_freq_share=config.nzv.freq_share,
        nzv_min_distinct=config.nzv.min_distinct,
    )
    train = pipe.fit_transform(split.train)
    test = pipe.transform(split.test)
    return TrainTestSplit(train=train, test=test), pipe


def rebalance(split: TrainTestSplit, config: PipelineConfig) -> TrainTestSplit:
    rebalancer = ClassRebalancer(method=config.resampling.method, random_state=config.split.seed)
    return rebalancer.rebalance(split, target_column=config.roles.target)


def train_model(
    train: pd.DataFrame,
    feature_columns: list[str],
    config: PipelineConfig,
) -> LogitModel:
    if not feature_columns:
        raise ConfigurationError("No feature columns left to model")
    model = LogitModel(
        feature_columns=feature_columns,
        C=config.model.C,
        max_iter=config.model.max_iter,
        tol=config.model.tol,
        positive_label=config.positive_label,
    )
    with Timer("fit"):
        model.fit(train, target_column=config.roles.target)
    return model


def evaluate_model(
    model: LogitModel,
    test: pd.DataFrame,
    config: PipelineConfig,
    threshold: Optional[float] = None,
) -> EvaluationReport:
    """Score the held-out partition and compute the evaluation report."""
    proba = model.predict_proba(test)
    return compute_binary_metrics(
        test[config.roles.target],
        proba,
        positive_label=config.positive_label,
        threshold=config.threshold if threshold is None else threshold,
    )

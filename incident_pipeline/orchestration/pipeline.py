"""
Main orchestration pipeline.
Composes all steps into one sequential, single-shot run.
"""
from typing import Optional

import pandas as pd

from incident_pipeline.config import PipelineConfig
from incident_pipeline.utils.exceptions import ConfigurationError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


def run_pipeline(
    config: PipelineConfig,
    data: Optional[pd.DataFrame] = None,
    source: Optional[str] = None,
    output_dir: Optional[str] = None,
) -> dict:
    """End-to-end pipeline run.

    Steps:
        1. Ingest -> 2. Normalize -> 3. Impute -> 4. Calendar ->
        5. Feature Table -> 6. Split -> 7. NZV + vocabulary ->
        8. Rebalance -> 9. Fit -> 10. Evaluate -> 11. Report

    Args:
        config: Validated pipeline configuration.
        data: Raw table already in memory; skips ingestion when given.
        source: URL or path overriding ``config.source.url``.
        output_dir: If given, report.txt / report.json are written there.

    Returns:
        Dict with the evaluation report, fitted model, final split,
        feature pipeline, missingness table and report paths.
    """
    from incident_pipeline.evaluation.report_generator import ReportGenerator
    from incident_pipeline.orchestration.steps import (
        build_feature_table,
        derive_calendar,
        evaluate_model,
        impute_continuous_on_train,
        impute_data,
        ingest_data,
        normalize_data,
        prepare_features,
        rebalance,
        split_table,
        train_model,
    )

    # Step 1: Ingest
    metadata: dict = {}
    if data is None:
        source = source or config.source.url
        if not source:
            raise ConfigurationError("No data source: pass --data or set source.url")
        log.info(f"[START] Incident pipeline: {source} | target={config.roles.target}")
        data, metadata = ingest_data(source, timeout=config.source.timeout)
    else:
        log.info(f"[START] Incident pipeline on in-memory table {data.shape}")

    # Step 2: Normalize
    df, validation_report = normalize_data(data, config)

    # Step 3: Impute
    df, missingness = impute_data(df, config)

    # Step 4: Calendar fields
    df = derive_calendar(df, config)

    # Step 5: Feature Table
    table = build_feature_table(df, config)

    # Step 6: Split
    split = split_table(table, config)
    if config.imputation.fit_on == "train":
        split = impute_continuous_on_train(split, config)

    # Step 7: Near-zero-variance filter + vocabulary alignment
    split, feature_pipeline = prepare_features(split, config)

    # Step 8: Rebalance (training partition only)
    balanced = rebalance(split, config)

    # Step 9: Fit
    model = train_model(balanced.train, feature_pipeline.feature_columns, config)

    # Step 10: Evaluate
    report = evaluate_model(model, balanced.test, config)

    # Step 11: Report
    report_paths = {}
    if output_dir:
        report_paths = ReportGenerator(output_dir).generate(
            report,
            coefficients=model.coefficient_table(),
            missingness=missingness,
            dropped_columns=feature_pipeline.nzv.dropped_,
            config=config.to_dict(),
        )

    log.info(f"[DONE] Pipeline complete | metrics={report.metrics}")
    return {
        "report": report,
        "model": model,
        "split": balanced,
        "unbalanced_split": split,
        "feature_pipeline": feature_pipeline,
        "missingness": missingness,
        "validation_report": validation_report,
        "metadata": metadata,
        "report_paths": report_paths,
    }

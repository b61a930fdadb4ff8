"""
Main entry point for the incident pipeline.
Supports two modes: run (full pipeline) and profile (missingness and
category frequency tables only).
"""
import argparse
import sys
from dataclasses import replace

from incident_pipeline.utils.exceptions import ConfigurationError, IncidentPipelineError
from incident_pipeline.utils.logger import get_logger, setup_logger

log = get_logger("incident_pipeline")

DEFAULT_CONFIG = "configs/nypd_shootings.yaml"


def run_pipeline_mode(args: argparse.Namespace) -> None:
    """Run the end-to-end pipeline and print the evaluation report."""
    from incident_pipeline.config import load_config
    from incident_pipeline.evaluation.report_generator import render_text
    from incident_pipeline.orchestration.pipeline import run_pipeline

    config = load_config(args.config)
    if args.threshold is not None:
        config = replace(config, threshold=args.threshold)
    result = run_pipeline(config, source=args.data, output_dir=args.output_dir)

    print(render_text(
        result["report"],
        coefficients=result["model"].coefficient_table(),
        missingness=result["missingness"],
        dropped_columns=result["feature_pipeline"].nzv.dropped_,
    ))
    if result["report_paths"]:
        print(f"Report: {result['report_paths']['text']}")


def run_profile_mode(args: argparse.Namespace) -> None:
    """Print missingness and frequency tables of the normalized source table."""
    from incident_pipeline.config import load_config
    from incident_pipeline.data.profiling import missingness_table, profile_categoricals
    from incident_pipeline.orchestration.steps import ingest_data, normalize_data

    config = load_config(args.config)
    source = args.data or config.source.url
    if not source:
        raise ConfigurationError("No data source: pass --data or set source.url")
    raw, _ = ingest_data(source, timeout=config.source.timeout)
    df, _ = normalize_data(raw, config)

    print("Missing values:")
    print(missingness_table(df, sentinels=config.imputation.sentinels).to_string())
    for col, table in profile_categoricals(df, config.imputation.categorical, top=args.top).items():
        print(f"\n{col}:")
        print(table.to_string())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="incident-pipeline",
        description="Incident outcome classification pipeline",
    )
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    sub = parser.add_subparsers(dest="mode", required=True)

    run_p = sub.add_parser("run", help="Run the full pipeline")
    run_p.add_argument("--config", default=DEFAULT_CONFIG, help="Path to YAML config")
    run_p.add_argument("--data", default=None, help="CSV path or URL (overrides source.url)")
    run_p.add_argument("--output-dir", default=None, help="Write report.txt / report.json here")
    run_p.add_argument("--threshold", type=float, default=None, help="Decision threshold")

    profile_p = sub.add_parser("profile", help="Print missingness and frequency tables")
    profile_p.add_argument("--config", default=DEFAULT_CONFIG, help="Path to YAML config")
    profile_p.add_argument("--data", default=None, help="CSV path or URL (overrides source.url)")
    profile_p.add_argument("--top", type=int, default=10, help="Rows per frequency table")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logger(log_level=args.log_level, log_file=args.log_file)

    dispatch = {
        "run": run_pipeline_mode,
        "profile": run_profile_mode,
    }
    try:
        dispatch[args.mode](args)
    except IncidentPipelineError as exc:
        log.error(f"Run aborted: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Plain-text and JSON run reports.
"""
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from incident_pipeline.evaluation.metrics import METRIC_NAMES, EvaluationReport
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

RULE = "=" * 60


def _fmt(value: float) -> str:
    return "undefined" if pd.isna(value) else f"{value:.4f}"


def render_text(
    report: EvaluationReport,
    coefficients: Optional[pd.DataFrame] = None,
    missingness: Optional[pd.DataFrame] = None,
    dropped_columns: Optional[list[str]] = None,
) -> str:
    """Human-readable summary of one pipeline run."""
    lines = [RULE, "Evaluation report", RULE]
    if missingness is not None and not missingness.empty:
        lines += ["", "Missing values before imputation:", missingness.to_string()]
    if dropped_columns:
        lines += ["", f"Near-zero-variance columns dropped: {', '.join(dropped_columns)}"]
    if coefficients is not None:
        lines += ["", "Coefficients:", coefficients.to_string(float_format=lambda v: f"{v:.4f}")]
    lines += [
        "",
        f"Confusion matrix (threshold={report.threshold}, positive='{report.positive_label}'):",
        report.confusion_matrix.to_string(),
        "",
        f"Scored rows: {report.n_scored} | excluded (undefined features): {report.n_excluded}",
        "",
    ]
    width = max(len(name) for name in METRIC_NAMES)
    lines += [f"  {name:<{width}}  {_fmt(getattr(report, name))}" for name in METRIC_NAMES]
    lines.append(RULE)
    return "\n".join(lines)


class ReportGenerator:
    """Writes ``report.txt`` and ``report.json`` for a run.

    Example:
        >>> reporter = ReportGenerator(output_dir="reports")
        >>> paths = reporter.generate(report, coefficients=model.coefficient_table())
    """

    def __init__(self, output_dir: Union[str, Path] = "reports") -> None:
        self.output_dir = Path(output_dir)

    def generate(
        self,
        report: EvaluationReport,
        coefficients: Optional[pd.DataFrame] = None,
        missingness: Optional[pd.DataFrame] = None,
        dropped_columns: Optional[list[str]] = None,
        config: Optional[dict] = None,
    ) -> dict[str, Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        text_path = self.output_dir / "report.txt"
        json_path = self.output_dir / "report.json"

        text_path.write_text(
            render_text(report, coefficients, missingness, dropped_columns),
            encoding="utf-8",
        )
        payload = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "evaluation": report.to_dict(),
            "coefficients": (
                coefficients["coef"].to_dict() if coefficients is not None else {}
            ),
            "dropped_columns": dropped_columns or [],
            "config": config or {},
        }
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)

        log.info(f"Report written to {self.output_dir}")
        return {"text": text_path, "json": json_path}

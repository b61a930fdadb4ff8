"""
Binary classification metrics.
Everything is computed from (probabilities, actual labels, positive label);
degenerate cases are reported as NaN instead of raising or zeroing.
"""
from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd
from sklearn.metrics import auc, precision_recall_curve, roc_auc_score

from incident_pipeline.features.encoder import POSITIVE_LABEL
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

METRIC_NAMES = ["accuracy", "precision", "recall", "f1", "roc_auc", "pr_auc"]


@dataclass(frozen=True)
class EvaluationReport:
    """Scalar metrics plus the 2x2 confusion counts of one evaluation."""
    accuracy: float
    precision: float
    recall: float
    f1: float
    roc_auc: float
    pr_auc: float
    tp: int
    fp: int
    fn: int
    tn: int
    threshold: float
    positive_label: str
    n_scored: int
    n_excluded: int = 0

    @property
    def metrics(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in METRIC_NAMES}

    @property
    def confusion_matrix(self) -> pd.DataFrame:
        """Rows are predicted labels, columns actual labels; positive first."""
        pos, neg = self.positive_label, f"not {self.positive_label}"
        return pd.DataFrame(
            [[self.tp, self.fp], [self.fn, self.tn]],
            index=pd.Index([pos, neg], name="predicted"),
            columns=pd.Index([pos, neg], name="actual"),
        )

    def to_dict(self) -> dict:
        out = asdict(self)
        # NaN is not valid JSON
        return {k: (None if isinstance(v, float) and np.isnan(v) else v) for k, v in out.items()}


def _ratio(num: int, den: int) -> float:
    return float(num) / den if den else float("nan")


def confusion_counts(actual: np.ndarray, predicted: np.ndarray) -> tuple[int, int, int, int]:
    """(tp, fp, fn, tn) for boolean arrays of actual and predicted positives."""
    tp = int(np.sum(actual & predicted))
    fp = int(np.sum(~actual & predicted))
    fn = int(np.sum(actual & ~predicted))
    tn = int(np.sum(~actual & ~predicted))
    return tp, fp, fn, tn


def pr_auc_score(actual: np.ndarray, proba: np.ndarray) -> float:
    """Area under the precision-recall curve (trapezoidal over all thresholds)."""
    precision, recall, _ = precision_recall_curve(actual, proba)
    return float(auc(recall, precision))


def compute_binary_metrics(
    y_true,
    y_proba,
    positive_label: str = POSITIVE_LABEL,
    threshold: float = 0.5,
) -> EvaluationReport:
    """Evaluate probabilities against actual labels.

    Rows whose probability is NaN (undefined features) are excluded and
    counted in ``n_excluded``.

    Args:
        y_true: Actual labels.
        y_proba: Positive-class probabilities in [0, 1].
        positive_label: Label of the positive class in ``y_true``.
        threshold: Probabilities at or above it are predicted positive.

    Returns:
        EvaluationReport. Precision is NaN with no positive predictions,
        recall NaN with no actual positives, F1 NaN when either is NaN or
        both are zero, ROC-AUC and PR-AUC NaN when only one class is present.
    """
    labels = np.asarray(pd.Series(y_true).astype(object))
    proba = np.asarray(y_proba, dtype=float)
    if labels.shape != proba.shape:
        raise ValueError(f"Shape mismatch: {labels.shape} labels vs {proba.shape} probabilities")

    scored = ~np.isnan(proba)
    n_excluded = int((~scored).sum())
    if n_excluded:
        log.warning(f"Excluding {n_excluded} rows with undefined probabilities")
    actual = labels[scored] == positive_label
    proba = proba[scored]
    predicted = proba >= threshold

    tp, fp, fn, tn = confusion_counts(actual, predicted)
    n = tp + fp + fn + tn
    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)
    if np.isnan(precision) or np.isnan(recall) or precision + recall == 0:
        f1 = float("nan")
    else:
        f1 = 2 * precision * recall / (precision + recall)

    if actual.all() or not actual.any():
        log.warning("Only one class among scored rows; ROC-AUC and PR-AUC are undefined")
        roc_auc = pr_auc = float("nan")
    else:
        roc_auc = float(roc_auc_score(actual, proba))
        pr_auc = pr_auc_score(actual, proba)

    report = EvaluationReport(
        accuracy=_ratio(tp + tn, n),
        precision=precision,
        recall=recall,
        f1=f1,
        roc_auc=roc_auc,
        pr_auc=pr_auc,
        tp=tp,
        fp=fp,
        fn=fn,
        tn=tn,
        threshold=threshold,
        positive_label=positive_label,
        n_scored=n,
        n_excluded=n_excluded,
    )
    log.info(f"Test metrics: {report.metrics}")
    return report

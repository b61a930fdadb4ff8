"""
Logistic regression on the Feature Table.
Categorical columns are expanded to indicators against a reference level,
the design matrix is checked for full rank and the fit for convergence.
"""
import warnings
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression

from incident_pipeline.models.base_model import BaseModel
from incident_pipeline.utils.exceptions import NumericalError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

INTERCEPT = "(Intercept)"


class LogitModel(BaseModel):
    """Binary logit fitted by maximum likelihood with sklearn's lbfgs solver.

    ``C=None`` fits the unpenalized model; a float applies an L2 penalty of
    strength ``1 / C``. The reference level of each categorical column is its
    first category observed in training; numeric columns enter standardized
    with training mean and standard deviation.

    Example:
        >>> model = LogitModel(feature_columns=["boro", "vic_age_group"])
        >>> model.fit(train, target_column="statistical_murder_flag")
        >>> proba = model.predict_proba(test)
    """

    def __init__(
        self,
        feature_columns: list[str],
        C: Optional[float] = None,
        max_iter: int = 1000,
        tol: float = 1e-4,
        **kwargs,
    ) -> None:
        super().__init__(
            name="logit",
            feature_columns=feature_columns,
            **kwargs,
        )
        self.params = {"C": C, "max_iter": max_iter, "tol": tol}
        self._levels: dict[str, list] = {}
        self._sources: dict[str, str] = {}
        self._scaling: dict[str, tuple[float, float]] = {}
        self._design_columns: list[str] = []

    # ── Fitting ───────────────────────────────────────────────────────────────

    def _fit(self, X: pd.DataFrame, y: pd.Series) -> None:
        design, valid = self._design_matrix(X, fit=True)
        if not valid.all():
            log.warning(f"Skipping {int((~valid).sum())} training rows with undefined features")
            design, y = design[valid], y[valid]

        self._check_rank(design)

        C = self.params["C"]
        model = LogisticRegression(
            C=np.inf if C is None else C,
            solver="lbfgs",
            max_iter=self.params["max_iter"],
            tol=self.params["tol"],
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            model.fit(design.to_numpy(dtype=float), y.to_numpy())

        if any(issubclass(w.category, ConvergenceWarning) for w in caught):
            raise NumericalError(
                f"Logistic regression did not converge within {self.params['max_iter']} iterations"
            )
        if not (np.isfinite(model.coef_).all() and np.isfinite(model.intercept_).all()):
            raise NumericalError("Logistic regression produced non-finite coefficients")

        self._model = model
        self._design_columns = list(design.columns)
        log.info(f"Logit fitted | parameters={len(self._design_columns) + 1} | n_iter={int(model.n_iter_[0])}")

    def _check_rank(self, design: pd.DataFrame) -> None:
        names = [INTERCEPT] + list(design.columns)
        matrix = np.column_stack([np.ones(len(design)), design.to_numpy(dtype=float)])
        rank = np.linalg.matrix_rank(matrix)
        if rank == matrix.shape[1]:
            return

        culprit, current = names[-1], 0
        for j in range(matrix.shape[1]):
            r = np.linalg.matrix_rank(matrix[:, : j + 1])
            if r == current:
                culprit = names[j]
                break
            current = r
        source = self._sources.get(culprit, culprit)
        raise NumericalError(
            f"Design matrix is rank-deficient (rank {rank} < {matrix.shape[1]} parameters); "
            f"'{culprit}' is collinear with earlier columns",
            column=source,
        )

    # ── Scoring ───────────────────────────────────────────────────────────────

    def _predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        design, valid = self._design_matrix(X, fit=False)
        proba = np.full(len(X), np.nan)
        if valid.any():
            rows = design[valid].to_numpy(dtype=float)
            proba[valid] = self._model.predict_proba(rows)[:, 1]
        return proba

    # ── Encoding ──────────────────────────────────────────────────────────────

    def _design_matrix(self, X: pd.DataFrame, fit: bool) -> tuple[pd.DataFrame, np.ndarray]:
        """Numeric design matrix plus a mask of rows whose features are all defined."""
        if fit:
            self._levels, self._sources, self._scaling = {}, {}, {}
        valid = np.ones(len(X), dtype=bool)
        columns: dict[str, np.ndarray] = {}

        for col in self.feature_columns:
            series = X[col]
            if isinstance(series.dtype, pd.CategoricalDtype):
                if fit:
                    observed = set(series.dropna().unique())
                    self._levels[col] = [lvl for lvl in series.cat.categories if lvl in observed]
                levels = self._levels[col]
                values = series.astype(object).to_numpy()
                valid &= series.notnull().to_numpy() & pd.Series(values).isin(levels).to_numpy()
                for level in levels[1:]:
                    name = f"{col}[{level}]"
                    self._sources.setdefault(name, col)
                    columns[name] = (values == level).astype(float)
            else:
                numeric = pd.to_numeric(series, errors="coerce").astype(float)
                valid &= numeric.notnull().to_numpy()
                if fit:
                    std = numeric.std()
                    self._scaling[col] = (numeric.mean(), std if std > 0 else 1.0)
                mean, std = self._scaling[col]
                self._sources.setdefault(col, col)
                columns[col] = ((numeric - mean) / std).to_numpy()

        design = pd.DataFrame(columns, index=X.index)
        if not fit:
            design = design.reindex(columns=self._design_columns, fill_value=0.0)
        return design, valid

    # ── Introspection ─────────────────────────────────────────────────────────

    @property
    def coefficients(self) -> pd.Series:
        """Fitted coefficients, intercept first (a copy)."""
        self._check_fitted()
        values = np.concatenate([self._model.intercept_, self._model.coef_[0]])
        return pd.Series(values, index=[INTERCEPT] + self._design_columns, name="coef")

    @property
    def reference_levels(self) -> dict[str, object]:
        """Reference (baseline) level of each categorical feature."""
        return {col: levels[0] for col, levels in self._levels.items() if levels}

    def coefficient_table(self) -> pd.DataFrame:
        """Coefficients with their odds ratios."""
        coef = self.coefficients
        return pd.DataFrame({"coef": coef, "odds_ratio": np.exp(coef)})

    def get_feature_importance(self) -> Optional[pd.Series]:
        self._check_fitted()
        return self.coefficients.drop(INTERCEPT).abs().sort_values(ascending=False)

"""
Custom exception hierarchy for the incident pipeline.
All domain-specific exceptions inherit from IncidentPipelineError.
"""


class IncidentPipelineError(Exception):
    """Base exception for all incident pipeline errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ── Data Exceptions ────────────────────────────────────────────────────────────
class DataError(IncidentPipelineError):
    """Base exception for data-related errors."""


class FetchError(DataError):
    """Raised when the source table cannot be fetched or parsed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(
            f"Failed to fetch '{source}': {reason}",
            {"source": source},
        )


class SchemaError(DataError):
    """Raised when the source table does not have the expected columns or values.

    Attributes:
        missing: Columns that were expected but not found.
    """

    def __init__(self, message: str, missing: list | None = None) -> None:
        self.missing = missing or []
        super().__init__(message, {"missing": self.missing} if self.missing else None)


# ── Feature Exceptions ─────────────────────────────────────────────────────────
class FeatureError(IncidentPipelineError):
    """Base exception for feature preparation errors."""


class ImputationPolicyError(FeatureError):
    """Raised when an imputation policy references columns not in the data."""

    def __init__(self, columns: list[str], available: list[str]) -> None:
        super().__init__(
            f"Imputation policy references unknown columns: {columns}",
            {"columns": columns, "available": available[:10]},
        )


class ParseError(FeatureError):
    """Raised when date or time strings cannot be parsed."""

    def __init__(self, column: str, bad_values: list) -> None:
        self.bad_values = bad_values
        super().__init__(
            f"Could not parse {len(bad_values)} value(s) in '{column}'",
            {"column": column, "examples": bad_values[:5]},
        )


# ── Model Exceptions ───────────────────────────────────────────────────────────
class ModelError(IncidentPipelineError):
    """Base exception for model-related errors."""


class ModelNotFittedError(ModelError):
    """Raised when attempting to predict with an unfitted model."""

    def __init__(self, model_name: str) -> None:
        super().__init__(
            f"Model '{model_name}' has not been fitted yet. Call .fit() first.",
            {"model_name": model_name},
        )


class NumericalError(ModelError):
    """Raised when the model fit is rank-deficient or does not converge.

    Attributes:
        column: Feature (or indicator) responsible, when it can be identified.
    """

    def __init__(self, message: str, column: str | None = None) -> None:
        self.column = column
        super().__init__(message, {"column": column} if column else None)


# ── Configuration Exceptions ───────────────────────────────────────────────────
class ConfigurationError(IncidentPipelineError):
    """Raised when configuration is invalid or inconsistent with the data."""

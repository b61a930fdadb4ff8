"""
Feature Table construction.
Projects the cleaned dataset onto the declared column roles and encodes
each column with the pandas dtype its role calls for.
"""
import pandas as pd

from incident_pipeline.features.roles import FeatureRoles
from incident_pipeline.utils.exceptions import SchemaError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

POSITIVE_LABEL = "Yes"
NEGATIVE_LABEL = "No"

TRUE_LITERALS = {"true", "t", "yes", "y", "1", "1.0"}
FALSE_LITERALS = {"false", "f", "no", "n", "0", "0.0"}


def encode_boolean(
    series: pd.Series,
    positive_label: str = POSITIVE_LABEL,
    negative_label: str = NEGATIVE_LABEL,
) -> pd.Series:
    """Map boolean-like values to a two-level categorical.

    Raises:
        SchemaError: If a non-null value is not recognisably true or false.
    """
    def _map(value):
        if pd.isna(value):
            return None
        text = str(value).strip().lower()
        if text in TRUE_LITERALS:
            return positive_label
        if text in FALSE_LITERALS:
            return negative_label
        return value

    mapped = series.map(_map)
    invalid = mapped.notnull() & ~mapped.isin([positive_label, negative_label])
    if invalid.any():
        raise SchemaError(
            f"Column '{series.name}' has non-boolean values: "
            f"{sorted(map(str, series[invalid].unique()))[:5]}"
        )
    dtype = pd.CategoricalDtype([negative_label, positive_label], ordered=False)
    return mapped.astype(dtype)


class FeatureEncoder:
    """Builds the Feature Table from a cleaned dataset.

    Nominal and numeric-as-categorical columns become unordered categoricals,
    ordinal columns ordered categoricals with the declared level order,
    boolean columns and the target two-level ``No``/``Yes`` categoricals,
    numeric columns floats and date columns datetimes.

    Example:
        >>> encoder = FeatureEncoder(roles)
        >>> table = encoder.build(clean_df)
    """

    def __init__(
        self,
        roles: FeatureRoles,
        positive_label: str = POSITIVE_LABEL,
        negative_label: str = NEGATIVE_LABEL,
    ) -> None:
        self.roles = roles
        self.positive_label = positive_label
        self.negative_label = negative_label

    def build(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return the encoded Feature Table.

        Raises:
            ConfigurationError: If a declared column is absent from ``df``.
            SchemaError: If a boolean column or the target holds non-boolean values.
        """
        roles = self.roles
        roles.check_columns(df)

        table = pd.DataFrame(index=df.index)
        for col in roles.nominal + roles.numeric_as_categorical:
            table[col] = self._unordered(df[col])
        for col in roles.ordinal:
            table[col] = self._ordered(df[col], roles.ordinal_levels[col])
        for col in roles.numeric:
            table[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
        for col in roles.boolean + [roles.target]:
            table[col] = encode_boolean(df[col], self.positive_label, self.negative_label)
        for col in roles.date:
            table[col] = pd.to_datetime(df[col])

        log.info(
            f"Feature Table built | rows={len(table)} | features={len(roles.model_columns)} "
            f"| positive share={(table[roles.target] == self.positive_label).mean():.3f}"
        )
        return table

    @staticmethod
    def _unordered(series: pd.Series) -> pd.Series:
        return series.astype("category")

    @staticmethod
    def _ordered(series: pd.Series, levels: list) -> pd.Series:
        unexpected = set(series.dropna().unique()) - set(levels)
        if unexpected:
            log.warning(
                f"'{series.name}': values {sorted(map(str, unexpected))} not in the level "
                "order become undefined"
            )
        values = series.astype(object)
        return values.where(values.isin(levels)).astype(pd.CategoricalDtype(levels, ordered=True))

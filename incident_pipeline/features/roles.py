"""
Typed column-role declarations.
Every modelled column is assigned exactly one role from a closed set;
the declaration is validated before any modelling work begins.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

import pandas as pd

from incident_pipeline.utils.exceptions import ConfigurationError


class ColumnRole(str, Enum):
    NOMINAL = "nominal"
    ORDINAL = "ordinal"
    NUMERIC = "numeric"
    NUMERIC_AS_CATEGORICAL = "numeric_as_categorical"
    BOOLEAN = "boolean"
    DATE = "date"
    TARGET = "target"


CATEGORICAL_ROLES = (
    ColumnRole.NOMINAL,
    ColumnRole.ORDINAL,
    ColumnRole.NUMERIC_AS_CATEGORICAL,
    ColumnRole.BOOLEAN,
)


@dataclass
class FeatureRoles:
    """Column-role declaration for the Feature Table.

    Attributes:
        target: Boolean outcome column.
        nominal: Unordered categorical columns.
        ordinal: Ordered categorical columns; each needs an entry in ``ordinal_levels``.
        numeric: Continuous columns.
        numeric_as_categorical: Numeric codes treated as unordered categories.
        boolean: Boolean feature columns.
        date: Date/timestamp columns carried in the table but not modelled.
        ordinal_levels: Level order for each ordinal column, lowest first.
    """
    target: str
    nominal: list[str] = field(default_factory=list)
    ordinal: list[str] = field(default_factory=list)
    numeric: list[str] = field(default_factory=list)
    numeric_as_categorical: list[str] = field(default_factory=list)
    boolean: list[str] = field(default_factory=list)
    date: list[str] = field(default_factory=list)
    ordinal_levels: dict[str, list] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def role_map(self) -> dict[str, ColumnRole]:
        """Column name -> role, target included."""
        mapping = {self.target: ColumnRole.TARGET}
        for role, cols in self._declared():
            for col in cols:
                mapping[col] = role
        return mapping

    @property
    def columns(self) -> list[str]:
        """All declared columns in declaration order, target last."""
        return [c for _, cols in self._declared() for c in cols] + [self.target]

    @property
    def model_columns(self) -> list[str]:
        """Feature columns that enter the design matrix (dates excluded)."""
        return [
            c for role, cols in self._declared()
            if role is not ColumnRole.DATE
            for c in cols
        ]

    def columns_with_role(self, *roles: ColumnRole) -> list[str]:
        return [c for role, cols in self._declared() if role in roles for c in cols]

    def validate(self) -> None:
        """Check the declaration is non-overlapping and complete.

        Raises:
            ConfigurationError: On duplicates, a missing target, no features,
                or an ordinal column without a level order.
        """
        if not self.target:
            raise ConfigurationError("A target column must be declared")

        seen: dict[str, str] = {self.target: ColumnRole.TARGET.value}
        duplicates: dict[str, list[str]] = {}
        for role, cols in self._declared():
            for col in cols:
                if col in seen:
                    duplicates.setdefault(col, [seen[col]]).append(role.value)
                else:
                    seen[col] = role.value
        if duplicates:
            raise ConfigurationError(
                f"Columns declared in more than one role: {sorted(duplicates)}",
                {"duplicates": duplicates},
            )

        if not self.model_columns:
            raise ConfigurationError("At least one non-date feature column must be declared")

        unordered = [c for c in self.ordinal if not self.ordinal_levels.get(c)]
        if unordered:
            raise ConfigurationError(
                f"Ordinal columns without a level order: {unordered}",
                {"columns": unordered},
            )
        stray = sorted(set(self.ordinal_levels) - set(self.ordinal))
        if stray:
            raise ConfigurationError(
                f"Level orders given for columns not declared ordinal: {stray}"
            )

    def check_columns(self, available: Iterable[str]) -> None:
        """Raise ConfigurationError if any declared column is absent from the data."""
        available = set(available.columns if isinstance(available, pd.DataFrame) else available)
        missing = [c for c in self.columns if c not in available]
        if missing:
            raise ConfigurationError(
                f"Declared columns not present in the data: {missing}",
                {"missing": missing},
            )

    def _declared(self) -> list[tuple[ColumnRole, list[str]]]:
        return [
            (ColumnRole.NOMINAL, self.nominal),
            (ColumnRole.ORDINAL, self.ordinal),
            (ColumnRole.NUMERIC, self.numeric),
            (ColumnRole.NUMERIC_AS_CATEGORICAL, self.numeric_as_categorical),
            (ColumnRole.BOOLEAN, self.boolean),
            (ColumnRole.DATE, self.date),
        ]

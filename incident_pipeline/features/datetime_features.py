"""
Calendar feature derivation.
Combines a date column and a time-of-day column into a timestamp and
extracts hour, ISO weekday and month.
"""
from typing import Optional

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin

from incident_pipeline.utils.exceptions import ParseError
from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)

DEFAULT_DATE_FORMAT = "%m/%d/%Y"
DEFAULT_TIME_FORMAT = "%H:%M:%S"


def _parse(values: pd.Series, fmt: Optional[str], column: str) -> pd.Series:
    parsed = pd.to_datetime(values, format=fmt, errors="coerce")
    bad = parsed.isnull()
    if bad.any():
        raise ParseError(column, values[bad].tolist())
    return parsed


def derive_calendar_fields(
    dates: pd.Series,
    times: Optional[pd.Series] = None,
    date_format: Optional[str] = DEFAULT_DATE_FORMAT,
    time_format: Optional[str] = DEFAULT_TIME_FORMAT,
) -> pd.DataFrame:
    """Derive timestamp, hour, ISO weekday and month from date/time strings.

    Missing times are not allowed; a null in either series is a parse failure.

    Args:
        dates: Date strings (or datetimes).
        times: Time-of-day strings. If None, midnight is assumed.
        date_format: strptime format of ``dates``; None lets pandas infer it.
        time_format: strptime format of ``times``.

    Returns:
        DataFrame indexed like ``dates`` with columns ``timestamp``,
        ``hour`` (0-23), ``weekday`` (Monday=1 .. Sunday=7), ``month`` (1-12).

    Raises:
        ParseError: If any date or time value cannot be parsed.
    """
    day = _parse(dates, date_format, dates.name or "date").dt.normalize()
    if times is None:
        offset = pd.Series(pd.Timedelta(0), index=dates.index)
    else:
        clock = _parse(times.astype(str).where(times.notnull()), time_format, times.name or "time")
        offset = clock - clock.dt.normalize()

    timestamp = day + offset.values
    return pd.DataFrame(
        {
            "timestamp": timestamp,
            "hour": timestamp.dt.hour.astype(int),
            "weekday": (timestamp.dt.dayofweek + 1).astype(int),
            "month": timestamp.dt.month.astype(int),
        },
        index=dates.index,
    )


class CalendarFeatureExtractor(BaseEstimator, TransformerMixin):
    """Adds ``{prefix}timestamp``, ``{prefix}hour``, ``{prefix}weekday`` and
    ``{prefix}month`` columns derived from a date and a time column.

    Example:
        >>> extractor = CalendarFeatureExtractor(date_col="occur_date", time_col="occur_time")
        >>> df = extractor.fit_transform(df)
    """

    def __init__(
        self,
        date_col: str = "occur_date",
        time_col: Optional[str] = "occur_time",
        date_format: Optional[str] = DEFAULT_DATE_FORMAT,
        time_format: Optional[str] = DEFAULT_TIME_FORMAT,
        prefix: str = "occur_",
    ) -> None:
        self.date_col = date_col
        self.time_col = time_col
        self.date_format = date_format
        self.time_format = time_format
        self.prefix = prefix

    def fit(self, X: pd.DataFrame, y=None) -> "CalendarFeatureExtractor":
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        fields = derive_calendar_fields(
            X[self.date_col],
            X[self.time_col] if self.time_col else None,
            date_format=self.date_format,
            time_format=self.time_format,
        )
        out = X.copy()
        for name in fields.columns:
            out[f"{self.prefix}{name}"] = fields[name]
        log.debug(f"Derived calendar fields {list(fields.columns)} from '{self.date_col}'")
        return out

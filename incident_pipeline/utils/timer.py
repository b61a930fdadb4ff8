"""
Stage timing utilities.
"""
import time
from typing import Any

from incident_pipeline.utils.logger import get_logger

log = get_logger(__name__)


class Timer:
    """Context manager measuring elapsed wall time of a pipeline stage.

    Example:
        >>> with Timer("impute"):
        ...     imputer.fit_transform(df)
    """

    def __init__(self, name: str = "operation", log_result: bool = True) -> None:
        self.name = name
        self.log_result = log_result
        self.elapsed: float = 0.0
        self._start: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed = time.perf_counter() - self._start
        if self.log_result:
            log.info(f"{self.name} took {format_duration(self.elapsed)}")


def format_duration(seconds: float) -> str:
    """Format a duration in seconds into a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:.0f}s"

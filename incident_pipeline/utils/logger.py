"""
Structured logging setup using loguru.
Provides the pipeline-wide logger with console output and an optional
rotating file sink for batch runs.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    serialize: bool = False,
    rotation: str = "20 MB",
    retention: str = "14 days",
    colorize: bool = True,
) -> None:
    """Configure the global loguru logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, logs only to console.
        serialize: If True, write JSON lines to the log file.
        rotation: When to rotate the log file.
        retention: How long to keep old log files.
        colorize: Whether to colorize console output.
    """
    logger.remove()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    logger.configure(extra={"name": "incident_pipeline"})
    logger.add(
        sys.stderr,
        format=log_format,
        level=log_level,
        colorize=colorize,
        backtrace=False,
        diagnose=False,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} | {message}",
            level=log_level,
            rotation=rotation,
            retention=retention,
            serialize=serialize,
            backtrace=True,
            diagnose=False,
        )

    logger.info(f"Logger initialized | level={log_level} | file={log_file}")


def get_logger(name: str):
    """Get a named logger instance with contextual binding.

    Args:
        name: Module name (typically __name__).

    Returns:
        Loguru logger bound to the given name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("Imputing missing values")
    """
    return logger.bind(name=name)

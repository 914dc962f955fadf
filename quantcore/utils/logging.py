"""Logging configuration for quantcore.

Every module logs through ``get_logger(__name__)``. The engine's periodic
jobs fire every second, so the scheduler library's own per-job chatter is
quieted separately from the application level.
"""

import logging
import sys
from typing import Any

# Third-party loggers that are noisy at INFO when jobs run every second
NOISY_LOGGERS = ("apscheduler",)


def setup_logging(
    level: str = "INFO",
    log_format: str | None = None,
    scheduler_level: str = "WARNING",
) -> None:
    """Configure logging for the application.

    Sets up the root logger with specified level and format.
    Logs are written to stdout for easy redirection and debugging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom format string. If None, uses default format.
        scheduler_level: Level applied to the job scheduler's own loggers

    Example:
        >>> from quantcore.utils.logging import setup_logging
        >>> setup_logging(level="DEBUG")
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=log_format,
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    noisy_level = getattr(logging, scheduler_level.upper(), logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: Any,
) -> None:
    """Log a message with key=value context appended.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **context: Additional context fields

    Example:
        >>> log_with_context(
        ...     logger, "info", "Order settled",
        ...     instrument="A005930", side="BUY", quantity=1333
        ... )
        # Logs: "Order settled | instrument=A005930 side=BUY quantity=1333"
    """
    log_func = getattr(logger, level.lower())

    if context:
        context_str = " ".join(f"{k}={v}" for k, v in context.items())
        message = f"{message} | {context_str}"

    log_func(message)

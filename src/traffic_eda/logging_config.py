"""
Logging Configuration for Traffic Analysis
==========================================

This module sets up structured logging for the analysis pipeline.

LOGGING VS PRINT:
-----------------
Every phase (extract, transform, analyze, load) reports what it did through
the "traffic_eda" logger instead of print(). That gives us:
- Log levels: INFO for progress, WARNING for suspicious data, ERROR for failures
- Timestamps: Automatic timestamps show when each phase ran
- Verbosity control: --verbose switches on DEBUG output without code changes

OUTPUT FORMAT:
--------------
    2024-01-01T12:00:00.000Z [INFO    ] Computed peak hours for 31 dates

Extra key/value fields can be attached with
`logger.info("msg", extra={"extra_data": {"rows": 10}})` and are rendered
as a trailing `[rows=10]` block.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "traffic_eda"

# =============================================================================
# CUSTOM FORMATTER
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """
    Formatter producing `timestamp [LEVEL] message [extra]` lines.

    - ISO 8601 timestamps in UTC with millisecond precision
    - Level padded to 8 characters so messages line up
    - Tracebacks appended when the record carries exception info
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record into a structured string.

        Args:
            record: LogRecord created by a log call

        Returns:
            Formatted log string
        """
        # The [:-3] trims microseconds down to milliseconds
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

        level = record.levelname.upper()
        message = record.getMessage()

        if record.exc_info:
            exc_text = self.formatException(record.exc_info)
            message = f"{message}\n{exc_text}"

        extra_fields = ""
        if hasattr(record, "extra_data"):
            extra_data: dict[str, Any] = record.extra_data  # type: ignore[attr-defined]
            extra_fields = " ".join(f"{k}={v}" for k, v in extra_data.items())
            if extra_fields:
                extra_fields = f" [{extra_fields}]"

        return f"{timestamp} [{level:8}] {message}{extra_fields}"


# =============================================================================
# LOGGING SETUP
# =============================================================================


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure the "traffic_eda" logger.

    NAMED LOGGERS:
    --------------
    We configure a named logger rather than the root logger so that output
    from pandas, google-cloud and other libraries is not reformatted or
    duplicated. Child loggers such as "traffic_eda.reports" inherit it.

    Calling this more than once is safe: existing handlers are cleared first.

    Args:
        verbose: If True, show DEBUG level logs. Otherwise only INFO and above.

    Returns:
        Configured Logger instance ready to use.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Avoid duplicate lines when setup_logging() runs twice (tests, CLI)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter())
    logger.addHandler(console_handler)

    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """
    Get the traffic_eda logger instance.

    Usage in other modules:
        from .logging_config import get_logger
        logger = get_logger()
        logger.info("Something happened")

    Returns:
        The "traffic_eda" logger instance
    """
    return logging.getLogger(LOGGER_NAME)

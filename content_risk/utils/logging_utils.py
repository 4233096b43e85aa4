"""Structured JSON logging utilities for Cloud Run.

Cloud Run splits logs by newline, creating separate log entries.
This module logs exceptions and pipeline diagnostics as single JSON entries.
"""

import json
import logging
import traceback
from typing import Any

_SEVERITY_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def truncate(text: str | None, max_chars: int = 500) -> str:
    """Cut text to max_chars, marking the cut."""
    if not text:
        return ""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}... [truncated {len(text) - max_chars} chars]"


def log_exception_json(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    severity: str = "ERROR",
    **extra_fields: Any
) -> None:
    """
    Log an exception as a single structured JSON entry for Cloud Run.

    Cloud Run will keep this as ONE log entry and Error Reporting will
    properly parse the stack trace.

    Args:
        logger: Logger instance to use
        message: Human-readable error message
        exc: The exception to log
        severity: Log severity (ERROR, WARNING, etc.)
        **extra_fields: Additional fields to include in jsonPayload

    Example:
        log_exception_json(
            logger,
            "Stage failed",
            exc,
            stage="policy_analysis",
            attempts=3,
        )
    """
    stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    log_entry = {
        "severity": severity,
        "message": f"{message}: {exc!s}",
        "stack_trace": stack_trace,
        "exception": {
            "type": type(exc).__name__,
            "message": str(exc),
        },
        **extra_fields
    }

    logger.log(_SEVERITY_LEVELS.get(severity, logging.ERROR), json.dumps(log_entry, default=str))


def log_json(logger: logging.Logger, message: str, severity: str = "INFO", **fields: Any) -> None:
    """Log a structured record (no exception) as one JSON line."""
    log_entry = {"severity": severity, "message": message, **fields}
    logger.log(_SEVERITY_LEVELS.get(severity, logging.INFO), json.dumps(log_entry, default=str))

"""
Logging configuration module for structured logging.

This module configures the package's logging system using structlog.
It provides structured logging with JSON formatting for production and
human-readable console output for development.

The logging configuration includes:
- Timestamp formatting
- Log level inclusion and filtering
- JSON/Console output based on settings
- Logger caching
"""

import logging
from typing import Optional

import structlog


def configure_logging(log_level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configures the package's logging system.

    Explicit arguments win over the values in `settings`, which lets tests and
    embedding hosts configure logging without touching the environment.

    Args:
        log_level: Minimum level name (defaults to settings.LOG_LEVEL).
        json_logs: Render JSON instead of console output (defaults to settings.LOG_JSON).
    """
    from formguard.core.config.settings import settings

    level_name = (log_level or settings.LOG_LEVEL).upper()
    render_json = settings.LOG_JSON if json_logs is None else json_logs

    processors = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer() if render_json else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level_name)),
        cache_logger_on_first_use=True,
    )


def mask_identifier(value: Optional[str], visible: int = 2) -> str:
    """Mask a user-supplied identifier before it reaches a log line.

    Only the first `visible` characters are kept so events stay correlatable
    without exposing full emails or usernames.
    """
    if not value:
        return "[empty]"
    if len(value) <= visible:
        return "*" * len(value)
    return f"{value[:visible]}***"


logger = structlog.get_logger()

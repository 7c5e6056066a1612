"""
Structured logging built on structlog.

Modules log an event name plus keyword context:

    logger = get_logger(__name__)
    logger.info("run_started", run_id=run_id, chat_id=chat_id)
"""

import logging
import sys
from typing import Any

import structlog

SENSITIVE_KEYS = ("api_key", "password", "secret", "authorization", "token")

# Token counts are metrics, not credentials
_SAFE_SUFFIXES = ("tokens",)

REDACTED = "***REDACTED***"


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if lowered.endswith(_SAFE_SUFFIXES):
        return False
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def filter_sensitive_data(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor that redacts credential-like values."""
    for key in list(event_dict.keys()):
        if _is_sensitive(key):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Install the structlog processor chain."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_logs:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            filter_sensitive_data,
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance."""
    return structlog.get_logger(name)


__all__ = ["configure_logging", "filter_sensitive_data", "get_logger"]

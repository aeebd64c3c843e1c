"""Logging configuration utilities."""

import logging
import sys
from typing import Optional

import structlog
from structlog.contextvars import bind_contextvars


SENSITIVE_KEYS = {
    "password",
    "secret",
    "token",
    "authorization",
    "private_key",
    "privatekey",
    "view_key",
    "viewkey",
}


def _redact_sensitive(_, __, event_dict: dict) -> dict:
    """Redact sensitive fields in the structured log."""
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "[REDACTED]"
    return event_dict


def _stderr_logger(*args) -> structlog.PrintLogger:
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure structured logging."""

    # Logs go to stderr so command results printed on stdout stay parseable
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper())),
        # Resolve sys.stderr per logger so redirected streams are honoured
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def bind_contract_context(app_name: Optional[str] = None, network: Optional[str] = None) -> None:
    """Bind correlation fields for contract logs using contextvars."""
    if app_name:
        bind_contextvars(appName=app_name)
    if network:
        bind_contextvars(network=network)

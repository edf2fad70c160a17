"""Structured logging setup."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

from .config_loader import get_logging_config


def add_service_context(logger: logging.Logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Copy the bound username onto every entry so chat events can be grouped per user."""
    username = structlog.contextvars.get_contextvars().get("username")
    if username and "username" not in event_dict:
        event_dict["username"] = username
    return event_dict


def setup_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    service_name: str = "contextflow",
) -> None:
    """Configure stdlib logging + structlog.

    Explicit arguments win over the `logging` config section.
    """
    cfg = get_logging_config()
    level_name = log_level or cfg.get("level") or "INFO"
    fmt = log_format or cfg.get("format") or "console"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, str(level_name).upper(), logging.INFO),
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )

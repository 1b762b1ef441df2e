"""Structured JSON logging with compose project support."""
from __future__ import annotations

import contextlib
import contextvars
import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterator

# Context variable for the compose project currently being driven
compose_project_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "compose_project", default=""
)


class JSONFormatter(logging.Formatter):
    """Custom JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "project": compose_project_var.get(""),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry)


def setup_logging(name: str = "docker_composer", level: str | None = None) -> logging.Logger:
    """Configure structured JSON logging.

    Args:
        name: Logger to configure; the package logger by default.
        level: Log level string (e.g. "INFO", "DEBUG").  Defaults to the
            ``LOG_LEVEL`` setting.

    Returns:
        Configured logger instance.
    """
    if level is None:
        from docker_composer.config import ComposerSettings

        level = ComposerSettings().log_level

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    return logger


@contextlib.contextmanager
def compose_project_context(project: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *project*."""
    token = compose_project_var.set(project)
    try:
        yield
    finally:
        compose_project_var.reset(token)

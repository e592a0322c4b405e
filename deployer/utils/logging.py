"""Logging configuration using structlog."""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from deployer.config import settings

# Keys whose values must never reach a log sink
REDACTED_KEYS = frozenset({"password", "authorization_token", "secret", "token"})

# botocore logs every request at DEBUG
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def redact_secrets(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask credential values passed as log context."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def _handlers() -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_directory:
        log_dir = Path(settings.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / settings.log_file_name, encoding="utf-8")
        )
    return handlers


def configure_logging() -> None:
    """Configure structured logging for the application.

    Logs go to stdout and, when ``LOG_DIRECTORY`` is set, to a file in that
    directory. ``LOG_FORMAT=json`` switches to one JSON object per line.
    """
    level = getattr(logging, settings.log_level)
    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=_handlers(),
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)

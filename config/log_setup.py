"""Structlog-based logging configuration.

Log records from the capture engine are rendered by structlog and routed
through the standard library so that both a console handler and a rotating
file handler receive them.  The file handler keeps a bounded amount of
history (``log_max_bytes`` x ``log_backups``).
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Callable
from typing import Any

import structlog

from config.settings import CaptureSettings, get_settings

SERVICE_NAME = "mic-capture"


def _add_static_context(extra_fields: dict[str, str]) -> Callable:
    """Processor to add static context fields to all log entries."""

    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.update(extra_fields)
        return event_dict

    return processor


def _level(settings: CaptureSettings) -> int:
    return getattr(logging, settings.log_level.upper(), logging.INFO)


def _configure_processors(settings: CaptureSettings) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        _add_static_context({"service": SERVICE_NAME}),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
    ]
    if settings.json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _configure_handlers(settings: CaptureSettings) -> None:
    root_logger = logging.getLogger()
    log_level = _level(settings)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    log_file = settings.log_file
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backups,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)


def configure_logging(settings: CaptureSettings | None = None) -> None:
    """Configure structlog and the stdlib handlers it writes through.

    Args:
        settings: Settings to read level, renderer and file rotation from.
            Defaults to :func:`config.settings.get_settings`.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=_configure_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(_level(settings)),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configure_handlers(settings)

    structlog.get_logger(__name__).info(
        "Structured logging configured",
        log_level=settings.log_level,
        json_output=settings.json_logs,
        log_file=str(settings.log_file) if settings.log_file else None,
    )


__all__ = ["configure_logging"]

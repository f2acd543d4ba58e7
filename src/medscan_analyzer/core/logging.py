"""
Structured logging configuration using structlog.

Console output goes through Rich in development, JSON lines elsewhere.
Every event passes through a redaction step that masks the configured
provider keys, so a key can't reach a log sink even when an SDK error
message quotes it.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .config import Settings, settings
from .exceptions import scrub_secrets

console = Console()

# Third-party loggers and the level they are held at.
LIBRARY_LOG_LEVELS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "openai": logging.WARNING,
    "google_genai": logging.WARNING,
    "uvicorn": logging.INFO,
    "fastapi": logging.INFO,
}


class SecretRedactor:
    """structlog processor replacing known secret values with ``***``."""

    def __init__(self, secrets: Iterable[str]) -> None:
        self.secrets = [s for s in secrets if s]

    def __call__(self, _: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        if not self.secrets:
            return event_dict
        for key, value in event_dict.items():
            if isinstance(value, str):
                event_dict[key] = scrub_secrets(value, self.secrets)
        return event_dict


def _processors(app_settings: Settings) -> list[Any]:
    redactor = SecretRedactor(app_settings.secret_values())
    common: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if app_settings.log_format == "json":
        return [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *common,
            redactor,
            structlog.processors.JSONRenderer(),
        ]
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        *common,
        redactor,
        structlog.dev.ConsoleRenderer(),
    ]


def _stream_handler(app_settings: Settings, formatter: logging.Formatter) -> logging.Handler:
    if app_settings.log_format == "console" and not app_settings.is_production:
        return RichHandler(
            console=console,
            rich_tracebacks=True,
            # Locals would include request payloads.
            tracebacks_show_locals=False,
            show_time=True,
            show_path=True,
        )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def configure_logging(app_settings: Settings | None = None) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        app_settings: Settings to configure from (process settings if None)
    """
    app_settings = app_settings or settings

    structlog.configure(
        processors=_processors(app_settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = logging.Formatter(fmt="%(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(_stream_handler(app_settings, formatter))
    root_logger.setLevel(getattr(logging, app_settings.log_level))

    for name, level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    if app_settings.log_file:
        file_handler = logging.FileHandler(app_settings.log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("file_encoded", file_name="scan.png", size_bytes=2048)
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a ``logger`` property named after the class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger


configure_logging()

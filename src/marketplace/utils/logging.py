"""Logging configuration for the marketplace domain.

Standard library handlers carry the output; structlog shapes it. Request
handlers bind ``request_id``/``actor`` through :func:`add_context` so every
line written while serving a call carries them.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

DEFAULT_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# Environments that ship machine-readable lines to the log collector
JSON_ENVIRONMENTS = frozenset({"production", "staging"})

QUIET_LOGGERS = ("urllib3", "asyncio", "protean", "sqlalchemy.engine")

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def _level() -> str:
    return os.getenv("LOG_LEVEL", DEFAULT_LEVELS.get(_environment(), "INFO"))


def _rotating(path: Path, level: int | str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def _tag_service(logger: Any, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", "marketplace")
    return event_dict


def _route_handlers(log_dir: str | None) -> None:
    """Send records to stdout, ``marketplace.log`` and an errors-only file."""
    level = _level()
    directory = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    directory.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [
        console,
        _rotating(directory / "marketplace.log", level),
        _rotating(directory / "marketplace_error.log", logging.ERROR),
    ]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _renderer():
    if _environment() in JSON_ENVIRONMENTS:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=3),
    )


def _shape_events() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _tag_service,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            ),
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_dir: str | None = None) -> None:
    """Wire handlers and the structlog pipeline; safe to call more than once."""
    _route_handlers(log_dir)
    _shape_events()


def add_context(**kwargs: Any) -> None:
    """Bind key-values onto every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()

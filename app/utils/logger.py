"""
Structured logging for the import pipeline, replay sessions and the CLI

Records are rendered as one JSON object per line (or plain text) and carry
the correlation id of the unit of work that emitted them: an import run or
an HTTP request. The id lives in a context variable, so concurrent requests
served by one event loop keep their own ids.
"""

import contextvars
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Libraries that log every statement or request at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "correlation_id": getattr(record, "correlation_id", None),
        }

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data["extra"] = extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class CorrelationIdFilter(logging.Filter):
    """
    Stamp records with the active correlation id.

    Records logged outside any unit of work get the id this filter was
    created with (one per process).
    """

    def __init__(self, default_id: Optional[str] = None):
        super().__init__()
        self.default_id = default_id or str(uuid.uuid4())

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = _correlation_id.get() or self.default_id
        return True


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    enable_console: bool = True,
) -> None:
    """
    Configure the root logger.

    Console output goes to stderr so ``racing-data replay`` keeps stdout for
    the event stream.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'json' or 'text'
        log_file: Optional path of a rotating log file
        enable_console: Whether to log to stderr
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if log_format == "json" else logging.Formatter(
        TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"
    )
    correlation_filter = CorrelationIdFilter()

    handlers = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)

    # SQL echo and access logs only when debugging
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Structured fields are passed per call:
    ``logger.info("Loaded rows", extra={"extra_data": {"source": "lap_times"}})``
    """
    return logging.getLogger(name)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> contextvars.Token:
    """
    Set the correlation id for the current context.

    Args:
        correlation_id: Import run id or request id

    Returns:
        Token to restore the previous id with ``reset_correlation_id``
    """
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: contextvars.Token) -> None:
    _correlation_id.reset(token)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Run a block under a correlation id (a fresh one if not given)."""
    correlation_id = correlation_id or str(uuid.uuid4())
    token = set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        reset_correlation_id(token)

"""Structured logging for the agent process.

structlog renders events; stdlib handlers (a rotating file and a
colored console) deliver them. Every event logged while an invocation runs
carries that invocation's id.
"""

import functools
import logging
import logging.handlers
import sys
import time
import uuid
from pathlib import Path
from typing import Optional

import structlog
import colorlog
from structlog.typing import Processor

from ..config.settings import get_settings


CONSOLE_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# Handlers this module attached to the root logger
_installed_handlers: list[logging.Handler] = []


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root handlers.

    Arguments override the ``LOG_*`` settings; ``log_file=""`` disables the
    file handler. Safe to call more than once.
    """
    config = get_settings().logging
    level = (log_level or config.level).upper()
    renderer = log_format or config.format
    file_path = config.file_path if log_file is None else log_file

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if renderer == "json" else structlog.dev.ConsoleRenderer(colors=True),
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(level)
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    if file_path:
        _attach(_file_handler(file_path), level)
    _attach(_console_handler(), level)


def _file_handler(file_path: str) -> logging.Handler:
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=3)
    handler.setFormatter(logging.Formatter(
        '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
    ))
    return handler


def _console_handler() -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        log_colors=CONSOLE_COLORS
    ))
    return handler


def _attach(handler: logging.Handler, level: str):
    handler.setLevel(level)
    logging.getLogger().addHandler(handler)
    _installed_handlers.append(handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_invocation(invocation_id: Optional[str] = None) -> str:
    """Tag every following log event with an invocation id; returns the id."""
    invocation_id = invocation_id or uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(invocation_id=invocation_id)
    return invocation_id


def unbind_invocation():
    structlog.contextvars.unbind_contextvars("invocation_id")


def log_execution_time(func):
    """Log the wall time of a synchronous call at debug level."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            get_logger(func.__module__).debug(
                "Call timed",
                operation=func.__qualname__,
                elapsed=f"{time.perf_counter() - started:.4f}s"
            )

    return wrapper


def log_async_execution_time(func):
    """Log the wall time of a coroutine; failures are logged with the error."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        started = time.perf_counter()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Coroutine failed",
                operation=func.__qualname__,
                elapsed=f"{time.perf_counter() - started:.4f}s",
                error=str(e)
            )
            raise

        logger.info("Coroutine finished", operation=func.__qualname__, elapsed=f"{time.perf_counter() - started:.4f}s")
        return result

    return wrapper

"""Structured logging for modkeeper.

Every event carries the emitting thread so storage-worker output can be told
apart from the simulation thread, and :func:`player_context` tags the events
raised while one player's state is being handled.

Example:
    >>> from modkeeper.core.logging import get_logger, player_context
    >>> logger = get_logger(__name__)
    >>> with player_context(uuid):
    ...     logger.info("Saved player", modifiers=3)
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger


STDLIB_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"

# Chatty stdlib loggers that only matter when something is wrong
QUIET_LOGGERS = ("concurrent.futures", "tenacity")


def add_thread_name(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def _level_number(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def _renderer(json_format: bool) -> list[Processor]:
    if json_format:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def configure_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render JSON lines instead of console output.
        log_file: Optional file that also receives stdlib log records.
    """
    threshold = _level_number(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_thread_name,
            structlog.processors.StackInfoRenderer(),
            *_renderer(json_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(format=STDLIB_FORMAT, level=threshold, handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(threshold, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def player_context(player_uuid: UUID | str) -> Iterator[None]:
    """Tag every event logged inside the block with ``player_uuid``.

    The binding lives in a context variable, so it is visible only to the
    current thread and is restored on exit.
    """
    with structlog.contextvars.bound_contextvars(player_uuid=str(player_uuid)):
        yield


__all__ = [
    "configure_logging",
    "get_logger",
    "player_context",
]

"""Structured logging for storyloom.

Events are built by structlog and handed to stdlib logging, where
``structlog.stdlib.ProcessorFormatter`` renders them per handler:

- console: rich on stderr, level chosen by verbosity
- file (optional): every event as one JSON object per line

Use cases run inside ``story_context`` so each event they log carries the
``story_id`` and ``user_id`` it concerns. The binding lives in structlog's
contextvars, so concurrent loads and saves running as separate tasks keep
their own tags.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from structlog.typing import Processor

    from storyloom.persistence.gateway import StoryScope

_VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}

_configured = False
_file_handler: logging.FileHandler | None = None

# Applied to structlog events and to records from plain stdlib loggers alike.
_SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _console_handler(level: int) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        level=level,
        show_time=False,
        show_level=False,
        show_path=level <= logging.DEBUG,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    return handler


def _jsonl_handler(path: Path) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    return handler


def configure_logging(verbosity: int = 0, log_file: Path | None = None) -> None:
    """Configure logging for storyloom. Safe to call again to reconfigure.

    Args:
        verbosity: Console level. 0=WARNING, 1=INFO, 2+=DEBUG.
        log_file: When given, every event down to DEBUG is appended there
            as JSON lines. Parent directories are created.
    """
    global _configured, _file_handler

    close_file_logging()

    console_level = _VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)
    handlers: list[logging.Handler] = [_console_handler(console_level)]
    if log_file is not None:
        _file_handler = _jsonl_handler(log_file)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if log_file is not None else console_level
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    # asyncio logs selector chatter at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        # Module-level loggers must pick up a later reconfiguration.
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring console-only logging on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def story_context(scope: StoryScope | None) -> Iterator[None]:
    """Tag events logged inside the block with the story they concern.

    A ``None`` scope tags events with ``signed_in=False`` instead.
    """
    fields: dict[str, Any]
    if scope is None:
        fields = {"signed_in": False}
    else:
        fields = {"story_id": scope.story_id, "user_id": scope.user_id}
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def close_file_logging() -> None:
    """Detach and close the JSONL file handler, if any."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

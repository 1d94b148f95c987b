"""Structured logging for hairlab.

Every event goes through structlog and lands on the stdlib root logger, where
two handlers render it:

- the console (rich, on stderr), filtered by the ``-v`` count and rendered
  as ``event key=value ...`` by structlog's ``ConsoleRenderer``;
- an optional JSONL file (``--log-file``) that receives every event at
  DEBUG, one JSON object per line with the event name under ``message``.

Records from third-party stdlib loggers (uvicorn, httpx, the SDKs) pass
through the same shared processors, so both outputs look alike regardless of
who logged.
"""

from __future__ import annotations

import logging
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import EventDict, Processor, WrappedLogger

_configured = False
_file_handler: logging.FileHandler | None = None

_CONSOLE_LEVELS = {0: logging.WARNING, 1: logging.INFO}

# SDK transports log every request at DEBUG
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "google_genai", "asyncio")

_SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _drop_handler_columns(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Remove fields the rich handler already prints in its own columns."""
    for key in ("timestamp", "level", "logger"):
        event_dict.pop(key, None)
    return event_dict


def console_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering ``event key=value`` lines for the rich handler."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _drop_handler_columns,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )


def jsonl_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering one JSON object per record."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(default=str),
        ],
    )


class JSONLFileHandler(logging.FileHandler):
    """Append-mode file handler that writes JSON lines at DEBUG."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(path), mode="a", encoding="utf-8")
        self.setLevel(logging.DEBUG)
        self.setFormatter(jsonl_formatter())


def configure_logging(verbosity: int = 0, log_file: Path | None = None) -> None:
    """Configure structlog and the root logger.

    Safe to call repeatedly; a previous file handler is closed first.

    Args:
        verbosity: Console level. 0=WARNING (default), 1=INFO, 2+=DEBUG.
        log_file: Optional JSONL file receiving every event.
    """
    global _configured, _file_handler

    close_file_logging()

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=_CONSOLE_LEVELS.get(verbosity, logging.DEBUG),
    )
    console_handler.setFormatter(console_formatter())
    handlers: list[logging.Handler] = [console_handler]

    if log_file is not None:
        _file_handler = JSONLFileHandler(log_file)
        handlers.append(_file_handler)

    # The root stays open to DEBUG whenever some handler wants more than WARNING
    root_level = logging.DEBUG if (verbosity > 0 or log_file is not None) else logging.WARNING
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a structlog logger, configuring defaults on first use.

    Args:
        name: Logger name (typically ``__name__``).
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def close_file_logging() -> None:
    """Close the JSONL handler, if any."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None

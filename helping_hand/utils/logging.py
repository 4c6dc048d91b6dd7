"""structlog configuration for the place search engine.

One processor chain feeds two renderers: a coloured console renderer for
local work and a JSON renderer when ``APP_ENV=production`` (or when the
caller forces it).  Stdlib ``logging`` records from httpx and aiosqlite are
routed through the same chain so every line has the same shape.

Search sessions run as concurrent asyncio tasks, so per-session fields are
carried in ``structlog.contextvars`` rather than passed around: wrap a
session in :func:`session_context` and every log line emitted inside it,
by any module, carries ``generation`` and ``terms``.
"""

import contextlib
import logging
import os
import sys
from collections.abc import Iterator

import structlog

# Chatty third-party loggers kept at WARNING unless DEBUG is requested.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Force JSON lines; otherwise JSON only in production.

    Returns:
        The root structlog logger.
    """
    level = log_level.upper()
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    structlog.configure(
        processors=[*_shared_processors(), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_shared_processors(),
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    third_party_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


@contextlib.contextmanager
def session_context(generation: int, terms: list[str]) -> Iterator[None]:
    """Bind a search session's identity to every log line in this task."""
    with structlog.contextvars.bound_contextvars(generation=generation, terms=terms):
        yield

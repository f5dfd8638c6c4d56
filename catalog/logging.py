"""Structured logging for the catalog backend.

Every mutation the REPEATS engine performs is emitted as a structured event
(``repeat_direction_corrected``, ``repeat_edge_rewritten`` …) so that audit
tooling can reconstruct what happened to the graph.

Usage::

    from catalog.logging import configure_logging, get_logger

    configure_logging()            # once, at process start-up
    logger = get_logger(__name__)
    logger.info("repeat_created", source="j1", target="j2")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from catalog.config import settings


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # Resolve sys.stderr per call so redirected streams (CLI runners) are honoured.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
) -> None:
    """Configure structlog (and the stdlib root logger) for the process.

    Args:
        level: Log level name.  Defaults to ``settings.log_level``.
        json_format: ``True`` for JSON lines, ``False`` for the coloured
            console renderer.  ``None`` consults ``settings.log_format`` and,
            when that is ``auto``, picks JSON whenever stdout is not a TTY.
    """
    level_name = (level or settings.log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    if json_format is None:
        fmt = settings.log_format.lower()
        if fmt == "json":
            json_format = True
        elif fmt == "console":
            json_format = False
        else:
            json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to *name* (usually ``__name__``)."""
    return structlog.get_logger(name)

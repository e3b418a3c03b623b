"""structlog setup shared by the CLI and the migration runner."""

from __future__ import annotations

import logging
import sys

import structlog


def _stderr_logger(*args) -> structlog.PrintLogger:
    # sys.stderr is resolved per logger, not at configure time
    return structlog.PrintLogger(sys.stderr)


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """Route structlog output to stderr, filtered at `level`."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog

_log_stream: TextIO | None = None


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Configure structlog.

    The terminal belongs to the chat session, so logs go to *log_file* when one
    is given and to stderr otherwise.
    """
    global _log_stream

    log_level = getattr(logging, level.upper(), logging.INFO)

    if _log_stream is not None and _log_stream is not sys.stderr:
        _log_stream.close()

    if log_file is not None:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        _log_stream = path.open("a", encoding="utf-8")
        renderer = structlog.processors.KeyValueRenderer(
            key_order=["timestamp", "level", "event"]
        )
    else:
        _log_stream = sys.stderr
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_log_stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance."""
    return structlog.get_logger(name)

"""
structlog setup.

One-shot commands log to stderr; the editor session logs to a file so nothing
is written over the curses screen.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

_log_stream: Optional[TextIO] = None


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    global _log_stream

    level = logging.DEBUG if verbose else logging.WARNING
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if _log_stream is not None:
            _log_stream.close()
        _log_stream = log_file.open("a", encoding="utf-8")
        stream: TextIO = _log_stream
        level = min(level, logging.INFO)
        processors.append(structlog.processors.JSONRenderer())
    else:
        stream = sys.stderr
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )

"""
Structured logging for worker processes.

Package modules log through the standard library with ``extra=``; structlog
renders those records and merges in the context bound for the current worker
process and the job it is working on.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace

from fxworker.config import get_settings

QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "asyncpg", "aiosqlite")


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add the IDs of the recording span, if any."""
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def add_process_id(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # pool and worker processes share one output stream
    event_dict.setdefault("pid", os.getpid())
    return event_dict


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Route standard library logging through structlog for this process.

    Args:
        level: Overrides ``LOG_LEVEL``.
        log_format: ``json`` or ``console``; overrides ``LOG_FORMAT``.
    """
    settings = get_settings()
    log_level = logging.getLevelNamesMapping().get(
        (level or settings.log_level).upper(), logging.INFO
    )

    if (log_format or settings.log_format) == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            add_process_id,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ExtraAdder(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_worker(worker_id: int | str) -> None:
    """Tag every later record of this process with the worker's ID."""
    structlog.contextvars.bind_contextvars(worker_id=str(worker_id))


@contextmanager
def job_context(**fields: Any) -> Iterator[None]:
    """
    Tag records logged while one job is processed.

    The fields are unbound on exit, so the next reservation starts clean.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield

"""structlog over stdlib logging: colored console plus a rotating JSONL file.

Every event carries the active OpenTelemetry trace/span id (when a span is
recording) so sync and send logs can be joined to their traces.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Any, Iterator

import structlog
from opentelemetry import trace

from mailsync.config import LOG_FILE, LOG_LEVEL, OTEL_SERVICE_NAME, VERBOSE_LOGGING

BoundLogger = structlog.stdlib.BoundLogger

_configured = False

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "sqlalchemy.engine", "uvicorn.access")


def _level_from_env(value: str) -> int:
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", OTEL_SERVICE_NAME)
    return event_dict


def add_trace_ids(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog processor: attach trace_id/span_id of the current span."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict.setdefault("trace_id", format(ctx.trace_id, "032x"))
        event_dict.setdefault("span_id", format(ctx.span_id, "016x"))
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service,
        add_trace_ids,
    ]


def _configure_logging() -> None:
    global _configured
    if _configured:
        return

    level = logging.DEBUG if VERBOSE_LOGGING else _level_from_env(LOG_LEVEL)
    shared = _shared_processors()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
            foreign_pre_chain=shared,
        )
    )
    jsonl = RotatingFileHandler(LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    jsonl.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in (console, jsonl):
        handler.setLevel(level)
        root.addHandler(handler)
    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str = "mailsync", **bindings: Any) -> BoundLogger:
    """Return the structured logger, optionally bound with context."""
    _configure_logging()
    logger = structlog.get_logger(name)
    return logger.bind(**bindings) if bindings else logger


@contextmanager
def run_context(kind: str, **context: Any) -> Iterator[str]:
    """Bind a fresh run id (plus context) to every log event emitted inside the block.

    Yields the run id. Previously bound values for the same keys are restored
    on exit.
    """
    run_id = uuid.uuid4().hex[:12]
    tokens = structlog.contextvars.bind_contextvars(run_id=run_id, run_kind=kind, **context)
    try:
        yield run_id
    finally:
        structlog.contextvars.reset_contextvars(**tokens)

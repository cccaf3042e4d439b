"""
Structured logging over the standard library.

Modules log through logging.getLogger(__name__) with extra={...}; structlog
renders every record (ours and third-party) as JSON or console lines, with
the active trace/span ids and any job context bound by the dispatcher.
"""

import logging
import sys
from typing import Any

import structlog
from opentelemetry import trace

from export_worker.config import Settings, get_settings

# Libraries whose INFO chatter drowns the job lifecycle logs
_QUIET_LOGGERS = ("uvicorn.access", "redis")


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Attach trace_id/span_id of the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """
    Route stdlib logging through structlog.

    Called once at process start by the worker and by the API lifespan.
    """
    settings = settings or get_settings()

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """
    Bind fields to every record logged from the current context.

    asyncio tasks and asyncio.to_thread calls copy the context they start
    in, so fields bound inside a task stay with that task.
    """
    structlog.contextvars.bind_contextvars(**kwargs)

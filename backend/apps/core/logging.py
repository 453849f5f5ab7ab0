"""
Structured logging built on structlog.

All application modules log through ``get_logger(__name__)`` and emit
snake_case event names with keyword fields:

    logger = get_logger(__name__)
    logger.info("passkey_registered", user_id=str(user.id), passkey_id=passkey.id)

Request-scoped fields (``trace_id``, ``http.method``, ...) are bound by
``RequestContextMiddleware`` through ``bind_contextvars`` and merged into
every event emitted while the request is being handled.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor


def _rename_request_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Expose the request ID under the ``trace_id`` key used by log search."""
    if "request_id" in event_dict:
        event_dict["trace_id"] = str(event_dict.pop("request_id"))
    return event_dict


def _round_duration(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    if "duration_ms" in event_dict:
        event_dict["duration_ms"] = round(float(event_dict["duration_ms"]), 2)
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog and route stdlib logging through it.

    Django, py_webauthn and other libraries log through stdlib ``logging``;
    the ``ProcessorFormatter`` renders their records with the same
    processors as structlog events.

    Args:
        json_format: Render JSON lines (production) instead of the coloured
            console renderer (development).
        log_level: Minimum level name, e.g. ``"INFO"``.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _rename_request_id,
        _round_duration,
    ]

    renderer: Processor
    if json_format:
        shared.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind fields to every log event emitted in the current request context.

    Dotted keys need dict unpacking:
        bind_contextvars(request_id=rid, **{"http.method": "POST"})
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """Drop all bound fields; called when a request finishes."""
    structlog.contextvars.clear_contextvars()

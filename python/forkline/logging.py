"""Structured logging for forkline, built on structlog.

Every entry is rendered by one stdlib handler (JSON by default, console
for local work) and carries whatever request-scoped context is set:
- request_id: correlation id from the X-Request-ID middleware
- path / method: the request line (never the query string)
- story_id: the story a route is reading, exporting, importing or copying

Fields an event passes explicitly win over the context, so a duplicate can
log the new story's id while the request context names the source story.

Usage:
    from forkline.logging import get_logger

    logger = get_logger(__name__)
    logger.info("story_exported", node_count=6)
"""

import logging
import sys
from contextvars import ContextVar

import structlog

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
path_var: ContextVar[str | None] = ContextVar("path", default=None)
method_var: ContextVar[str | None] = ContextVar("method", default=None)
story_id_var: ContextVar[str | None] = ContextVar("story_id", default=None)

_CONTEXT_FIELDS: tuple[tuple[str, ContextVar[str | None]], ...] = (
    ("request_id", request_id_var),
    ("path", path_var),
    ("method", method_var),
    ("story_id", story_id_var),
)

# Third-party loggers that only add noise at INFO
_QUIET_LOGGERS = ("httpx", "sqlalchemy.engine", "uvicorn.access", "alembic.runtime.migration")


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor: copy the set context fields into the event."""
    for key, var in _CONTEXT_FIELDS:
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def configure_logging(json_format: bool = True) -> None:
    """Route structlog and stdlib logging through a single stdout handler.

    Safe to call more than once; the root handler is replaced, not added.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """A structlog logger, typically get_logger(__name__)."""
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Bind the request line for the current context. None leaves path/method as is."""
    request_id_var.set(request_id)
    if path is not None:
        path_var.set(path)
    if method is not None:
        method_var.set(method)


def set_story_context(story_id: str | None) -> None:
    """Name the story subsequent entries in this context are about."""
    story_id_var.set(story_id)


def clear_request_context() -> None:
    """Reset every request-scoped field; called when a request finishes."""
    for _, var in _CONTEXT_FIELDS:
        var.set(None)


def get_request_id() -> str | None:
    return request_id_var.get()

"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- request_id: Correlation ID for request tracing
- user_id: Authenticated user (when available)
- task_name / task_id: Celery task context
- timestamp: ISO8601 formatted timestamp

Usage:
    from memoryhaze.logging import get_logger, configure_logging

    configure_logging()

    logger = get_logger(__name__)
    logger.info("gift_completed", gift_id=str(gift.id))
"""

import logging
import sys
from contextvars import ContextVar

import structlog

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
task_name_var: ContextVar[str | None] = ContextVar("task_name", default=None)
task_id_var: ContextVar[str | None] = ContextVar("task_id", default=None)


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Inject all non-None context variables into the log event dict."""
    for key, var in (
        ("request_id", request_id_var),
        ("user_id", user_id_var),
        ("task_name", task_name_var),
        ("task_id", task_id_var),
    ):
        value = var.get()
        if value:
            event_dict[key] = value
    return event_dict


def configure_logging(json_format: bool = True, level: int = logging.INFO) -> None:
    """Configure structlog and the stdlib root handler.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
        level: Root log level.
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

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (uvicorn, sqlalchemy, celery) through the same renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name (typically __name__)."""
    return structlog.get_logger(name)


def set_request_context(request_id: str | None, user_id: str | None = None) -> None:
    """Set request context for the current async context."""
    request_id_var.set(request_id)
    if user_id is not None:
        user_id_var.set(user_id)


def clear_request_context() -> None:
    """Clear all request-scoped context at the end of a request."""
    request_id_var.set(None)
    user_id_var.set(None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


def configure_task_logging(
    request_id: str | None = None,
    task_name: str | None = None,
    task_id: str | None = None,
) -> None:
    """Set logging context at the start of a Celery task.

    Example:
        @celery_app.task(bind=True)
        def my_task(self, arg, request_id: str | None = None):
            configure_task_logging(request_id, "my_task", self.request.id)
            logger.info("task_started")
    """
    request_id_var.set(request_id)
    task_name_var.set(task_name)
    task_id_var.set(task_id)


def clear_task_context() -> None:
    """Clear task-scoped logging context."""
    request_id_var.set(None)
    task_name_var.set(None)
    task_id_var.set(None)

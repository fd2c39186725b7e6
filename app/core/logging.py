"""
Structured logging for the rooms service, built on structlog.

Room and moderation code logs snake_case events with key/value context:

    logger.info("room_joined", room_id=12, user_id=7, attempts=2)

Every line emitted while an HTTP request is being served carries that
request's id. Output is a colored console in development (unless
LOG_FORMAT=json) and one JSON object per line everywhere else.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

from app.config import settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Chatty libraries that only get a say at WARNING and above
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


def add_request_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp the id of the request being served, if any, on the event."""
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def build_processors(environment: str, log_format: str) -> list[Processor]:
    """Processor chain for the given environment; the renderer always comes last."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_id,
        structlog.processors.StackInfoRenderer(),
    ]

    if environment == "development" and log_format != "json":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.extend(
            [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
        )
    return processors


def configure_logging() -> None:
    """Configure structlog and the stdlib root logger from settings. Call once at startup."""
    structlog.configure(
        processors=build_processors(settings.ENVIRONMENT, settings.LOG_FORMAT),
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    if settings.ENVIRONMENT != "development":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module; pass __name__."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def set_request_context(request_id: str) -> None:
    request_id_ctx.set(request_id)


def clear_request_context() -> None:
    request_id_ctx.set(None)

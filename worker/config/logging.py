import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from .settings import Settings
from .settings import settings as default_settings


def service_context_processor(settings: Settings) -> Processor:
    """Build a processor stamping every event with the worker's identity."""
    service = {
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "subscription": settings.pubsub_subscription,
    }

    def add_service_context(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        for key, value in service.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def setup_logging(settings: Settings = default_settings) -> None:
    """Configure structured logging with structlog."""
    level = getattr(logging, settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # httpx logs every downstream request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        service_context_processor(settings),
    ]
    if settings.debug:
        processors += [
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
            ),
            structlog.dev.ConsoleRenderer(),
        ]
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Start a fresh log context for an inbound request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def current_request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("request_id")


@contextmanager
def job_context(job_id: str, job_type: str) -> Iterator[None]:
    """
    Attach a job to every log line emitted while it runs.

    Handler logs, including those from batch items fanned out with
    ``asyncio.gather``, inherit the binding.
    """
    with structlog.contextvars.bound_contextvars(job_id=job_id, job_type=job_type):
        yield

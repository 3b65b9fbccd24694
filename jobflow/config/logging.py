import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor

from .settings import Settings, settings as default_settings


def _service_fields(app_settings: Settings) -> Processor:
    """Stamp every event with the service name and environment."""

    def add_service(_: Any, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", app_settings.app_name)
        event_dict.setdefault("environment", app_settings.environment)
        return event_dict

    return add_service


def setup_logging(app_settings: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib root logger from ``app_settings``.

    ``log_level`` filters both, so queue code logging through ``logging``
    and everything logging through structlog agree on verbosity. Debug mode
    switches to the console renderer and adds the calling function.
    """
    app_settings = app_settings or default_settings
    level = getattr(logging, app_settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        _service_fields(app_settings),
    ]
    if app_settings.debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
            )
        )
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

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
    """Add request-specific context to all log messages."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)

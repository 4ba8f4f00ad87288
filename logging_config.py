import logging
import os
import sys

import structlog
from structlog.contextvars import merge_contextvars

from config import APP

_configured = False


def _add_service_and_env(service_name: str):
    def processor(logger, method_name, event_dict):
        event_dict["service"] = os.getenv("SERVICE_NAME", service_name)
        event_dict["env"] = os.getenv("APP_ENV", "local")
        return event_dict

    return processor


def configure_logging(default_service_name: str = APP["log_service_name"], force: bool = False) -> None:
    """Set up structlog on top of stdlib logging (console locally, JSON elsewhere)."""
    global _configured
    if _configured and not force:
        return

    service_name = os.getenv("SERVICE_NAME", default_service_name)
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    app_env = os.getenv("APP_ENV", "local")
    is_dev = app_env in {"local", "dev"}

    shared_processors = [
        merge_contextvars,
        _add_service_and_env(service_name),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer = structlog.dev.ConsoleRenderer() if is_dev else structlog.processors.JSONRenderer()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True

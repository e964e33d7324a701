import logging
import logging.config
import sys
from typing import Any, Dict, List

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration

from ashvas.core.config import settings

# Chatty third-party loggers; the SOS webhook client logs every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "websockets", "uvicorn.access")


def add_service_context(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Tag every record with the service and environment it came from."""
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def build_shared_processors() -> List[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_service_context,
    ]


def build_renderers() -> List[structlog.types.Processor]:
    if settings.ENVIRONMENT in ["local", "dev"]:
        return [structlog.dev.ConsoleRenderer()]
    # Tracebacks become a string field so each record stays on one JSON line
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def build_logging_config(shared_processors: List[structlog.types.Processor]) -> Dict[str, Any]:
    handler = {"handlers": ["default"], "propagate": False}
    loggers: Dict[str, Any] = {
        "": {"handlers": ["default"], "level": settings.LOG_LEVEL, "propagate": True},
        "ashvas": {**handler, "level": settings.LOG_LEVEL},
        "uvicorn": {**handler, "level": "INFO"},
        "uvicorn.error": {**handler, "level": "INFO"},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {**handler, "level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    *build_renderers(),
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "default": {
                "level": settings.LOG_LEVEL,
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
            },
        },
        "loggers": loggers,
    }


def setup_logging() -> None:
    """
    Configure structured logging for the monitoring service.
    - Local/dev: pretty console output.
    - Anything else: one JSON object per line, tagged with service and environment.
    - Sentry is initialised only when a DSN is configured; error records such as
      failed SOS dispatches become Sentry events, lower levels become breadcrumbs.
    """
    shared_processors = build_shared_processors()

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=1.0 if settings.ENVIRONMENT == "local" else 0.1,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(build_logging_config(shared_processors))

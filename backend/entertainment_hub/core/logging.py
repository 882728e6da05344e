"""
structlog setup for the bookings service.

Everything goes through stdlib logging, so uvicorn, SQLAlchemy and our own
structlog loggers share one handler: JSON lines in production, the colored
console renderer elsewhere. Request context (request_id, method, path) is
merged from contextvars bound by api/middleware.py.
"""

import logging
import sys
from typing import Any, List

import structlog

from entertainment_hub.core.config import Settings, get_settings

_HANDLER_NAME = "entertainment_hub"

# Third-party loggers that drown out booking events at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")


def _service_fields(settings: Settings):
    def add_service(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", settings.APP_NAME)
        event_dict.setdefault("version", settings.APP_VERSION)
        return event_dict

    return add_service


def _pre_chain(settings: Settings) -> List[Any]:
    chain: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.ENVIRONMENT == "production":
        chain += [_service_fields(settings), structlog.processors.format_exc_info]
    return chain


def _renderer(settings: Settings):
    if settings.ENVIRONMENT == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """Configure structlog and the root handler; safe to call more than once."""
    settings = get_settings()
    pre_chain = _pre_chain(settings)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings),
            ],
        )
    )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

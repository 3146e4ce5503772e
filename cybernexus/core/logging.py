"""
Logging for CyberNexus ISMS.

structlog events are rendered through the stdlib root handler: JSON lines
via python-json-logger in deployed environments, a console renderer while
developing. Every event carries the service name, the environment and,
inside a request, the request id and the authenticated user id.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from cybernexus.core.config import Settings, settings

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_context: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncpg", "passlib")


def add_request_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the current request id and user id when set"""
    request_id = request_id_context.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    user_id = user_id_context.get()
    if user_id:
        event_dict.setdefault("user_id", user_id)
    return event_dict


class ServiceContext:
    """Processor stamping service name and environment on every event"""

    def __init__(self, config: Settings):
        self.service = config.app_name
        self.environment = config.environment

    def __call__(self, logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("environment", self.environment)
        return event_dict


def _build_handler(config: Settings) -> logging.Handler:
    if config.log_file:
        handler: logging.Handler = logging.FileHandler(config.log_file)
    else:
        handler = logging.StreamHandler(sys.stdout)

    if config.log_format == "json":
        handler.setFormatter(jsonlogger.JsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
            timestamp=True,
        ))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s [%(name)s] %(message)s"))
    return handler


def build_processors(config: Settings) -> List[Any]:
    """structlog processor chain for `config`"""
    renderer = structlog.dev.ConsoleRenderer() if config.is_development else structlog.processors.JSONRenderer()
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_request_context,
        ServiceContext(config),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.EventRenamer("message"),
        renderer,
    ]


def setup_logging(config: Optional[Settings] = None) -> None:
    """Install the root handler and configure structlog"""
    config = config or settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.root.handlers = [_build_handler(config)]
    logging.root.setLevel(level)

    structlog.configure(
        processors=build_processors(config),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


setup_logging()

"""
Shared logging configuration for the Tattler restaurant directory.

Log lines are JSON objects rendered by structlog on top of the standard
library ``logging`` module. Each line carries the emitting service (taken
from the ``<service>.<component>`` logger name) and, while a request is in
flight, its request id.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

import structlog

EventDict = Dict[str, Any]

# Request id of the request being served by the current task
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def _shared_processors() -> List[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Route structlog through stdlib logging and render JSON to stdout.

    Unknown level names fall back to INFO.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=_shared_processors() + [
            add_service_context,
            add_correlation_context,
            add_timestamp,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger(service_name).setLevel(level)


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag the event with the service part of the logger name."""
    service, _, component = event_dict.get("logger", "").partition(".")
    if component:
        event_dict["service"] = service
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag the event with the current request id, if any."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Epoch seconds alongside the ISO timestamp, for sorting."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind ``request_id`` (or a fresh uuid4) to the current context."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def clear_context() -> None:
    request_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger named ``<service>.<component>``."""
    return structlog.get_logger(name)

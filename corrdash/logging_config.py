"""
Structured logging for the dashboard service.

Everything shares one pipeline: the structlog loggers of the HTTP layer and
token directory, and the stdlib loggers of the upstream request path. Each
line carries the request id bound by the HTTP middleware. A market data
error passed as ``error=`` is flattened into its category and upstream
details so rate-limit exhaustion can be told apart from a bad response.
"""

import logging
import sys
from typing import Any, Dict, Optional, TextIO

import structlog

from .config import settings
from .core.errors import MarketDataError

SERVICE_NAME = "corrdash"


def add_service_name(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def flatten_market_data_error(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Expand ``error=<MarketDataError>`` into loggable fields; other exceptions become their message."""
    error = event_dict.get("error")
    if not isinstance(error, MarketDataError):
        if isinstance(error, BaseException):
            event_dict["error"] = str(error)
        return event_dict

    context = error.context
    event_dict["error"] = error.message
    event_dict["error_category"] = error.category.value
    event_dict["recoverable"] = error.recoverable
    if context.status_code is not None:
        event_dict["upstream_status"] = context.status_code
    if context.url:
        event_dict["upstream_url"] = context.url
    if context.attempts is not None:
        event_dict["attempts"] = context.attempts
    return event_dict


def shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        flatten_market_data_error,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(log_level: Optional[str] = None, *, stream: Optional[TextIO] = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override log level (default: from settings.log_level).
            DEBUG switches to colored console output.
        stream: Where lines are written (default: stdout)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    processors = shared_processors()
    if is_dev:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Upstream request chatter is logged by the fetcher itself
    for name in ("uvicorn.access", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)

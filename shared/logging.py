"""
Structured logging for the sample API.

Component loggers are named ``<service>.<component>``, e.g.
``api.cache.redis``. Every record carries the service and component, the
active trace and span ids, and the request id bound by the HTTP middleware.
"""

import logging
import sys
import uuid
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace

_service_name: Optional[str] = None


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured JSON logging to stdout for a service."""
    global _service_name
    _service_name = service_name

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_component_context,
            add_trace_context,
            structlog.processors.JSONRenderer()
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_component_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Split ``<service>.<component>`` logger names into two fields."""
    prefix, _, component = event_dict.get("logger", "").partition(".")
    event_dict.setdefault("service", _service_name or prefix or "unknown")
    if component:
        event_dict["component"] = component
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the current OpenTelemetry trace and span ids."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to every record logged in the current context."""
    request_id = request_id or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def clear_context():
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

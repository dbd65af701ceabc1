"""
Structured logging for the song listing access service.

Every event is rendered as one JSON line carrying the configured service
name, the emitting component and, inside a request, the request id plus the
caller and read surface the request was served on.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Per-request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
caller_id_var: ContextVar[Optional[str]] = ContextVar('caller_id', default=None)
surface_var: ContextVar[Optional[str]] = ContextVar('surface', default=None)

_service_name: Optional[str] = None


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""
    global _service_name
    _service_name = service_name

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            structlog.processors.JSONRenderer(ensure_ascii=False)
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag the event with the service and the component that emitted it."""
    if _service_name:
        event_dict.setdefault("service", _service_name)

    # "songs.cache.song_list" -> "cache.song_list"; "retry.count_songs" stays as is
    logger_name = event_dict.get("logger") or ""
    prefix = f"{_service_name}." if _service_name else ""
    if prefix and logger_name.startswith(prefix):
        event_dict["component"] = logger_name[len(prefix):]
    elif logger_name and logger_name != _service_name:
        event_dict["component"] = logger_name

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach request id, caller and surface when a request is in flight."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    caller_id = caller_id_var.get()
    if caller_id:
        event_dict["caller_id"] = caller_id

    surface = surface_var.get()
    if surface:
        event_dict["surface"] = surface

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_caller_context(caller_id: Optional[str] = None, surface: Optional[str] = None):
    """Record which caller and read surface the current request belongs to.

    Public callers are identified by an API key that must never reach the
    logs, so the façade passes no caller id for them.
    """
    if caller_id:
        caller_id_var.set(caller_id)
    if surface:
        surface_var.set(surface)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    caller_id_var.set(None)
    surface_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)

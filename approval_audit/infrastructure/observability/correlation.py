"""Correlation ID management for request tracing.

Correlation IDs live in a context variable so they survive await points
within one request. Every workflow call should run under one id so its
decision write, audit append and log lines can be tied together.

Usage:
    # At the service boundary (request start)
    set_correlation_id(incoming_id or generate_correlation_id())

    # In structlog configuration
    processors = [..., correlation_id_processor, ...]
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4

# Empty string means "not set"
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    """Generate a new correlation ID (UUID4 string)."""
    return str(uuid4())


def get_correlation_id() -> str:
    """Get the current correlation ID, or an empty string if none is set."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id.set(correlation_id)


def ensure_correlation_id() -> str:
    """Return the current correlation ID, generating one if unset."""
    current = _correlation_id.get()
    if not current:
        current = generate_correlation_id()
        _correlation_id.set(current)
    return current


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor adding correlation_id to every log entry.

    An explicitly bound correlation_id is left untouched.
    """
    correlation_id = get_correlation_id()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    return event_dict

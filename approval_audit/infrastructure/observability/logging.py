"""Structured logging configuration with structlog.

Production renders JSON lines for log aggregation; development renders
colored console output. Signing secrets are scrubbed from every entry.

Log Entry Format:
    {
        "timestamp": "2026-01-01T00:00:00.000000Z",
        "level": "info",
        "event": "audit_record_appended",
        "correlation_id": "uuid",
        "service": "AuditLedgerService",
        ...additional context
    }

Usage:
    from approval_audit.infrastructure.observability import configure_structlog

    configure_structlog(environment="production")  # JSON output
    configure_structlog(environment="development")  # Console output
"""

import logging
import os
from typing import Any, cast

import structlog
from structlog.typing import Processor

from approval_audit.infrastructure.observability.correlation import (
    correlation_id_processor,
)

# Environment variable for log level (default: INFO)
LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# Keys whose values never reach a log sink
REDACTED_KEYS = frozenset({"secret", "signing_key", "signing_keys", "keys", "password"})
REDACTED_VALUE = "[REDACTED]"


def _get_log_level() -> int:
    level_name = os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, level_name, logging.INFO)


def redact_secrets_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor replacing secret-bearing values."""
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED_VALUE
    return event_dict


def configure_structlog(environment: str = "production") -> None:
    """Configure structlog for the application.

    Should be called once at startup.

    Args:
        environment: 'production' for JSON output, 'development' for console.
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        cast(Processor, correlation_id_processor),
        cast(Processor, redact_secrets_processor),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger_for_service(
    service_name: str, component: str = "approval"
) -> structlog.BoundLogger:
    """Get a logger with service and component already bound."""
    return structlog.get_logger().bind(
        service=service_name,
        component=component,
    )

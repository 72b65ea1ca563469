"""Observability infrastructure: structured logging and correlation.

Usage:
    from approval_audit.infrastructure.observability import (
        configure_structlog,
        set_correlation_id,
    )

    configure_structlog(environment="production")
    set_correlation_id(request_correlation_id)
"""

from approval_audit.infrastructure.observability.correlation import (
    correlation_id_processor,
    ensure_correlation_id,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from approval_audit.infrastructure.observability.logging import (
    configure_structlog,
    get_logger_for_service,
    redact_secrets_processor,
)

__all__: list[str] = [
    "configure_structlog",
    "correlation_id_processor",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "get_logger_for_service",
    "redact_secrets_processor",
    "set_correlation_id",
]

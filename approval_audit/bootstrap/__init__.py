"""Composition root for wiring dependencies.

Assembles the approval audit service graph from configuration and
port adapters so callers depend on the boundary, not on infrastructure.
"""

from approval_audit.bootstrap.approval_audit import (
    ApprovalAuditContainer,
    build_approval_audit_container,
    get_approval_audit_service,
    reset_approval_audit_service,
    set_approval_audit_service,
)
from approval_audit.bootstrap.logging import configure_structlog

__all__: list[str] = [
    "ApprovalAuditContainer",
    "build_approval_audit_container",
    "configure_structlog",
    "get_approval_audit_service",
    "reset_approval_audit_service",
    "set_approval_audit_service",
]

"""Operational metrics for the approval audit engine."""

from approval_audit.infrastructure.monitoring.metrics import (
    METRICS_CONTENT_TYPE,
    ApprovalAuditMetrics,
)

__all__ = ["ApprovalAuditMetrics", "METRICS_CONTENT_TYPE"]

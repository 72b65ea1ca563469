"""Prometheus metrics for the approval workflow and audit ledger.

Operational counters only: what was submitted, appended, verified and
flagged. Each collector owns its registry so tests stay isolated.
"""

import os

from prometheus_client import CollectorRegistry, Counter, generate_latest

# Content type for a Prometheus metrics endpoint
METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class ApprovalAuditMetrics:
    """Counters for decisions, audit appends and integrity checks.

    Attributes:
        decisions_submitted_total: Decisions created, by decision type.
        workflow_failures_total: Failed workflow calls, by operation and error code.
        audit_records_appended_total: Ledger appends, by event type.
        integrity_verifications_total: Integrity reports produced.
        suspicious_activities_total: Flagged anomalies, by kind and severity.
        signature_mismatches_total: Records whose signature did not verify.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize counters.

        Args:
            registry: Optional custom registry for testing isolation.
        """
        self._registry = registry or CollectorRegistry()
        self._environment = os.environ.get("ENVIRONMENT", "development")

        self.decisions_submitted_total = Counter(
            name="hiring_decisions_submitted_total",
            documentation="Hiring decisions created",
            labelnames=["environment", "decision_type"],
            registry=self._registry,
        )
        self.workflow_failures_total = Counter(
            name="approval_workflow_failures_total",
            documentation="Approval workflow calls that failed",
            labelnames=["environment", "operation", "error_code"],
            registry=self._registry,
        )
        self.audit_records_appended_total = Counter(
            name="audit_records_appended_total",
            documentation="Audit records appended to the ledger",
            labelnames=["environment", "event_type"],
            registry=self._registry,
        )
        self.integrity_verifications_total = Counter(
            name="audit_integrity_verifications_total",
            documentation="Integrity reports produced",
            labelnames=["environment"],
            registry=self._registry,
        )
        self.suspicious_activities_total = Counter(
            name="audit_suspicious_activities_total",
            documentation="Suspicious activities flagged during verification",
            labelnames=["environment", "kind", "severity"],
            registry=self._registry,
        )
        self.signature_mismatches_total = Counter(
            name="audit_signature_mismatches_total",
            documentation="Audit records whose signature failed verification",
            labelnames=["environment"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_decision(self, decision_type: str) -> None:
        self.decisions_submitted_total.labels(
            environment=self._environment, decision_type=decision_type
        ).inc()

    def record_failure(self, operation: str, error_code: str) -> None:
        self.workflow_failures_total.labels(
            environment=self._environment, operation=operation, error_code=error_code
        ).inc()

    def record_append(self, event_type: str) -> None:
        self.audit_records_appended_total.labels(
            environment=self._environment, event_type=event_type
        ).inc()

    def record_verification(self, mismatches: int) -> None:
        self.integrity_verifications_total.labels(environment=self._environment).inc()
        if mismatches:
            self.signature_mismatches_total.labels(
                environment=self._environment
            ).inc(mismatches)

    def record_suspicious_activity(self, kind: str, severity: str) -> None:
        self.suspicious_activities_total.labels(
            environment=self._environment, kind=kind, severity=severity
        ).inc()

    def generate(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self._registry)

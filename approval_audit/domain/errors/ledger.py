"""Audit ledger and persistence errors.

Storage failures may be retried by the caller with the same idempotency
key (decision id + intended transition). A failed write never leaves a
partial record behind.
"""

from __future__ import annotations

from approval_audit.domain.exceptions import ApprovalAuditError


class LedgerWriteError(ApprovalAuditError):
    """Raised when an audit record (or its unit of work) cannot be persisted.

    Attributes:
        decision_id: Decision the failed write referenced.
        reason: Underlying failure description.
    """

    code = "LEDGER_WRITE_FAILED"

    def __init__(self, decision_id: str, reason: str) -> None:
        self.decision_id = decision_id
        self.reason = reason
        super().__init__(f"Audit ledger write failed for decision {decision_id}: {reason}")


class StoreUnavailableError(ApprovalAuditError):
    """Raised when a read against the store fails or times out.

    Attributes:
        operation: The store operation that failed.
        reason: Underlying failure description.
    """

    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


class AuditDeletionProhibitedError(ApprovalAuditError):
    """Raised on any attempt to delete or rewrite an audit record."""

    code = "AUDIT_RECORD_IMMUTABLE"

    def __init__(self, record_id: str | None = None) -> None:
        self.record_id = record_id
        target = f" {record_id}" if record_id else "s"
        super().__init__(
            f"Audit record{target} cannot be modified or deleted; "
            "append a decision_modified record instead"
        )

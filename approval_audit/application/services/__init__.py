"""Application services for the approval workflow and audit ledger.

Available services:
- AuthorityValidator: Actor authority checks against the authority table
- DecisionRecordService: HiringDecision creation, finalization and reads
- AuditLedgerService: Signed, append-only audit records and exports
- IntegrityVerifier: Signature verification and anomaly heuristics
- DecisionWorkflowOrchestrator: Atomic decision + audit units of work
- ComplianceReportService: Read-only compliance rollups
- ApprovalAuditService: Uniform-result service boundary
"""

from approval_audit.application.services.approval_audit_service import (
    ApprovalAuditService,
)
from approval_audit.application.services.audit_ledger_service import AuditLedgerService
from approval_audit.application.services.authority_validator import AuthorityValidator
from approval_audit.application.services.base import LoggingMixin, utc_now
from approval_audit.application.services.compliance_report_service import (
    ComplianceReportService,
)
from approval_audit.application.services.decision_locks import DecisionLockRegistry
from approval_audit.application.services.decision_record_service import (
    DecisionRecordService,
    DecisionTransition,
)
from approval_audit.application.services.decision_workflow_orchestrator import (
    DecisionOutcome,
    DecisionWorkflowOrchestrator,
    DelegationOutcome,
)
from approval_audit.application.services.integrity_verifier import (
    IntegrityVerifier,
    integrity_score,
)

__all__: list[str] = [
    "ApprovalAuditService",
    "AuditLedgerService",
    "AuthorityValidator",
    "ComplianceReportService",
    "DecisionLockRegistry",
    "DecisionOutcome",
    "DecisionRecordService",
    "DecisionTransition",
    "DecisionWorkflowOrchestrator",
    "DelegationOutcome",
    "IntegrityVerifier",
    "LoggingMixin",
    "integrity_score",
    "utc_now",
]

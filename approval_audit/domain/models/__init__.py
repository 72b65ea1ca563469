"""Domain models for hiring decisions and their audit trail."""

from approval_audit.domain.models.actor import (
    SYSTEM_ACTOR_PREFIX,
    Actor,
    HumanActor,
    SystemActor,
    is_system_principal,
)
from approval_audit.domain.models.audit_record import (
    BULK_EXPORT_DECISION_ID,
    AuditEventType,
    AuditRecord,
    AuditRecordDraft,
)
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType
from approval_audit.domain.models.authority_delegation import AuthorityDelegation
from approval_audit.domain.models.compliance_report import (
    AuditExport,
    ComplianceReport,
    ReportType,
)
from approval_audit.domain.models.filters import (
    AuditFilters,
    ComplianceFilters,
    DateRange,
    DecisionFilters,
    ExportFilters,
    ExportFormat,
)
from approval_audit.domain.models.hiring_decision import (
    APPROVAL_REASONS,
    REJECTION_REASONS,
    AppealOutcome,
    DecisionReason,
    DecisionState,
    HiringDecision,
)
from approval_audit.domain.models.integrity_report import (
    AnomalyKind,
    IntegrityReport,
    Severity,
    SuspiciousActivity,
)

__all__ = [
    "APPROVAL_REASONS",
    "BULK_EXPORT_DECISION_ID",
    "REJECTION_REASONS",
    "SYSTEM_ACTOR_PREFIX",
    "Actor",
    "AnomalyKind",
    "AppealOutcome",
    "AuditEventType",
    "AuditExport",
    "AuditFilters",
    "AuditRecord",
    "AuditRecordDraft",
    "AuthorityDelegation",
    "AuthorityLevel",
    "ComplianceFilters",
    "ComplianceReport",
    "DateRange",
    "DecisionFilters",
    "DecisionReason",
    "DecisionState",
    "DecisionType",
    "ExportFilters",
    "ExportFormat",
    "HiringDecision",
    "HumanActor",
    "IntegrityReport",
    "ReportType",
    "Severity",
    "SuspiciousActivity",
    "SystemActor",
    "is_system_principal",
]

"""Bootstrap wiring for the approval audit service graph."""

from __future__ import annotations

from dataclasses import dataclass

from approval_audit.application.ports.approval_store import ApprovalStoreProtocol
from approval_audit.application.ports.authentication import (
    AuthenticationContextProtocol,
)
from approval_audit.application.ports.authority_table import AuthorityTableProtocol
from approval_audit.application.ports.profile_creation import (
    ProfileCreationSignalProtocol,
)
from approval_audit.application.services.approval_audit_service import (
    ApprovalAuditService,
)
from approval_audit.application.services.audit_ledger_service import AuditLedgerService
from approval_audit.application.services.authority_validator import AuthorityValidator
from approval_audit.application.services.base import Clock, utc_now
from approval_audit.application.services.compliance_report_service import (
    ComplianceReportService,
)
from approval_audit.application.services.decision_locks import DecisionLockRegistry
from approval_audit.application.services.decision_record_service import (
    DecisionRecordService,
)
from approval_audit.application.services.decision_workflow_orchestrator import (
    DecisionWorkflowOrchestrator,
)
from approval_audit.application.services.integrity_verifier import IntegrityVerifier
from approval_audit.config.approval_audit_config import (
    ApprovalAuditConfig,
    load_signing_keyring,
)
from approval_audit.domain.signing import AuditSigner, SigningKeyring
from approval_audit.infrastructure.monitoring.metrics import ApprovalAuditMetrics
from approval_audit.infrastructure.stubs.approval_store_stub import (
    InMemoryApprovalStore,
)
from approval_audit.infrastructure.stubs.authentication_stub import (
    AuthenticationContextStub,
)
from approval_audit.infrastructure.stubs.authority_table_stub import AuthorityTableStub


@dataclass(frozen=True)
class ApprovalAuditContainer:
    """Every component of one wired service graph."""

    service: ApprovalAuditService
    orchestrator: DecisionWorkflowOrchestrator
    decisions: DecisionRecordService
    ledger: AuditLedgerService
    verifier: IntegrityVerifier
    reports: ComplianceReportService
    authority_validator: AuthorityValidator
    metrics: ApprovalAuditMetrics | None


def build_approval_audit_container(
    *,
    store: ApprovalStoreProtocol,
    authentication: AuthenticationContextProtocol,
    authority_table: AuthorityTableProtocol,
    keyring: SigningKeyring,
    profile_signal: ProfileCreationSignalProtocol | None = None,
    config: ApprovalAuditConfig | None = None,
    clock: Clock = utc_now,
    metrics: ApprovalAuditMetrics | None = None,
) -> ApprovalAuditContainer:
    """Wire the full service graph from adapters and configuration.

    The keyring is loaded once by the caller and stays immutable for the
    life of the graph.
    """
    config = config or ApprovalAuditConfig.from_environment()
    locks = DecisionLockRegistry()
    validator = AuthorityValidator(authority_table, config, store=store, clock=clock)
    decisions = DecisionRecordService(store, config, clock)
    ledger = AuditLedgerService(
        store,
        AuditSigner(keyring),
        config,
        locks=locks,
        clock=clock,
        metrics=metrics,
    )
    verifier = IntegrityVerifier(ledger, config, clock, metrics)
    reports = ComplianceReportService(decisions, ledger, verifier, config, clock)
    orchestrator = DecisionWorkflowOrchestrator(
        authentication=authentication,
        authority_validator=validator,
        decisions=decisions,
        ledger=ledger,
        store=store,
        profile_signal=profile_signal,
        config=config,
        clock=clock,
        metrics=metrics,
    )
    service = ApprovalAuditService(
        orchestrator=orchestrator,
        decisions=decisions,
        ledger=ledger,
        verifier=verifier,
        reports=reports,
        authority_validator=validator,
        metrics=metrics,
    )
    return ApprovalAuditContainer(
        service=service,
        orchestrator=orchestrator,
        decisions=decisions,
        ledger=ledger,
        verifier=verifier,
        reports=reports,
        authority_validator=validator,
        metrics=metrics,
    )


_approval_audit_service: ApprovalAuditService | None = None


def get_approval_audit_service() -> ApprovalAuditService:
    """Get the process-wide service instance.

    Built on first use from the environment over in-memory adapters;
    production deployments install their own with
    set_approval_audit_service().
    """
    global _approval_audit_service
    if _approval_audit_service is None:
        _approval_audit_service = build_approval_audit_container(
            store=InMemoryApprovalStore(),
            authentication=AuthenticationContextStub(),
            authority_table=AuthorityTableStub(),
            keyring=load_signing_keyring(),
            metrics=ApprovalAuditMetrics(),
        ).service
    return _approval_audit_service


def set_approval_audit_service(service: ApprovalAuditService) -> None:
    """Set custom service instance (testing/override)."""
    global _approval_audit_service
    _approval_audit_service = service


def reset_approval_audit_service() -> None:
    """Reset the service singleton (testing cleanup)."""
    global _approval_audit_service
    _approval_audit_service = None

"""Service boundary for the approval and audit engine.

Every operation returns a ServiceResult: ``success`` with ``data``, or
``error`` carrying a stable code and a message. Domain errors map to
their own codes; anything unexpected is logged and reported as
INTERNAL_ERROR without internals.

Each call runs under a correlation id, reusing one the caller set.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from approval_audit.application.dtos.decision_requests import (
    AppealReviewRequest,
    ApprovalDecisionRequest,
    AuthorityDelegationRequest,
    CreateAuditRecordRequest,
    RejectionDecisionRequest,
    coerce_enum,
)
from approval_audit.application.dtos.service_result import ServiceResult
from approval_audit.application.services.audit_ledger_service import AuditLedgerService
from approval_audit.application.services.authority_validator import AuthorityValidator
from approval_audit.application.services.base import LoggingMixin
from approval_audit.application.services.compliance_report_service import (
    ComplianceReportService,
)
from approval_audit.application.services.decision_record_service import (
    DecisionRecordService,
)
from approval_audit.application.services.decision_workflow_orchestrator import (
    DecisionWorkflowOrchestrator,
    DelegationOutcome,
)
from approval_audit.application.services.integrity_verifier import IntegrityVerifier
from approval_audit.domain.errors.decision import ValidationError
from approval_audit.domain.exceptions import ApprovalAuditError
from approval_audit.domain.models.audit_record import (
    AuditEventType,
    AuditRecord,
    AuditRecordDraft,
)
from approval_audit.domain.models.authority import DecisionType
from approval_audit.domain.models.authority_delegation import AuthorityDelegation
from approval_audit.domain.models.compliance_report import (
    AuditExport,
    ComplianceReport,
    ReportType,
)
from approval_audit.domain.models.filters import (
    AuditFilters,
    ComplianceFilters,
    DecisionFilters,
    ExportFilters,
)
from approval_audit.domain.models.hiring_decision import AppealOutcome, HiringDecision
from approval_audit.domain.models.integrity_report import IntegrityReport
from approval_audit.infrastructure.monitoring.metrics import ApprovalAuditMetrics
from approval_audit.infrastructure.observability.correlation import (
    ensure_correlation_id,
)

T = TypeVar("T")

INTERNAL_ERROR = "INTERNAL_ERROR"

# Written only by the engine's own workflows
ENGINE_OWNED_EVENTS: frozenset[AuditEventType] = frozenset(
    {
        AuditEventType.DECISION_CREATED,
        AuditEventType.DECISION_DELEGATED,
        AuditEventType.AUDIT_EXPORT,
    }
)


class ApprovalAuditService(LoggingMixin):
    """Uniform-result facade over the workflow, ledger and report services."""

    def __init__(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        decisions: DecisionRecordService,
        ledger: AuditLedgerService,
        verifier: IntegrityVerifier,
        reports: ComplianceReportService,
        authority_validator: AuthorityValidator,
        metrics: ApprovalAuditMetrics | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._decisions = decisions
        self._ledger = ledger
        self._verifier = verifier
        self._reports = reports
        self._authority = authority_validator
        self._metrics = metrics
        self._init_logger()

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    async def create_audit_record(
        self, request: CreateAuditRecordRequest
    ) -> ServiceResult[AuditRecord]:
        """Append a caller-initiated record to an existing decision's trail."""

        async def call() -> AuditRecord:
            if request.audit_event_type in ENGINE_OWNED_EVENTS:
                raise ValidationError(
                    f"'{request.audit_event_type.value}' records are written by "
                    "the approval workflow and cannot be created directly",
                    field="audit_event_type",
                )
            actor = await self._orchestrator.require_actor()
            await self._decisions.get(request.hiring_decision_id)
            return await self._ledger.append(
                AuditRecordDraft(
                    hiring_decision_id=request.hiring_decision_id,
                    audit_event_type=request.audit_event_type,
                    actor=actor,
                    change_reason=request.change_reason,
                    previous_state=request.previous_state,
                    new_state=request.new_state,
                    compliance_flag=request.compliance_flag,
                    client_ip_address=request.client_ip_address,
                    user_agent=request.user_agent,
                )
            )

        return await self._run("create_audit_record", call)

    async def get_audit_trail(
        self, decision_id: str, filters: AuditFilters | None = None
    ) -> ServiceResult[list[AuditRecord]]:
        return await self._run(
            "get_audit_trail", lambda: self._ledger.query(decision_id, filters)
        )

    async def validate_audit_integrity(
        self, decision_id: str
    ) -> ServiceResult[IntegrityReport]:
        return await self._run(
            "validate_audit_integrity", lambda: self._verifier.verify(decision_id)
        )

    async def export_audit_data(
        self, filters: ExportFilters | None = None
    ) -> ServiceResult[AuditExport]:
        async def call() -> AuditExport:
            actor = await self._orchestrator.require_actor()
            return await self._ledger.export(filters or ExportFilters(), actor)

        return await self._run("export_audit_data", call)

    async def generate_compliance_report(
        self,
        report_type: ReportType | str,
        filters: ComplianceFilters | None = None,
    ) -> ServiceResult[ComplianceReport]:
        async def call() -> ComplianceReport:
            kind = coerce_enum(ReportType, report_type, "report_type")
            return await self._reports.generate(kind, filters)

        return await self._run("generate_compliance_report", call)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def submit_approval_decision(
        self, application_id: str, request: ApprovalDecisionRequest
    ) -> ServiceResult[HiringDecision]:
        async def call() -> HiringDecision:
            outcome = await self._orchestrator.submit_approval_decision(
                application_id, request
            )
            return outcome.decision

        return await self._run("submit_approval_decision", call)

    async def submit_rejection_decision(
        self, application_id: str, request: RejectionDecisionRequest
    ) -> ServiceResult[HiringDecision]:
        async def call() -> HiringDecision:
            outcome = await self._orchestrator.submit_rejection_decision(
                application_id, request
            )
            return outcome.decision

        return await self._run("submit_rejection_decision", call)

    async def get_decision_history(
        self, application_id: str
    ) -> ServiceResult[list[HiringDecision]]:
        return await self._run(
            "get_decision_history",
            lambda: self._decisions.list_by_application(application_id),
        )

    async def get_hiring_decisions(
        self, filters: DecisionFilters | None = None
    ) -> ServiceResult[list[HiringDecision]]:
        return await self._run(
            "get_hiring_decisions", lambda: self._decisions.list_decisions(filters)
        )

    async def validate_decision_authority(
        self,
        actor_id: str,
        decision_type: DecisionType | str,
        application_id: str | None = None,
    ) -> ServiceResult[bool]:
        async def call() -> bool:
            kind = coerce_enum(DecisionType, decision_type, "decision_type")
            return await self._authority.validate(actor_id, kind, application_id)

        return await self._run("validate_decision_authority", call)

    async def delegate_approval_authority(
        self, request: AuthorityDelegationRequest
    ) -> ServiceResult[AuthorityDelegation]:
        return await self._run(
            "delegate_approval_authority",
            lambda: self._orchestrator.delegate_approval_authority(request),
        )

    async def revoke_authority_delegation(
        self, delegation_id: str, reason: str
    ) -> ServiceResult[AuthorityDelegation]:
        return await self._run(
            "revoke_authority_delegation",
            lambda: self._orchestrator.revoke_authority_delegation(delegation_id, reason),
        )

    async def get_active_delegations(
        self, actor_id: str | None = None
    ) -> ServiceResult[list[AuthorityDelegation]]:
        """Delegations currently lent to the actor (the caller by default)."""

        async def call() -> list[AuthorityDelegation]:
            target = actor_id or (await self._orchestrator.require_actor()).actor_id
            return await self._authority.active_delegations(target)

        return await self._run("get_active_delegations", call)

    async def delegate_decision(
        self, decision_id: str, to_actor_id: str, reason: str
    ) -> ServiceResult[DelegationOutcome]:
        return await self._run(
            "delegate_decision",
            lambda: self._orchestrator.delegate(decision_id, to_actor_id, reason),
        )

    async def record_appeal(
        self, decision_id: str, reason: str
    ) -> ServiceResult[HiringDecision]:
        async def call() -> HiringDecision:
            outcome = await self._orchestrator.record_appeal(decision_id, reason)
            return outcome.decision

        return await self._run("record_appeal", call)

    async def review_appeal(
        self,
        decision_id: str,
        outcome: AppealOutcome | str,
        reason: str,
    ) -> ServiceResult[HiringDecision]:
        async def call() -> HiringDecision:
            review = AppealReviewRequest(outcome=outcome, reason=reason)
            result = await self._orchestrator.review_appeal(
                decision_id, review.outcome, review.reason
            )
            return result.decision

        return await self._run("review_appeal", call)

    async def finalize_decision(
        self,
        decision_id: str,
        decision_type: DecisionType | str,
        reason: str,
    ) -> ServiceResult[HiringDecision]:
        async def call() -> HiringDecision:
            kind = coerce_enum(DecisionType, decision_type, "decision_type")
            outcome = await self._orchestrator.finalize_decision(
                decision_id, kind, reason
            )
            return outcome.decision

        return await self._run("finalize_decision", call)

    async def finalize_expired_rejections(
        self, now: datetime | None = None
    ) -> ServiceResult[list[HiringDecision]]:
        async def call() -> list[HiringDecision]:
            outcomes = await self._orchestrator.finalize_expired_rejections(now)
            return [outcome.decision for outcome in outcomes]

        return await self._run("finalize_expired_rejections", call)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(
        self, operation: str, call: Callable[[], Awaitable[T]]
    ) -> ServiceResult[T]:
        ensure_correlation_id()
        log = self._log_operation(operation)
        try:
            data = await call()
        except ApprovalAuditError as exc:
            log.warning("operation_failed", error_code=exc.code, error=exc.message)
            if self._metrics is not None:
                self._metrics.record_failure(operation, exc.code)
            return ServiceResult.fail(exc.code, exc.message)
        except Exception:
            log.exception("operation_failed_unexpectedly")
            if self._metrics is not None:
                self._metrics.record_failure(operation, INTERNAL_ERROR)
            return ServiceResult.fail(INTERNAL_ERROR, "An unexpected error occurred")
        return ServiceResult.ok(data)

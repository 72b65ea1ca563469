"""Decision workflow orchestrator: the write path for hiring decisions.

Every state change runs as one unit of work: authority is checked first,
then the decision write and its audit record(s) are staged in a single
store transaction. Readers see both or neither. A call that fails
authentication, authority or validation writes nothing at all.

Lock order is application lock before decision locks, so paths that
take both never deadlock with paths that take only decision locks.

Standing authority delegations between managers are plain store writes
with no audit record; decisions taken under one carry ``delegated_by``.

State machine:
    approved                                     (final on creation)
    rejected -> appealed -> appeal_reviewed      (final after review)
    rejected -> final                            (appeal window lapsed)
    rejected | pending -> delegated              (spawns a pending
                                                  successor decision)
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

import structlog

from approval_audit.application.dtos.decision_requests import (
    AuthorityDelegationRequest,
    DecisionRequest,
)
from approval_audit.application.ports.approval_store import (
    ApprovalStoreProtocol,
    StoreTransactionProtocol,
)
from approval_audit.application.ports.authentication import (
    AuthenticationContextProtocol,
)
from approval_audit.application.ports.profile_creation import (
    ProfileCreationSignalProtocol,
)
from approval_audit.application.services.audit_ledger_service import AuditLedgerService
from approval_audit.application.services.authority_validator import (
    AuthorityGrant,
    AuthorityValidator,
)
from approval_audit.application.services.base import (
    Clock,
    LoggingMixin,
    call_with_timeout,
    utc_now,
)
from approval_audit.application.services.decision_locks import (
    application_key,
    decision_key,
)
from approval_audit.application.services.decision_record_service import (
    DecisionRecordService,
)
from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
)
from approval_audit.domain.errors.authority import (
    AuthorityLookupError,
    DelegationDeniedError,
    InsufficientAuthorityError,
    UnauthenticatedError,
)
from approval_audit.domain.errors.decision import (
    AppealWindowClosedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from approval_audit.domain.errors.ledger import LedgerWriteError, StoreUnavailableError
from approval_audit.domain.errors.profile_signal import ProfileSignalTimeoutError
from approval_audit.domain.exceptions import ApprovalAuditError
from approval_audit.domain.models.actor import Actor, SystemActor
from approval_audit.domain.models.audit_record import (
    AuditEventType,
    AuditRecord,
    AuditRecordDraft,
)
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType
from approval_audit.domain.models.authority_delegation import AuthorityDelegation
from approval_audit.domain.models.filters import DecisionFilters
from approval_audit.domain.models.hiring_decision import (
    AppealOutcome,
    DecisionReason,
    HiringDecision,
)
from approval_audit.infrastructure.monitoring.metrics import ApprovalAuditMetrics

T = TypeVar("T")

APPEAL_SWEEPER = SystemActor("appeal_window_sweeper")


@dataclass(frozen=True)
class DecisionOutcome:
    """A decision after a workflow call, plus the records that call wrote.

    ``changed`` is False for an idempotent repeat that wrote nothing.
    """

    decision: HiringDecision
    audit_records: tuple[AuditRecord, ...]
    changed: bool = True


@dataclass(frozen=True)
class DelegationOutcome:
    """The delegated decision and its new pending successor."""

    original: HiringDecision
    successor: HiringDecision
    audit_records: tuple[AuditRecord, ...]


class DecisionWorkflowOrchestrator(LoggingMixin):
    """Facade for every state-changing decision operation."""

    def __init__(
        self,
        authentication: AuthenticationContextProtocol,
        authority_validator: AuthorityValidator,
        decisions: DecisionRecordService,
        ledger: AuditLedgerService,
        store: ApprovalStoreProtocol,
        profile_signal: ProfileCreationSignalProtocol | None = None,
        config: ApprovalAuditConfig = DEFAULT_APPROVAL_AUDIT_CONFIG,
        clock: Clock = utc_now,
        metrics: ApprovalAuditMetrics | None = None,
    ) -> None:
        self._authentication = authentication
        self._authority = authority_validator
        self._decisions = decisions
        self._ledger = ledger
        self._store = store
        self._profile_signal = profile_signal
        self._config = config
        self._clock = clock
        self._metrics = metrics
        self._locks = ledger.locks
        self._init_logger()

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def submit_approval_decision(
        self, application_id: str, request: DecisionRequest
    ) -> DecisionOutcome:
        """Create a final approval and signal profile creation.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            InsufficientAuthorityError: If the actor may not approve.
            AuthorityLookupError: If authority cannot be resolved.
            DuplicateDecisionError: If the application is already decided.
            LedgerWriteError: If the unit of work cannot be committed.
        """
        outcome = await self._submit(application_id, DecisionType.APPROVED, request)
        await self._signal_profile_creation(outcome.decision)
        return outcome

    async def submit_rejection_decision(
        self, application_id: str, request: DecisionRequest
    ) -> DecisionOutcome:
        """Create a non-final rejection with an appeals deadline.

        Raises the same errors as submit_approval_decision.
        """
        return await self._submit(application_id, DecisionType.REJECTED, request)

    async def _submit(
        self,
        application_id: str,
        decision_type: DecisionType,
        request: DecisionRequest,
    ) -> DecisionOutcome:
        if not application_id:
            raise ValidationError("application_id is required", field="application_id")
        actor = await self.require_actor()
        log = self._log_operation(
            "submit_decision",
            application_id=application_id,
            decision_type=decision_type.value,
            actor_id=actor.actor_id,
        )
        grant = await self._authorize(actor, decision_type, log, application_id)

        async with self._locks.hold(application_key(application_id)):
            existing = await self._decisions.list_by_application(application_id)
            # Pending reviews delegated to this actor close with this decision
            closing = [
                d.id
                for d in existing
                if d.decision_type == DecisionType.DELEGATED
                and not d.is_final
                and d.successor_id is None
                and d.approver_id == actor.actor_id
            ]

            async def work(
                tx: StoreTransactionProtocol,
            ) -> tuple[HiringDecision, list[AuditRecord]]:
                decision = await self._decisions.create(
                    tx,
                    application_id=application_id,
                    decision_type=decision_type,
                    decision_reason=request.decision_reason,
                    decision_rationale=request.decision_rationale,
                    decision_confidence=request.decision_confidence,
                    approver_id=actor.actor_id,
                    authority_level=grant.authority_level,
                    delegated_by=grant.delegated_by,
                    effective_date=request.effective_date,
                    supporting_evidence=request.supporting_evidence,
                    compliance_notes=request.compliance_notes,
                )
                records = [
                    await self._ledger.append(
                        AuditRecordDraft(
                            hiring_decision_id=decision.id,
                            audit_event_type=AuditEventType.DECISION_CREATED,
                            actor=actor,
                            change_reason=(
                                f"Decision {decision_type.value}: "
                                f"{request.decision_reason.value}"
                            ),
                            new_state=decision.to_snapshot(),
                            client_ip_address=request.client_ip_address,
                            user_agent=request.user_agent,
                        ),
                        tx,
                    )
                ]
                for pending_id in closing:
                    transition = await self._decisions.finalize(tx, pending_id)
                    if not transition.changed:
                        continue
                    records.append(
                        await self._ledger.append(
                            AuditRecordDraft(
                                hiring_decision_id=pending_id,
                                audit_event_type=AuditEventType.DECISION_MODIFIED,
                                actor=actor,
                                change_reason=(
                                    f"Delegated review closed by decision {decision.id}"
                                ),
                                previous_state=transition.previous.to_snapshot(),
                                new_state=transition.current.to_snapshot(),
                            ),
                            tx,
                        )
                    )
                return decision, records

            async with self._locks.hold_many(decision_key(d) for d in closing):
                decision, records = await self._unit_of_work(application_id, work)

        self._ledger.mark_committed(records)
        if self._metrics is not None:
            self._metrics.record_decision(decision_type.value)
        log.info(
            "decision_submitted",
            decision_id=decision.id,
            authority_level=grant.authority_level.value,
            delegated_by=grant.delegated_by,
            is_final=decision.is_final,
            closed_delegations=len(closing),
        )
        return DecisionOutcome(decision=decision, audit_records=tuple(records))

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    async def delegate(
        self, decision_id: str, to_actor_id: str, reason: str
    ) -> DelegationOutcome:
        """Hand a non-final decision to another approver.

        The caller must be the decision's approver and hold delegation
        authority, and the approver's authority must still cover the
        decision type. The delegate must be resolvable and hold authority
        to decide: the decision's own type, or approval for a pending
        delegated review.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            InsufficientAuthorityError: If any authority check fails.
            AuthorityLookupError: If the delegate cannot be resolved.
            ConflictError: If the decision is final or already delegated.
            ValidationError: If the delegate is the approver or reason is empty.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        if not to_actor_id:
            raise ValidationError("to_actor_id is required", field="to_actor_id")
        actor = await self.require_actor()
        log = self._log_operation(
            "delegate",
            decision_id=decision_id,
            actor_id=actor.actor_id,
            to_actor_id=to_actor_id,
        )
        original = await self._decisions.get(decision_id)
        self._ensure_delegable(original)
        if actor.actor_id != original.approver_id:
            log.warning("decision_rejected_authority", reason="not the approver")
            raise InsufficientAuthorityError(actor.actor_id, DecisionType.DELEGATED.value)
        if to_actor_id == original.approver_id:
            raise ValidationError(
                "A decision cannot be delegated to its own approver",
                field="to_actor_id",
            )
        await self._authorize(actor, DecisionType.DELEGATED, log)
        if not await self._authority.validate(
            original.approver_id, original.decision_type, original.application_id
        ):
            log.warning("decision_rejected_authority", reason="approver authority lapsed")
            raise InsufficientAuthorityError(
                original.approver_id, original.decision_type.value
            )
        required = (
            DecisionType.APPROVED
            if original.decision_type == DecisionType.DELEGATED
            else original.decision_type
        )
        delegate_grant = await self._authority.resolve_grant(
            to_actor_id, required, original.application_id
        )
        if delegate_grant is None:
            log.warning("decision_rejected_authority", reason="delegate lacks authority")
            raise InsufficientAuthorityError(to_actor_id, required.value)
        delegate_level = delegate_grant.authority_level

        async def work(
            tx: StoreTransactionProtocol,
        ) -> tuple[HiringDecision, HiringDecision, list[AuditRecord]]:
            current = await self._decisions.get_for_update(tx, decision_id)
            self._ensure_delegable(current)
            successor = await self._decisions.create(
                tx,
                application_id=current.application_id,
                decision_type=DecisionType.DELEGATED,
                decision_reason=DecisionReason.DELEGATED_REVIEW,
                decision_rationale=reason,
                decision_confidence=current.decision_confidence,
                approver_id=to_actor_id,
                authority_level=delegate_level,
                delegated_by=actor.actor_id,
                predecessor_id=current.id,
            )
            transition = await self._decisions.update(
                tx, decision_id, successor_id=successor.id
            )
            records = [
                await self._ledger.append(
                    AuditRecordDraft(
                        hiring_decision_id=decision_id,
                        audit_event_type=AuditEventType.DECISION_DELEGATED,
                        actor=actor,
                        change_reason=reason,
                        previous_state=transition.previous.to_snapshot(),
                        new_state={
                            **transition.current.to_snapshot(),
                            "delegated_to": to_actor_id,
                        },
                    ),
                    tx,
                ),
                await self._ledger.append(
                    AuditRecordDraft(
                        hiring_decision_id=successor.id,
                        audit_event_type=AuditEventType.DECISION_CREATED,
                        actor=actor,
                        change_reason=f"Delegated from decision {decision_id}: {reason}",
                        new_state=successor.to_snapshot(),
                    ),
                    tx,
                ),
            ]
            return transition.current, successor, records

        keys = [application_key(original.application_id), decision_key(decision_id)]
        async with self._locks.hold_many(keys):
            updated, successor, records = await self._unit_of_work(decision_id, work)

        self._ledger.mark_committed(records)
        if self._metrics is not None:
            self._metrics.record_decision(DecisionType.DELEGATED.value)
        log.info("decision_delegated", successor_id=successor.id)
        return DelegationOutcome(
            original=updated, successor=successor, audit_records=tuple(records)
        )

    @staticmethod
    def _ensure_delegable(decision: HiringDecision) -> None:
        if decision.is_final or decision.successor_id is not None:
            raise ConflictError(
                decision.id,
                current_state=(
                    f"final:{decision.state.value}"
                    if decision.is_final
                    else decision.state.value
                ),
                requested_state="delegated",
            )
        if decision.appealed_at is not None:
            raise ConflictError(
                decision.id,
                current_state=decision.state.value,
                requested_state="delegated",
                message=f"Decision {decision.id} is under appeal and cannot be delegated",
            )

    # ------------------------------------------------------------------
    # Authority delegation
    # ------------------------------------------------------------------

    async def delegate_approval_authority(
        self, request: AuthorityDelegationRequest
    ) -> AuthorityDelegation:
        """Lend the caller's authority to another manager for a period.

        The caller may lend at most their own authority level. The
        delegate must be known to the authority table.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            DelegationDeniedError: If the caller is a system actor or the
                level exceeds their own.
            AuthorityLookupError: If either actor cannot be resolved.
            ValidationError: On self-delegation or a period already over.
            StoreUnavailableError: If the delegation cannot be written.
        """
        actor = await self.require_actor()
        log = self._log_operation(
            "delegate_approval_authority",
            actor_id=actor.actor_id,
            delegate_actor_id=request.delegate_actor_id,
            authority_level=request.authority_level.value,
        )
        if actor.is_system:
            log.warning("delegation_denied", reason="system actor")
            raise DelegationDeniedError(
                actor.actor_id,
                request.authority_level.value,
                "system actors hold no authority",
            )
        if request.delegate_actor_id == actor.actor_id:
            raise ValidationError(
                "Authority cannot be delegated to oneself", field="delegate_actor_id"
            )
        own_level = await self._authority.authority_level(actor.actor_id)
        if request.authority_level > own_level:
            log.warning("delegation_denied", own_level=own_level.value)
            raise DelegationDeniedError(
                actor.actor_id,
                request.authority_level.value,
                f"exceeds own level '{own_level.value}'",
            )
        await self._authority.authority_level(request.delegate_actor_id)

        now = self._clock()
        effective_from = request.effective_from or now
        if request.effective_until is not None and request.effective_until <= now:
            raise ValidationError(
                "effective_until must be in the future", field="effective_until"
            )
        delegation = AuthorityDelegation(
            id=str(uuid.uuid4()),
            delegating_actor_id=actor.actor_id,
            delegate_actor_id=request.delegate_actor_id,
            authority_level=request.authority_level,
            delegation_reason=request.delegation_reason,
            effective_from=effective_from,
            effective_until=request.effective_until,
            created_at=now,
            max_decisions_per_day=request.max_decisions_per_day,
            application_ids=request.application_ids,
        )
        stored = await self._call_store(
            "insert_delegation", self._store.insert_delegation(delegation)
        )
        log.info(
            "authority_delegated",
            delegation_id=stored.id,
            effective_until=(
                stored.effective_until.isoformat() if stored.effective_until else None
            ),
            max_decisions_per_day=stored.max_decisions_per_day,
        )
        return stored

    async def revoke_authority_delegation(
        self, delegation_id: str, reason: str
    ) -> AuthorityDelegation:
        """Withdraw a delegation. Revoking twice returns the first revocation.

        Only the delegating manager or an admin may revoke.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            NotFoundError: If the delegation does not exist.
            InsufficientAuthorityError: If the caller may not revoke it.
            ValidationError: If reason is empty.
            StoreUnavailableError: If the store cannot be reached.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        actor = await self.require_actor()
        log = self._log_operation(
            "revoke_authority_delegation",
            delegation_id=delegation_id,
            actor_id=actor.actor_id,
        )
        delegation = await self._call_store(
            "get_delegation", self._store.get_delegation(delegation_id)
        )
        if delegation is None:
            raise NotFoundError("authority_delegation", delegation_id)
        if actor.actor_id != delegation.delegating_actor_id:
            if actor.is_system or (
                await self._authority.authority_level(actor.actor_id)
                != AuthorityLevel.ADMIN
            ):
                log.warning("delegation_revocation_denied")
                raise InsufficientAuthorityError(actor.actor_id, "revoke_delegation")
        if not delegation.is_active:
            return delegation
        revoked = await self._call_store(
            "update_delegation",
            self._store.update_delegation(delegation.revoke(self._clock(), reason)),
        )
        log.info("authority_delegation_revoked")
        return revoked

    async def _call_store(self, operation: str, call: Awaitable[T]) -> T:
        timeout = self._config.store_timeout_seconds
        return await call_with_timeout(
            call,
            timeout,
            lambda: StoreUnavailableError(operation, f"timed out after {timeout}s"),
        )

    # ------------------------------------------------------------------
    # Appeals and finalization
    # ------------------------------------------------------------------

    async def record_appeal(self, decision_id: str, reason: str) -> DecisionOutcome:
        """File an appeal against a rejection before its deadline.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            ConflictError: If the decision is not an open rejection or is
                already appealed or final.
            AppealWindowClosedError: If the appeals deadline has passed.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        actor = await self.require_actor()
        log = self._log_operation(
            "record_appeal", decision_id=decision_id, actor_id=actor.actor_id
        )

        async def work(
            tx: StoreTransactionProtocol,
        ) -> tuple[HiringDecision, list[AuditRecord]]:
            current = await self._decisions.get_for_update(tx, decision_id)
            now = self._clock()
            if current.decision_type != DecisionType.REJECTED:
                raise ConflictError(
                    decision_id,
                    current_state=current.state.value,
                    requested_state="appealed",
                    message="Only rejected decisions can be appealed",
                )
            if current.appealed_at is not None:
                raise ConflictError(
                    decision_id,
                    current_state=current.state.value,
                    requested_state="appealed",
                    message=f"Decision {decision_id} has already been appealed",
                )
            if current.appeals_deadline is not None and now > current.appeals_deadline:
                raise AppealWindowClosedError(
                    decision_id, current.appeals_deadline.isoformat()
                )
            if current.is_final:
                raise ConflictError(
                    decision_id,
                    current_state=current.state.value,
                    requested_state="appealed",
                    message=f"Decision {decision_id} is final and can no longer be appealed",
                )
            transition = await self._decisions.update(tx, decision_id, appealed_at=now)
            record = await self._ledger.append(
                AuditRecordDraft(
                    hiring_decision_id=decision_id,
                    audit_event_type=AuditEventType.DECISION_APPEALED,
                    actor=actor,
                    change_reason=reason,
                    previous_state=transition.previous.to_snapshot(),
                    new_state=transition.current.to_snapshot(),
                    compliance_flag=True,
                ),
                tx,
            )
            return transition.current, [record]

        async with self._locks.hold(decision_key(decision_id)):
            decision, records = await self._unit_of_work(decision_id, work)
        self._ledger.mark_committed(records)
        log.info("decision_appealed")
        return DecisionOutcome(decision=decision, audit_records=tuple(records))

    async def review_appeal(
        self, decision_id: str, outcome: AppealOutcome, reason: str
    ) -> DecisionOutcome:
        """Record an appeal outcome and finalize the rejection.

        Repeating a review with the same outcome is an idempotent success.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            InsufficientAuthorityError: If the actor may not reject.
            ConflictError: If the decision has no appeal, or was reviewed
                with a different outcome.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        actor = await self.require_actor()
        log = self._log_operation(
            "review_appeal",
            decision_id=decision_id,
            actor_id=actor.actor_id,
            outcome=outcome.value,
        )
        await self._authorize(actor, DecisionType.REJECTED, log)

        async def work(
            tx: StoreTransactionProtocol,
        ) -> tuple[HiringDecision, list[AuditRecord]]:
            current = await self._decisions.get_for_update(tx, decision_id)
            if current.appealed_at is None:
                raise ConflictError(
                    decision_id,
                    current_state=current.state.value,
                    requested_state="appeal_reviewed",
                    message=f"Decision {decision_id} has no appeal to review",
                )
            if current.is_final:
                if current.appeal_outcome == outcome:
                    return current, []
                reviewed = current.appeal_outcome
                raise ConflictError(
                    decision_id,
                    current_state=(
                        f"appeal_reviewed:{reviewed.value}"
                        if reviewed
                        else current.state.value
                    ),
                    requested_state=f"appeal_reviewed:{outcome.value}",
                )
            transition = await self._decisions.finalize(
                tx, decision_id, DecisionType.REJECTED, appeal_outcome=outcome
            )
            record = await self._ledger.append(
                AuditRecordDraft(
                    hiring_decision_id=decision_id,
                    audit_event_type=AuditEventType.APPEAL_REVIEWED,
                    actor=actor,
                    change_reason=reason,
                    previous_state=transition.previous.to_snapshot(),
                    new_state=transition.current.to_snapshot(),
                    compliance_flag=True,
                ),
                tx,
            )
            return transition.current, [record]

        async with self._locks.hold(decision_key(decision_id)):
            decision, records = await self._unit_of_work(decision_id, work)
        self._ledger.mark_committed(records)
        log.info("appeal_reviewed", changed=bool(records))
        return DecisionOutcome(
            decision=decision, audit_records=tuple(records), changed=bool(records)
        )

    async def finalize_decision(
        self,
        decision_id: str,
        decision_type: DecisionType,
        reason: str,
    ) -> DecisionOutcome:
        """Finalize a decision, serialized against concurrent finalizers.

        The first finalizer writes; a later one with the same decision
        type succeeds without writing, and one with a different type
        fails with ConflictError. A rejection cannot be finalized while
        its appeals window is still open.

        Args:
            decision_id: Decision to finalize.
            decision_type: The final decision type the caller expects.
            reason: Change reason recorded on the audit record.

        Raises:
            UnauthenticatedError: If no actor is resolvable.
            InsufficientAuthorityError: If the actor may not decide
                ``decision_type``.
            ConflictError: If the decision is final with another type, is
                under appeal, or is a rejection still open to appeal.
            NotFoundError: If the decision does not exist.
        """
        actor = await self.require_actor()
        log = self._log_operation(
            "finalize_decision",
            decision_id=decision_id,
            decision_type=decision_type.value,
            actor_id=actor.actor_id,
        )
        await self._authorize(actor, decision_type, log)
        return await self._finalize(
            decision_id, decision_type, reason, actor, self._clock(), log
        )

    async def _finalize(
        self,
        decision_id: str,
        decision_type: DecisionType,
        reason: str,
        actor: Actor,
        now: datetime,
        log: structlog.BoundLogger,
    ) -> DecisionOutcome:
        async def work(
            tx: StoreTransactionProtocol,
        ) -> tuple[HiringDecision, list[AuditRecord]]:
            current = await self._decisions.get_for_update(tx, decision_id)
            if not current.is_final and current.appealed_at is not None:
                raise ConflictError(
                    decision_id,
                    current_state=current.state.value,
                    requested_state=f"final:{decision_type.value}",
                    message=(
                        f"Decision {decision_id} is under appeal; "
                        "review the appeal to finalize it"
                    ),
                )
            if (
                not current.is_final
                and current.decision_type == DecisionType.REJECTED
                and current.appeals_deadline is not None
                and now <= current.appeals_deadline
            ):
                raise ConflictError(
                    decision_id,
                    current_state=current.state.value,
                    requested_state=f"final:{decision_type.value}",
                    message=(
                        f"Decision {decision_id} is open to appeal until "
                        f"{current.appeals_deadline.isoformat()}"
                    ),
                )
            transition = await self._decisions.finalize(tx, decision_id, decision_type)
            if not transition.changed:
                return transition.current, []
            record = await self._ledger.append(
                AuditRecordDraft(
                    hiring_decision_id=decision_id,
                    audit_event_type=AuditEventType.DECISION_MODIFIED,
                    actor=actor,
                    change_reason=reason,
                    previous_state=transition.previous.to_snapshot(),
                    new_state=transition.current.to_snapshot(),
                ),
                tx,
            )
            return transition.current, [record]

        async with self._locks.hold(decision_key(decision_id)):
            decision, records = await self._unit_of_work(decision_id, work)
        self._ledger.mark_committed(records)
        log.info("decision_finalized", changed=bool(records))
        return DecisionOutcome(
            decision=decision, audit_records=tuple(records), changed=bool(records)
        )

    async def finalize_expired_rejections(
        self, now: datetime | None = None
    ) -> list[DecisionOutcome]:
        """Finalize un-appealed rejections whose appeals deadline passed.

        A deadline has passed once ``now`` is strictly after it, matching
        the last moment record_appeal still accepts an appeal. Each
        finalization is its own unit of work with a system-generated
        ``decision_modified`` record. Safe to re-run.
        """
        now = now or self._clock()
        log = self._log_operation("finalize_expired_rejections", now=now.isoformat())
        rejections = await self._decisions.list_decisions(
            DecisionFilters(decision_types=frozenset({DecisionType.REJECTED}))
        )
        expired = [
            d
            for d in rejections
            if not d.is_final
            and d.appealed_at is None
            and d.successor_id is None
            and d.appeals_deadline is not None
            and d.appeals_deadline < now
        ]
        outcomes: list[DecisionOutcome] = []
        for decision in sorted(expired, key=lambda d: d.created_at):
            try:
                outcome = await self._finalize(
                    decision.id,
                    DecisionType.REJECTED,
                    "Appeals window lapsed without an appeal",
                    APPEAL_SWEEPER,
                    now,
                    log.bind(decision_id=decision.id),
                )
            except ConflictError:
                # Appealed or delegated since the scan
                log.info("expired_rejection_skipped", decision_id=decision.id)
                continue
            if outcome.changed:
                outcomes.append(outcome)
        log.info("expired_rejections_finalized", count=len(outcomes))
        return outcomes

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def require_actor(self) -> Actor:
        """Resolve the calling actor.

        Raises:
            UnauthenticatedError: If the authentication context has none.
            AuthorityLookupError: If the context does not answer in time.
        """
        timeout = self._config.authority_lookup_timeout_seconds
        actor = await call_with_timeout(
            self._authentication.get_current_actor(),
            timeout,
            lambda: AuthorityLookupError(
                "unknown", f"authentication context timed out after {timeout}s"
            ),
        )
        if actor is None:
            raise UnauthenticatedError()
        return actor

    async def _authorize(
        self,
        actor: Actor,
        decision_type: DecisionType,
        log: structlog.BoundLogger,
        application_id: str | None = None,
    ) -> AuthorityGrant:
        if actor.is_system:
            log.warning("decision_rejected_authority", reason="system actor")
            raise InsufficientAuthorityError(actor.actor_id, decision_type.value)
        grant = await self._authority.resolve_grant(
            actor.actor_id, decision_type, application_id
        )
        if grant is None:
            log.warning("decision_rejected_authority")
            raise InsufficientAuthorityError(actor.actor_id, decision_type.value)
        return grant

    async def _unit_of_work(
        self,
        decision_id: str,
        work: Callable[[StoreTransactionProtocol], Awaitable[T]],
    ) -> T:
        """Run ``work`` in one store transaction under the store timeout.

        Raises:
            LedgerWriteError: On timeout or an unexpected store failure.
        """
        timeout = self._config.store_timeout_seconds

        async def run() -> T:
            async with self._store.transaction() as tx:
                return await work(tx)

        try:
            return await call_with_timeout(
                run(),
                timeout,
                lambda: LedgerWriteError(
                    decision_id, f"unit of work timed out after {timeout}s"
                ),
            )
        except ApprovalAuditError:
            raise
        except Exception as exc:
            raise LedgerWriteError(decision_id, str(exc)) from exc

    async def _signal_profile_creation(self, decision: HiringDecision) -> None:
        if self._profile_signal is None:
            return
        log = self._log_operation("signal_profile_creation", decision_id=decision.id)
        try:
            await call_with_timeout(
                self._profile_signal.signal_profile_creation(decision),
                self._config.store_timeout_seconds,
                lambda: ProfileSignalTimeoutError(
                    decision.id, self._config.store_timeout_seconds
                ),
            )
        except Exception as exc:
            # Delivery and retry belong to the onboarding system
            log.warning(
                "profile_creation_signal_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return
        log.info("profile_creation_signaled")

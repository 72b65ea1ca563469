"""Decision record service: lifecycle of HiringDecision rows.

Writes happen inside a store transaction opened by the caller, who also
holds the decision (or application) lock. Reads see committed data only.

Invariants:
- An application with a standing final decision accepts no new one.
- A final decision never changes; finalize is idempotent for the same
  final state and a conflict for a different one.
- Rejections carry ``appeals_deadline = created_at + appeal window``.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, TypeVar

from approval_audit.application.ports.approval_store import (
    ApprovalStoreProtocol,
    StoreTransactionProtocol,
)
from approval_audit.application.services.base import (
    Clock,
    LoggingMixin,
    call_with_timeout,
    utc_now,
)
from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
)
from approval_audit.domain.errors.decision import (
    ConflictError,
    DuplicateDecisionError,
    NotFoundError,
)
from approval_audit.domain.errors.ledger import StoreUnavailableError
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType
from approval_audit.domain.models.filters import DecisionFilters
from approval_audit.domain.models.hiring_decision import DecisionReason, HiringDecision

T = TypeVar("T")


@dataclass(frozen=True)
class DecisionTransition:
    """Result of a finalize or update: before, after, and whether it wrote."""

    previous: HiringDecision
    current: HiringDecision
    changed: bool


class DecisionRecordService(LoggingMixin):
    """Creates, finalizes and reads hiring decisions."""

    def __init__(
        self,
        store: ApprovalStoreProtocol,
        config: ApprovalAuditConfig = DEFAULT_APPROVAL_AUDIT_CONFIG,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock
        self._init_logger()

    async def create(
        self,
        tx: StoreTransactionProtocol,
        *,
        application_id: str,
        decision_type: DecisionType,
        decision_reason: DecisionReason,
        decision_rationale: str,
        decision_confidence: int,
        approver_id: str,
        authority_level: AuthorityLevel,
        effective_date: datetime | None = None,
        supporting_evidence: dict[str, Any] | None = None,
        compliance_notes: str | None = None,
        delegated_by: str | None = None,
        predecessor_id: str | None = None,
    ) -> HiringDecision:
        """Stage a new decision.

        Approvals are final immediately. Rejections start non-final with
        an appeals deadline. Delegated decisions start pending.

        Raises:
            DuplicateDecisionError: If the application already has a
                standing final decision.
            ValidationError: If the decision fields are malformed.
        """
        log = self._log_operation(
            "create_decision",
            application_id=application_id,
            decision_type=decision_type.value,
        )
        existing = await self.list_by_application(application_id)
        blocking = next((d for d in existing if d.blocks_new_decision), None)
        if blocking is not None:
            log.info("decision_rejected_duplicate", existing_decision_id=blocking.id)
            raise DuplicateDecisionError(application_id, blocking.id)

        created_at = self._clock()
        decision = HiringDecision(
            id=str(uuid.uuid4()),
            application_id=application_id,
            decision_type=decision_type,
            decision_reason=decision_reason,
            decision_rationale=decision_rationale,
            decision_confidence=decision_confidence,
            approver_id=approver_id,
            authority_level=authority_level,
            created_at=created_at,
            effective_date=effective_date or created_at,
            is_final=decision_type == DecisionType.APPROVED,
            appeals_deadline=(
                created_at + self._config.appeal_window
                if decision_type == DecisionType.REJECTED
                else None
            ),
            supporting_evidence=dict(supporting_evidence or {}),
            compliance_notes=compliance_notes,
            delegated_by=delegated_by,
            predecessor_id=predecessor_id,
        )
        stored = await tx.insert_decision(decision)
        log.debug("decision_staged", decision_id=stored.id)
        return stored

    async def finalize(
        self,
        tx: StoreTransactionProtocol,
        decision_id: str,
        decision_type: DecisionType | None = None,
        **changes: Any,
    ) -> DecisionTransition:
        """Stage ``is_final = True`` (plus any other field changes).

        Args:
            tx: Open store transaction.
            decision_id: Decision to finalize.
            decision_type: Expected final decision type; a final decision
                of a different type is a conflict. None accepts any.
            **changes: Further fields to set in the same write.

        Returns:
            The transition; ``changed`` is False when already final.

        Raises:
            NotFoundError: If the decision does not exist.
            ConflictError: If already final with a different decision type.
        """
        current = await self.get_for_update(tx, decision_id)
        if current.is_final:
            if decision_type is not None and current.decision_type != decision_type:
                raise ConflictError(
                    decision_id,
                    current_state=f"final:{current.decision_type.value}",
                    requested_state=f"final:{decision_type.value}",
                )
            return DecisionTransition(previous=current, current=current, changed=False)
        if decision_type is not None and current.decision_type != decision_type:
            raise ConflictError(
                decision_id,
                current_state=current.state.value,
                requested_state=f"final:{decision_type.value}",
            )
        updated = replace(current, is_final=True, **changes)
        await tx.update_decision(updated, expected=current)
        return DecisionTransition(previous=current, current=updated, changed=True)

    async def update(
        self,
        tx: StoreTransactionProtocol,
        decision_id: str,
        **changes: Any,
    ) -> DecisionTransition:
        """Stage a change to a non-final decision.

        Raises:
            NotFoundError: If the decision does not exist.
            ConflictError: If the decision is final.
        """
        current = await self.get_for_update(tx, decision_id)
        updated = current.evolve(**changes)
        await tx.update_decision(updated, expected=current)
        return DecisionTransition(previous=current, current=updated, changed=True)

    async def get(self, decision_id: str) -> HiringDecision:
        """Get a committed decision.

        Raises:
            NotFoundError: If the decision does not exist.
            StoreUnavailableError: If the store fails or times out.
        """
        decision = await self._read("get_decision", self._store.get_decision(decision_id))
        if decision is None:
            raise NotFoundError("decision", decision_id)
        return decision

    async def find(self, decision_id: str) -> HiringDecision | None:
        return await self._read("get_decision", self._store.get_decision(decision_id))

    async def list_by_application(self, application_id: str) -> list[HiringDecision]:
        """Decisions for an application, newest first."""
        decisions = await self._read(
            "list_decisions_by_application",
            self._store.list_decisions_by_application(application_id),
        )
        return sorted(decisions, key=lambda d: d.created_at, reverse=True)

    async def list_decisions(
        self, filters: DecisionFilters | None = None
    ) -> list[HiringDecision]:
        """Decisions matching filters, newest first."""
        decisions = await self._read(
            "list_decisions", self._store.list_decisions(filters or DecisionFilters())
        )
        return sorted(decisions, key=lambda d: d.created_at, reverse=True)

    async def get_for_update(
        self, tx: StoreTransactionProtocol, decision_id: str
    ) -> HiringDecision:
        """Read a decision inside a transaction, staged changes included.

        Raises:
            NotFoundError: If the decision does not exist.
        """
        decision = await tx.get_decision(decision_id)
        if decision is None:
            raise NotFoundError("decision", decision_id)
        return decision

    async def _read(self, operation: str, call: Awaitable[T]) -> T:
        timeout = self._config.store_timeout_seconds
        return await call_with_timeout(
            call,
            timeout,
            lambda: StoreUnavailableError(operation, f"timed out after {timeout}s"),
        )

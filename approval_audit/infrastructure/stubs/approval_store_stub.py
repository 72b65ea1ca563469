"""In-memory approval store stub.

Implements ApprovalStoreProtocol with staged transactions: writes are
buffered per transaction and applied in one synchronous step on commit,
so a concurrent reader sees either none or all of a unit of work.

Failure injection (for atomicity tests):
- fail_next_audit_insert(): next insert_audit_record raises LedgerWriteError
- fail_next_decision_insert(): next insert_decision raises LedgerWriteError
- fail_next_commit(): next commit raises LedgerWriteError, nothing applied
- set_read_failure(): reads raise StoreUnavailableError
- set_latency(): every call sleeps first (timeout tests)

WARNING: Not for production use.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from approval_audit.domain.errors.decision import ConflictError, NotFoundError
from approval_audit.domain.errors.ledger import LedgerWriteError, StoreUnavailableError
from approval_audit.domain.models.audit_record import AuditRecord
from approval_audit.domain.models.authority_delegation import AuthorityDelegation
from approval_audit.domain.models.filters import DateRange, DecisionFilters
from approval_audit.domain.models.hiring_decision import HiringDecision
from approval_audit.domain.primitives.ensure_atomicity import AtomicOperationContext


class InMemoryTransaction:
    """Writes staged against an InMemoryApprovalStore."""

    def __init__(self, store: InMemoryApprovalStore) -> None:
        self._store = store
        self.new_decisions: dict[str, HiringDecision] = {}
        self.updated_decisions: dict[str, tuple[HiringDecision, HiringDecision]] = {}
        self.new_records: list[AuditRecord] = []
        self.discarded = False

    def discard(self) -> None:
        """Drop every staged write."""
        self.new_decisions.clear()
        self.updated_decisions.clear()
        self.new_records.clear()
        self.discarded = True

    async def get_decision(self, decision_id: str) -> HiringDecision | None:
        await self._store._before_call()
        if decision_id in self.updated_decisions:
            return self.updated_decisions[decision_id][0]
        if decision_id in self.new_decisions:
            return self.new_decisions[decision_id]
        return self._store._decisions.get(decision_id)

    async def insert_decision(self, decision: HiringDecision) -> HiringDecision:
        await self._store._before_call()
        if self._store._decision_insert_failure is not None:
            reason = self._store._decision_insert_failure
            self._store._decision_insert_failure = None
            raise LedgerWriteError(decision.id, reason)
        if decision.id in self._store._decisions or decision.id in self.new_decisions:
            raise LedgerWriteError(decision.id, "duplicate decision id")
        self.new_decisions[decision.id] = decision
        return decision

    async def update_decision(
        self, decision: HiringDecision, expected: HiringDecision
    ) -> HiringDecision:
        await self._store._before_call()
        if decision.id in self.new_decisions:
            if self.new_decisions[decision.id] != expected:
                raise ConflictError(decision.id, "changed", "updated")
            self.new_decisions[decision.id] = decision
            return decision
        current = await self.get_decision(decision.id)
        if current is None:
            raise NotFoundError("decision", decision.id)
        if current != expected:
            raise ConflictError(
                decision.id,
                current_state=current.state.value,
                requested_state=decision.state.value,
                message=f"Decision {decision.id} changed since it was read",
            )
        original_expected = self.updated_decisions.get(decision.id, (None, expected))[1]
        self.updated_decisions[decision.id] = (decision, original_expected)
        return decision

    async def insert_audit_record(self, record: AuditRecord) -> AuditRecord:
        await self._store._before_call()
        if self._store._audit_insert_failure is not None:
            reason = self._store._audit_insert_failure
            self._store._audit_insert_failure = None
            raise LedgerWriteError(record.hiring_decision_id, reason)
        stored = _with_sequence(record, next(self._store._sequence))
        self.new_records.append(stored)
        return copy.deepcopy(stored)

    async def latest_audit_record(self, decision_id: str) -> AuditRecord | None:
        await self._store._before_call()
        staged = [r for r in self.new_records if r.hiring_decision_id == decision_id]
        if staged:
            return copy.deepcopy(staged[-1])
        committed = self._store._records_by_decision.get(decision_id, [])
        return copy.deepcopy(committed[-1]) if committed else None


def _with_sequence(record: AuditRecord, sequence: int) -> AuditRecord:
    return AuditRecord(
        id=record.id,
        hiring_decision_id=record.hiring_decision_id,
        audit_event_type=record.audit_event_type,
        actor_id=record.actor_id,
        actor_name=record.actor_name,
        change_reason=record.change_reason,
        digital_signature=record.digital_signature,
        created_at=record.created_at,
        is_system_generated=record.is_system_generated,
        compliance_flag=record.compliance_flag,
        previous_state=copy.deepcopy(record.previous_state),
        new_state=copy.deepcopy(record.new_state),
        client_ip_address=record.client_ip_address,
        user_agent=record.user_agent,
        sequence=sequence,
    )


class InMemoryApprovalStore:
    """In-memory implementation of ApprovalStoreProtocol."""

    def __init__(self) -> None:
        self._decisions: dict[str, HiringDecision] = {}
        self._delegations: dict[str, AuthorityDelegation] = {}
        self._records: list[AuditRecord] = []
        self._records_by_decision: dict[str, list[AuditRecord]] = {}
        self._sequence = itertools.count(1)
        self._audit_insert_failure: str | None = None
        self._decision_insert_failure: str | None = None
        self._commit_failure: str | None = None
        self._read_failure: str | None = None
        self._latency_seconds: float = 0.0
        self.commit_count = 0
        self.rollback_count = 0

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Clear all stored data and injected failures."""
        self._decisions.clear()
        self._delegations.clear()
        self._records.clear()
        self._records_by_decision.clear()
        self._sequence = itertools.count(1)
        self._audit_insert_failure = None
        self._decision_insert_failure = None
        self._commit_failure = None
        self._read_failure = None
        self._latency_seconds = 0.0
        self.commit_count = 0
        self.rollback_count = 0

    def fail_next_audit_insert(self, reason: str = "simulated audit insert failure") -> None:
        self._audit_insert_failure = reason

    def fail_next_decision_insert(
        self, reason: str = "simulated decision insert failure"
    ) -> None:
        self._decision_insert_failure = reason

    def fail_next_commit(self, reason: str = "simulated commit failure") -> None:
        self._commit_failure = reason

    def set_read_failure(self, reason: str | None) -> None:
        """Make every committed-data read fail (None to restore)."""
        self._read_failure = reason

    def set_latency(self, seconds: float) -> None:
        """Delay every store call by the given number of seconds."""
        self._latency_seconds = seconds

    def add_decision(self, decision: HiringDecision) -> None:
        """Insert a decision directly, bypassing the workflow."""
        self._decisions[decision.id] = decision

    def add_audit_record(self, record: AuditRecord) -> AuditRecord:
        """Insert a record directly (imported or tampered data in tests).

        The record keeps its fields verbatim and gets the next sequence.
        """
        stored = _with_sequence(record, next(self._sequence))
        self._append_committed(stored)
        return copy.deepcopy(stored)

    def add_delegation(self, delegation: AuthorityDelegation) -> None:
        """Insert a delegation directly, bypassing the workflow."""
        self._delegations[delegation.id] = delegation

    @property
    def decision_count(self) -> int:
        return len(self._decisions)

    @property
    def audit_record_count(self) -> int:
        return len(self._records)

    @property
    def delegation_count(self) -> int:
        return len(self._delegations)

    # ------------------------------------------------------------------
    # ApprovalStoreProtocol
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        tx = InMemoryTransaction(self)
        async with AtomicOperationContext(operation="approval_store_transaction") as ctx:
            ctx.add_rollback(tx.discard)
            ctx.add_rollback(self._count_rollback)
            yield tx
            await self._before_call()
            if self._commit_failure is not None:
                reason = self._commit_failure
                self._commit_failure = None
                decision_id = next(iter(tx.new_decisions), None) or next(
                    (r.hiring_decision_id for r in tx.new_records), "unknown"
                )
                raise LedgerWriteError(decision_id, reason)
            self._apply(tx)

    async def get_decision(self, decision_id: str) -> HiringDecision | None:
        await self._before_read("get_decision")
        return self._decisions.get(decision_id)

    async def list_decisions_by_application(
        self, application_id: str
    ) -> list[HiringDecision]:
        await self._before_read("list_decisions_by_application")
        matches = [d for d in self._decisions.values() if d.application_id == application_id]
        return sorted(matches, key=lambda d: d.created_at, reverse=True)

    async def list_decisions(self, filters: DecisionFilters) -> list[HiringDecision]:
        await self._before_read("list_decisions")
        matches = [d for d in self._decisions.values() if filters.matches(d)]
        return sorted(matches, key=lambda d: d.created_at, reverse=True)

    async def list_audit_records(self, decision_id: str) -> list[AuditRecord]:
        await self._before_read("list_audit_records")
        return copy.deepcopy(self._records_by_decision.get(decision_id, []))

    async def find_audit_records(
        self,
        decision_ids: tuple[str, ...] | None = None,
        date_range: DateRange | None = None,
    ) -> list[AuditRecord]:
        await self._before_read("find_audit_records")
        records = [
            r
            for r in self._records
            if (decision_ids is None or r.hiring_decision_id in decision_ids)
            and (date_range is None or date_range.contains(r.created_at))
        ]
        return copy.deepcopy(records)

    async def get_audit_record(self, record_id: str) -> AuditRecord | None:
        await self._before_read("get_audit_record")
        for record in self._records:
            if record.id == record_id:
                return copy.deepcopy(record)
        return None

    async def insert_delegation(
        self, delegation: AuthorityDelegation
    ) -> AuthorityDelegation:
        await self._before_call()
        if delegation.id in self._delegations:
            raise StoreUnavailableError("insert_delegation", "duplicate delegation id")
        self._delegations[delegation.id] = delegation
        return delegation

    async def update_delegation(
        self, delegation: AuthorityDelegation
    ) -> AuthorityDelegation:
        await self._before_call()
        if delegation.id not in self._delegations:
            raise NotFoundError("authority_delegation", delegation.id)
        self._delegations[delegation.id] = delegation
        return delegation

    async def get_delegation(self, delegation_id: str) -> AuthorityDelegation | None:
        await self._before_read("get_delegation")
        return self._delegations.get(delegation_id)

    async def list_delegations(
        self,
        delegate_actor_id: str | None = None,
        delegating_actor_id: str | None = None,
    ) -> list[AuthorityDelegation]:
        await self._before_read("list_delegations")
        matches = [
            d
            for d in self._delegations.values()
            if (delegate_actor_id is None or d.delegate_actor_id == delegate_actor_id)
            and (
                delegating_actor_id is None
                or d.delegating_actor_id == delegating_actor_id
            )
        ]
        return sorted(matches, key=lambda d: d.created_at)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, tx: InMemoryTransaction) -> None:
        # Re-check every compare-and-swap before touching anything
        for decision_id, (_, expected) in tx.updated_decisions.items():
            if self._decisions.get(decision_id) != expected:
                raise ConflictError(
                    decision_id,
                    current_state="changed",
                    requested_state="updated",
                    message=f"Decision {decision_id} changed before commit",
                )
        for decision in tx.new_decisions.values():
            self._decisions[decision.id] = decision
        for decision_id, (decision, _) in tx.updated_decisions.items():
            self._decisions[decision_id] = decision
        for record in tx.new_records:
            self._append_committed(record)
        self.commit_count += 1

    def _append_committed(self, record: AuditRecord) -> None:
        self._records.append(record)
        self._records_by_decision.setdefault(record.hiring_decision_id, []).append(record)

    def _count_rollback(self) -> None:
        self.rollback_count += 1

    async def _before_call(self) -> None:
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)

    async def _before_read(self, operation: str) -> None:
        await self._before_call()
        if self._read_failure is not None:
            raise StoreUnavailableError(operation, self._read_failure)

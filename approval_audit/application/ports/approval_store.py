"""Approval store port: decisions and audit records in one relational store.

The store offers a single-transaction boundary covering both tables, so
a decision change and its audit record become visible together or not
at all. Reads outside a transaction see committed data only.

The store never offers update or delete for audit records. Authority
delegations live beside the decisions and are written outside the
decision transaction; revocation replaces the row.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from approval_audit.domain.models.audit_record import AuditRecord
from approval_audit.domain.models.authority_delegation import AuthorityDelegation
from approval_audit.domain.models.filters import DateRange, DecisionFilters
from approval_audit.domain.models.hiring_decision import HiringDecision


class StoreTransactionProtocol(Protocol):
    """Writes staged inside one unit of work.

    Nothing staged here is visible to readers until the transaction
    commits. Any exception inside the transaction discards every write.
    """

    async def get_decision(self, decision_id: str) -> HiringDecision | None:
        """Get a decision, including one staged in this transaction."""
        ...

    async def insert_decision(self, decision: HiringDecision) -> HiringDecision:
        """Stage a new decision.

        Raises:
            LedgerWriteError: If the row cannot be written.
        """
        ...

    async def update_decision(
        self, decision: HiringDecision, expected: HiringDecision
    ) -> HiringDecision:
        """Stage a compare-and-swap update of a decision.

        Args:
            decision: The new decision version.
            expected: The version the caller read; the update applies only
                if the stored version still equals it.

        Raises:
            ConflictError: If the stored version changed since it was read.
            NotFoundError: If the decision does not exist.
        """
        ...

    async def insert_audit_record(self, record: AuditRecord) -> AuditRecord:
        """Stage a new audit record and assign its sequence position.

        Returns:
            The record with its store-assigned ``sequence``.

        Raises:
            LedgerWriteError: If the row cannot be written.
        """
        ...

    async def latest_audit_record(self, decision_id: str) -> AuditRecord | None:
        """Get the most recent record for a decision, staged ones included."""
        ...


class ApprovalStoreProtocol(Protocol):
    """Relational store for hiring decisions and their audit records."""

    def transaction(self) -> AbstractAsyncContextManager[StoreTransactionProtocol]:
        """Open a unit of work; commits on clean exit, discards on exception.

        Raises:
            LedgerWriteError: If the commit fails (nothing is applied).
        """
        ...

    async def get_decision(self, decision_id: str) -> HiringDecision | None:
        """Get a committed decision by id."""
        ...

    async def list_decisions_by_application(
        self, application_id: str
    ) -> list[HiringDecision]:
        """List committed decisions for an application, newest first."""
        ...

    async def list_decisions(self, filters: DecisionFilters) -> list[HiringDecision]:
        """List committed decisions matching filters, newest first."""
        ...

    async def list_audit_records(self, decision_id: str) -> list[AuditRecord]:
        """List committed records for a decision in insertion order."""
        ...

    async def find_audit_records(
        self,
        decision_ids: tuple[str, ...] | None = None,
        date_range: DateRange | None = None,
    ) -> list[AuditRecord]:
        """List committed records across decisions in insertion order."""
        ...

    async def get_audit_record(self, record_id: str) -> AuditRecord | None:
        """Get a committed audit record by id."""
        ...

    async def insert_delegation(
        self, delegation: AuthorityDelegation
    ) -> AuthorityDelegation:
        """Persist a new authority delegation.

        Raises:
            StoreUnavailableError: If the row cannot be written.
        """
        ...

    async def update_delegation(
        self, delegation: AuthorityDelegation
    ) -> AuthorityDelegation:
        """Replace a stored delegation (revocation).

        Raises:
            NotFoundError: If the delegation does not exist.
        """
        ...

    async def get_delegation(self, delegation_id: str) -> AuthorityDelegation | None:
        """Get a delegation by id, revoked ones included."""
        ...

    async def list_delegations(
        self,
        delegate_actor_id: str | None = None,
        delegating_actor_id: str | None = None,
    ) -> list[AuthorityDelegation]:
        """List delegations, revoked ones included, oldest first."""
        ...

"""Audit ledger: append-only, signed audit records.

Every record is signed over all fields except its signature and the
store-assigned sequence. The ledger has no update or delete operation;
corrections are new ``decision_modified`` records.

Appends for one decision are serialized by the decision lock, and the
ledger timestamp never moves backwards within a decision, so time order
and insertion order agree.
"""

from __future__ import annotations

import csv
import io
import json
import uuid
from collections.abc import Awaitable, Iterable
from typing import TypeVar

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
from approval_audit.application.services.decision_locks import (
    DecisionLockRegistry,
    decision_key,
)
from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
)
from approval_audit.domain.errors.decision import NotFoundError
from approval_audit.domain.errors.ledger import LedgerWriteError, StoreUnavailableError
from approval_audit.domain.exceptions import ApprovalAuditError
from approval_audit.domain.models.actor import Actor
from approval_audit.domain.models.audit_record import (
    BULK_EXPORT_DECISION_ID,
    AuditEventType,
    AuditRecord,
    AuditRecordDraft,
    signable_audit_fields,
)
from approval_audit.domain.models.compliance_report import AuditExport
from approval_audit.domain.models.filters import AuditFilters, ExportFilters, ExportFormat
from approval_audit.domain.signing import AuditSigner, canonical_json
from approval_audit.infrastructure.monitoring.metrics import ApprovalAuditMetrics

T = TypeVar("T")

CSV_COLUMNS: tuple[str, ...] = (
    "id",
    "sequence",
    "hiring_decision_id",
    "audit_event_type",
    "actor_id",
    "actor_name",
    "change_reason",
    "created_at",
    "is_system_generated",
    "compliance_flag",
    "previous_state",
    "new_state",
    "client_ip_address",
    "user_agent",
    "digital_signature",
)


def _ordered(records: Iterable[AuditRecord]) -> list[AuditRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.sequence))


class AuditLedgerService(LoggingMixin):
    """Appends, queries and exports signed audit records."""

    def __init__(
        self,
        store: ApprovalStoreProtocol,
        signer: AuditSigner,
        config: ApprovalAuditConfig = DEFAULT_APPROVAL_AUDIT_CONFIG,
        locks: DecisionLockRegistry | None = None,
        clock: Clock = utc_now,
        metrics: ApprovalAuditMetrics | None = None,
    ) -> None:
        self._store = store
        self._signer = signer
        self._config = config
        self._locks = locks or DecisionLockRegistry()
        self._clock = clock
        self._metrics = metrics
        self._init_logger()

    @property
    def locks(self) -> DecisionLockRegistry:
        return self._locks

    async def append(
        self,
        draft: AuditRecordDraft,
        tx: StoreTransactionProtocol | None = None,
    ) -> AuditRecord:
        """Sign and persist an audit record.

        With ``tx`` the record is staged in the caller's unit of work; the
        caller holds the decision lock and calls ``mark_committed`` after
        commit. Without it the ledger locks the decision and commits the
        record on its own.

        Returns:
            The stored record with its sequence position.

        Raises:
            LedgerWriteError: If the record cannot be persisted (nothing is
                written), including on timeout.
        """
        if tx is not None:
            return await self._stage(draft, tx)

        decision_id = draft.hiring_decision_id
        timeout = self._config.store_timeout_seconds
        async with self._locks.hold(decision_key(decision_id)):
            record = await call_with_timeout(
                self._append_committed(draft),
                timeout,
                lambda: LedgerWriteError(decision_id, f"timed out after {timeout}s"),
            )
        self.mark_committed([record])
        return record

    def mark_committed(self, records: Iterable[AuditRecord]) -> None:
        """Log and count records once their unit of work has committed."""
        for record in records:
            self._log_operation(
                "append",
                decision_id=record.hiring_decision_id,
                record_id=record.id,
            ).info(
                "audit_record_appended",
                event_type=record.audit_event_type.value,
                sequence=record.sequence,
                actor_id=record.actor_id,
            )
            if self._metrics is not None:
                self._metrics.record_append(record.audit_event_type.value)

    async def query(
        self,
        decision_id: str,
        filters: AuditFilters | None = None,
    ) -> list[AuditRecord]:
        """Audit trail for a decision, oldest first unless reversed.

        Raises:
            NotFoundError: If the decision is unknown and has no records.
            StoreUnavailableError: If the store fails or times out.
        """
        records = await self._read(
            "list_audit_records", self._store.list_audit_records(decision_id)
        )
        if not records and decision_id != BULK_EXPORT_DECISION_ID:
            decision = await self._read(
                "get_decision", self._store.get_decision(decision_id)
            )
            if decision is None:
                raise NotFoundError("decision", decision_id)
        filters = filters or AuditFilters()
        trail = [r for r in _ordered(records) if filters.matches(r)]
        if filters.reverse:
            trail.reverse()
        return trail

    async def get_record(self, record_id: str) -> AuditRecord:
        record = await self._read(
            "get_audit_record", self._store.get_audit_record(record_id)
        )
        if record is None:
            raise NotFoundError("audit_record", record_id)
        return record

    async def find(self, filters: ExportFilters) -> list[AuditRecord]:
        """Records across decisions matching export filters, oldest first."""
        records = await self._read(
            "find_audit_records",
            self._store.find_audit_records(
                decision_ids=filters.decision_ids, date_range=filters.date_range
            ),
        )
        return [r for r in _ordered(records) if filters.matches(r)]

    async def export(self, filters: ExportFilters, actor: Actor) -> AuditExport:
        """Serialize matching records and record the export itself.

        The export appends one ``audit_export`` record naming the actor,
        the filters and the record count. The payload never includes that
        record.

        Raises:
            StoreUnavailableError: If reading records fails.
            LedgerWriteError: If the self-audit record cannot be written.
        """
        log = self._log_operation(
            "export", actor_id=actor.actor_id, format=filters.format.value
        )
        records = await self.find(filters)
        payload = self._serialize(records, filters.format)

        export_id = str(uuid.uuid4())
        exported_at = self._clock()
        expires_at = exported_at + self._config.export_ttl
        target = filters.decision_ids[0] if filters.decision_ids else BULK_EXPORT_DECISION_ID
        audit_record = await self.append(
            AuditRecordDraft(
                hiring_decision_id=target,
                audit_event_type=AuditEventType.AUDIT_EXPORT,
                actor=actor,
                change_reason=(
                    f"Exported {len(records)} audit records as {filters.format.value}"
                ),
                new_state={
                    "export_id": export_id,
                    "record_count": len(records),
                    "filters": filters.to_summary(),
                    "expires_at": expires_at.isoformat(),
                },
                compliance_flag=True,
            )
        )
        log.info(
            "audit_export_completed",
            export_id=export_id,
            record_count=len(records),
            audit_record_id=audit_record.id,
        )
        return AuditExport(
            export_id=export_id,
            format=filters.format,
            record_count=len(records),
            payload=payload,
            exported_at=exported_at,
            expires_at=expires_at,
            audit_record_id=audit_record.id,
        )

    def mismatch_reason(self, record: AuditRecord) -> str | None:
        """Why a record's signature does not verify, or None if it does."""
        try:
            fields = record.signable_fields()
            return self._signer.mismatch_reason(fields, record.digital_signature)
        except ValueError as exc:
            return f"Record fields cannot be canonicalized: {exc}"

    async def _append_committed(self, draft: AuditRecordDraft) -> AuditRecord:
        try:
            async with self._store.transaction() as tx:
                record = await self._stage(draft, tx)
        except ApprovalAuditError:
            raise
        except Exception as exc:
            raise LedgerWriteError(draft.hiring_decision_id, str(exc)) from exc
        return record

    async def _stage(
        self, draft: AuditRecordDraft, tx: StoreTransactionProtocol
    ) -> AuditRecord:
        latest = await tx.latest_audit_record(draft.hiring_decision_id)
        created_at = self._clock()
        if latest is not None and latest.created_at > created_at:
            created_at = latest.created_at

        record_id = str(uuid.uuid4())
        actor = draft.actor
        fields = signable_audit_fields(
            record_id=record_id,
            hiring_decision_id=draft.hiring_decision_id,
            audit_event_type=draft.audit_event_type,
            actor_id=actor.actor_id,
            actor_name=actor.name,
            change_reason=draft.change_reason,
            created_at=created_at,
            is_system_generated=actor.is_system,
            compliance_flag=draft.compliance_flag,
            previous_state=draft.previous_state,
            new_state=draft.new_state,
            client_ip_address=draft.client_ip_address,
            user_agent=draft.user_agent,
        )
        try:
            signature = self._signer.sign(fields)
        except ValueError as exc:
            raise LedgerWriteError(draft.hiring_decision_id, str(exc)) from exc

        record = AuditRecord(
            id=record_id,
            hiring_decision_id=draft.hiring_decision_id,
            audit_event_type=draft.audit_event_type,
            actor_id=actor.actor_id,
            actor_name=actor.name,
            change_reason=draft.change_reason,
            digital_signature=signature,
            created_at=created_at,
            is_system_generated=actor.is_system,
            compliance_flag=draft.compliance_flag,
            previous_state=draft.previous_state,
            new_state=draft.new_state,
            client_ip_address=draft.client_ip_address,
            user_agent=draft.user_agent,
        )
        return await tx.insert_audit_record(record)

    def _serialize(self, records: list[AuditRecord], fmt: ExportFormat) -> str:
        if fmt == ExportFormat.CSV:
            buffer = io.StringIO()
            writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
            writer.writeheader()
            for record in records:
                row = record.to_dict()
                for key in ("previous_state", "new_state"):
                    row[key] = canonical_json(row[key]) if row[key] is not None else ""
                writer.writerow({column: row[column] for column in CSV_COLUMNS})
            return buffer.getvalue()
        return json.dumps(
            [record.to_dict() for record in records],
            indent=2,
            sort_keys=True,
            ensure_ascii=False,
        )

    async def _read(self, operation: str, call: Awaitable[T]) -> T:
        timeout = self._config.store_timeout_seconds
        return await call_with_timeout(
            call,
            timeout,
            lambda: StoreUnavailableError(operation, f"timed out after {timeout}s"),
        )

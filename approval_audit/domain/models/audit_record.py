"""Audit record domain model.

An AuditRecord describes one action taken against a hiring decision.
Records are immutable once appended: the ledger exposes no update or
delete, and ``delete()`` on a record always raises.

Ordering is by ``created_at`` ascending per decision; ties are broken by
the store-assigned, strictly increasing ``sequence``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Final

from approval_audit.domain.errors.decision import ValidationError
from approval_audit.domain.models.actor import Actor
from approval_audit.domain.primitives.prevent_delete import DeletePreventionMixin

# Decision id used by exports that span no single decision
BULK_EXPORT_DECISION_ID: Final[str] = "bulk_export"


class AuditEventType(str, Enum):
    """Kinds of actions recorded against a decision."""

    DECISION_CREATED = "decision_created"
    DECISION_MODIFIED = "decision_modified"
    DECISION_DELEGATED = "decision_delegated"
    DECISION_APPEALED = "decision_appealed"
    APPEAL_REVIEWED = "appeal_reviewed"
    PROFILE_CREATED = "profile_created"
    COMPLIANCE_REVIEW = "compliance_review"
    AUDIT_EXPORT = "audit_export"


@dataclass(frozen=True)
class AuditRecordDraft:
    """An audit entry as requested by a caller, before the ledger stamps it.

    The ledger assigns id, created_at, actor attribution, signature and
    sequence on append.
    """

    hiring_decision_id: str
    audit_event_type: AuditEventType
    actor: Actor
    change_reason: str
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    compliance_flag: bool = False
    client_ip_address: str | None = None
    user_agent: str | None = None

    def __post_init__(self) -> None:
        if not self.hiring_decision_id:
            raise ValidationError(
                "hiring_decision_id is required", field="hiring_decision_id"
            )
        if not isinstance(self.audit_event_type, AuditEventType):
            raise ValidationError(
                f"Unknown audit event type: {self.audit_event_type!r}",
                field="audit_event_type",
            )
        if not self.change_reason or not self.change_reason.strip():
            raise ValidationError("change_reason is required", field="change_reason")


@dataclass(frozen=True)
class AuditRecord(DeletePreventionMixin):
    """An immutable, signed entry in the audit ledger.

    Attributes:
        id: Ledger-assigned record id.
        hiring_decision_id: Decision this record refers to (non-owning).
        audit_event_type: What happened.
        actor_id: Who did it (human id or ``system:<process>``).
        actor_name: Display name of the actor at write time.
        change_reason: Why it happened.
        digital_signature: Integrity tag over all other fields except sequence.
        created_at: Ledger timestamp (UTC).
        is_system_generated: Whether the actor is a system principal.
        compliance_flag: Flag for compliance review.
        previous_state: Optional snapshot before the change.
        new_state: Optional snapshot after the change.
        client_ip_address: Source IP, if known.
        user_agent: Client description, if known.
        sequence: Store-assigned position, strictly increasing with insertion.
    """

    id: str
    hiring_decision_id: str
    audit_event_type: AuditEventType
    actor_id: str
    actor_name: str
    change_reason: str
    digital_signature: str
    created_at: datetime
    is_system_generated: bool
    compliance_flag: bool
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    client_ip_address: str | None = None
    user_agent: str | None = None
    sequence: int = 0

    def signable_fields(self) -> dict[str, Any]:
        """All fields covered by the signature.

        Excludes ``digital_signature`` (self-reference) and ``sequence``
        (assigned by the store after signing).
        """
        return signable_audit_fields(
            record_id=self.id,
            hiring_decision_id=self.hiring_decision_id,
            audit_event_type=self.audit_event_type,
            actor_id=self.actor_id,
            actor_name=self.actor_name,
            change_reason=self.change_reason,
            created_at=self.created_at,
            is_system_generated=self.is_system_generated,
            compliance_flag=self.compliance_flag,
            previous_state=self.previous_state,
            new_state=self.new_state,
            client_ip_address=self.client_ip_address,
            user_agent=self.user_agent,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe projection used by exports."""
        data = self.signable_fields()
        data["digital_signature"] = self.digital_signature
        data["sequence"] = self.sequence
        return data


def signable_audit_fields(
    *,
    record_id: str,
    hiring_decision_id: str,
    audit_event_type: AuditEventType,
    actor_id: str,
    actor_name: str,
    change_reason: str,
    created_at: datetime,
    is_system_generated: bool,
    compliance_flag: bool,
    previous_state: dict[str, Any] | None,
    new_state: dict[str, Any] | None,
    client_ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    """Build the signed field mapping for an audit record."""
    return {
        "id": record_id,
        "hiring_decision_id": hiring_decision_id,
        "audit_event_type": audit_event_type.value,
        "actor_id": actor_id,
        "actor_name": actor_name,
        "change_reason": change_reason,
        "created_at": created_at.isoformat(),
        "is_system_generated": is_system_generated,
        "compliance_flag": compliance_flag,
        "previous_state": previous_state,
        "new_state": new_state,
        "client_ip_address": client_ip_address,
        "user_agent": user_agent,
    }

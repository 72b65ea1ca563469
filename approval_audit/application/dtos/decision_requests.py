"""Request DTOs for the approval workflow.

Callers may pass enum fields as their string values; they are coerced on
construction and rejected with ValidationError when unknown.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from approval_audit.domain.errors.decision import ValidationError
from approval_audit.domain.models.audit_record import AuditEventType
from approval_audit.domain.models.authority import AuthorityLevel
from approval_audit.domain.models.hiring_decision import (
    APPROVAL_REASONS,
    REJECTION_REASONS,
    AppealOutcome,
    DecisionReason,
    validate_confidence,
)

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_type: type[E], value: E | str, field_name: str) -> E:
    """Return ``value`` as a member of ``enum_type``.

    Raises:
        ValidationError: If the value names no member.
    """
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(
            f"Invalid {field_name} {value!r}; expected one of: {allowed}",
            field=field_name,
        ) from exc


def _require_text(value: str | None, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)


@dataclass(frozen=True)
class DecisionRequest:
    """Fields common to approval and rejection submissions.

    Attributes:
        decision_reason: Categorized reason.
        decision_rationale: Free-text rationale.
        decision_confidence: Approver confidence, 1-10.
        effective_date: When the decision takes effect (defaults to now).
        supporting_evidence: References to interview feedback, documents, etc.
        compliance_notes: Optional compliance considerations.
        client_ip_address: Source IP recorded on the audit record.
        user_agent: Client description recorded on the audit record.
    """

    decision_reason: DecisionReason
    decision_rationale: str
    decision_confidence: int
    effective_date: datetime | None = None
    supporting_evidence: dict[str, Any] = field(default_factory=dict)
    compliance_notes: str | None = None
    client_ip_address: str | None = None
    user_agent: str | None = None

    allowed_reasons = frozenset(DecisionReason)

    def __post_init__(self) -> None:
        reason = coerce_enum(DecisionReason, self.decision_reason, "decision_reason")
        object.__setattr__(self, "decision_reason", reason)
        if reason not in self.allowed_reasons:
            raise ValidationError(
                f"decision_reason '{reason.value}' is not valid for this decision",
                field="decision_reason",
            )
        _require_text(self.decision_rationale, "decision_rationale")
        validate_confidence(self.decision_confidence)


@dataclass(frozen=True)
class ApprovalDecisionRequest(DecisionRequest):
    """An approval submission."""

    allowed_reasons = APPROVAL_REASONS


@dataclass(frozen=True)
class RejectionDecisionRequest(DecisionRequest):
    """A rejection submission."""

    allowed_reasons = REJECTION_REASONS


@dataclass(frozen=True)
class CreateAuditRecordRequest:
    """A caller-initiated audit entry against an existing decision.

    Workflow events (decision_created, decision_delegated, audit_export)
    are written by the engine itself and cannot be requested here.
    """

    hiring_decision_id: str
    audit_event_type: AuditEventType
    change_reason: str
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    compliance_flag: bool = False
    client_ip_address: str | None = None
    user_agent: str | None = None

    def __post_init__(self) -> None:
        _require_text(self.hiring_decision_id, "hiring_decision_id")
        object.__setattr__(
            self,
            "audit_event_type",
            coerce_enum(AuditEventType, self.audit_event_type, "audit_event_type"),
        )
        _require_text(self.change_reason, "change_reason")


@dataclass(frozen=True)
class AppealReviewRequest:
    """Outcome of an appeal review."""

    outcome: AppealOutcome
    reason: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "outcome", coerce_enum(AppealOutcome, self.outcome, "outcome")
        )
        _require_text(self.reason, "reason")


@dataclass(frozen=True)
class AuthorityDelegationRequest:
    """Lend the caller's approval authority to another manager.

    Attributes:
        delegate_actor_id: Manager receiving the authority.
        authority_level: Level to lend; at most the caller's own.
        delegation_reason: Why the authority is delegated.
        effective_until: End of the grant (exclusive); open-ended when None.
        effective_from: Start of the grant (defaults to now).
        max_decisions_per_day: Daily cap on decisions under the grant.
        application_ids: Applications the grant is limited to.
    """

    delegate_actor_id: str
    authority_level: AuthorityLevel
    delegation_reason: str
    effective_until: datetime | None = None
    effective_from: datetime | None = None
    max_decisions_per_day: int | None = None
    application_ids: Iterable[str] | None = None

    def __post_init__(self) -> None:
        _require_text(self.delegate_actor_id, "delegate_actor_id")
        _require_text(self.delegation_reason, "delegation_reason")
        object.__setattr__(
            self,
            "authority_level",
            coerce_enum(AuthorityLevel, self.authority_level, "authority_level"),
        )
        limit = self.max_decisions_per_day
        if limit is not None and (
            isinstance(limit, bool) or not isinstance(limit, int) or limit < 1
        ):
            raise ValidationError(
                "max_decisions_per_day must be a positive integer",
                field="max_decisions_per_day",
            )
        if self.application_ids is not None:
            ids = frozenset(self.application_ids)
            if not ids or not all(isinstance(i, str) and i for i in ids):
                raise ValidationError(
                    "application_ids must name at least one application",
                    field="application_ids",
                )
            object.__setattr__(self, "application_ids", ids)

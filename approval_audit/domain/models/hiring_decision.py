"""Hiring decision domain model.

A HiringDecision records one approval, rejection or delegation outcome
for one application. Once ``is_final`` is set no field may change; only
a new decision (delegation chain) or an appeal record may follow.

State machine:
    pending -> approved                          (terminal)
    pending -> rejected -> appealed -> appeal_reviewed   (terminal)
    pending -> delegated                         (spawns a new pending
                                                  decision for the delegate)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from approval_audit.domain.errors.decision import ConflictError, ValidationError
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType

MIN_DECISION_CONFIDENCE = 1
MAX_DECISION_CONFIDENCE = 10


class DecisionReason(str, Enum):
    """Categorized reason for a decision."""

    QUALIFICATIONS_MET = "qualifications_met"
    EXCEPTIONAL_CANDIDATE = "exceptional_candidate"
    CONDITIONAL_APPROVAL = "conditional_approval"
    INSUFFICIENT_EXPERIENCE = "insufficient_experience"
    FAILED_BACKGROUND = "failed_background"
    POOR_INTERVIEW = "poor_interview"
    CULTURAL_FIT = "cultural_fit"
    POSITION_FILLED = "position_filled"
    APPLICANT_WITHDREW = "applicant_withdrew"
    DELEGATED_REVIEW = "delegated_review"
    OTHER = "other"


class DecisionState(str, Enum):
    """Workflow state derived from a decision's fields."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPEALED = "appealed"
    APPEAL_REVIEWED = "appeal_reviewed"
    DELEGATED = "delegated"


class AppealOutcome(str, Enum):
    """Result of an appeal review."""

    UPHELD = "upheld"
    OVERTURNED = "overturned"


def validate_confidence(confidence: int) -> None:
    """Raise ValidationError unless confidence is an int in 1..10."""
    if isinstance(confidence, bool) or not isinstance(confidence, int):
        raise ValidationError(
            "decision_confidence must be an integer", field="decision_confidence"
        )
    if not MIN_DECISION_CONFIDENCE <= confidence <= MAX_DECISION_CONFIDENCE:
        raise ValidationError(
            f"decision_confidence must be between {MIN_DECISION_CONFIDENCE} "
            f"and {MAX_DECISION_CONFIDENCE}, got {confidence}",
            field="decision_confidence",
        )


@dataclass(frozen=True)
class HiringDecision:
    """A hiring approval/rejection/delegation outcome for one application.

    Attributes:
        id: Store-assigned decision id.
        application_id: The application being decided.
        decision_type: approved | rejected | delegated.
        decision_reason: Categorized reason.
        decision_rationale: Free-text rationale from the approver.
        decision_confidence: Approver confidence, 1-10.
        approver_id: Actor who owns the decision.
        authority_level: Approver's authority level when the decision was made.
        created_at: When the decision was created (UTC).
        effective_date: When the decision takes effect (UTC).
        is_final: Terminal flag; a final decision never changes again.
        appeals_deadline: Set only for rejections (created_at + appeal window).
        supporting_evidence: References to interview feedback, documents, etc.
        compliance_notes: Optional compliance considerations.
        delegated_by: Approver who delegated this decision, for successors.
        predecessor_id: Decision this one was delegated from.
        successor_id: Decision this one was delegated to.
        appealed_at: When an appeal was filed, for rejections.
        appeal_outcome: Result of the appeal review, once reviewed.
    """

    id: str
    application_id: str
    decision_type: DecisionType
    decision_reason: DecisionReason
    decision_rationale: str
    decision_confidence: int
    approver_id: str
    authority_level: AuthorityLevel
    created_at: datetime
    effective_date: datetime
    is_final: bool
    appeals_deadline: datetime | None = None
    supporting_evidence: dict[str, Any] = field(default_factory=dict)
    compliance_notes: str | None = None
    delegated_by: str | None = None
    predecessor_id: str | None = None
    successor_id: str | None = None
    appealed_at: datetime | None = None
    appeal_outcome: AppealOutcome | None = None

    def __post_init__(self) -> None:
        if not self.application_id:
            raise ValidationError("application_id is required", field="application_id")
        if not self.approver_id:
            raise ValidationError("approver_id is required", field="approver_id")
        validate_confidence(self.decision_confidence)
        if self.decision_type != DecisionType.REJECTED and self.appeals_deadline:
            raise ValidationError(
                "appeals_deadline is only set for rejected decisions",
                field="appeals_deadline",
            )

    @property
    def state(self) -> DecisionState:
        """Current workflow state."""
        if self.successor_id is not None:
            return DecisionState.DELEGATED
        if self.decision_type == DecisionType.APPROVED:
            return DecisionState.APPROVED
        if self.decision_type == DecisionType.DELEGATED:
            return DecisionState.DELEGATED if self.is_final else DecisionState.PENDING
        if self.appeal_outcome is not None:
            return DecisionState.APPEAL_REVIEWED
        if self.appealed_at is not None:
            return DecisionState.APPEALED
        return DecisionState.REJECTED

    @property
    def blocks_new_decision(self) -> bool:
        """Whether this decision stands as the application's final answer.

        A final decision blocks further decisions on the application
        unless it was delegated or appealed.
        """
        return (
            self.is_final
            and self.decision_type != DecisionType.DELEGATED
            and self.successor_id is None
            and self.appealed_at is None
        )

    def evolve(self, **changes: Any) -> HiringDecision:
        """Return a copy with the given fields changed.

        Raises:
            ConflictError: If this decision is already final.
        """
        if self.is_final:
            raise ConflictError(
                self.id,
                current_state=f"final:{self.state.value}",
                requested_state="modified",
                message=f"Decision {self.id} is final and cannot be modified",
            )
        return replace(self, **changes)

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe snapshot used for audit previous/new state."""

        def _ts(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "application_id": self.application_id,
            "decision_type": self.decision_type.value,
            "state": self.state.value,
            "decision_reason": self.decision_reason.value,
            "decision_rationale": self.decision_rationale,
            "decision_confidence": self.decision_confidence,
            "approver_id": self.approver_id,
            "authority_level": self.authority_level.value,
            "created_at": _ts(self.created_at),
            "effective_date": _ts(self.effective_date),
            "is_final": self.is_final,
            "appeals_deadline": _ts(self.appeals_deadline),
            "delegated_by": self.delegated_by,
            "predecessor_id": self.predecessor_id,
            "successor_id": self.successor_id,
            "appealed_at": _ts(self.appealed_at),
            "appeal_outcome": self.appeal_outcome.value if self.appeal_outcome else None,
        }


# Reason categories accepted per decision type
APPROVAL_REASONS: frozenset[DecisionReason] = frozenset(
    {
        DecisionReason.QUALIFICATIONS_MET,
        DecisionReason.EXCEPTIONAL_CANDIDATE,
        DecisionReason.CONDITIONAL_APPROVAL,
        DecisionReason.OTHER,
    }
)
REJECTION_REASONS: frozenset[DecisionReason] = frozenset(
    {
        DecisionReason.INSUFFICIENT_EXPERIENCE,
        DecisionReason.FAILED_BACKGROUND,
        DecisionReason.POOR_INTERVIEW,
        DecisionReason.CULTURAL_FIT,
        DecisionReason.POSITION_FILLED,
        DecisionReason.APPLICANT_WITHDREW,
        DecisionReason.OTHER,
    }
)

"""Standing delegation of approval authority between managers.

A delegation lends the delegating manager's authority, up to a level no
higher than their own, to another manager for a bounded period. It may
be limited to a set of applications and to a number of decisions per
UTC day. Revocation is permanent; a revoked delegation is kept for the
record and never grants again.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from approval_audit.domain.errors.decision import ValidationError
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType


@dataclass(frozen=True)
class AuthorityDelegation:
    """Authority lent by one manager to another.

    Attributes:
        id: Store-assigned delegation id.
        delegating_actor_id: Manager lending their authority.
        delegate_actor_id: Manager receiving it.
        authority_level: Level granted; never above the delegator's own.
        delegation_reason: Why the authority was delegated.
        effective_from: Start of the grant (inclusive).
        effective_until: End of the grant (exclusive); open-ended when None.
        created_at: When the delegation was recorded.
        max_decisions_per_day: Cap on decisions taken under this grant per
            UTC day; unlimited when None.
        application_ids: Applications the grant covers; all when None.
        revoked_at: When the delegation was revoked, if it was.
        revocation_reason: Why it was revoked.
    """

    id: str
    delegating_actor_id: str
    delegate_actor_id: str
    authority_level: AuthorityLevel
    delegation_reason: str
    effective_from: datetime
    effective_until: datetime | None
    created_at: datetime
    max_decisions_per_day: int | None = None
    application_ids: frozenset[str] | None = None
    revoked_at: datetime | None = None
    revocation_reason: str | None = None

    def __post_init__(self) -> None:
        if not self.delegating_actor_id:
            raise ValidationError(
                "delegating_actor_id is required", field="delegating_actor_id"
            )
        if not self.delegate_actor_id:
            raise ValidationError(
                "delegate_actor_id is required", field="delegate_actor_id"
            )
        if self.delegate_actor_id == self.delegating_actor_id:
            raise ValidationError(
                "Authority cannot be delegated to oneself", field="delegate_actor_id"
            )
        if (
            self.effective_until is not None
            and self.effective_until <= self.effective_from
        ):
            raise ValidationError(
                "effective_until must be after effective_from", field="effective_until"
            )
        if self.max_decisions_per_day is not None and (
            isinstance(self.max_decisions_per_day, bool)
            or not isinstance(self.max_decisions_per_day, int)
            or self.max_decisions_per_day < 1
        ):
            raise ValidationError(
                "max_decisions_per_day must be a positive integer",
                field="max_decisions_per_day",
            )

    @property
    def is_active(self) -> bool:
        """Whether the delegation has not been revoked."""
        return self.revoked_at is None

    def is_effective(self, now: datetime) -> bool:
        """Whether the delegation grants authority at ``now``."""
        if not self.is_active or now < self.effective_from:
            return False
        return self.effective_until is None or now < self.effective_until

    def covers(
        self,
        decision_type: DecisionType,
        application_id: str | None,
        now: datetime,
    ) -> bool:
        """Whether this grant lets the delegate take this decision now.

        A grant limited to certain applications covers nothing when the
        application is unknown.
        """
        if not self.is_effective(now) or not self.authority_level.permits(decision_type):
            return False
        if self.application_ids is None:
            return True
        return application_id is not None and application_id in self.application_ids

    def revoke(self, at: datetime, reason: str) -> AuthorityDelegation:
        """Return the revoked version of this delegation."""
        return replace(self, revoked_at=at, revocation_reason=reason)

    def to_dict(self) -> dict[str, Any]:
        def _ts(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "delegating_actor_id": self.delegating_actor_id,
            "delegate_actor_id": self.delegate_actor_id,
            "authority_level": self.authority_level.value,
            "delegation_reason": self.delegation_reason,
            "effective_from": _ts(self.effective_from),
            "effective_until": _ts(self.effective_until),
            "created_at": _ts(self.created_at),
            "max_decisions_per_day": self.max_decisions_per_day,
            "application_ids": (
                sorted(self.application_ids) if self.application_ids is not None else None
            ),
            "is_active": self.is_active,
            "revoked_at": _ts(self.revoked_at),
            "revocation_reason": self.revocation_reason,
        }

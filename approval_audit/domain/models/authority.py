"""Authority levels and decision types.

Authority levels are ordered:
    manager < senior_manager < regional_manager < admin

Each level carries the set of decision types it may submit.
"""

from __future__ import annotations

from enum import Enum


class DecisionType(str, Enum):
    """Outcome recorded by a hiring decision."""

    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"


class AuthorityLevel(str, Enum):
    """Ordered role tier gating which decision types an actor may submit."""

    MANAGER = "manager"
    SENIOR_MANAGER = "senior_manager"
    REGIONAL_MANAGER = "regional_manager"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        """Position in the ordering, 0 for the lowest tier."""
        return _RANKS[self]

    @property
    def permitted_decision_types(self) -> frozenset[DecisionType]:
        return _PERMITTED[self]

    def permits(self, decision_type: DecisionType) -> bool:
        """Check whether this level may submit the given decision type."""
        return decision_type in self.permitted_decision_types

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, AuthorityLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, AuthorityLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, AuthorityLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, AuthorityLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def from_role(cls, role: str | None) -> AuthorityLevel:
        """Map an authentication role name to an authority level.

        Unknown or missing roles map to the lowest tier.
        """
        if role is None:
            return cls.MANAGER
        try:
            return cls(role)
        except ValueError:
            return cls.MANAGER


_RANKS: dict[AuthorityLevel, int] = {
    level: index for index, level in enumerate(AuthorityLevel)
}

_PERMITTED: dict[AuthorityLevel, frozenset[DecisionType]] = {
    AuthorityLevel.MANAGER: frozenset({DecisionType.DELEGATED}),
    AuthorityLevel.SENIOR_MANAGER: frozenset(DecisionType),
    AuthorityLevel.REGIONAL_MANAGER: frozenset(DecisionType),
    AuthorityLevel.ADMIN: frozenset(DecisionType),
}

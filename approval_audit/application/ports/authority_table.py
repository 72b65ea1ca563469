"""Authority table port.

Answers whether an actor's authority level permits a decision type.
A recognized actor without authority is a ``False`` answer; an actor
that cannot be resolved at all is an AuthorityLookupError.
"""

from __future__ import annotations

from typing import Protocol

from approval_audit.domain.models.authority import AuthorityLevel, DecisionType


class AuthorityTableProtocol(Protocol):
    """Lookup of actor authority levels."""

    async def is_permitted(self, actor_id: str, decision_type: DecisionType) -> bool:
        """Check whether the actor may submit the decision type.

        Args:
            actor_id: The actor to check.
            decision_type: The requested decision type.

        Returns:
            True if permitted, False if the actor lacks authority.

        Raises:
            AuthorityLookupError: If the actor is unknown or the table is
                unreachable.
        """
        ...

    async def get_authority_level(self, actor_id: str) -> AuthorityLevel:
        """Get the actor's authority level.

        Raises:
            AuthorityLookupError: If the actor is unknown or the table is
                unreachable.
        """
        ...

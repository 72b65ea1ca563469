"""Authentication and authority errors.

Authority and authentication failures are terminal for the current call.
They are never retried automatically and are surfaced verbatim.
"""

from __future__ import annotations

from approval_audit.domain.exceptions import ApprovalAuditError


class UnauthenticatedError(ApprovalAuditError):
    """Raised when no calling actor can be resolved."""

    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class InsufficientAuthorityError(ApprovalAuditError):
    """Raised when a recognized actor lacks authority for a decision type.

    Attributes:
        actor_id: The actor that was checked.
        decision_type: The decision type that was requested.
    """

    code = "INSUFFICIENT_AUTHORITY"

    def __init__(self, actor_id: str, decision_type: str) -> None:
        self.actor_id = actor_id
        self.decision_type = decision_type
        super().__init__(
            f"Actor {actor_id} has insufficient authority for '{decision_type}' decisions"
        )


class AuthorityLookupError(ApprovalAuditError):
    """Raised when the actor or the authority table cannot be resolved.

    Distinct from InsufficientAuthorityError: a recognized actor without
    authority is a ``False`` answer, not an error.

    Attributes:
        actor_id: The actor whose lookup failed.
        reason: Why the lookup failed (unknown actor, timeout, unreachable).
    """

    code = "AUTHORITY_LOOKUP_FAILED"

    def __init__(self, actor_id: str, reason: str) -> None:
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(f"Authority lookup failed for actor {actor_id}: {reason}")


class DelegationDeniedError(ApprovalAuditError):
    """Raised when an actor may not delegate the requested authority level.

    A manager can only lend authority up to their own level.

    Attributes:
        actor_id: The delegating actor.
        authority_level: The level they tried to delegate.
    """

    code = "DELEGATION_DENIED"

    def __init__(self, actor_id: str, authority_level: str, reason: str = "") -> None:
        self.actor_id = actor_id
        self.authority_level = authority_level
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Actor {actor_id} cannot delegate '{authority_level}' authority{detail}"
        )

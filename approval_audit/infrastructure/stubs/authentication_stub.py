"""Authentication context stub.

Returns whichever actor the test set; None means "not authenticated".

WARNING: Not for production use.
"""

from __future__ import annotations

from approval_audit.domain.models.actor import Actor


class AuthenticationContextStub:
    """In-memory implementation of AuthenticationContextProtocol."""

    def __init__(self, actor: Actor | None = None) -> None:
        self._actor = actor
        self.call_count = 0

    def set_actor(self, actor: Actor | None) -> None:
        """Set the actor returned for subsequent calls."""
        self._actor = actor

    def clear(self) -> None:
        self._actor = None
        self.call_count = 0

    async def get_current_actor(self) -> Actor | None:
        self.call_count += 1
        return self._actor

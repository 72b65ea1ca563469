"""Authentication context port.

Resolves the calling actor for the current request. "Not authenticated"
is a distinguishable outcome (``None``), not an error.
"""

from __future__ import annotations

from typing import Protocol

from approval_audit.domain.models.actor import Actor


class AuthenticationContextProtocol(Protocol):
    """Resolves who is calling."""

    async def get_current_actor(self) -> Actor | None:
        """Get the actor for the current request.

        Returns:
            The resolved actor, or None if the caller is not authenticated.
        """
        ...

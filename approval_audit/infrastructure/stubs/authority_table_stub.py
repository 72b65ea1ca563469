"""Authority table stub.

Maps actor ids to authority levels; permission follows the level's
permitted decision types unless overridden per actor.

Configurable behaviors:
- set_level(): register an actor at a level
- deny(): force is_permitted() to return False for an actor
- set_unreachable(): every lookup raises AuthorityLookupError
- set_latency(): every lookup sleeps first (timeout tests)

WARNING: Not for production use.
"""

from __future__ import annotations

import asyncio

from approval_audit.domain.errors.authority import AuthorityLookupError
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType


class AuthorityTableStub:
    """In-memory implementation of AuthorityTableProtocol."""

    def __init__(self, levels: dict[str, AuthorityLevel] | None = None) -> None:
        self._levels: dict[str, AuthorityLevel] = dict(levels or {})
        self._denied: set[str] = set()
        self._unreachable = False
        self._latency_seconds = 0.0
        self.lookups: list[tuple[str, DecisionType | None]] = []

    def set_level(self, actor_id: str, level: AuthorityLevel) -> None:
        self._levels[actor_id] = level

    def remove(self, actor_id: str) -> None:
        self._levels.pop(actor_id, None)

    def deny(self, actor_id: str) -> None:
        """Make is_permitted() return False for a recognized actor."""
        self._denied.add(actor_id)

    def set_unreachable(self, unreachable: bool = True) -> None:
        self._unreachable = unreachable

    def set_latency(self, seconds: float) -> None:
        self._latency_seconds = seconds

    def clear(self) -> None:
        self._levels.clear()
        self._denied.clear()
        self._unreachable = False
        self._latency_seconds = 0.0
        self.lookups.clear()

    async def _resolve(self, actor_id: str) -> AuthorityLevel:
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)
        if self._unreachable:
            raise AuthorityLookupError(actor_id, "authority table unreachable")
        level = self._levels.get(actor_id)
        if level is None:
            raise AuthorityLookupError(actor_id, "unknown actor")
        return level

    async def is_permitted(self, actor_id: str, decision_type: DecisionType) -> bool:
        self.lookups.append((actor_id, decision_type))
        level = await self._resolve(actor_id)
        if actor_id in self._denied:
            return False
        return level.permits(decision_type)

    async def get_authority_level(self, actor_id: str) -> AuthorityLevel:
        self.lookups.append((actor_id, None))
        return await self._resolve(actor_id)

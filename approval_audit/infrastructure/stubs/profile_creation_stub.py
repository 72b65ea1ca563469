"""Profile-creation signal stub.

Records every signaled decision; can be told to fail or to stall.

WARNING: Not for production use.
"""

from __future__ import annotations

import asyncio

from approval_audit.domain.models.hiring_decision import HiringDecision


class ProfileCreationSignalStub:
    """In-memory implementation of ProfileCreationSignalProtocol."""

    def __init__(self) -> None:
        self.signaled: list[HiringDecision] = []
        self._failure: Exception | None = None
        self._latency_seconds: float = 0.0

    def set_failure(self, error: Exception | None) -> None:
        """Raise the given error on subsequent signals (None to restore)."""
        self._failure = error

    def set_latency(self, seconds: float) -> None:
        """Delay every signal by the given number of seconds."""
        self._latency_seconds = seconds

    def clear(self) -> None:
        self.signaled.clear()
        self._failure = None
        self._latency_seconds = 0.0

    async def signal_profile_creation(self, decision: HiringDecision) -> None:
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)
        if self._failure is not None:
            raise self._failure
        self.signaled.append(decision)

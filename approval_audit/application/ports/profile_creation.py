"""Profile-creation signal port.

Fired once per approved decision so the onboarding system can create the
new hire's profile. Retries are the receiving system's responsibility.
"""

from __future__ import annotations

from typing import Protocol

from approval_audit.domain.models.hiring_decision import HiringDecision


class ProfileCreationSignalProtocol(Protocol):
    """Notifies the profile-creation collaborator."""

    async def signal_profile_creation(self, decision: HiringDecision) -> None:
        """Signal that an approved decision needs a profile.

        Args:
            decision: The committed, approved decision.
        """
        ...

"""Errors raised by the profile-creation hand-off.

The hand-off runs after an approval has committed, so these never undo a
decision. They are logged and left to the onboarding system to retry.
"""

from __future__ import annotations

from approval_audit.domain.exceptions import ApprovalAuditError


class ProfileSignalTimeoutError(ApprovalAuditError):
    """Raised when the onboarding system does not acknowledge in time.

    Attributes:
        decision_id: Approved decision whose signal timed out.
        timeout_seconds: The limit that was exceeded.
    """

    code = "PROFILE_SIGNAL_TIMEOUT"

    def __init__(self, decision_id: str, timeout_seconds: float) -> None:
        self.decision_id = decision_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Profile creation signal for decision {decision_id} "
            f"timed out after {timeout_seconds}s"
        )

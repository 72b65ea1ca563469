"""Domain errors for the approval audit engine.

All exceptions inherit from ApprovalAuditError and carry a stable code.
"""

from approval_audit.domain.errors.authority import (
    AuthorityLookupError,
    DelegationDeniedError,
    InsufficientAuthorityError,
    UnauthenticatedError,
)
from approval_audit.domain.errors.decision import (
    AppealWindowClosedError,
    ConflictError,
    DuplicateDecisionError,
    NotFoundError,
    ValidationError,
)
from approval_audit.domain.errors.ledger import (
    AuditDeletionProhibitedError,
    LedgerWriteError,
    StoreUnavailableError,
)
from approval_audit.domain.errors.profile_signal import ProfileSignalTimeoutError

__all__: list[str] = [
    "AppealWindowClosedError",
    "AuditDeletionProhibitedError",
    "AuthorityLookupError",
    "ConflictError",
    "DelegationDeniedError",
    "DuplicateDecisionError",
    "InsufficientAuthorityError",
    "LedgerWriteError",
    "NotFoundError",
    "ProfileSignalTimeoutError",
    "StoreUnavailableError",
    "UnauthenticatedError",
    "ValidationError",
]

"""Application ports - contracts for external collaborators.

Available ports:
- AuthenticationContextProtocol: Resolves the calling actor
- AuthorityTableProtocol: Actor authority levels and permissions
- ApprovalStoreProtocol: Decisions and audit records with one transaction boundary
- ProfileCreationSignalProtocol: Notifies onboarding of approved decisions
"""

from approval_audit.application.ports.approval_store import (
    ApprovalStoreProtocol,
    StoreTransactionProtocol,
)
from approval_audit.application.ports.authentication import (
    AuthenticationContextProtocol,
)
from approval_audit.application.ports.authority_table import AuthorityTableProtocol
from approval_audit.application.ports.profile_creation import (
    ProfileCreationSignalProtocol,
)

__all__: list[str] = [
    "ApprovalStoreProtocol",
    "AuthenticationContextProtocol",
    "AuthorityTableProtocol",
    "ProfileCreationSignalProtocol",
    "StoreTransactionProtocol",
]

"""Infrastructure stubs for development and testing.

Available stubs:
- AuthenticationContextStub: Returns a configurable current actor
- AuthorityTableStub: Actor levels with deny/unreachable/latency injection
- InMemoryApprovalStore: Decisions + audit records with staged transactions
  and failure injection
- ProfileCreationSignalStub: Records profile-creation signals

WARNING: These stubs are NOT for production use.
"""

from approval_audit.infrastructure.stubs.approval_store_stub import (
    InMemoryApprovalStore,
    InMemoryTransaction,
)
from approval_audit.infrastructure.stubs.authentication_stub import (
    AuthenticationContextStub,
)
from approval_audit.infrastructure.stubs.authority_table_stub import AuthorityTableStub
from approval_audit.infrastructure.stubs.profile_creation_stub import (
    ProfileCreationSignalStub,
)

__all__: list[str] = [
    "AuthenticationContextStub",
    "AuthorityTableStub",
    "InMemoryApprovalStore",
    "InMemoryTransaction",
    "ProfileCreationSignalStub",
]

"""Domain primitives shared across services."""

from approval_audit.domain.primitives.ensure_atomicity import (
    AtomicOperationContext,
    RollbackHandler,
)
from approval_audit.domain.primitives.prevent_delete import DeletePreventionMixin

__all__ = ["AtomicOperationContext", "DeletePreventionMixin", "RollbackHandler"]

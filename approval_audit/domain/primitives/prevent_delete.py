"""Primitive: prevent deletion of ledger entities.

Audit records are append-only. Entities mixing in DeletePreventionMixin
expose ``delete()`` only to make the forbidden operation fail loudly.
"""

from approval_audit.domain.errors.ledger import AuditDeletionProhibitedError


class DeletePreventionMixin:
    """Mixin that prevents deletion of append-only entities.

    Example:
        >>> record.delete()  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
            ...
        AuditDeletionProhibitedError: Audit record ... cannot be modified or deleted
    """

    def delete(self) -> None:
        """Always raise AuditDeletionProhibitedError."""
        raise AuditDeletionProhibitedError(getattr(self, "id", None))

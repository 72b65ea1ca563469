"""Base exception classes for the approval audit domain layer."""


class ApprovalAuditError(Exception):
    """Base exception for all domain errors.

    All domain-specific exceptions MUST inherit from this class.
    Each subclass declares a stable ``code`` that the service boundary
    reports to callers alongside the human-readable message.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error description.
    """

    code: str = "APPROVAL_AUDIT_ERROR"

    def __init__(self, message: str = "") -> None:
        """Initialize the exception with an optional message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)

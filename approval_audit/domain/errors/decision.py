"""Hiring decision errors.

Raised by the decision record store and the workflow orchestrator.
A decision error always leaves the store in its pre-call state.
"""

from __future__ import annotations

from approval_audit.domain.exceptions import ApprovalAuditError


class ValidationError(ApprovalAuditError):
    """Raised when a request carries malformed fields.

    Attributes:
        field: Name of the offending field, if known.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(ApprovalAuditError):
    """Raised when a decision or audit record does not exist.

    Attributes:
        entity: Kind of entity ("decision", "audit_record").
        entity_id: The id that was looked up.
    """

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.replace('_', ' ').capitalize()} not found: {entity_id}")


class DuplicateDecisionError(ApprovalAuditError):
    """Raised when an application already has a standing final decision.

    Attributes:
        application_id: The application being decided.
        existing_decision_id: The final decision that blocks a new one.
    """

    code = "DUPLICATE_DECISION"

    def __init__(self, application_id: str, existing_decision_id: str) -> None:
        self.application_id = application_id
        self.existing_decision_id = existing_decision_id
        super().__init__(
            f"Application {application_id} already has final decision "
            f"{existing_decision_id}"
        )


class ConflictError(ApprovalAuditError):
    """Raised when a transition conflicts with the decision's current state.

    The typical case is two concurrent finalize attempts requesting
    different final states: the second observes the first one's result.

    Attributes:
        decision_id: The decision in conflict.
        current_state: Description of the state that was observed.
        requested_state: Description of the state that was requested.
    """

    code = "CONFLICT"

    def __init__(
        self,
        decision_id: str,
        current_state: str,
        requested_state: str,
        message: str | None = None,
    ) -> None:
        self.decision_id = decision_id
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(
            message
            or (
                f"Decision {decision_id} is '{current_state}', "
                f"cannot transition to '{requested_state}'"
            )
        )


class AppealWindowClosedError(ConflictError):
    """Raised when an appeal is filed after the appeals deadline."""

    code = "APPEAL_WINDOW_CLOSED"

    def __init__(self, decision_id: str, deadline: str) -> None:
        self.deadline = deadline
        super().__init__(
            decision_id,
            current_state="appeal_window_closed",
            requested_state="appealed",
            message=f"Appeals deadline for decision {decision_id} passed at {deadline}",
        )

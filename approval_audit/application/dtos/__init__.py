"""Request and result DTOs for the service boundary."""

from approval_audit.application.dtos.decision_requests import (
    AppealReviewRequest,
    ApprovalDecisionRequest,
    AuthorityDelegationRequest,
    CreateAuditRecordRequest,
    DecisionRequest,
    RejectionDecisionRequest,
    coerce_enum,
)
from approval_audit.application.dtos.service_result import ServiceError, ServiceResult

__all__: list[str] = [
    "AppealReviewRequest",
    "ApprovalDecisionRequest",
    "AuthorityDelegationRequest",
    "CreateAuditRecordRequest",
    "DecisionRequest",
    "RejectionDecisionRequest",
    "ServiceError",
    "ServiceResult",
    "coerce_enum",
]

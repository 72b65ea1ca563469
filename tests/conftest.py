"""
Pytest configuration and shared fixtures for approval audit tests.

Testing Standards:
- All async tests use pytest.mark.asyncio (auto mode enabled in pyproject.toml)
- Use AsyncMock for async function mocking
- Unit tests go in tests/unit/
- Integration tests go in tests/integration/
"""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from approval_audit.application.dtos import (
    ApprovalDecisionRequest,
    RejectionDecisionRequest,
)
from approval_audit.bootstrap.approval_audit import (
    ApprovalAuditContainer,
    build_approval_audit_container,
)
from approval_audit.config import TEST_APPROVAL_AUDIT_CONFIG, ApprovalAuditConfig
from approval_audit.domain.models import AuthorityLevel, DecisionReason
from approval_audit.domain.signing import AuditSigner, SigningKeyring
from approval_audit.infrastructure.monitoring import ApprovalAuditMetrics
from approval_audit.infrastructure.stubs import (
    AuthenticationContextStub,
    AuthorityTableStub,
    InMemoryApprovalStore,
    ProfileCreationSignalStub,
)
from tests.helpers import FakeClock
from tests.helpers.actors import ADMIN, MANAGER, REGIONAL_MANAGER, SENIOR_MANAGER


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
def project_version() -> str:
    """Provide the current project version for tests."""
    from approval_audit import __version__

    return __version__


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def keyring() -> SigningKeyring:
    return SigningKeyring(keys={"k1": "test-secret-one"}, active_key_id="k1")


@pytest.fixture
def signer(keyring: SigningKeyring) -> AuditSigner:
    return AuditSigner(keyring)


@pytest.fixture
def config() -> ApprovalAuditConfig:
    return TEST_APPROVAL_AUDIT_CONFIG


@pytest.fixture
def store() -> InMemoryApprovalStore:
    return InMemoryApprovalStore()


@pytest.fixture
def authentication() -> AuthenticationContextStub:
    return AuthenticationContextStub(SENIOR_MANAGER)


@pytest.fixture
def authority_table() -> AuthorityTableStub:
    return AuthorityTableStub(
        {
            MANAGER.actor_id: AuthorityLevel.MANAGER,
            SENIOR_MANAGER.actor_id: AuthorityLevel.SENIOR_MANAGER,
            REGIONAL_MANAGER.actor_id: AuthorityLevel.REGIONAL_MANAGER,
            ADMIN.actor_id: AuthorityLevel.ADMIN,
        }
    )


@pytest.fixture
def profile_signal() -> ProfileCreationSignalStub:
    return ProfileCreationSignalStub()


@pytest.fixture
def metrics(monkeypatch: pytest.MonkeyPatch) -> ApprovalAuditMetrics:
    """Metrics on a private registry, labelled environment=development."""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    return ApprovalAuditMetrics(registry=CollectorRegistry())


@pytest.fixture
def container(
    store: InMemoryApprovalStore,
    authentication: AuthenticationContextStub,
    authority_table: AuthorityTableStub,
    keyring: SigningKeyring,
    profile_signal: ProfileCreationSignalStub,
    config: ApprovalAuditConfig,
    fake_clock: FakeClock,
    metrics: ApprovalAuditMetrics,
) -> ApprovalAuditContainer:
    """Fully wired service graph over in-memory adapters."""
    return build_approval_audit_container(
        store=store,
        authentication=authentication,
        authority_table=authority_table,
        keyring=keyring,
        profile_signal=profile_signal,
        config=config,
        clock=fake_clock,
        metrics=metrics,
    )


@pytest.fixture
def approval_request() -> ApprovalDecisionRequest:
    return ApprovalDecisionRequest(
        decision_reason=DecisionReason.QUALIFICATIONS_MET,
        decision_rationale="Strong references and five years of site security work.",
        decision_confidence=8,
    )


@pytest.fixture
def rejection_request() -> RejectionDecisionRequest:
    return RejectionDecisionRequest(
        decision_reason=DecisionReason.INSUFFICIENT_EXPERIENCE,
        decision_rationale="Less than the one year of licensed experience required.",
        decision_confidence=7,
    )

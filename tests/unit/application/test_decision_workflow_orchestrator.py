"""Unit tests for DecisionWorkflowOrchestrator.

Every state change is one unit of work: the decision write and its
audit record(s) become visible together or not at all.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from prometheus_client import CollectorRegistry
from structlog.testing import capture_logs

from approval_audit.application.dtos import (
    ApprovalDecisionRequest,
    AuthorityDelegationRequest,
    RejectionDecisionRequest,
)
from approval_audit.application.services import DecisionWorkflowOrchestrator
from approval_audit.bootstrap.approval_audit import ApprovalAuditContainer
from approval_audit.domain.errors import (
    AppealWindowClosedError,
    AuthorityLookupError,
    ConflictError,
    DelegationDeniedError,
    DuplicateDecisionError,
    InsufficientAuthorityError,
    LedgerWriteError,
    NotFoundError,
    StoreUnavailableError,
    UnauthenticatedError,
    ValidationError,
)
from approval_audit.domain.models import (
    AppealOutcome,
    AuditEventType,
    AuthorityLevel,
    DecisionReason,
    DecisionState,
    DecisionType,
)
from approval_audit.infrastructure.monitoring import ApprovalAuditMetrics
from approval_audit.infrastructure.stubs import (
    AuthenticationContextStub,
    AuthorityTableStub,
    InMemoryApprovalStore,
    ProfileCreationSignalStub,
)
from tests.helpers import FakeClock
from tests.helpers.actors import (
    ADMIN,
    MANAGER,
    REGIONAL_MANAGER,
    SENIOR_MANAGER,
    SWEEPER,
)


@pytest.fixture
def orchestrator(container: ApprovalAuditContainer) -> DecisionWorkflowOrchestrator:
    return container.orchestrator


class TestSubmitApproval:
    """Tests for submit_approval_decision()."""

    @pytest.mark.asyncio
    async def test_approval_is_final_with_one_created_record(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        store: InMemoryApprovalStore,
    ) -> None:
        outcome = await orchestrator.submit_approval_decision("app-1", approval_request)

        decision = outcome.decision
        assert decision.decision_type == DecisionType.APPROVED
        assert decision.is_final is True
        assert decision.approver_id == SENIOR_MANAGER.actor_id
        assert decision.authority_level == AuthorityLevel.SENIOR_MANAGER
        (record,) = outcome.audit_records
        assert record.audit_event_type == AuditEventType.DECISION_CREATED
        assert record.actor_id == SENIOR_MANAGER.actor_id
        assert record.change_reason == "Decision approved: qualifications_met"
        assert record.new_state is not None
        assert record.new_state["id"] == decision.id
        assert store.audit_record_count == 1

    @pytest.mark.asyncio
    async def test_profile_creation_signaled(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        profile_signal: ProfileCreationSignalStub,
    ) -> None:
        outcome = await orchestrator.submit_approval_decision("app-1", approval_request)
        assert profile_signal.signaled == [outcome.decision]

    @pytest.mark.asyncio
    async def test_signal_failure_does_not_undo_approval(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        profile_signal: ProfileCreationSignalStub,
        store: InMemoryApprovalStore,
    ) -> None:
        profile_signal.set_failure(ConnectionError("onboarding offline"))

        outcome = await orchestrator.submit_approval_decision("app-1", approval_request)

        assert outcome.decision.is_final
        assert store.decision_count == 1

    @pytest.mark.asyncio
    async def test_signal_timeout_logged_as_timeout(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        profile_signal: ProfileCreationSignalStub,
        store: InMemoryApprovalStore,
    ) -> None:
        """A stalled onboarding system is a timeout, not a ledger failure."""
        profile_signal.set_latency(2.0)

        with capture_logs() as logs:
            outcome = await orchestrator.submit_approval_decision(
                "app-1", approval_request
            )

        (failure,) = [e for e in logs if e["event"] == "profile_creation_signal_failed"]
        assert failure["error_type"] == "ProfileSignalTimeoutError"
        assert "timed out after 0.5s" in failure["error"]
        assert outcome.decision.is_final
        assert store.decision_count == 1
        assert store.audit_record_count == 1
        assert profile_signal.signaled == []

    @pytest.mark.asyncio
    async def test_insufficient_authority_writes_nothing(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        authentication: AuthenticationContextStub,
        store: InMemoryApprovalStore,
    ) -> None:
        authentication.set_actor(MANAGER)

        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.submit_approval_decision("app-1", approval_request)

        assert store.decision_count == 0
        assert store.audit_record_count == 0

    @pytest.mark.asyncio
    async def test_unauthenticated(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        authentication: AuthenticationContextStub,
    ) -> None:
        authentication.set_actor(None)
        with pytest.raises(UnauthenticatedError):
            await orchestrator.submit_approval_decision("app-1", approval_request)

    @pytest.mark.asyncio
    async def test_system_actor_cannot_submit(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        authentication: AuthenticationContextStub,
    ) -> None:
        authentication.set_actor(SWEEPER)
        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.submit_approval_decision("app-1", approval_request)

    @pytest.mark.asyncio
    async def test_authority_table_down(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        authority_table: AuthorityTableStub,
        store: InMemoryApprovalStore,
    ) -> None:
        authority_table.set_unreachable()

        with pytest.raises(AuthorityLookupError):
            await orchestrator.submit_approval_decision("app-1", approval_request)
        assert store.decision_count == 0

    @pytest.mark.asyncio
    async def test_second_decision_is_duplicate(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        rejection_request: RejectionDecisionRequest,
        store: InMemoryApprovalStore,
    ) -> None:
        await orchestrator.submit_approval_decision("app-1", approval_request)

        with pytest.raises(DuplicateDecisionError):
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        assert store.audit_record_count == 1

    @pytest.mark.asyncio
    async def test_audit_failure_rolls_back_decision(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        store: InMemoryApprovalStore,
        profile_signal: ProfileCreationSignalStub,
    ) -> None:
        """No decision without its audit record, and no signal either."""
        store.fail_next_audit_insert()

        with pytest.raises(LedgerWriteError):
            await orchestrator.submit_approval_decision("app-1", approval_request)

        assert store.decision_count == 0
        assert store.audit_record_count == 0
        assert profile_signal.signaled == []

    @pytest.mark.asyncio
    async def test_store_timeout_writes_nothing(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        store: InMemoryApprovalStore,
    ) -> None:
        store.set_latency(2.0)

        with pytest.raises(StoreUnavailableError, match="timed out"):
            await orchestrator.submit_approval_decision("app-1", approval_request)

        store.set_latency(0)
        assert store.decision_count == 0

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        store: InMemoryApprovalStore,
    ) -> None:
        store.fail_next_commit()

        with pytest.raises(LedgerWriteError, match="simulated commit failure"):
            await orchestrator.submit_approval_decision("app-1", approval_request)

        assert store.decision_count == 0
        assert store.rollback_count == 1

    @pytest.mark.asyncio
    async def test_decision_counted(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
        metrics: ApprovalAuditMetrics,
    ) -> None:
        await orchestrator.submit_approval_decision("app-1", approval_request)

        registry: CollectorRegistry = metrics.registry
        assert registry.get_sample_value(
            "hiring_decisions_submitted_total",
            labels={"environment": "development", "decision_type": "approved"},
        ) == 1.0


class TestSubmitRejection:
    """Tests for submit_rejection_decision()."""

    @pytest.mark.asyncio
    async def test_rejection_open_for_appeal(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
        profile_signal: ProfileCreationSignalStub,
    ) -> None:
        outcome = await orchestrator.submit_rejection_decision("app-1", rejection_request)

        decision = outcome.decision
        assert decision.is_final is False
        assert decision.appeals_deadline == fake_clock() + timedelta(days=30)
        assert decision.state == DecisionState.REJECTED
        assert profile_signal.signaled == []

    @pytest.mark.asyncio
    async def test_missing_application_id(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        with pytest.raises(ValidationError):
            await orchestrator.submit_rejection_decision("", rejection_request)


class TestDelegate:
    """Tests for delegate()."""

    @pytest.mark.asyncio
    async def test_delegation_creates_pending_successor(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        authority_table: AuthorityTableStub,
    ) -> None:
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision

        outcome = await orchestrator.delegate(
            original.id, REGIONAL_MANAGER.actor_id, "Conflict of interest"
        )

        assert outcome.original.successor_id == outcome.successor.id
        assert outcome.original.state == DecisionState.DELEGATED
        successor = outcome.successor
        assert successor.decision_type == DecisionType.DELEGATED
        assert successor.decision_reason == DecisionReason.DELEGATED_REVIEW
        assert successor.approver_id == REGIONAL_MANAGER.actor_id
        assert successor.authority_level == AuthorityLevel.REGIONAL_MANAGER
        assert successor.delegated_by == SENIOR_MANAGER.actor_id
        assert successor.predecessor_id == original.id
        assert successor.state == DecisionState.PENDING

        delegated, created = outcome.audit_records
        assert delegated.audit_event_type == AuditEventType.DECISION_DELEGATED
        assert delegated.hiring_decision_id == original.id
        assert delegated.new_state is not None
        assert delegated.new_state["delegated_to"] == REGIONAL_MANAGER.actor_id
        assert created.audit_event_type == AuditEventType.DECISION_CREATED
        assert created.hiring_decision_id == successor.id

    @pytest.mark.asyncio
    async def test_delegate_needs_authority_for_decision_type(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        store: InMemoryApprovalStore,
    ) -> None:
        """A manager cannot take over a rejection."""
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision

        with pytest.raises(InsufficientAuthorityError) as exc_info:
            await orchestrator.delegate(original.id, MANAGER.actor_id, "Vacation")

        assert exc_info.value.actor_id == MANAGER.actor_id
        assert store.decision_count == 1
        assert store.audit_record_count == 1

    @pytest.mark.asyncio
    async def test_unknown_delegate(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision

        with pytest.raises(AuthorityLookupError):
            await orchestrator.delegate(original.id, "ghost-1", "Vacation")

    @pytest.mark.asyncio
    async def test_only_approver_may_delegate(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        authentication: AuthenticationContextStub,
    ) -> None:
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        authentication.set_actor(ADMIN)

        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.delegate(original.id, REGIONAL_MANAGER.actor_id, "Reassign")

    @pytest.mark.asyncio
    async def test_final_decision_cannot_be_delegated(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
    ) -> None:
        decision = (
            await orchestrator.submit_approval_decision("app-1", approval_request)
        ).decision

        with pytest.raises(ConflictError):
            await orchestrator.delegate(decision.id, REGIONAL_MANAGER.actor_id, "Reassign")

    @pytest.mark.asyncio
    async def test_cannot_delegate_twice(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        await orchestrator.delegate(original.id, REGIONAL_MANAGER.actor_id, "Reassign")

        with pytest.raises(ConflictError):
            await orchestrator.delegate(original.id, ADMIN.actor_id, "Reassign again")

    @pytest.mark.asyncio
    async def test_validation(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision

        with pytest.raises(ValidationError, match="reason"):
            await orchestrator.delegate(original.id, REGIONAL_MANAGER.actor_id, " ")
        with pytest.raises(ValidationError, match="own approver"):
            await orchestrator.delegate(original.id, SENIOR_MANAGER.actor_id, "Self")

    @pytest.mark.asyncio
    async def test_delegate_decision_closes_pending_review(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        approval_request: ApprovalDecisionRequest,
        authentication: AuthenticationContextStub,
        container: ApprovalAuditContainer,
    ) -> None:
        """The delegate's own decision finalizes the pending review."""
        original = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        delegation = await orchestrator.delegate(
            original.id, REGIONAL_MANAGER.actor_id, "Second opinion"
        )
        authentication.set_actor(REGIONAL_MANAGER)

        outcome = await orchestrator.submit_approval_decision("app-1", approval_request)

        review = await container.decisions.get(delegation.successor.id)
        assert review.is_final is True
        assert review.state == DecisionState.DELEGATED
        closing = outcome.audit_records[-1]
        assert closing.hiring_decision_id == review.id
        assert closing.audit_event_type == AuditEventType.DECISION_MODIFIED
        assert closing.change_reason == (
            f"Delegated review closed by decision {outcome.decision.id}"
        )


class TestAppeals:
    """Tests for record_appeal() and review_appeal()."""

    @pytest.mark.asyncio
    async def test_appeal_within_window(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        fake_clock.advance(timedelta(days=10))

        outcome = await orchestrator.record_appeal(decision.id, "New certification")

        assert outcome.decision.appealed_at == fake_clock()
        assert outcome.decision.state == DecisionState.APPEALED
        (record,) = outcome.audit_records
        assert record.audit_event_type == AuditEventType.DECISION_APPEALED
        assert record.compliance_flag is True

    @pytest.mark.asyncio
    async def test_appeal_on_deadline_accepted(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        assert decision.appeals_deadline is not None
        fake_clock.set_time(decision.appeals_deadline)

        outcome = await orchestrator.record_appeal(decision.id, "Last-minute appeal")
        assert outcome.decision.state == DecisionState.APPEALED

    @pytest.mark.asyncio
    async def test_appeal_after_window_rejected(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
        store: InMemoryApprovalStore,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        fake_clock.advance(timedelta(days=30, seconds=1))

        with pytest.raises(AppealWindowClosedError) as exc_info:
            await orchestrator.record_appeal(decision.id, "Too late")

        assert exc_info.value.code == "APPEAL_WINDOW_CLOSED"
        assert store.audit_record_count == 1

    @pytest.mark.asyncio
    async def test_approval_cannot_be_appealed(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        approval_request: ApprovalDecisionRequest,
    ) -> None:
        decision = (
            await orchestrator.submit_approval_decision("app-1", approval_request)
        ).decision

        with pytest.raises(ConflictError, match="Only rejected"):
            await orchestrator.record_appeal(decision.id, "Why not")

    @pytest.mark.asyncio
    async def test_second_appeal_conflicts(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        await orchestrator.record_appeal(decision.id, "First")

        with pytest.raises(ConflictError, match="already been appealed"):
            await orchestrator.record_appeal(decision.id, "Second")

    @pytest.mark.asyncio
    async def test_review_finalizes_and_is_idempotent(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        store: InMemoryApprovalStore,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        await orchestrator.record_appeal(decision.id, "Reconsider")

        reviewed = await orchestrator.review_appeal(
            decision.id, AppealOutcome.UPHELD, "Experience still insufficient"
        )
        repeat = await orchestrator.review_appeal(
            decision.id, AppealOutcome.UPHELD, "Experience still insufficient"
        )

        assert reviewed.decision.is_final is True
        assert reviewed.decision.appeal_outcome == AppealOutcome.UPHELD
        assert reviewed.decision.state == DecisionState.APPEAL_REVIEWED
        assert reviewed.audit_records[0].audit_event_type == AuditEventType.APPEAL_REVIEWED
        assert repeat.changed is False
        assert repeat.audit_records == ()
        assert store.audit_record_count == 3

    @pytest.mark.asyncio
    async def test_review_with_other_outcome_conflicts(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        await orchestrator.record_appeal(decision.id, "Reconsider")
        await orchestrator.review_appeal(decision.id, AppealOutcome.UPHELD, "Upheld")

        with pytest.raises(ConflictError, match="appeal_reviewed:upheld"):
            await orchestrator.review_appeal(
                decision.id, AppealOutcome.OVERTURNED, "Changed mind"
            )

    @pytest.mark.asyncio
    async def test_review_without_appeal_conflicts(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision

        with pytest.raises(ConflictError, match="no appeal"):
            await orchestrator.review_appeal(decision.id, AppealOutcome.UPHELD, "n/a")

    @pytest.mark.asyncio
    async def test_overturned_appeal_reopens_application(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        approval_request: ApprovalDecisionRequest,
    ) -> None:
        """An appealed rejection no longer blocks a new decision."""
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        await orchestrator.record_appeal(decision.id, "Reconsider")
        await orchestrator.review_appeal(
            decision.id, AppealOutcome.OVERTURNED, "Certification verified"
        )

        approval = await orchestrator.submit_approval_decision("app-1", approval_request)
        assert approval.decision.is_final


class TestFinalize:
    """Tests for finalize_decision() and the expiry sweep."""

    @pytest.mark.asyncio
    async def test_concurrent_finalize_writes_once(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        store: InMemoryApprovalStore,
        container: ApprovalAuditContainer,
        fake_clock: FakeClock,
    ) -> None:
        """Two finalizers race after the deadline; one writes, the other observes."""
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        fake_clock.advance(timedelta(days=30, seconds=1))

        first, second = await asyncio.gather(
            orchestrator.finalize_decision(decision.id, DecisionType.REJECTED, "Closing"),
            orchestrator.finalize_decision(decision.id, DecisionType.REJECTED, "Closing"),
        )

        assert sorted([first.changed, second.changed]) == [False, True]
        assert first.decision.is_final and second.decision.is_final
        modified = [
            r
            for r in await container.ledger.query(decision.id)
            if r.audit_event_type == AuditEventType.DECISION_MODIFIED
        ]
        assert len(modified) == 1
        assert store.audit_record_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_finalize_different_types(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        fake_clock.advance(timedelta(days=31))

        results = await asyncio.gather(
            orchestrator.finalize_decision(decision.id, DecisionType.REJECTED, "Close"),
            orchestrator.finalize_decision(decision.id, DecisionType.APPROVED, "Flip"),
            return_exceptions=True,
        )

        assert any(isinstance(r, ConflictError) for r in results)

    @pytest.mark.parametrize("elapsed", [timedelta(days=1), timedelta(days=30)])
    @pytest.mark.asyncio
    async def test_finalize_inside_appeal_window_conflicts(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
        store: InMemoryApprovalStore,
        elapsed: timedelta,
    ) -> None:
        """An open rejection keeps its appeal right until the deadline."""
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        fake_clock.advance(elapsed)

        with pytest.raises(ConflictError, match="open to appeal until"):
            await orchestrator.finalize_decision(
                decision.id, DecisionType.REJECTED, "close early"
            )

        assert store.audit_record_count == 1
        appealed = await orchestrator.record_appeal(decision.id, "New certification")
        assert appealed.decision.appealed_at == fake_clock()
        assert appealed.decision.is_final is False

    @pytest.mark.asyncio
    async def test_finalize_after_deadline(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        fake_clock.advance(timedelta(days=30, seconds=1))

        outcome = await orchestrator.finalize_decision(
            decision.id, DecisionType.REJECTED, "Window lapsed"
        )

        assert outcome.decision.is_final is True
        assert outcome.decision.state == DecisionState.REJECTED

    @pytest.mark.asyncio
    async def test_finalize_under_appeal_conflicts(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
    ) -> None:
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        await orchestrator.record_appeal(decision.id, "Reconsider")

        with pytest.raises(ConflictError, match="under appeal"):
            await orchestrator.finalize_decision(decision.id, DecisionType.REJECTED, "x")

    @pytest.mark.asyncio
    async def test_appeal_on_final_rejection_conflicts(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        store: InMemoryApprovalStore,
        fake_clock: FakeClock,
    ) -> None:
        """A final rejection inside its window is refused by name, not by evolve()."""
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        store.add_decision(decision.evolve(is_final=True))
        fake_clock.advance(timedelta(days=1))

        with pytest.raises(ConflictError, match="can no longer be appealed"):
            await orchestrator.record_appeal(decision.id, "Reconsider")

    @pytest.mark.asyncio
    async def test_sweeper_finalizes_expired_rejections(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        expired = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        appealed = (
            await orchestrator.submit_rejection_decision("app-2", rejection_request)
        ).decision
        await orchestrator.record_appeal(appealed.id, "Reconsider")
        fake_clock.advance(timedelta(days=20))
        fresh = (
            await orchestrator.submit_rejection_decision("app-3", rejection_request)
        ).decision
        fake_clock.advance(timedelta(days=10, seconds=1))

        outcomes = await orchestrator.finalize_expired_rejections()

        assert [o.decision.id for o in outcomes] == [expired.id]
        (record,) = outcomes[0].audit_records
        assert record.is_system_generated is True
        assert record.actor_id == SWEEPER.actor_id
        assert record.audit_event_type == AuditEventType.DECISION_MODIFIED
        assert fresh.id not in [o.decision.id for o in outcomes]
        assert await orchestrator.finalize_expired_rejections() == []

    @pytest.mark.asyncio
    async def test_sweeper_leaves_rejection_at_its_deadline(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        """At the deadline an appeal is still accepted, so nothing is swept."""
        decision = (
            await orchestrator.submit_rejection_decision("app-1", rejection_request)
        ).decision
        assert decision.appeals_deadline is not None

        assert await orchestrator.finalize_expired_rejections(decision.appeals_deadline) == []
        swept = await orchestrator.finalize_expired_rejections(
            decision.appeals_deadline + timedelta(seconds=1)
        )
        assert [o.decision.id for o in swept] == [decision.id]


def lend_senior_authority(**overrides: object) -> AuthorityDelegationRequest:
    fields: dict[str, object] = {
        "delegate_actor_id": MANAGER.actor_id,
        "authority_level": "senior_manager",
        "delegation_reason": "Covering approvals during leave",
    }
    fields.update(overrides)
    return AuthorityDelegationRequest(**fields)  # type: ignore[arg-type]


class TestAuthorityDelegation:
    """Tests for delegate_approval_authority() and revoke_authority_delegation()."""

    @pytest.mark.asyncio
    async def test_delegation_recorded(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        store: InMemoryApprovalStore,
        fake_clock: FakeClock,
    ) -> None:
        until = fake_clock() + timedelta(days=14)

        delegation = await orchestrator.delegate_approval_authority(
            lend_senior_authority(
                effective_until=until,
                max_decisions_per_day=5,
                application_ids=["app-1", "app-2"],
            )
        )

        assert delegation.delegating_actor_id == SENIOR_MANAGER.actor_id
        assert delegation.delegate_actor_id == MANAGER.actor_id
        assert delegation.authority_level == AuthorityLevel.SENIOR_MANAGER
        assert delegation.effective_from == fake_clock()
        assert delegation.effective_until == until
        assert delegation.application_ids == frozenset({"app-1", "app-2"})
        assert delegation.is_active
        assert await store.get_delegation(delegation.id) == delegation

    @pytest.mark.asyncio
    async def test_cannot_lend_above_own_level(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        store: InMemoryApprovalStore,
    ) -> None:
        with pytest.raises(DelegationDeniedError, match="exceeds own level") as exc_info:
            await orchestrator.delegate_approval_authority(
                lend_senior_authority(authority_level="regional_manager")
            )

        assert exc_info.value.code == "DELEGATION_DENIED"
        assert store.delegation_count == 0

    @pytest.mark.asyncio
    async def test_may_lend_own_level_or_lower(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
    ) -> None:
        authentication.set_actor(REGIONAL_MANAGER)

        for level in ("manager", "senior_manager", "regional_manager"):
            delegation = await orchestrator.delegate_approval_authority(
                lend_senior_authority(authority_level=level)
            )
            assert delegation.authority_level.value == level

    @pytest.mark.asyncio
    async def test_system_actor_cannot_delegate(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
    ) -> None:
        authentication.set_actor(SWEEPER)

        with pytest.raises(DelegationDeniedError, match="system actors"):
            await orchestrator.delegate_approval_authority(lend_senior_authority())

    @pytest.mark.asyncio
    async def test_self_delegation_rejected(
        self, orchestrator: DecisionWorkflowOrchestrator
    ) -> None:
        with pytest.raises(ValidationError, match="oneself"):
            await orchestrator.delegate_approval_authority(
                lend_senior_authority(delegate_actor_id=SENIOR_MANAGER.actor_id)
            )

    @pytest.mark.asyncio
    async def test_unknown_delegate(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        store: InMemoryApprovalStore,
    ) -> None:
        with pytest.raises(AuthorityLookupError, match="unknown actor"):
            await orchestrator.delegate_approval_authority(
                lend_senior_authority(delegate_actor_id="ghost-1")
            )
        assert store.delegation_count == 0

    @pytest.mark.asyncio
    async def test_period_already_over(
        self, orchestrator: DecisionWorkflowOrchestrator, fake_clock: FakeClock
    ) -> None:
        with pytest.raises(ValidationError, match="in the future"):
            await orchestrator.delegate_approval_authority(
                lend_senior_authority(effective_until=fake_clock())
            )

    @pytest.mark.asyncio
    async def test_store_timeout(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        store: InMemoryApprovalStore,
    ) -> None:
        store.set_latency(2.0)

        with pytest.raises(StoreUnavailableError, match="timed out"):
            await orchestrator.delegate_approval_authority(lend_senior_authority())

        store.set_latency(0)

    @pytest.mark.asyncio
    async def test_delegate_decides_under_lent_authority(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
        approval_request: ApprovalDecisionRequest,
    ) -> None:
        await orchestrator.delegate_approval_authority(lend_senior_authority())
        authentication.set_actor(MANAGER)

        outcome = await orchestrator.submit_approval_decision("app-1", approval_request)

        decision = outcome.decision
        assert decision.approver_id == MANAGER.actor_id
        assert decision.authority_level == AuthorityLevel.SENIOR_MANAGER
        assert decision.delegated_by == SENIOR_MANAGER.actor_id
        assert outcome.audit_records[0].new_state is not None
        assert outcome.audit_records[0].new_state["delegated_by"] == SENIOR_MANAGER.actor_id

    @pytest.mark.asyncio
    async def test_daily_limit_enforced(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
        approval_request: ApprovalDecisionRequest,
        rejection_request: RejectionDecisionRequest,
        fake_clock: FakeClock,
        store: InMemoryApprovalStore,
    ) -> None:
        await orchestrator.delegate_approval_authority(
            lend_senior_authority(max_decisions_per_day=1)
        )
        authentication.set_actor(MANAGER)
        await orchestrator.submit_approval_decision("app-1", approval_request)

        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.submit_rejection_decision("app-2", rejection_request)
        assert store.decision_count == 1

        fake_clock.advance(timedelta(days=1))
        outcome = await orchestrator.submit_rejection_decision("app-2", rejection_request)
        assert outcome.decision.delegated_by == SENIOR_MANAGER.actor_id

    @pytest.mark.asyncio
    async def test_application_filter_enforced(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
        approval_request: ApprovalDecisionRequest,
    ) -> None:
        await orchestrator.delegate_approval_authority(
            lend_senior_authority(application_ids=["app-1"])
        )
        authentication.set_actor(MANAGER)

        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.submit_approval_decision("app-2", approval_request)
        await orchestrator.submit_approval_decision("app-1", approval_request)

    @pytest.mark.asyncio
    async def test_expired_delegation_grants_nothing(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
        approval_request: ApprovalDecisionRequest,
        fake_clock: FakeClock,
    ) -> None:
        await orchestrator.delegate_approval_authority(
            lend_senior_authority(effective_until=fake_clock() + timedelta(days=2))
        )
        authentication.set_actor(MANAGER)
        fake_clock.advance(timedelta(days=2))

        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.submit_approval_decision("app-1", approval_request)

    @pytest.mark.asyncio
    async def test_revoked_delegation_grants_nothing(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
        approval_request: ApprovalDecisionRequest,
    ) -> None:
        delegation = await orchestrator.delegate_approval_authority(
            lend_senior_authority()
        )

        revoked = await orchestrator.revoke_authority_delegation(
            delegation.id, "Back from leave"
        )

        assert revoked.is_active is False
        assert revoked.revocation_reason == "Back from leave"
        authentication.set_actor(MANAGER)
        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.submit_approval_decision("app-1", approval_request)

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(
        self, orchestrator: DecisionWorkflowOrchestrator, fake_clock: FakeClock
    ) -> None:
        delegation = await orchestrator.delegate_approval_authority(
            lend_senior_authority()
        )
        first = await orchestrator.revoke_authority_delegation(delegation.id, "Done")
        fake_clock.advance(timedelta(hours=1))

        second = await orchestrator.revoke_authority_delegation(delegation.id, "Again")

        assert second == first

    @pytest.mark.asyncio
    async def test_only_delegator_or_admin_may_revoke(
        self,
        orchestrator: DecisionWorkflowOrchestrator,
        authentication: AuthenticationContextStub,
    ) -> None:
        delegation = await orchestrator.delegate_approval_authority(
            lend_senior_authority()
        )

        authentication.set_actor(REGIONAL_MANAGER)
        with pytest.raises(InsufficientAuthorityError):
            await orchestrator.revoke_authority_delegation(delegation.id, "Not mine")

        authentication.set_actor(ADMIN)
        revoked = await orchestrator.revoke_authority_delegation(
            delegation.id, "Access review"
        )
        assert revoked.is_active is False

    @pytest.mark.asyncio
    async def test_revoke_unknown_delegation(
        self, orchestrator: DecisionWorkflowOrchestrator
    ) -> None:
        with pytest.raises(NotFoundError, match="Authority delegation not found"):
            await orchestrator.revoke_authority_delegation("missing", "Cleanup")

"""Authority validator: may this actor submit this decision type?

A recognized actor without sufficient authority is a ``False`` answer.
Only an unresolvable actor or an unreachable authority table is an error.
Calls have no side effects, so repeating one within a workflow is safe.

An actor whose own level falls short may still act under an authority
delegation lent by another manager, while that delegation is in effect,
covers the application and has decisions left for the UTC day.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime, time
from typing import TypeVar

import structlog

from approval_audit.application.ports.approval_store import ApprovalStoreProtocol
from approval_audit.application.ports.authority_table import AuthorityTableProtocol
from approval_audit.application.services.base import (
    Clock,
    LoggingMixin,
    call_with_timeout,
    utc_now,
)
from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
)
from approval_audit.domain.errors.authority import AuthorityLookupError
from approval_audit.domain.errors.ledger import StoreUnavailableError
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType
from approval_audit.domain.models.authority_delegation import AuthorityDelegation
from approval_audit.domain.models.filters import DateRange, DecisionFilters

T = TypeVar("T")

# Decision types that count against a delegation's daily limit
_COUNTED_TYPES = frozenset({DecisionType.APPROVED, DecisionType.REJECTED})


@dataclass(frozen=True)
class AuthorityGrant:
    """The authority an actor acts under for one decision.

    ``delegation`` is set when the authority is borrowed rather than the
    actor's own.
    """

    authority_level: AuthorityLevel
    delegation: AuthorityDelegation | None = None

    @property
    def delegated_by(self) -> str | None:
        return self.delegation.delegating_actor_id if self.delegation else None


class AuthorityValidator(LoggingMixin):
    """Answers authority questions against the external authority table."""

    def __init__(
        self,
        authority_table: AuthorityTableProtocol,
        config: ApprovalAuditConfig = DEFAULT_APPROVAL_AUDIT_CONFIG,
        store: ApprovalStoreProtocol | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._authority_table = authority_table
        self._store = store
        self._clock = clock
        self._timeout = config.authority_lookup_timeout_seconds
        self._store_timeout = config.store_timeout_seconds
        self._init_logger()

    async def validate(
        self,
        actor_id: str,
        decision_type: DecisionType,
        application_id: str | None = None,
    ) -> bool:
        """Check whether the actor's authority permits the decision type.

        Args:
            actor_id: The actor to check.
            decision_type: The requested decision type.
            application_id: The application decided on, for delegations
                limited to certain applications.

        Returns:
            True if permitted, by the actor's own level or an active
            delegation; False for a recognized actor lacking authority.

        Raises:
            AuthorityLookupError: If the actor or the table cannot be resolved,
                including on timeout.
            StoreUnavailableError: If delegations cannot be read.
        """
        log = self._log_operation(
            "validate", actor_id=actor_id, decision_type=decision_type.value
        )
        if await self._is_permitted(actor_id, decision_type):
            log.debug("authority_validated", permitted=True)
            return True
        delegation = await self._covering_delegation(
            actor_id, decision_type, application_id, log
        )
        return delegation is not None

    async def resolve_grant(
        self,
        actor_id: str,
        decision_type: DecisionType,
        application_id: str | None = None,
    ) -> AuthorityGrant | None:
        """Find the authority the actor would act under, if any.

        The actor's own level wins whenever it permits the decision type.
        Otherwise the oldest covering delegation with room left today is
        used.

        Raises:
            AuthorityLookupError: If the actor or the table cannot be resolved.
            StoreUnavailableError: If delegations cannot be read.
        """
        log = self._log_operation(
            "resolve_grant", actor_id=actor_id, decision_type=decision_type.value
        )
        if await self._is_permitted(actor_id, decision_type):
            log.debug("authority_validated", permitted=True)
            return AuthorityGrant(await self.authority_level(actor_id))
        delegation = await self._covering_delegation(
            actor_id, decision_type, application_id, log
        )
        if delegation is None:
            return None
        return AuthorityGrant(delegation.authority_level, delegation)

    async def authority_level(self, actor_id: str) -> AuthorityLevel:
        """Resolve the actor's authority level.

        Raises:
            AuthorityLookupError: If the actor or the table cannot be resolved.
        """
        return await self._lookup(
            actor_id, self._authority_table.get_authority_level(actor_id)
        )

    async def active_delegations(
        self, actor_id: str, now: datetime | None = None
    ) -> list[AuthorityDelegation]:
        """Delegations lent to the actor that are in effect at ``now``.

        Raises:
            StoreUnavailableError: If delegations cannot be read.
        """
        if self._store is None:
            return []
        moment = now or self._clock()
        delegations = await self._read(
            "list_delegations", self._store.list_delegations(delegate_actor_id=actor_id)
        )
        return [d for d in delegations if d.is_effective(moment)]

    async def _is_permitted(self, actor_id: str, decision_type: DecisionType) -> bool:
        permitted = await self._lookup(
            actor_id, self._authority_table.is_permitted(actor_id, decision_type)
        )
        return bool(permitted)

    async def _covering_delegation(
        self,
        actor_id: str,
        decision_type: DecisionType,
        application_id: str | None,
        log: structlog.BoundLogger,
    ) -> AuthorityDelegation | None:
        now = self._clock()
        for delegation in await self.active_delegations(actor_id, now):
            if not delegation.covers(decision_type, application_id, now):
                continue
            if not await self._within_daily_limit(delegation, now):
                log.info("delegation_daily_limit_reached", delegation_id=delegation.id)
                continue
            log.debug(
                "authority_validated",
                permitted=True,
                delegation_id=delegation.id,
                delegated_by=delegation.delegating_actor_id,
            )
            return delegation
        log.debug("authority_validated", permitted=False)
        return None

    async def _within_daily_limit(
        self, delegation: AuthorityDelegation, now: datetime
    ) -> bool:
        if delegation.max_decisions_per_day is None or self._store is None:
            return True
        day_start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        taken = await self._read(
            "list_decisions",
            self._store.list_decisions(
                DecisionFilters(
                    decision_types=_COUNTED_TYPES,
                    approver_ids=frozenset({delegation.delegate_actor_id}),
                    date_range=DateRange(day_start, now),
                )
            ),
        )
        used = sum(
            1 for d in taken if d.delegated_by == delegation.delegating_actor_id
        )
        return used < delegation.max_decisions_per_day

    async def _read(self, operation: str, call: Awaitable[T]) -> T:
        return await call_with_timeout(
            call,
            self._store_timeout,
            lambda: StoreUnavailableError(
                operation, f"timed out after {self._store_timeout}s"
            ),
        )

    async def _lookup(self, actor_id: str, call: Awaitable[T]) -> T:
        try:
            return await call_with_timeout(
                call,
                self._timeout,
                lambda: AuthorityLookupError(
                    actor_id, f"lookup timed out after {self._timeout}s"
                ),
            )
        except AuthorityLookupError as exc:
            self._log_operation("authority_lookup", actor_id=actor_id).warning(
                "authority_lookup_failed", reason=exc.reason
            )
            raise
        except (ConnectionError, OSError) as exc:
            self._log_operation("authority_lookup", actor_id=actor_id).warning(
                "authority_lookup_failed", reason=str(exc)
            )
            raise AuthorityLookupError(actor_id, str(exc)) from exc

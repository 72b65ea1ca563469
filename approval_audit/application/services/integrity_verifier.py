"""Integrity verifier: signature checks and anomaly heuristics.

Produces an IntegrityReport for one decision's audit trail:

1. Signature mismatch: the recomputed signature differs from the stored
   one. Severity high; the record does not count as verified.
2. System/human mismatch: a record marked system-generated whose actor
   is not a recognized system principal, or a record marked human whose
   actor is one. Severity medium.
3. Rapid successive changes: ``decision_modified`` records by the same
   actor within the configured window. Reaching the medium threshold is
   medium; reaching the high threshold is high.

Heuristics 2 and 3 are advisory and never lower the integrity score.
"""

from __future__ import annotations

import math
from collections import defaultdict

import structlog

from approval_audit.application.services.audit_ledger_service import AuditLedgerService
from approval_audit.application.services.base import Clock, LoggingMixin, utc_now
from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
)
from approval_audit.domain.models.actor import is_system_principal
from approval_audit.domain.models.audit_record import AuditEventType, AuditRecord
from approval_audit.domain.models.integrity_report import (
    AnomalyKind,
    IntegrityReport,
    Severity,
    SuspiciousActivity,
)
from approval_audit.infrastructure.monitoring.metrics import ApprovalAuditMetrics


def integrity_score(verified: int, total: int) -> float:
    """Verified share as a percentage, floored to two decimals.

    Flooring keeps any unverified record visible: 999 of 1000 reports
    99.9, and 9999 of 10000 reports 99.99 rather than rounding to 100.
    """
    if total == 0:
        return 100.0
    return math.floor(verified * 10000 / total) / 100


class IntegrityVerifier(LoggingMixin):
    """Builds integrity reports from a decision's audit trail."""

    def __init__(
        self,
        ledger: AuditLedgerService,
        config: ApprovalAuditConfig = DEFAULT_APPROVAL_AUDIT_CONFIG,
        clock: Clock = utc_now,
        metrics: ApprovalAuditMetrics | None = None,
    ) -> None:
        self._ledger = ledger
        self._config = config
        self._clock = clock
        self._metrics = metrics
        self._init_logger()

    async def verify(self, decision_id: str) -> IntegrityReport:
        """Verify every audit record of a decision.

        Raises:
            NotFoundError: If the decision is unknown and has no records.
            StoreUnavailableError: If the store fails or times out.
        """
        log = self._log_operation("verify", decision_id=decision_id)
        records = await self._ledger.query(decision_id)
        return self.verify_records(decision_id, records, log=log)

    def verify_records(
        self,
        decision_id: str,
        records: list[AuditRecord],
        log: structlog.BoundLogger | None = None,
    ) -> IntegrityReport:
        """Build a report from records already in time order."""
        log = log or self._log_operation("verify", decision_id=decision_id)
        activities: list[SuspiciousActivity] = []
        verified = 0
        for record in records:
            reason = self._ledger.mismatch_reason(record)
            if reason is None:
                verified += 1
            else:
                activities.append(
                    SuspiciousActivity(
                        record_id=record.id,
                        issue=f"Signature mismatch: {reason}",
                        severity=Severity.HIGH,
                        kind=AnomalyKind.SIGNATURE_MISMATCH,
                    )
                )
            activity = self._check_actor_kind(record)
            if activity is not None:
                activities.append(activity)
        activities.extend(self._check_rapid_changes(records))

        report = IntegrityReport(
            decision_id=decision_id,
            total_records=len(records),
            verified_records=verified,
            integrity_score=integrity_score(verified, len(records)),
            suspicious_activities=tuple(activities),
            last_verified=self._clock(),
        )
        for activity in activities:
            log.warning(
                "suspicious_activity_detected",
                record_id=activity.record_id,
                kind=activity.kind.value,
                severity=activity.severity.value,
                issue=activity.issue,
            )
            if self._metrics is not None:
                self._metrics.record_suspicious_activity(
                    activity.kind.value, activity.severity.value
                )
        if self._metrics is not None:
            self._metrics.record_verification(len(report.signature_mismatches))
        log.info(
            "integrity_verified",
            total_records=report.total_records,
            verified_records=report.verified_records,
            integrity_score=report.integrity_score,
            suspicious_count=len(activities),
        )
        return report

    def _check_actor_kind(self, record: AuditRecord) -> SuspiciousActivity | None:
        system_actor = is_system_principal(
            record.actor_id, self._config.system_principals
        )
        if record.is_system_generated and not system_actor:
            issue = (
                f"System-generated record attributed to human account "
                f"{record.actor_id}"
            )
        elif not record.is_system_generated and system_actor:
            issue = (
                f"Record marked as human action attributed to system principal "
                f"{record.actor_id}"
            )
        else:
            return None
        return SuspiciousActivity(
            record_id=record.id,
            issue=issue,
            severity=Severity.MEDIUM,
            kind=AnomalyKind.SYSTEM_HUMAN_MISMATCH,
        )

    def _check_rapid_changes(
        self, records: list[AuditRecord]
    ) -> list[SuspiciousActivity]:
        window = self._config.rapid_change_window
        medium = self._config.rapid_change_medium_threshold
        high = self._config.rapid_change_high_threshold

        by_actor: dict[str, list[AuditRecord]] = defaultdict(list)
        for record in records:
            if record.audit_event_type == AuditEventType.DECISION_MODIFIED:
                by_actor[record.actor_id].append(record)

        activities: list[SuspiciousActivity] = []
        for actor_id, changes in by_actor.items():
            for index, record in enumerate(changes):
                # Changes by this actor within the window ending at this record
                count = sum(
                    1
                    for earlier in changes[: index + 1]
                    if record.created_at - earlier.created_at < window
                )
                if count >= high:
                    severity = Severity.HIGH
                elif count >= medium:
                    severity = Severity.MEDIUM
                else:
                    continue
                activities.append(
                    SuspiciousActivity(
                        record_id=record.id,
                        issue=(
                            f"{count} modifications by {actor_id} within "
                            f"{int(window.total_seconds())} seconds"
                        ),
                        severity=severity,
                        kind=AnomalyKind.RAPID_SUCCESSIVE_CHANGES,
                    )
                )
        return activities

"""Compliance report generator: read-only rollups over decisions and records.

Report types:
- approval_summary: outcomes by authority level, average confidence
- audit_trail: record counts by event type, flagged and system counts
- delegation_report: delegation hand-offs (from approver -> to approver)
- decision_integrity: per-decision integrity score and anomaly count

``compliance_issues`` counts compliance-flagged records (exports
excluded) for the first three types, and decisions whose trail is not
intact or carries suspicious activity for decision_integrity.
"""

from __future__ import annotations

import uuid
from collections import Counter
from typing import Any

from approval_audit.application.services.audit_ledger_service import AuditLedgerService
from approval_audit.application.services.base import Clock, LoggingMixin, utc_now
from approval_audit.application.services.decision_record_service import (
    DecisionRecordService,
)
from approval_audit.application.services.integrity_verifier import IntegrityVerifier
from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
)
from approval_audit.domain.models.audit_record import AuditEventType, AuditRecord
from approval_audit.domain.models.authority import DecisionType
from approval_audit.domain.models.compliance_report import ComplianceReport, ReportType
from approval_audit.domain.models.filters import (
    ComplianceFilters,
    DateRange,
    DecisionFilters,
    ExportFilters,
)
from approval_audit.domain.models.hiring_decision import HiringDecision


class ComplianceReportService(LoggingMixin):
    """Builds ComplianceReports; never writes."""

    def __init__(
        self,
        decisions: DecisionRecordService,
        ledger: AuditLedgerService,
        verifier: IntegrityVerifier,
        config: ApprovalAuditConfig = DEFAULT_APPROVAL_AUDIT_CONFIG,
        clock: Clock = utc_now,
    ) -> None:
        self._decisions = decisions
        self._ledger = ledger
        self._verifier = verifier
        self._config = config
        self._clock = clock
        self._init_logger()

    async def generate(
        self,
        report_type: ReportType,
        filters: ComplianceFilters | None = None,
    ) -> ComplianceReport:
        """Generate a report over the filter period (default: last 30 days).

        Raises:
            StoreUnavailableError: If the store fails or times out.
        """
        filters = filters or ComplianceFilters()
        generated_at = self._clock()
        period = filters.date_range or DateRange(
            start=generated_at - self._config.report_period, end=generated_at
        )
        log = self._log_operation(
            "generate_compliance_report",
            report_type=report_type.value,
            period_start=period.start.isoformat(),
            period_end=period.end.isoformat(),
        )

        decisions = await self._decisions.list_decisions(
            DecisionFilters(date_range=period)
        )
        records = await self._ledger.find(ExportFilters(date_range=period))
        counts = Counter(d.decision_type for d in decisions)
        flagged = sum(
            1
            for r in records
            if r.compliance_flag and r.audit_event_type != AuditEventType.AUDIT_EXPORT
        )

        if report_type == ReportType.APPROVAL_SUMMARY:
            report_data = self._approval_summary(decisions)
            issues = flagged
        elif report_type == ReportType.AUDIT_TRAIL:
            report_data = self._audit_trail(records, filters.include_audit_trail)
            issues = flagged
        elif report_type == ReportType.DELEGATION_REPORT:
            report_data = self._delegation_report(decisions)
            issues = flagged
        else:
            report_data, issues = await self._decision_integrity(decisions)

        if filters.include_decision_details:
            report_data["decisions"] = [d.to_snapshot() for d in decisions]

        report = ComplianceReport(
            id=f"compliance_{report_type.value}_{uuid.uuid4().hex}",
            report_type=report_type,
            generated_at=generated_at,
            period=period,
            total_decisions=len(decisions),
            approvals=counts[DecisionType.APPROVED],
            rejections=counts[DecisionType.REJECTED],
            delegated_decisions=counts[DecisionType.DELEGATED],
            audit_records=len(records),
            compliance_issues=issues,
            report_data=report_data,
        )
        log.info(
            "compliance_report_generated",
            report_id=report.id,
            total_decisions=report.total_decisions,
            audit_records=report.audit_records,
            compliance_issues=report.compliance_issues,
        )
        return report

    @staticmethod
    def _approval_summary(decisions: list[HiringDecision]) -> dict[str, Any]:
        by_level: dict[str, dict[str, int]] = {}
        for decision in decisions:
            level = by_level.setdefault(
                decision.authority_level.value,
                {t.value: 0 for t in DecisionType},
            )
            level[decision.decision_type.value] += 1
        decided = [
            d.decision_confidence
            for d in decisions
            if d.decision_type != DecisionType.DELEGATED
        ]
        return {
            "by_authority_level": by_level,
            "average_confidence": (
                round(sum(decided) / len(decided), 2) if decided else None
            ),
        }

    @staticmethod
    def _audit_trail(
        records: list[AuditRecord], include_records: bool
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "by_event_type": dict(
                sorted(Counter(r.audit_event_type.value for r in records).items())
            ),
            "compliance_flagged": sum(1 for r in records if r.compliance_flag),
            "system_generated": sum(1 for r in records if r.is_system_generated),
        }
        if include_records:
            data["records"] = [r.to_dict() for r in records]
        return data

    @staticmethod
    def _delegation_report(decisions: list[HiringDecision]) -> dict[str, Any]:
        chains = [
            {
                "decision_id": d.id,
                "application_id": d.application_id,
                "predecessor_id": d.predecessor_id,
                "from_approver": d.delegated_by,
                "to_approver": d.approver_id,
                "state": d.state.value,
                "delegated_at": d.created_at.isoformat(),
            }
            for d in sorted(decisions, key=lambda d: d.created_at)
            if d.decision_type == DecisionType.DELEGATED
        ]
        by_delegator = Counter(c["from_approver"] for c in chains)
        return {"delegations": chains, "by_delegator": dict(by_delegator)}

    async def _decision_integrity(
        self, decisions: list[HiringDecision]
    ) -> tuple[dict[str, Any], int]:
        rows = []
        issues = 0
        for decision in sorted(decisions, key=lambda d: d.created_at):
            report = await self._verifier.verify(decision.id)
            severity = report.highest_severity()
            if not report.is_intact or report.suspicious_activities:
                issues += 1
            rows.append(
                {
                    "decision_id": decision.id,
                    "integrity_score": report.integrity_score,
                    "total_records": report.total_records,
                    "verified_records": report.verified_records,
                    "suspicious_activities": len(report.suspicious_activities),
                    "highest_severity": severity.value if severity else None,
                }
            )
        return {"integrity": rows}, issues

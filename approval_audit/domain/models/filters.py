"""Query filters for decisions, audit records and exports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from approval_audit.domain.errors.decision import ValidationError
from approval_audit.domain.models.audit_record import AuditEventType, AuditRecord
from approval_audit.domain.models.authority import AuthorityLevel, DecisionType
from approval_audit.domain.models.hiring_decision import HiringDecision


@dataclass(frozen=True)
class DateRange:
    """Inclusive time range."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError(
                f"Date range start {self.start.isoformat()} is after "
                f"end {self.end.isoformat()}",
                field="date_range",
            )

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class AuditFilters:
    """Filters for an audit trail query.

    ``None`` means "do not filter on this field". Set fields use
    membership: a record matches if its value is one of the given ones.

    Attributes:
        audit_event_types: Event types to include.
        compliance_flags: compliance_flag values to include.
        actor_ids: Actor ids to include.
        date_range: Inclusive created_at range.
        system_generated: Only system (True) or only human (False) records.
        reverse: Return newest first instead of oldest first.
    """

    audit_event_types: frozenset[AuditEventType] | None = None
    compliance_flags: frozenset[bool] | None = None
    actor_ids: frozenset[str] | None = None
    date_range: DateRange | None = None
    system_generated: bool | None = None
    reverse: bool = False

    def matches(self, record: AuditRecord) -> bool:
        if (
            self.audit_event_types is not None
            and record.audit_event_type not in self.audit_event_types
        ):
            return False
        if (
            self.compliance_flags is not None
            and record.compliance_flag not in self.compliance_flags
        ):
            return False
        if self.actor_ids is not None and record.actor_id not in self.actor_ids:
            return False
        if self.date_range is not None and not self.date_range.contains(
            record.created_at
        ):
            return False
        if (
            self.system_generated is not None
            and record.is_system_generated != self.system_generated
        ):
            return False
        return True


@dataclass(frozen=True)
class DecisionFilters:
    """Filters for hiring decision queries (newest first)."""

    decision_types: frozenset[DecisionType] | None = None
    approver_ids: frozenset[str] | None = None
    authority_levels: frozenset[AuthorityLevel] | None = None
    date_range: DateRange | None = None

    def matches(self, decision: HiringDecision) -> bool:
        if (
            self.decision_types is not None
            and decision.decision_type not in self.decision_types
        ):
            return False
        if self.approver_ids is not None and decision.approver_id not in self.approver_ids:
            return False
        if (
            self.authority_levels is not None
            and decision.authority_level not in self.authority_levels
        ):
            return False
        if self.date_range is not None and not self.date_range.contains(
            decision.created_at
        ):
            return False
        return True


class ExportFormat(str, Enum):
    """Supported audit export formats."""

    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True)
class ExportFilters:
    """Selection and format for a bulk audit export.

    Attributes:
        decision_ids: Decisions to include (all when None).
        date_range: Inclusive created_at range.
        audit_event_types: Event types to include.
        actor_ids: Actor ids to include.
        include_system_generated: Include system-generated records.
        format: Output format.
    """

    decision_ids: tuple[str, ...] | None = None
    date_range: DateRange | None = None
    audit_event_types: frozenset[AuditEventType] | None = None
    actor_ids: frozenset[str] | None = None
    include_system_generated: bool = True
    format: ExportFormat = ExportFormat.JSON

    def matches(self, record: AuditRecord) -> bool:
        if (
            self.decision_ids is not None
            and record.hiring_decision_id not in self.decision_ids
        ):
            return False
        if not self.include_system_generated and record.is_system_generated:
            return False
        return AuditFilters(
            audit_event_types=self.audit_event_types,
            actor_ids=self.actor_ids,
            date_range=self.date_range,
        ).matches(record)

    def to_summary(self) -> dict[str, object]:
        """JSON-safe description recorded in the export's own audit entry."""
        return {
            "decision_ids": list(self.decision_ids) if self.decision_ids else None,
            "date_range": (
                {
                    "start": self.date_range.start.isoformat(),
                    "end": self.date_range.end.isoformat(),
                }
                if self.date_range
                else None
            ),
            "audit_event_types": (
                sorted(t.value for t in self.audit_event_types)
                if self.audit_event_types
                else None
            ),
            "actor_ids": sorted(self.actor_ids) if self.actor_ids else None,
            "include_system_generated": self.include_system_generated,
            "format": self.format.value,
        }


@dataclass(frozen=True)
class ComplianceFilters:
    """Scope of a compliance report.

    Attributes:
        date_range: Reporting period; defaults to the last 30 days.
        include_audit_trail: Include per-record rows in audit_trail reports.
        include_decision_details: Include per-decision rows in reports.
    """

    date_range: DateRange | None = None
    include_audit_trail: bool = False
    include_decision_details: bool = False

"""Compliance report and audit export read models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from approval_audit.domain.models.filters import DateRange, ExportFormat


class ReportType(str, Enum):
    """Available compliance rollups."""

    APPROVAL_SUMMARY = "approval_summary"
    AUDIT_TRAIL = "audit_trail"
    DELEGATION_REPORT = "delegation_report"
    DECISION_INTEGRITY = "decision_integrity"


@dataclass(frozen=True)
class ComplianceReport:
    """Periodic rollup over decisions and audit records."""

    id: str
    report_type: ReportType
    generated_at: datetime
    period: DateRange
    total_decisions: int
    approvals: int
    rejections: int
    delegated_decisions: int
    audit_records: int
    compliance_issues: int
    report_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditExport:
    """Result of a bulk audit export.

    Attributes:
        export_id: Unique export id.
        format: Payload format.
        record_count: Number of records in the payload.
        payload: Serialized records.
        exported_at: When the export ran.
        expires_at: When the export should no longer be served.
        audit_record_id: The audit_export record written for this export.
    """

    export_id: str
    format: ExportFormat
    record_count: int
    payload: str
    exported_at: datetime
    expires_at: datetime
    audit_record_id: str

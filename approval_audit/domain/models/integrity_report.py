"""Integrity report domain model.

Derived on demand from a decision's audit records; never persisted as a
mutable entity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Severity(str, Enum):
    """How urgently a suspicious activity needs human review."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalyKind(str, Enum):
    """Which check flagged a suspicious activity."""

    SIGNATURE_MISMATCH = "signature_mismatch"
    SYSTEM_HUMAN_MISMATCH = "system_human_mismatch"
    RAPID_SUCCESSIVE_CHANGES = "rapid_successive_changes"


@dataclass(frozen=True)
class SuspiciousActivity:
    """A heuristically flagged, non-fatal anomaly in an audit trail."""

    record_id: str
    issue: str
    severity: Severity
    kind: AnomalyKind

    def to_dict(self) -> dict[str, str]:
        return {
            "record_id": self.record_id,
            "issue": self.issue,
            "severity": self.severity.value,
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class IntegrityReport:
    """Signature verification and anomaly report for one decision.

    Attributes:
        decision_id: Decision whose audit trail was verified.
        total_records: Number of records examined.
        verified_records: Records whose signature recomputed correctly.
        integrity_score: verified_records / total_records x 100 (100 when empty).
        suspicious_activities: Anomalies found, in record order.
        last_verified: When verification ran.
    """

    decision_id: str
    total_records: int
    verified_records: int
    integrity_score: float
    suspicious_activities: tuple[SuspiciousActivity, ...]
    last_verified: datetime

    @property
    def signature_mismatches(self) -> tuple[SuspiciousActivity, ...]:
        return tuple(
            activity
            for activity in self.suspicious_activities
            if activity.kind == AnomalyKind.SIGNATURE_MISMATCH
        )

    @property
    def is_intact(self) -> bool:
        """True when every record's signature verified."""
        return self.verified_records == self.total_records

    def highest_severity(self) -> Severity | None:
        order = [Severity.LOW, Severity.MEDIUM, Severity.HIGH]
        severities = [a.severity for a in self.suspicious_activities]
        if not severities:
            return None
        return max(severities, key=order.index)

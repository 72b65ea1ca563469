"""Approval workflow and audit ledger configuration.

This module defines configuration for appeal windows, anomaly heuristics,
export lifetimes, collaborator timeouts and the audit signing keyring,
with environment variable overrides for production tuning.

Configuration is loaded once at startup and injected; it is immutable
thereafter.

Environment Variables:
- APPEAL_WINDOW_DAYS: Days a rejection stays open to appeal (default: 30, min: 1, max: 365)
- RAPID_CHANGE_WINDOW_SECONDS: Window for rapid-change detection (default: 60, min: 1, max: 3600)
- RAPID_CHANGE_MEDIUM_THRESHOLD: Modifications within the window flagged medium (default: 2)
- RAPID_CHANGE_HIGH_THRESHOLD: Modifications within the window flagged high (default: 3)
- AUDIT_EXPORT_TTL_HOURS: Hours an export stays downloadable (default: 24, min: 1, max: 168)
- AUTHORITY_LOOKUP_TIMEOUT_SECONDS: Authority table call timeout (default: 5.0)
- STORE_TIMEOUT_SECONDS: Persistence call timeout (default: 5.0)
- AUDIT_SYSTEM_PRINCIPALS: Comma-separated extra actor ids treated as system principals
- REPORT_PERIOD_DAYS: Default compliance report period (default: 30, min: 1)
- AUDIT_SIGNING_KEYS: Comma-separated ``key_id:secret`` pairs (required in production)
- AUDIT_SIGNING_ACTIVE_KEY: Key id used for new signatures (default: last key listed)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta

from approval_audit.domain.signing import SigningKeyring


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# =============================================================================
# Appeal Window
# =============================================================================

DEFAULT_APPEAL_WINDOW_DAYS = 30
MIN_APPEAL_WINDOW_DAYS = 1
MAX_APPEAL_WINDOW_DAYS = 365

# =============================================================================
# Rapid Change Heuristic
# =============================================================================

DEFAULT_RAPID_CHANGE_WINDOW_SECONDS = 60
MIN_RAPID_CHANGE_WINDOW_SECONDS = 1
MAX_RAPID_CHANGE_WINDOW_SECONDS = 3600

DEFAULT_RAPID_CHANGE_MEDIUM_THRESHOLD = 2
DEFAULT_RAPID_CHANGE_HIGH_THRESHOLD = 3

# =============================================================================
# Export & Timeouts
# =============================================================================

DEFAULT_EXPORT_TTL_HOURS = 24
MIN_EXPORT_TTL_HOURS = 1
MAX_EXPORT_TTL_HOURS = 168

DEFAULT_AUTHORITY_LOOKUP_TIMEOUT_SECONDS = 5.0
DEFAULT_STORE_TIMEOUT_SECONDS = 5.0

# Compliance reports without an explicit period cover this many days
DEFAULT_REPORT_PERIOD_DAYS = 30


@dataclass(frozen=True)
class ApprovalAuditConfig:
    """Configuration for the approval workflow and audit ledger.

    Attributes:
        appeal_window_days: Days after a rejection during which it may be appealed.
        rapid_change_window_seconds: Window used by the rapid-change heuristic.
        rapid_change_medium_threshold: Count of same-actor modifications
            within the window that is flagged ``medium``.
        rapid_change_high_threshold: Count flagged ``high``.
        export_ttl_hours: Lifetime of an audit export.
        authority_lookup_timeout_seconds: Timeout for authority table calls.
        store_timeout_seconds: Timeout for persistence calls.
        system_principals: Extra actor ids recognized as system principals.
        report_period_days: Default compliance report period.
    """

    appeal_window_days: int = DEFAULT_APPEAL_WINDOW_DAYS
    rapid_change_window_seconds: int = DEFAULT_RAPID_CHANGE_WINDOW_SECONDS
    rapid_change_medium_threshold: int = DEFAULT_RAPID_CHANGE_MEDIUM_THRESHOLD
    rapid_change_high_threshold: int = DEFAULT_RAPID_CHANGE_HIGH_THRESHOLD
    export_ttl_hours: int = DEFAULT_EXPORT_TTL_HOURS
    authority_lookup_timeout_seconds: float = DEFAULT_AUTHORITY_LOOKUP_TIMEOUT_SECONDS
    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS
    system_principals: frozenset[str] = field(default_factory=frozenset)
    report_period_days: int = DEFAULT_REPORT_PERIOD_DAYS

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not MIN_APPEAL_WINDOW_DAYS <= self.appeal_window_days <= MAX_APPEAL_WINDOW_DAYS:
            raise ValueError(
                f"appeal_window_days must be between {MIN_APPEAL_WINDOW_DAYS} "
                f"and {MAX_APPEAL_WINDOW_DAYS}, got {self.appeal_window_days}"
            )
        if (
            not MIN_RAPID_CHANGE_WINDOW_SECONDS
            <= self.rapid_change_window_seconds
            <= MAX_RAPID_CHANGE_WINDOW_SECONDS
        ):
            raise ValueError(
                f"rapid_change_window_seconds must be between "
                f"{MIN_RAPID_CHANGE_WINDOW_SECONDS} and "
                f"{MAX_RAPID_CHANGE_WINDOW_SECONDS}, got {self.rapid_change_window_seconds}"
            )
        if self.rapid_change_medium_threshold < 2:
            raise ValueError(
                "rapid_change_medium_threshold must be at least 2, "
                f"got {self.rapid_change_medium_threshold}"
            )
        if self.rapid_change_high_threshold < self.rapid_change_medium_threshold:
            raise ValueError(
                "rapid_change_high_threshold must be >= rapid_change_medium_threshold, "
                f"got {self.rapid_change_high_threshold} < "
                f"{self.rapid_change_medium_threshold}"
            )
        if not MIN_EXPORT_TTL_HOURS <= self.export_ttl_hours <= MAX_EXPORT_TTL_HOURS:
            raise ValueError(
                f"export_ttl_hours must be between {MIN_EXPORT_TTL_HOURS} "
                f"and {MAX_EXPORT_TTL_HOURS}, got {self.export_ttl_hours}"
            )
        if self.authority_lookup_timeout_seconds <= 0:
            raise ValueError("authority_lookup_timeout_seconds must be positive")
        if self.store_timeout_seconds <= 0:
            raise ValueError("store_timeout_seconds must be positive")
        if self.report_period_days < 1:
            raise ValueError("report_period_days must be at least 1")

    @property
    def appeal_window(self) -> timedelta:
        return timedelta(days=self.appeal_window_days)

    @property
    def rapid_change_window(self) -> timedelta:
        return timedelta(seconds=self.rapid_change_window_seconds)

    @property
    def export_ttl(self) -> timedelta:
        return timedelta(hours=self.export_ttl_hours)

    @property
    def report_period(self) -> timedelta:
        return timedelta(days=self.report_period_days)

    @classmethod
    def from_environment(cls) -> ApprovalAuditConfig:
        """Create config from environment variables with defaults.

        Out-of-range integers are clamped to their valid range.

        Returns:
            ApprovalAuditConfig with values from environment or defaults.
        """
        appeal_days = _get_int_env("APPEAL_WINDOW_DAYS", DEFAULT_APPEAL_WINDOW_DAYS)
        appeal_days = max(MIN_APPEAL_WINDOW_DAYS, min(appeal_days, MAX_APPEAL_WINDOW_DAYS))

        window = _get_int_env(
            "RAPID_CHANGE_WINDOW_SECONDS", DEFAULT_RAPID_CHANGE_WINDOW_SECONDS
        )
        window = max(
            MIN_RAPID_CHANGE_WINDOW_SECONDS, min(window, MAX_RAPID_CHANGE_WINDOW_SECONDS)
        )

        medium = max(
            2,
            _get_int_env(
                "RAPID_CHANGE_MEDIUM_THRESHOLD", DEFAULT_RAPID_CHANGE_MEDIUM_THRESHOLD
            ),
        )
        high = max(
            medium,
            _get_int_env("RAPID_CHANGE_HIGH_THRESHOLD", DEFAULT_RAPID_CHANGE_HIGH_THRESHOLD),
        )

        ttl = _get_int_env("AUDIT_EXPORT_TTL_HOURS", DEFAULT_EXPORT_TTL_HOURS)
        ttl = max(MIN_EXPORT_TTL_HOURS, min(ttl, MAX_EXPORT_TTL_HOURS))

        authority_timeout = _get_float_env(
            "AUTHORITY_LOOKUP_TIMEOUT_SECONDS", DEFAULT_AUTHORITY_LOOKUP_TIMEOUT_SECONDS
        )
        if authority_timeout <= 0:
            authority_timeout = DEFAULT_AUTHORITY_LOOKUP_TIMEOUT_SECONDS
        store_timeout = _get_float_env(
            "STORE_TIMEOUT_SECONDS", DEFAULT_STORE_TIMEOUT_SECONDS
        )
        if store_timeout <= 0:
            store_timeout = DEFAULT_STORE_TIMEOUT_SECONDS

        report_days = max(
            1, _get_int_env("REPORT_PERIOD_DAYS", DEFAULT_REPORT_PERIOD_DAYS)
        )

        principals = frozenset(
            p.strip()
            for p in os.environ.get("AUDIT_SYSTEM_PRINCIPALS", "").split(",")
            if p.strip()
        )

        return cls(
            appeal_window_days=appeal_days,
            rapid_change_window_seconds=window,
            rapid_change_medium_threshold=medium,
            rapid_change_high_threshold=high,
            export_ttl_hours=ttl,
            authority_lookup_timeout_seconds=authority_timeout,
            store_timeout_seconds=store_timeout,
            system_principals=principals,
            report_period_days=report_days,
        )


def load_signing_keyring(
    keys_value: str | None = None,
    active_key_id: str | None = None,
) -> SigningKeyring:
    """Load the audit signing keyring.

    Reads ``AUDIT_SIGNING_KEYS`` and ``AUDIT_SIGNING_ACTIVE_KEY`` when the
    arguments are not given. The active key defaults to the last key
    listed, so appending a new key to the list rotates to it.

    Args:
        keys_value: ``key_id:secret`` pairs separated by commas.
        active_key_id: Key id to sign with.

    Returns:
        The immutable keyring.

    Raises:
        ValueError: If no keys are configured or an entry is malformed.
    """
    raw = keys_value if keys_value is not None else os.environ.get("AUDIT_SIGNING_KEYS", "")
    keys: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        key_id, sep, secret = entry.partition(":")
        if not sep:
            raise ValueError(
                "AUDIT_SIGNING_KEYS entries must look like 'key_id:secret'"
            )
        keys[key_id.strip()] = secret.strip()

    if not keys:
        raise ValueError(
            "AUDIT_SIGNING_KEYS environment variable not set. "
            "Required to sign audit records."
        )

    active = active_key_id or os.environ.get("AUDIT_SIGNING_ACTIVE_KEY") or list(keys)[-1]
    return SigningKeyring(keys=keys, active_key_id=active)


# Pre-defined configurations

DEFAULT_APPROVAL_AUDIT_CONFIG = ApprovalAuditConfig()

# Short timeouts so injected latency fails fast in tests
TEST_APPROVAL_AUDIT_CONFIG = ApprovalAuditConfig(
    authority_lookup_timeout_seconds=0.5,
    store_timeout_seconds=0.5,
)

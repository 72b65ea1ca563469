"""Unit tests for ApprovalAuditConfig and keyring loading."""

from datetime import timedelta

import pytest

from approval_audit.config import ApprovalAuditConfig, load_signing_keyring

ENV_VARS = (
    "APPEAL_WINDOW_DAYS",
    "RAPID_CHANGE_WINDOW_SECONDS",
    "RAPID_CHANGE_MEDIUM_THRESHOLD",
    "RAPID_CHANGE_HIGH_THRESHOLD",
    "AUDIT_EXPORT_TTL_HOURS",
    "AUTHORITY_LOOKUP_TIMEOUT_SECONDS",
    "STORE_TIMEOUT_SECONDS",
    "AUDIT_SYSTEM_PRINCIPALS",
    "REPORT_PERIOD_DAYS",
    "AUDIT_SIGNING_KEYS",
    "AUDIT_SIGNING_ACTIVE_KEY",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self) -> None:
        config = ApprovalAuditConfig()

        assert config.appeal_window == timedelta(days=30)
        assert config.rapid_change_window == timedelta(seconds=60)
        assert config.rapid_change_medium_threshold == 2
        assert config.rapid_change_high_threshold == 3
        assert config.export_ttl == timedelta(hours=24)
        assert config.report_period == timedelta(days=30)
        assert config.system_principals == frozenset()

    def test_from_environment_without_overrides(self) -> None:
        assert ApprovalAuditConfig.from_environment() == ApprovalAuditConfig()


class TestValidation:
    """Tests for __post_init__ validation."""

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("appeal_window_days", 0),
            ("appeal_window_days", 366),
            ("rapid_change_window_seconds", 0),
            ("rapid_change_window_seconds", 3601),
            ("rapid_change_medium_threshold", 1),
            ("export_ttl_hours", 169),
            ("authority_lookup_timeout_seconds", 0),
            ("store_timeout_seconds", -1.0),
            ("report_period_days", 0),
        ],
    )
    def test_out_of_range_rejected(self, field: str, value: float) -> None:
        with pytest.raises(ValueError, match=field):
            ApprovalAuditConfig(**{field: value})

    def test_high_threshold_below_medium(self) -> None:
        with pytest.raises(ValueError, match="rapid_change_high_threshold"):
            ApprovalAuditConfig(
                rapid_change_medium_threshold=4, rapid_change_high_threshold=3
            )


class TestFromEnvironment:
    """Tests for environment overrides."""

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APPEAL_WINDOW_DAYS", "14")
        monkeypatch.setenv("RAPID_CHANGE_WINDOW_SECONDS", "120")
        monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("AUDIT_SYSTEM_PRINCIPALS", "svc-hris, svc-ats ,")
        monkeypatch.setenv("REPORT_PERIOD_DAYS", "90")

        config = ApprovalAuditConfig.from_environment()

        assert config.appeal_window_days == 14
        assert config.rapid_change_window_seconds == 120
        assert config.store_timeout_seconds == 2.5
        assert config.system_principals == frozenset({"svc-hris", "svc-ats"})
        assert config.report_period == timedelta(days=90)

    def test_out_of_range_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APPEAL_WINDOW_DAYS", "9999")
        monkeypatch.setenv("RAPID_CHANGE_WINDOW_SECONDS", "0")
        monkeypatch.setenv("AUDIT_EXPORT_TTL_HOURS", "1000")
        monkeypatch.setenv("RAPID_CHANGE_MEDIUM_THRESHOLD", "5")
        monkeypatch.setenv("RAPID_CHANGE_HIGH_THRESHOLD", "2")
        monkeypatch.setenv("REPORT_PERIOD_DAYS", "0")

        config = ApprovalAuditConfig.from_environment()

        assert config.appeal_window_days == 365
        assert config.rapid_change_window_seconds == 1
        assert config.export_ttl_hours == 168
        assert config.rapid_change_medium_threshold == 5
        assert config.rapid_change_high_threshold == 5
        assert config.report_period_days == 1

    def test_invalid_values_fall_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APPEAL_WINDOW_DAYS", "thirty")
        monkeypatch.setenv("AUTHORITY_LOOKUP_TIMEOUT_SECONDS", "-3")

        config = ApprovalAuditConfig.from_environment()

        assert config.appeal_window_days == 30
        assert config.authority_lookup_timeout_seconds == 5.0


class TestLoadSigningKeyring:
    """Tests for load_signing_keyring()."""

    def test_last_key_is_active(self) -> None:
        keyring = load_signing_keyring("k1:old-secret, k2:new-secret")

        assert keyring.active_key_id == "k2"
        assert set(keyring.keys) == {"k1", "k2"}

    def test_explicit_active_key(self) -> None:
        keyring = load_signing_keyring("k1:a,k2:b", active_key_id="k1")
        assert keyring.active_key_id == "k1"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUDIT_SIGNING_KEYS", "k1:a,k2:b")
        monkeypatch.setenv("AUDIT_SIGNING_ACTIVE_KEY", "k1")

        assert load_signing_keyring().active_key_id == "k1"

    def test_missing_keys(self) -> None:
        with pytest.raises(ValueError, match="AUDIT_SIGNING_KEYS"):
            load_signing_keyring()

    def test_malformed_entry(self) -> None:
        with pytest.raises(ValueError, match="key_id:secret"):
            load_signing_keyring("k1-no-separator")

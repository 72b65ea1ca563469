"""Configuration module for the approval audit engine.

Available Configurations:
- ApprovalAuditConfig: Appeal window, anomaly heuristics, export TTL, timeouts
- load_signing_keyring: Audit signing keyring from the environment
"""

from approval_audit.config.approval_audit_config import (
    DEFAULT_APPROVAL_AUDIT_CONFIG,
    TEST_APPROVAL_AUDIT_CONFIG,
    ApprovalAuditConfig,
    load_signing_keyring,
)

__all__ = [
    "ApprovalAuditConfig",
    "DEFAULT_APPROVAL_AUDIT_CONFIG",
    "TEST_APPROVAL_AUDIT_CONFIG",
    "load_signing_keyring",
]

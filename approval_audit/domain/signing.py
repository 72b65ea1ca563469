"""Audit record signatures: canonical serialization and keyed MAC.

A digital signature here is an integrity tag, not a legal e-signature:
HMAC-SHA256 over the canonical JSON of every audit record field except
the signature itself and the store-assigned sequence.

Signature format:
    hmac-sha256:v1:<key_id>:<64 hex chars>

The key id is embedded so that rotating the active key never
invalidates verification of historical records, as long as retired keys
stay in the keyring.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Final

SIGNATURE_SCHEME: Final[str] = "hmac-sha256"
SIGNATURE_VERSION: Final[str] = "v1"


def _sanitize_for_json(data: Any) -> Any:
    """Recursively normalize data for deterministic serialization.

    - Strings are kept byte-for-byte (no Unicode normalization)
    - NaN and Infinity are rejected
    - datetimes become ISO-8601 strings
    - tuples become lists

    Raises:
        ValueError: If data contains NaN, Infinity, or -Infinity values.
    """
    if isinstance(data, str):
        return data
    elif isinstance(data, float):
        if math.isnan(data) or math.isinf(data):
            raise ValueError(
                f"Cannot serialize non-finite float value: {data!r}. "
                "NaN and Infinity are not valid JSON."
            )
        return data
    elif isinstance(data, datetime):
        return data.isoformat()
    elif isinstance(data, dict):
        return {_sanitize_for_json(k): _sanitize_for_json(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [_sanitize_for_json(item) for item in data]
    else:
        return data


def canonical_json(data: Any) -> str:
    """Produce deterministic JSON for signing.

    Sorted keys, compact separators, non-ASCII kept verbatim.

    Example:
        >>> canonical_json({"b": 1, "a": 2})
        '{"a":2,"b":1}'
    """
    return json.dumps(
        _sanitize_for_json(data),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


@dataclass(frozen=True)
class SigningKeyring:
    """Process-wide signing keys, loaded once at startup.

    Attributes:
        keys: Mapping of key id to secret. Retired keys stay here for
            verification of historical records.
        active_key_id: Key used for new signatures.
    """

    keys: dict[str, str] = field(repr=False)
    active_key_id: str

    def __post_init__(self) -> None:
        if not self.keys:
            raise ValueError("SigningKeyring requires at least one key")
        if self.active_key_id not in self.keys:
            raise ValueError(
                f"Active signing key '{self.active_key_id}' is not in the keyring"
            )
        for key_id, secret in self.keys.items():
            if not key_id or ":" in key_id:
                raise ValueError(f"Invalid signing key id: {key_id!r}")
            if not secret:
                raise ValueError(f"Signing key '{key_id}' has an empty secret")

    def secret_for(self, key_id: str) -> str | None:
        return self.keys.get(key_id)


@dataclass(frozen=True)
class ParsedSignature:
    scheme: str
    version: str
    key_id: str
    digest: str


def parse_signature(signature: str) -> ParsedSignature | None:
    """Split a signature string into its parts, or None if malformed."""
    parts = signature.split(":")
    if len(parts) != 4:
        return None
    scheme, version, key_id, digest = parts
    if not key_id or len(digest) != 64:
        return None
    return ParsedSignature(scheme=scheme, version=version, key_id=key_id, digest=digest)


class AuditSigner:
    """Computes and verifies audit record signatures with a keyring."""

    def __init__(self, keyring: SigningKeyring) -> None:
        self._keyring = keyring

    @property
    def active_key_id(self) -> str:
        return self._keyring.active_key_id

    def _digest(self, secret: str, fields: dict[str, Any]) -> str:
        return hmac.new(
            secret.encode("utf-8"),
            canonical_json(fields).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def sign(self, fields: dict[str, Any]) -> str:
        """Sign the given field mapping with the active key."""
        key_id = self._keyring.active_key_id
        secret = self._keyring.keys[key_id]
        digest = self._digest(secret, fields)
        return f"{SIGNATURE_SCHEME}:{SIGNATURE_VERSION}:{key_id}:{digest}"

    def verify(self, fields: dict[str, Any], signature: str) -> bool:
        """Recompute the signature and compare in constant time.

        Unknown schemes, versions or key ids never verify.
        """
        parsed = parse_signature(signature)
        if parsed is None:
            return False
        if parsed.scheme != SIGNATURE_SCHEME or parsed.version != SIGNATURE_VERSION:
            return False
        secret = self._keyring.secret_for(parsed.key_id)
        if secret is None:
            return False
        expected = self._digest(secret, fields)
        return hmac.compare_digest(expected, parsed.digest)

    def mismatch_reason(self, fields: dict[str, Any], signature: str) -> str | None:
        """Describe why a signature fails to verify, or None if it verifies."""
        parsed = parse_signature(signature)
        if parsed is None:
            return "Malformed digital signature"
        if parsed.scheme != SIGNATURE_SCHEME or parsed.version != SIGNATURE_VERSION:
            return f"Unsupported signature scheme {parsed.scheme}:{parsed.version}"
        if self._keyring.secret_for(parsed.key_id) is None:
            return f"Unknown signing key '{parsed.key_id}'"
        if not self.verify(fields, signature):
            return "Invalid digital signature"
        return None

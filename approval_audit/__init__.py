"""
Approval Audit Engine - Hiring Decision Approval & Audit Integrity

Authority-gated approval, rejection and delegation of hiring decisions,
paired with an append-only, signature-verifiable audit ledger.

Core guarantees:
- Audit records are immutable once appended
- Every decision state change has exactly one matching audit record
- Authority is checked before any write
- Integrity reports are always regenerable from the ledger
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

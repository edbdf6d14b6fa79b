"""
ClaimRouter Audit

Hash-chained audit log for claim decisions and verification actions.

Usage:
    from claimrouter.audit import AuditLogger
"""
from __future__ import annotations

from .logger import AuditLogger, ChainVerificationResult

__all__ = [
    "AuditLogger",
    "ChainVerificationResult",
]

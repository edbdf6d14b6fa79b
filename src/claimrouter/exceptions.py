"""
ClaimRouter Exception Hierarchy

Domain-specific exceptions for claim routing, verification and approval.
All exceptions include error codes for tracking and logging.

Exception codes follow the pattern: CR_<CATEGORY>_<SPECIFIC>
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ClaimRouterError(Exception):
    """
    Base exception for all ClaimRouter errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (CR_*)
        details: Additional context about the error
        claim_id: Associated claim ID if applicable
    """
    message: str
    code: str = "CR_INTERNAL_ERROR"
    details: dict[str, Any] = field(default_factory=dict)
    claim_id: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.code}] {self.message}"]
        if self.claim_id:
            parts.append(f"(claim: {self.claim_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for logging/API responses."""
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.claim_id:
            result["claim_id"] = self.claim_id
        return result


# =============================================================================
# Controls Errors
# =============================================================================

@dataclass
class ControlsLoadError(ClaimRouterError):
    """Failed to load controls pack from file."""
    code: str = "CR_CONTROLS_LOAD_ERROR"


@dataclass
class ControlsValidationError(ClaimRouterError):
    """Controls values failed schema validation."""
    code: str = "CR_CONTROLS_VALIDATION_ERROR"


# =============================================================================
# Claim Errors
# =============================================================================

@dataclass
class ClaimNotFoundError(ClaimRouterError):
    """Requested claim does not exist in the record store."""
    code: str = "CR_CLAIM_NOT_FOUND"


@dataclass
class InvalidStatusTransitionError(ClaimRouterError):
    """Claim status change is not allowed by the lifecycle."""
    code: str = "CR_INVALID_STATUS_TRANSITION"


@dataclass
class ImmutableFieldError(ClaimRouterError):
    """Attempt to overwrite a write-once claim field."""
    code: str = "CR_IMMUTABLE_FIELD"


@dataclass
class InvalidDetectionError(ClaimRouterError):
    """Detection box violates coordinate invariants."""
    code: str = "CR_INVALID_DETECTION"


# =============================================================================
# Verification Errors
# =============================================================================

@dataclass
class VerificationError(ClaimRouterError):
    """Verification action could not be applied."""
    code: str = "CR_VERIFICATION_ERROR"


@dataclass
class InvalidReasonCodeError(VerificationError):
    """Reason code is not part of the fixed enumeration."""
    code: str = "CR_INVALID_REASON_CODE"


@dataclass
class UnknownEntityError(VerificationError):
    """Part index or detection id is not known to the workspace."""
    code: str = "CR_UNKNOWN_ENTITY"


# =============================================================================
# Approval Errors
# =============================================================================

@dataclass
class ApprovalBlockedError(ClaimRouterError):
    """Approval gate refused the approve action."""
    code: str = "CR_APPROVAL_BLOCKED"


# =============================================================================
# Agent Errors
# =============================================================================

@dataclass
class AgentError(ClaimRouterError):
    """Base class for AI agent call failures."""
    code: str = "CR_AGENT_ERROR"
    stage: Optional[str] = None


@dataclass
class AgentStageError(AgentError):
    """Transient agent failure (timeout, 5xx) at a pipeline stage."""
    code: str = "CR_AGENT_STAGE_FAILED"


@dataclass
class MalformedAgentOutputError(AgentStageError):
    """Agent response is missing required structured fields."""
    code: str = "CR_AGENT_MALFORMED_OUTPUT"


@dataclass
class RateLimitedError(AgentError):
    """Agent gateway returned HTTP 429."""
    code: str = "CR_AGENT_RATE_LIMITED"


@dataclass
class QuotaExceededError(AgentError):
    """Agent gateway returned HTTP 402 (credits exhausted)."""
    code: str = "CR_AGENT_QUOTA_EXCEEDED"


# =============================================================================
# Audit Errors
# =============================================================================

@dataclass
class AuditWriteError(ClaimRouterError):
    """Audit event could not be persisted."""
    code: str = "CR_AUDIT_WRITE_ERROR"

"""
ClaimRouter Approval Gate

Decides whether an adjuster may approve a claim given its verification
state.

Rule:
- Claims where the claimant asked for a human at intake need a completed
  verification before approval: at least one part verified, or every
  damaged part rejected.
- All other claims are not constrained by this gate. The routing
  recommendation remains advisory.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..exceptions import ApprovalBlockedError
from ..models import Claim, VerificationState, VerificationStatus


BLOCKED_MESSAGE = (
    "Customer requested human review. Please verify at least one damaged "
    "part (or reject all parts) before approving."
)


def verification_complete(claim: Claim, state: Optional[VerificationState]) -> bool:
    """
    At least one part verified, or every damaged part rejected.

    With no damaged parts there is nothing left to reject, so the check
    passes and an adjuster can close the claim.
    """
    total = len(claim.damaged_parts)
    statuses = (state or VerificationState()).part_statuses(total)
    if any(s == VerificationStatus.VERIFIED for s in statuses):
        return True
    return all(s == VerificationStatus.REJECTED for s in statuses)


def can_approve(claim: Claim, state: Optional[VerificationState]) -> bool:
    """Check whether the approve action is permitted for this claim."""
    if not claim.human_review_requested:
        return True
    return verification_complete(claim, state)


@dataclass(frozen=True)
class ApprovalGateResult:
    """Outcome of an approval gate check with verification counts."""
    allowed: bool
    reason: Optional[str]
    verified_parts: int
    rejected_parts: int
    total_parts: int

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "verified_parts": self.verified_parts,
            "rejected_parts": self.rejected_parts,
            "total_parts": self.total_parts,
        }


class ApprovalGate:
    """
    Evaluates and enforces the approval precondition.

    Usage:
        gate = ApprovalGate()
        result = gate.evaluate(claim, state)
        if not result.allowed:
            print(result.reason)

        gate.enforce(claim, state)  # raises ApprovalBlockedError
    """

    def evaluate(
        self,
        claim: Claim,
        state: Optional[VerificationState],
    ) -> ApprovalGateResult:
        total = len(claim.damaged_parts)
        statuses = (state or VerificationState()).part_statuses(total)
        allowed = can_approve(claim, state)
        return ApprovalGateResult(
            allowed=allowed,
            reason=None if allowed else BLOCKED_MESSAGE,
            verified_parts=sum(1 for s in statuses if s == VerificationStatus.VERIFIED),
            rejected_parts=sum(1 for s in statuses if s == VerificationStatus.REJECTED),
            total_parts=total,
        )

    def enforce(
        self,
        claim: Claim,
        state: Optional[VerificationState],
    ) -> ApprovalGateResult:
        """
        Raises:
            ApprovalBlockedError: If the gate does not allow approval
        """
        result = self.evaluate(claim, state)
        if not result.allowed:
            raise ApprovalBlockedError(
                message=result.reason or BLOCKED_MESSAGE,
                claim_id=claim.id,
                details=result.to_dict(),
            )
        return result

"""
ClaimRouter Routing Models

Inputs and outputs of the routing engine.

Key components:
- RoutingControls: Tunable thresholds (confidence, severity, payout caps)
- RoutingReason: One enumerated justification for a decision
- ClaimSnapshot / AssessmentSnapshot / EstimateSnapshot: Engine inputs
- RoutingResult: Status + recommendation + reasons + frozen controls

Every field of the engine inputs is optional so that partial AI output
produces fewer reasons rather than an error.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional, Sequence

from .enums import RoutingReasonCode, RoutingRecommendation, RoutingStatus


# =============================================================================
# Controls
# =============================================================================

@dataclass(frozen=True)
class RoutingControls:
    """
    Business thresholds governing routing.

    Attributes:
        confidence_threshold: 0-1; claims below threshold*100 need review
        severity_threshold: 1-10; severity at or above escalates
        payout_cap_senior: USD; estimates above escalate to a senior
        payout_cap_auto: USD; estimates above cannot auto-approve
        dual_review_enabled: Every claim needs a second reviewer
        qa_sample_rate: 0-1; share of claims randomly sampled for QA
    """
    confidence_threshold: float = 0.75
    severity_threshold: float = 7
    payout_cap_senior: float = 3000
    payout_cap_auto: float = 1500
    dual_review_enabled: bool = False
    qa_sample_rate: float = 0.1

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def with_updates(self, **changes: Any) -> RoutingControls:
        """Return a copy with some values replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.field_names()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutingControls:
        """Build controls from a dict, ignoring unknown keys."""
        known = {k: v for k, v in data.items() if k in cls.field_names()}
        return cls(**known)


DEFAULT_CONTROLS = RoutingControls()


# =============================================================================
# Reasons
# =============================================================================

@dataclass(frozen=True)
class RoutingReason:
    """One routing justification: enumerated code + human-readable message."""
    code: RoutingReasonCode
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoutingReason:
        return cls(code=RoutingReasonCode(data["code"]), message=str(data["message"]))


# =============================================================================
# Engine Inputs
# =============================================================================

@dataclass(frozen=True)
class ClaimSnapshot:
    """Claim core fields read by the routing engine (cached copies)."""
    id: str = ""
    human_review_requested: bool = False
    confidence_score: Optional[float] = None
    severity_score: Optional[float] = None
    cost_high: Optional[float] = None
    fraud_indicators: Optional[Sequence[str]] = None
    safety_concerns: Optional[Sequence[str]] = None
    quality_score: Optional[float] = None

    @classmethod
    def from_claim(cls, claim: Any) -> ClaimSnapshot:
        """Take the routing-relevant fields from a Claim."""
        return cls(
            id=claim.id,
            human_review_requested=claim.human_review_requested,
            confidence_score=claim.confidence_score,
            severity_score=claim.severity_score,
            cost_high=claim.cost_high,
            fraud_indicators=tuple(claim.fraud_indicators),
            safety_concerns=tuple(claim.safety_concerns),
            quality_score=claim.quality_score,
        )


@dataclass(frozen=True)
class AssessmentSnapshot:
    """Freshest damage-agent values; preferred over the claim's copies."""
    overall_confidence: Optional[float] = None
    overall_severity: Optional[float] = None
    total_cost_high: Optional[float] = None
    fraud_indicators: Optional[Sequence[str]] = None
    safety_concerns: Optional[Sequence[str]] = None

    @classmethod
    def from_assessment(cls, assessment: Any) -> AssessmentSnapshot:
        return cls(
            overall_confidence=assessment.overall_confidence,
            overall_severity=assessment.overall_severity,
            total_cost_high=assessment.total_cost_high,
            fraud_indicators=tuple(assessment.fraud_indicators),
            safety_concerns=tuple(assessment.safety_concerns),
        )


@dataclass(frozen=True)
class EstimateSnapshot:
    """Freshest estimate total; preferred over assessment and claim costs."""
    grand_total_high: Optional[float] = None

    @classmethod
    def from_estimate(cls, estimate: Any) -> EstimateSnapshot:
        return cls(grand_total_high=estimate.grand_total_high)


@dataclass(frozen=True)
class RoutingInput:
    """Everything the routing engine needs for one decision."""
    claim: ClaimSnapshot
    controls: RoutingControls = DEFAULT_CONTROLS
    assessment: Optional[AssessmentSnapshot] = None
    estimate: Optional[EstimateSnapshot] = None


# =============================================================================
# Engine Output
# =============================================================================

STATUS_LABELS: dict[RoutingStatus, str] = {
    RoutingStatus.READY_FOR_APPROVAL: "Ready for Approval",
    RoutingStatus.NEEDS_HUMAN: "Needs Human Review",
    RoutingStatus.PENDING_SENIOR: "Pending Senior Review",
    RoutingStatus.RETAKE_REQUESTED: "Photo Retake Requested",
    RoutingStatus.NEEDS_SECOND_REVIEW: "Needs Second Review",
    RoutingStatus.QA_REVIEW: "QA Review",
}

RECOMMENDATION_LABELS: dict[RoutingRecommendation, str] = {
    RoutingRecommendation.APPROVE: "Approve",
    RoutingRecommendation.REVIEW: "Review",
    RoutingRecommendation.ESCALATE: "Escalate",
}


def status_label(status: RoutingStatus) -> str:
    """Get user-friendly label for a routing status."""
    return STATUS_LABELS.get(status, status.value)


def recommendation_label(recommendation: RoutingRecommendation) -> str:
    """Get user-friendly label for a routing recommendation."""
    return RECOMMENDATION_LABELS.get(recommendation, recommendation.value)


@dataclass(frozen=True)
class RoutingResult:
    """
    Result of one routing decision.

    rules_snapshot is a detached copy of the controls that produced this
    result, so later audits can reconstruct the thresholds in effect even
    after controls change.
    """
    status: RoutingStatus
    recommendation: RoutingRecommendation
    reasons: tuple[RoutingReason, ...] = ()
    rules_snapshot: dict[str, Any] = field(default_factory=dict)

    @property
    def reason_codes(self) -> list[RoutingReasonCode]:
        return [r.code for r in self.reasons]

    def has_reason(self, code: RoutingReasonCode) -> bool:
        return any(r.code == code for r in self.reasons)

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    @property
    def recommendation_label(self) -> str:
        return recommendation_label(self.recommendation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "recommendation": self.recommendation.value,
            "reasons": [r.to_dict() for r in self.reasons],
            "rules_snapshot": dict(self.rules_snapshot),
        }

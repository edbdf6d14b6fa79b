"""
ClaimRouter Routing Engine

Converts AI assessment output, claimant preference and business controls
into a routing recommendation, a queue status and human-readable reasons.

Key features:
- Ordered, cumulative rule evaluation (reasons never short-circuit)
- Tiered decision: ESCALATE > REVIEW > QA_REVIEW > APPROVE
- Frozen rules snapshot attached to every result
- Injectable QA sampler; no shared random state

The engine never raises for well-formed input. Missing or malformed
numeric fields fall back to permissive defaults (confidence 100,
severity 1, cost 0) so partial AI output yields fewer reasons, not errors.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from ..models import (
    DEFAULT_CONTROLS,
    AssessmentSnapshot,
    Claim,
    ClaimSnapshot,
    ClaimStatus,
    DamageAssessment,
    Estimate,
    EstimateSnapshot,
    RoutingControls,
    RoutingInput,
    RoutingReason,
    RoutingReasonCode,
    RoutingRecommendation,
    RoutingResult,
    RoutingStatus,
)

logger = logging.getLogger(__name__)

Sampler = Callable[[], float]


# =============================================================================
# Rule Tiers
# =============================================================================

DEFAULT_CONFIDENCE = 100.0
DEFAULT_SEVERITY = 1.0
DEFAULT_COST = 0.0

# Photo quality scores below this add QUALITY_ISSUES
QUALITY_SCORE_FLOOR = 70

ESCALATING_REASONS = frozenset({
    RoutingReasonCode.FRAUD_INDICATOR,
    RoutingReasonCode.PAYOUT_CAP_SENIOR,
    RoutingReasonCode.HIGH_SEVERITY,
})

REVIEW_REASONS = frozenset({
    RoutingReasonCode.HUMAN_REQUESTED,
    RoutingReasonCode.LOW_CONFIDENCE,
    RoutingReasonCode.PAYOUT_CAP,
    RoutingReasonCode.SAFETY_CONCERN,
    RoutingReasonCode.QUALITY_ISSUES,
    RoutingReasonCode.DUAL_REVIEW_REQUIRED,
})

RECOMMENDATION_CLAIM_STATUS: dict[RoutingRecommendation, ClaimStatus] = {
    RoutingRecommendation.APPROVE: ClaimStatus.PROCESSING,
    RoutingRecommendation.REVIEW: ClaimStatus.REVIEW,
    RoutingRecommendation.ESCALATE: ClaimStatus.ESCALATED,
}


# =============================================================================
# Value Coercion
# =============================================================================

def _as_number(value: Any) -> Optional[float]:
    """Return value as a finite float, or None if it is missing or malformed."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _first_number(*candidates: Any, default: float) -> float:
    """First usable number among candidates, in precedence order."""
    for candidate in candidates:
        number = _as_number(candidate)
        if number is not None:
            return number
    return default


def _as_list(value: Any) -> Optional[list[str]]:
    """Normalize an indicator list; None when the source did not provide one."""
    if value is None:
        return None
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, Iterable):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return None


def _first_list(*candidates: Any) -> list[str]:
    for candidate in candidates:
        items = _as_list(candidate)
        if items is not None:
            return items
    return []


def _fmt_number(value: float) -> str:
    return f"{value:g}"


def _fmt_money(value: float) -> str:
    if float(value).is_integer():
        return f"${int(value):,}"
    return f"${value:,.2f}"


# =============================================================================
# Routing
# =============================================================================

def route_claim(
    routing_input: RoutingInput,
    sampler: Optional[Sampler] = None,
) -> RoutingResult:
    """
    Compute the routing decision for one claim.

    Args:
        routing_input: Claim snapshot, optional fresher assessment/estimate,
            and the controls to apply
        sampler: Returns a uniform float in [0, 1) for QA sampling. A fresh
            random.Random is used per call when omitted.

    Returns:
        RoutingResult with status, recommendation, reasons, rules snapshot
    """
    claim = routing_input.claim
    assessment = routing_input.assessment or AssessmentSnapshot()
    estimate = routing_input.estimate or EstimateSnapshot()
    controls = routing_input.controls or DEFAULT_CONTROLS
    draw = sampler or random.Random().random

    # Prefer assessment/estimate over the claim's cached copies
    confidence = _first_number(
        assessment.overall_confidence, claim.confidence_score, default=DEFAULT_CONFIDENCE,
    )
    severity = _first_number(
        assessment.overall_severity, claim.severity_score, default=DEFAULT_SEVERITY,
    )
    cost_high = _first_number(
        estimate.grand_total_high, assessment.total_cost_high, claim.cost_high,
        default=DEFAULT_COST,
    )
    fraud_indicators = _first_list(assessment.fraud_indicators, claim.fraud_indicators)
    safety_concerns = _first_list(assessment.safety_concerns, claim.safety_concerns)
    quality_score = _as_number(claim.quality_score)

    confidence_threshold = _first_number(
        controls.confidence_threshold, default=DEFAULT_CONTROLS.confidence_threshold,
    )
    severity_threshold = _first_number(
        controls.severity_threshold, default=DEFAULT_CONTROLS.severity_threshold,
    )
    payout_cap_auto = _first_number(
        controls.payout_cap_auto, default=DEFAULT_CONTROLS.payout_cap_auto,
    )
    payout_cap_senior = _first_number(
        controls.payout_cap_senior, default=DEFAULT_CONTROLS.payout_cap_senior,
    )
    qa_sample_rate = _first_number(
        controls.qa_sample_rate, default=DEFAULT_CONTROLS.qa_sample_rate,
    )

    reasons: list[RoutingReason] = []

    def add(code: RoutingReasonCode, message: str) -> None:
        reasons.append(RoutingReason(code=code, message=message))

    # Rule 1: claimant asked for a human
    if claim.human_review_requested:
        add(RoutingReasonCode.HUMAN_REQUESTED, "Claimant requested human review.")

    # Rule 2: low confidence
    if confidence < confidence_threshold * 100:
        add(
            RoutingReasonCode.LOW_CONFIDENCE,
            f"Confidence {confidence / 100:.2f} < threshold {_fmt_number(confidence_threshold)}.",
        )

    # Rule 3: high severity
    if severity >= severity_threshold:
        add(
            RoutingReasonCode.HIGH_SEVERITY,
            f"Severity {_fmt_number(severity)} >= threshold {_fmt_number(severity_threshold)}.",
        )

    # Rule 4: payout caps (senior takes precedence, only one fires)
    if cost_high > payout_cap_senior:
        add(
            RoutingReasonCode.PAYOUT_CAP_SENIOR,
            f"Estimate high {_fmt_money(cost_high)} > senior cap {_fmt_money(payout_cap_senior)}.",
        )
    elif cost_high > payout_cap_auto:
        add(
            RoutingReasonCode.PAYOUT_CAP,
            f"Estimate high {_fmt_money(cost_high)} > auto cap {_fmt_money(payout_cap_auto)}.",
        )

    # Rule 5: fraud
    if fraud_indicators:
        add(
            RoutingReasonCode.FRAUD_INDICATOR,
            f"Fraud indicators detected: {', '.join(fraud_indicators)}.",
        )

    # Rule 6: safety
    if safety_concerns:
        add(
            RoutingReasonCode.SAFETY_CONCERN,
            f"Safety concerns: {', '.join(safety_concerns)}.",
        )

    # Rule 7: photo quality
    if quality_score is not None and quality_score < QUALITY_SCORE_FLOOR:
        add(
            RoutingReasonCode.QUALITY_ISSUES,
            f"Photo quality score {_fmt_number(quality_score)}% is below acceptable threshold.",
        )

    # Rule 8: dual review applies to every claim while enabled
    if controls.dual_review_enabled:
        add(
            RoutingReasonCode.DUAL_REVIEW_REQUIRED,
            "Dual review is enabled - requires second reviewer.",
        )

    # Rule 9: QA sampling (the only non-deterministic step)
    if draw() < qa_sample_rate:
        add(
            RoutingReasonCode.QA_SAMPLE,
            f"Selected for QA review ({qa_sample_rate * 100:.0f}% sample rate).",
        )

    codes = {r.code for r in reasons}

    if codes & ESCALATING_REASONS:
        recommendation = RoutingRecommendation.ESCALATE
        if RoutingReasonCode.PAYOUT_CAP_SENIOR in codes:
            status = RoutingStatus.PENDING_SENIOR
        else:
            status = RoutingStatus.NEEDS_HUMAN
    elif codes & REVIEW_REASONS:
        recommendation = RoutingRecommendation.REVIEW
        if RoutingReasonCode.DUAL_REVIEW_REQUIRED in codes:
            status = RoutingStatus.NEEDS_SECOND_REVIEW
        else:
            status = RoutingStatus.NEEDS_HUMAN
    elif RoutingReasonCode.QA_SAMPLE in codes:
        recommendation = RoutingRecommendation.REVIEW
        status = RoutingStatus.QA_REVIEW
    elif (
        cost_high <= payout_cap_auto
        and confidence >= confidence_threshold * 100
        and severity < severity_threshold
    ):
        add(
            RoutingReasonCode.AUTO_APPROVABLE,
            "All thresholds passed - eligible for auto-approval.",
        )
        recommendation = RoutingRecommendation.APPROVE
        status = RoutingStatus.READY_FOR_APPROVAL
    else:
        # Unreachable with the current rule set; keeps drift from auto-approving
        logger.warning(
            "Routing fell through to safety-net review for claim %s", claim.id or "<unknown>",
        )
        add(
            RoutingReasonCode.MISSING_EVIDENCE,
            "Routing signals were inconclusive - manual review required.",
        )
        recommendation = RoutingRecommendation.REVIEW
        status = RoutingStatus.NEEDS_HUMAN

    result = RoutingResult(
        status=status,
        recommendation=recommendation,
        reasons=tuple(reasons),
        rules_snapshot=controls.to_dict(),
    )
    logger.debug(
        "Routed claim %s: %s/%s reasons=%s",
        claim.id or "<unknown>",
        result.recommendation.value,
        result.status.value,
        [c.value for c in result.reason_codes],
    )
    return result


def retake_result(controls: RoutingControls, guidance: str = "") -> RoutingResult:
    """
    Result used when the photo failed quality checks.

    No damage assessment exists yet, so no routing rules run.
    """
    message = "Photo quality check failed. Please retake the photo."
    if guidance:
        message = f"{message} {guidance}"
    return RoutingResult(
        status=RoutingStatus.RETAKE_REQUESTED,
        recommendation=RoutingRecommendation.REVIEW,
        reasons=(RoutingReason(code=RoutingReasonCode.QUALITY_ISSUES, message=message),),
        rules_snapshot=controls.to_dict(),
    )


def claim_status_for(result: RoutingResult) -> ClaimStatus:
    """
    Claim lifecycle status implied by a routing result.

    APPROVE keeps the claim in processing: approval itself is an adjuster
    action that goes through the approval gate.
    """
    if result.status == RoutingStatus.RETAKE_REQUESTED:
        return ClaimStatus.PROCESSING
    return RECOMMENDATION_CLAIM_STATUS[result.recommendation]


# =============================================================================
# Routing Engine
# =============================================================================

@dataclass
class RoutingEngine:
    """
    Routes domain claims using the current controls.

    Controls are read once per decision from controls_provider and frozen
    into the result; the engine itself holds no mutable configuration.

    Usage:
        engine = RoutingEngine(controls_provider=store.get)
        result = engine.route(claim, assessment=assessment, estimate=estimate)
        print(result.recommendation, [r.message for r in result.reasons])
    """

    controls_provider: Callable[[], RoutingControls] = field(
        default=lambda: DEFAULT_CONTROLS
    )
    sampler: Optional[Sampler] = None

    def route(
        self,
        claim: Claim,
        assessment: Optional[DamageAssessment] = None,
        estimate: Optional[Estimate] = None,
        controls: Optional[RoutingControls] = None,
    ) -> RoutingResult:
        """Route a Claim, preferring the given assessment/estimate values."""
        routing_input = RoutingInput(
            claim=ClaimSnapshot.from_claim(claim),
            controls=controls or self.controls_provider(),
            assessment=AssessmentSnapshot.from_assessment(assessment) if assessment else None,
            estimate=EstimateSnapshot.from_estimate(estimate) if estimate else None,
        )
        return route_claim(routing_input, sampler=self.sampler)

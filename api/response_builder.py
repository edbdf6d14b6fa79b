"""Build API response models from domain objects."""

from typing import Optional

from api.schemas.responses import (
    ApprovalGateResponse,
    ClaimResponse,
    EstimateLineOut,
    EstimateResponse,
    RoutingReasonOut,
    RoutingResultResponse,
    VerificationResponse,
)
from claimrouter.engine import ApprovalGateResult, VerificationWorkspace, format_currency_range
from claimrouter.models import Claim, Estimate, RoutingResult


def claim_response(claim: Claim) -> ClaimResponse:
    return ClaimResponse.model_validate(claim.to_dict())


def routing_response(result: RoutingResult) -> RoutingResultResponse:
    return RoutingResultResponse(
        status=result.status.value,
        status_label=result.status_label,
        recommendation=result.recommendation.value,
        recommendation_label=result.recommendation_label,
        reasons=[RoutingReasonOut(code=r.code.value, message=r.message) for r in result.reasons],
        rules_snapshot=dict(result.rules_snapshot),
    )


def estimate_response(estimate: Optional[Estimate]) -> Optional[EstimateResponse]:
    if estimate is None:
        return None
    return EstimateResponse(
        line_items=[
            EstimateLineOut(
                part=item.part,
                damage_type=item.damage_type,
                labor_hours=item.labor_hours,
                labor_cost=item.labor_cost,
                part_cost_low=item.part_cost_low,
                part_cost_high=item.part_cost_high,
                total_low=item.total_low,
                total_high=item.total_high,
            )
            for item in estimate.line_items
        ],
        labor_total=estimate.labor_total,
        grand_total_low=estimate.grand_total_low,
        grand_total_high=estimate.grand_total_high,
        display_range=format_currency_range(estimate.grand_total_low, estimate.grand_total_high),
    )


def gate_response(result: ApprovalGateResult) -> ApprovalGateResponse:
    return ApprovalGateResponse(**result.to_dict())


def verification_response(workspace: VerificationWorkspace, gate: ApprovalGateResult) -> VerificationResponse:
    state = workspace.state.to_dict()
    return VerificationResponse(
        claim_id=workspace.claim_id,
        parts=state["parts"],
        boxes=state["boxes"],
        last_modified=state["last_modified"],
        modified_by=state["modified_by"],
        summary=workspace.summary(),
        approval_gate=gate_response(gate),
    )

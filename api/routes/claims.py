"""Claim lifecycle endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException

from api.response_builder import (
    claim_response,
    estimate_response,
    gate_response,
    routing_response,
)
from api.schemas.requests import AssessmentRequest, CreateClaimRequest, DecisionRequest, PhotoRequest
from api.schemas.responses import ApprovalGateResponse, AssessmentResponse, ClaimResponse
from claimrouter.agents import AgentClient
from claimrouter.engine import AssessmentOutcome, ClaimWorkflow
from claimrouter.models import Annotations, DamageAssessment, QualityResult

router = APIRouter(prefix="/claims", tags=["Claims"])

# Shared services (set by main.py)
workflow: ClaimWorkflow = None
agent_client: Optional[AgentClient] = None


def set_services(wf: ClaimWorkflow, client: Optional[AgentClient] = None):
    global workflow, agent_client
    workflow = wf
    agent_client = client


def _assessment_response(outcome: AssessmentOutcome) -> AssessmentResponse:
    guidance = None
    if outcome.retake_requested and outcome.routing.reasons:
        guidance = outcome.routing.reasons[0].message
    return AssessmentResponse(
        claim=claim_response(outcome.claim),
        routing=routing_response(outcome.routing),
        estimate=estimate_response(outcome.estimate),
        retake_requested=outcome.retake_requested,
        guidance=guidance,
    )


@router.post("", response_model=ClaimResponse, status_code=201)
async def create_claim(request: CreateClaimRequest):
    """Create a pending claim. human_review_requested cannot change later."""
    incident_date = None
    if request.incident_date:
        try:
            incident_date = date.fromisoformat(request.incident_date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid date format: {e}")

    claim = workflow.create_claim(
        policy_number=request.policy_number,
        claimant_name=request.claimant_name,
        human_review_requested=request.human_review_requested,
        human_review_reason=request.human_review_reason,
        vehicle_make=request.vehicle_make,
        vehicle_model=request.vehicle_model,
        vehicle_year=request.vehicle_year,
        incident_date=incident_date,
        incident_description=request.incident_description,
    )
    return claim_response(claim)


@router.get("", response_model=list[ClaimResponse])
async def list_claims(status: Optional[str] = None):
    """List claims, optionally filtered by status."""
    filters = {"status": status} if status else {}
    return [claim_response(c) for c in workflow.list_claims(**filters)]


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(claim_id: str):
    return claim_response(workflow.get_claim(claim_id))


@router.post("/{claim_id}/assessment", response_model=AssessmentResponse)
async def submit_assessment(claim_id: str, request: AssessmentRequest):
    """
    Record AI output for a claim, build the estimate and route it.

    A failed quality check returns retake_requested=true and leaves the
    claim in processing.
    """
    if request.quality.acceptable and request.damage is None:
        raise HTTPException(status_code=422, detail="damage is required when quality is acceptable")
    quality = QualityResult.from_dict(request.quality.model_dump())
    damage = DamageAssessment.from_dict(request.damage.model_dump()) if request.damage else None
    annotations = None
    if request.detections is not None:
        annotations = Annotations.from_dict(
            {"detections": [d.model_dump() for d in request.detections]}
        )
    outcome = workflow.apply_assessment(claim_id, quality, damage, annotations=annotations)
    return _assessment_response(outcome)


@router.post("/{claim_id}/photo", response_model=AssessmentResponse)
async def process_photo(claim_id: str, request: PhotoRequest):
    """Run the photo through the AI agents, then record and route the result."""
    if agent_client is None:
        raise HTTPException(status_code=503, detail="AI agents are not configured")
    workflow.get_claim(claim_id)

    result = await agent_client.process_photo(request.image_base64, claim_id=claim_id)
    outcome = workflow.apply_assessment(
        claim_id,
        result.quality,
        result.damage,
        quality_model=result.quality_model,
        damage_model=result.damage_model,
    )
    return _assessment_response(outcome)


@router.get("/{claim_id}/approval", response_model=ApprovalGateResponse)
async def check_approval(claim_id: str):
    """Whether the approve action is currently allowed."""
    claim = workflow.get_claim(claim_id)
    state = workflow.verification_state(claim_id)
    return gate_response(workflow.approval_gate.evaluate(claim, state))


@router.post("/{claim_id}/decision", response_model=ClaimResponse)
async def decide(claim_id: str, request: DecisionRequest):
    """
    Apply an adjuster decision.

    Approve is refused (409) while a human-requested claim has no
    completed verification.
    """
    claim = workflow.decide(
        claim_id,
        request.decision,
        actor_id=request.actor_id,
        notes=request.notes,
    )
    return claim_response(claim)

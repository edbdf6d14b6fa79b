"""Stateless routing endpoint."""

from fastapi import APIRouter

from api.response_builder import routing_response
from api.schemas.requests import RouteRequest
from api.schemas.responses import RoutingResultResponse
from claimrouter.controls import ControlsStore, merge_controls
from claimrouter.engine import route_claim
from claimrouter.models import (
    AssessmentSnapshot,
    ClaimSnapshot,
    EstimateSnapshot,
    RoutingInput,
)

router = APIRouter(prefix="/route", tags=["Routing"])

# Shared controls store (set by main.py)
controls_store: ControlsStore = None


def set_controls_store(store: ControlsStore):
    global controls_store
    controls_store = store


@router.post("", response_model=RoutingResultResponse)
async def route(request: RouteRequest):
    """
    Route claim values without creating a claim.

    Controls given in the request override the current controls for this
    call only.
    """
    controls = controls_store.get()
    if request.controls is not None:
        controls = merge_controls(controls, request.controls.changes(), source="route")

    routing_input = RoutingInput(
        claim=ClaimSnapshot(**request.claim.model_dump()),
        controls=controls,
        assessment=AssessmentSnapshot(**request.assessment.model_dump()) if request.assessment else None,
        estimate=EstimateSnapshot(**request.estimate.model_dump()) if request.estimate else None,
    )
    return routing_response(route_claim(routing_input))

"""Routing controls endpoints."""

from fastapi import APIRouter

from api.schemas.requests import ControlsResetRequest, ControlsUpdateRequest
from api.schemas.responses import ControlsResponse
from claimrouter.controls import ControlsStore

router = APIRouter(prefix="/controls", tags=["Controls"])

# Shared controls store (set by main.py)
controls_store: ControlsStore = None


def set_controls_store(store: ControlsStore):
    global controls_store
    controls_store = store


@router.get("", response_model=ControlsResponse)
async def get_controls():
    """Controls used for the next routing decision."""
    return ControlsResponse(**controls_store.get().to_dict())


@router.put("", response_model=ControlsResponse)
async def update_controls(request: ControlsUpdateRequest):
    """
    Update one or more controls.

    Past routing decisions keep the snapshot they were made with.
    """
    updated = controls_store.update_many(request.changes(), actor=request.actor)
    return ControlsResponse(**updated.to_dict())


@router.post("/reset", response_model=ControlsResponse)
async def reset_controls(request: ControlsResetRequest = ControlsResetRequest()):
    return ControlsResponse(**controls_store.reset_to_defaults(actor=request.actor).to_dict())

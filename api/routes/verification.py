"""Part and detection-box verification endpoints."""

from fastapi import APIRouter

from api.response_builder import verification_response
from api.schemas.requests import (
    BoxEditRequest,
    LinkBoxRequest,
    LinkEvidenceRequest,
    PartEditRequest,
    RejectRequest,
    UncertainRequest,
    VerifyRequest,
)
from api.schemas.responses import VerificationResponse
from claimrouter.engine import ClaimWorkflow, VerificationWorkspace

router = APIRouter(prefix="/claims/{claim_id}/verification", tags=["Verification"])

# Shared workflow (set by main.py)
workflow: ClaimWorkflow = None


def set_workflow(wf: ClaimWorkflow):
    global workflow
    workflow = wf


def _respond(claim_id: str, workspace: VerificationWorkspace) -> VerificationResponse:
    claim = workflow.get_claim(claim_id)
    gate = workflow.approval_gate.evaluate(claim, workspace.state)
    return verification_response(workspace, gate)


@router.get("", response_model=VerificationResponse)
async def get_verification(claim_id: str):
    """Current verification records, counts and approval gate status."""
    return _respond(claim_id, workflow.verification_workspace(claim_id))


# =============================================================================
# Parts
# =============================================================================

@router.post("/parts/{part_index}/verify", response_model=VerificationResponse)
async def verify_part(claim_id: str, part_index: int, request: VerifyRequest):
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.verify_part(part_index)
    return _respond(claim_id, workspace)


@router.post("/parts/{part_index}/reject", response_model=VerificationResponse)
async def reject_part(claim_id: str, part_index: int, request: RejectRequest):
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.reject_part(part_index, request.reason_code, notes=request.notes)
    return _respond(claim_id, workspace)


@router.post("/parts/{part_index}/edit", response_model=VerificationResponse)
async def edit_part(claim_id: str, part_index: int, request: PartEditRequest):
    """Correct a part; the AI values stay untouched and edits are overlaid."""
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.edit_part(part_index, request.edits(), request.reason_code, notes=request.notes)
    return _respond(claim_id, workspace)


@router.put("/parts/{part_index}/evidence", response_model=VerificationResponse)
async def link_evidence(claim_id: str, part_index: int, request: LinkEvidenceRequest):
    """Replace the set of detection boxes linked as evidence for a part."""
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.link_evidence(part_index, request.detection_ids)
    return _respond(claim_id, workspace)


# =============================================================================
# Boxes
# =============================================================================

@router.post("/boxes/{detection_id}/verify", response_model=VerificationResponse)
async def verify_box(claim_id: str, detection_id: str, request: VerifyRequest):
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.verify_box(detection_id)
    return _respond(claim_id, workspace)


@router.post("/boxes/{detection_id}/reject", response_model=VerificationResponse)
async def reject_box(claim_id: str, detection_id: str, request: RejectRequest):
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.reject_box(detection_id, request.reason_code, notes=request.notes)
    return _respond(claim_id, workspace)


@router.post("/boxes/{detection_id}/edit", response_model=VerificationResponse)
async def edit_box(claim_id: str, detection_id: str, request: BoxEditRequest):
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.edit_box(detection_id, request.edits(), request.reason_code, notes=request.notes)
    return _respond(claim_id, workspace)


@router.post("/boxes/{detection_id}/uncertain", response_model=VerificationResponse)
async def mark_box_uncertain(claim_id: str, detection_id: str, request: UncertainRequest):
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.mark_box_uncertain(detection_id, notes=request.notes)
    return _respond(claim_id, workspace)


@router.put("/boxes/{detection_id}/part", response_model=VerificationResponse)
async def link_box_to_part(claim_id: str, detection_id: str, request: LinkBoxRequest):
    """Set (or clear, with part_index null) the part a box is evidence for."""
    workspace = workflow.verification_workspace(claim_id, actor=request.actor)
    workspace.link_box_to_part(detection_id, request.part_index)
    return _respond(claim_id, workspace)

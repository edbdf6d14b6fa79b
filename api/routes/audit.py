"""Audit trail endpoints."""

from typing import Optional

from fastapi import APIRouter

from api.schemas.responses import AuditEventsResponse, ChainVerifyResponse
from claimrouter.engine import ClaimWorkflow

router = APIRouter(prefix="/claims/{claim_id}/audit", tags=["Audit"])

# Shared workflow (set by main.py)
workflow: ClaimWorkflow = None


def set_workflow(wf: ClaimWorkflow):
    global workflow
    workflow = wf


@router.get("", response_model=AuditEventsResponse)
async def list_events(claim_id: str):
    """All audit events for a claim, oldest first."""
    workflow.get_claim(claim_id)
    events = workflow.audit_logger.events_for_claim(claim_id)
    return AuditEventsResponse(
        claim_id=claim_id,
        event_count=len(events),
        events=[e.to_dict() for e in events],
    )


@router.get("/verify", response_model=ChainVerifyResponse)
async def verify_chain(claim_id: str):
    """Recompute the claim's hash chain and report the first broken event."""
    workflow.get_claim(claim_id)
    return ChainVerifyResponse(**workflow.audit_logger.verify_chain(claim_id).to_dict())


@router.get("/export")
async def export_audit(claim_id: str, exported_by: Optional[str] = None):
    """Claim snapshot plus its full audit trail. The export is itself audited."""
    return workflow.export_audit(claim_id, exported_by=exported_by)

"""Response schemas for the API."""

from pydantic import BaseModel
from typing import Any, Optional


class HealthResponse(BaseModel):
    healthy: bool
    version: str
    agents_configured: bool
    controls: dict[str, Any]


class RoutingReasonOut(BaseModel):
    code: str
    message: str


class RoutingResultResponse(BaseModel):
    """Routing recommendation with reasons and the controls that produced it."""
    status: str
    status_label: str
    recommendation: str
    recommendation_label: str
    reasons: list[RoutingReasonOut]
    rules_snapshot: dict[str, Any]


class ControlsResponse(BaseModel):
    confidence_threshold: float
    severity_threshold: float
    payout_cap_senior: float
    payout_cap_auto: float
    dual_review_enabled: bool
    qa_sample_rate: float


class ClaimResponse(BaseModel):
    """Persisted claim record."""
    id: str
    policy_number: str
    claimant_name: str
    vehicle_make: str = ""
    vehicle_model: str = ""
    vehicle_year: Optional[int] = None
    incident_date: Optional[str] = None
    incident_description: str = ""
    status: str

    human_review_requested: bool
    human_review_reason: Optional[str] = None
    intake_preference: str

    quality_score: Optional[float] = None
    quality_issues: list[dict[str, Any]] = []
    damage_assessment: Optional[dict[str, Any]] = None
    ai_summary: Optional[str] = None
    ai_recommendation: Optional[str] = None
    severity_score: Optional[float] = None
    confidence_score: Optional[float] = None
    cost_low: Optional[float] = None
    cost_high: Optional[float] = None
    safety_concerns: list[str] = []
    fraud_indicators: list[str] = []

    adjuster_decision: Optional[str] = None
    adjuster_notes: Optional[str] = None

    routing_reasons: list[RoutingReasonOut] = []
    routing_snapshot: Optional[dict[str, Any]] = None
    annotations_json: dict[str, Any] = {}

    created_at: str
    updated_at: str


class EstimateLineOut(BaseModel):
    part: str
    damage_type: str
    labor_hours: float
    labor_cost: float
    part_cost_low: float
    part_cost_high: float
    total_low: float
    total_high: float


class EstimateResponse(BaseModel):
    line_items: list[EstimateLineOut]
    labor_total: float
    grand_total_low: float
    grand_total_high: float
    display_range: str


class AssessmentResponse(BaseModel):
    claim: ClaimResponse
    routing: RoutingResultResponse
    estimate: Optional[EstimateResponse] = None
    retake_requested: bool
    guidance: Optional[str] = None


class ApprovalGateResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    verified_parts: int
    rejected_parts: int
    total_parts: int


class VerificationResponse(BaseModel):
    """Verification state of a claim with per-status counts and the gate."""
    claim_id: str
    parts: list[dict[str, Any]]
    boxes: list[dict[str, Any]]
    last_modified: Optional[str] = None
    modified_by: Optional[str] = None
    summary: dict[str, dict[str, int]]
    approval_gate: ApprovalGateResponse


class AuditEventsResponse(BaseModel):
    claim_id: str
    event_count: int
    events: list[dict[str, Any]]


class ChainVerifyResponse(BaseModel):
    claim_id: Optional[str] = None
    is_valid: bool
    events_checked: int
    first_broken_index: Optional[int] = None
    errors: list[str] = []


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    claim_id: Optional[str] = None

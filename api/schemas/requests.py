"""Request schemas for the API."""

from pydantic import BaseModel, Field
from typing import Any, Literal, Optional


# =============================================================================
# Claims
# =============================================================================

class CreateClaimRequest(BaseModel):
    """New claim from the intake form."""
    policy_number: str = Field(..., description="Policy number, e.g., 'POL-2024-0042'")
    claimant_name: str
    vehicle_make: str = ""
    vehicle_model: str = ""
    vehicle_year: Optional[int] = None
    incident_date: Optional[str] = Field(default=None, description="ISO date: YYYY-MM-DD")
    incident_description: str = ""
    human_review_requested: bool = Field(default=False, description="Claimant asked for a human adjuster")
    human_review_reason: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "policy_number": "POL-2024-0042",
                    "claimant_name": "Dana Reyes",
                    "vehicle_make": "Honda",
                    "vehicle_model": "Civic",
                    "vehicle_year": 2019,
                    "incident_date": "2024-06-15",
                    "incident_description": "Rear-ended at a stop light",
                    "human_review_requested": True,
                    "human_review_reason": "I'd like to talk to someone",
                }
            ]
        }
    }


class QualityIssueInput(BaseModel):
    type: Literal["blur", "darkness", "angle", "distance", "obstruction", "resolution"]
    severity: Literal["low", "medium", "high"]
    description: str


class QualityInput(BaseModel):
    """Photo quality agent output."""
    acceptable: bool
    score: float = Field(..., ge=0, le=100)
    issues: list[QualityIssueInput] = []
    guidance: str = ""


class DamagedPartInput(BaseModel):
    part: str
    damage_type: str
    severity: float = Field(..., ge=1, le=10)
    confidence: float = Field(..., ge=0, le=100)
    cost_low: float = Field(..., ge=0)
    cost_high: float = Field(..., ge=0)


class DamageInput(BaseModel):
    """Damage assessment agent output."""
    damaged_parts: list[DamagedPartInput]
    overall_severity: float
    overall_confidence: float
    total_cost_low: float
    total_cost_high: float
    summary: str = ""
    safety_concerns: list[str] = []
    fraud_indicators: list[str] = []
    recommended_action: Literal["approve", "review", "escalate"] = "review"


class BoxInput(BaseModel):
    x: float
    y: float
    w: float
    h: float


class DetectionInput(BaseModel):
    id: str
    label: Literal["scratch", "dent", "crack", "broken", "paint_transfer", "misalignment", "unknown"]
    part: str
    severity: Literal["minor", "moderate", "severe"]
    confidence: float = Field(..., ge=0, le=1)
    box: BoxInput


class AssessmentRequest(BaseModel):
    """AI output for a claim: quality always, damage when quality passed."""
    quality: QualityInput
    damage: Optional[DamageInput] = None
    detections: Optional[list[DetectionInput]] = None


class PhotoRequest(BaseModel):
    """Photo to run through the quality and damage agents."""
    image_base64: str = Field(..., min_length=1)


class DecisionRequest(BaseModel):
    decision: Literal["approve", "review", "escalate"]
    actor_id: Optional[str] = None
    notes: Optional[str] = None


# =============================================================================
# Routing
# =============================================================================

class RouteClaimInput(BaseModel):
    """Claim fields read by the routing engine. All optional."""
    id: str = ""
    human_review_requested: bool = False
    confidence_score: Optional[float] = None
    severity_score: Optional[float] = None
    cost_high: Optional[float] = None
    fraud_indicators: Optional[list[str]] = None
    safety_concerns: Optional[list[str]] = None
    quality_score: Optional[float] = None


class RouteAssessmentInput(BaseModel):
    overall_confidence: Optional[float] = None
    overall_severity: Optional[float] = None
    total_cost_high: Optional[float] = None
    fraud_indicators: Optional[list[str]] = None
    safety_concerns: Optional[list[str]] = None


class RouteEstimateInput(BaseModel):
    grand_total_high: Optional[float] = None


class ControlsInput(BaseModel):
    """Partial controls; missing values keep their current setting."""
    confidence_threshold: Optional[float] = None
    severity_threshold: Optional[float] = None
    payout_cap_senior: Optional[float] = None
    payout_cap_auto: Optional[float] = None
    dual_review_enabled: Optional[bool] = None
    qa_sample_rate: Optional[float] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RouteRequest(BaseModel):
    """Ad-hoc routing of claim values without persisting anything."""
    claim: RouteClaimInput
    assessment: Optional[RouteAssessmentInput] = None
    estimate: Optional[RouteEstimateInput] = None
    controls: Optional[ControlsInput] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "claim": {
                        "confidence_score": 90,
                        "severity_score": 3,
                        "cost_high": 1200,
                    }
                }
            ]
        }
    }


class ControlsUpdateRequest(ControlsInput):
    actor: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"actor"})


class ControlsResetRequest(BaseModel):
    actor: Optional[str] = None


# =============================================================================
# Verification
# =============================================================================

class VerifyRequest(BaseModel):
    actor: str = "adjuster"


class RejectRequest(BaseModel):
    actor: str = "adjuster"
    reason_code: str = Field(..., description="wrong_part|false_positive|occluded_view|mislocalized|severity_incorrect|other")
    notes: Optional[str] = None


class PartEditRequest(RejectRequest):
    part: Optional[str] = None
    damage_type: Optional[str] = None
    severity: Optional[float] = None

    def edits(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, include={"part", "damage_type", "severity"})


class BoxEditRequest(RejectRequest):
    label: Optional[str] = None
    part: Optional[str] = None
    severity: Optional[str] = None
    confidence: Optional[float] = None

    def edits(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, include={"label", "part", "severity", "confidence"})


class UncertainRequest(BaseModel):
    actor: str = "adjuster"
    notes: Optional[str] = None


class LinkEvidenceRequest(BaseModel):
    actor: str = "adjuster"
    detection_ids: list[str]


class LinkBoxRequest(BaseModel):
    actor: str = "adjuster"
    part_index: Optional[int] = Field(default=None, description="None clears the link")

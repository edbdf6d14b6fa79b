"""
Pytest configuration and fixtures for ClaimRouter tests.

Provides helper factories and common fixtures matching actual model definitions.
"""
import pytest

from claimrouter.audit import AuditLogger
from claimrouter.controls import ControlsStore
from claimrouter.engine import ClaimWorkflow
from claimrouter.models import (
    Annotations,
    BoundingBox,
    Claim,
    ClaimSnapshot,
    DamageAssessment,
    DamagedPart,
    DamageLabel,
    Detection,
    QualityIssue,
    QualityResult,
    RoutingControls,
    RoutingInput,
    SeverityLevel,
)
from claimrouter.models.enums import IssueSeverity, QualityIssueType
from claimrouter.store import InMemoryRecordStore


# =============================================================================
# Factory Helpers
# =============================================================================

def make_controls(**overrides) -> RoutingControls:
    """Default controls with QA sampling off unless asked for."""
    values = {"qa_sample_rate": 0.0}
    values.update(overrides)
    return RoutingControls(**values)


def make_routing_input(controls: RoutingControls = None, **claim_fields) -> RoutingInput:
    """RoutingInput with only a claim snapshot."""
    return RoutingInput(
        claim=ClaimSnapshot(id=claim_fields.pop("id", "CLM-001"), **claim_fields),
        controls=controls or make_controls(),
    )


def make_part(
    part: str = "front bumper",
    damage_type: str = "dented",
    severity: float = 3,
    confidence: float = 90,
    cost_low: float = 400,
    cost_high: float = 1200,
) -> DamagedPart:
    return DamagedPart(
        part=part,
        damage_type=damage_type,
        severity=severity,
        confidence=confidence,
        cost_low=cost_low,
        cost_high=cost_high,
    )


def make_assessment(
    parts: list = None,
    overall_severity: float = 3,
    overall_confidence: float = 90,
    fraud_indicators: tuple = (),
    safety_concerns: tuple = (),
    recommended_action: str = "approve",
) -> DamageAssessment:
    """Create a DamageAssessment; totals are summed from the parts."""
    parts = tuple(parts) if parts is not None else (make_part(),)
    return DamageAssessment(
        damaged_parts=parts,
        overall_severity=overall_severity,
        overall_confidence=overall_confidence,
        total_cost_low=sum(p.cost_low for p in parts),
        total_cost_high=sum(p.cost_high for p in parts),
        summary="Front-end collision damage",
        safety_concerns=tuple(safety_concerns),
        fraud_indicators=tuple(fraud_indicators),
        recommended_action=recommended_action,
    )


def make_quality(acceptable: bool = True, score: float = 92, guidance: str = "") -> QualityResult:
    issues = ()
    if not acceptable:
        issues = (
            QualityIssue(
                type=QualityIssueType.BLUR,
                severity=IssueSeverity.HIGH,
                description="Image is too blurry to identify parts",
            ),
        )
    return QualityResult(acceptable=acceptable, score=score, issues=issues, guidance=guidance)


def make_detection(
    id: str = "det_1",
    label: DamageLabel = DamageLabel.DENT,
    part: str = "front bumper",
    severity: SeverityLevel = SeverityLevel.MODERATE,
    confidence: float = 0.85,
    box: tuple = (0.1, 0.2, 0.3, 0.2),
) -> Detection:
    x, y, w, h = box
    return Detection(
        id=id,
        label=label,
        part=part,
        severity=severity,
        confidence=confidence,
        box=BoundingBox(x=x, y=y, w=w, h=h),
    )


def make_claim(
    human_review_requested: bool = False,
    assessment: DamageAssessment = None,
    detections: list = None,
    **kwargs,
) -> Claim:
    """Create a Claim, optionally with an assessment and detections applied."""
    claim = Claim.create(
        policy_number=kwargs.pop("policy_number", "POL-2024-0042"),
        claimant_name=kwargs.pop("claimant_name", "Dana Reyes"),
        human_review_requested=human_review_requested,
        **kwargs,
    )
    if assessment is not None:
        claim.apply_assessment(assessment)
    if detections is not None:
        claim.annotations = Annotations(detections=list(detections))
    return claim


def make_workflow(controls: RoutingControls = None, sampler=None) -> ClaimWorkflow:
    """Workflow over a fresh in-memory store with deterministic sampling."""
    store = InMemoryRecordStore()
    audit_logger = AuditLogger(store)
    controls_store = ControlsStore(controls or make_controls(), audit_logger=audit_logger)
    return ClaimWorkflow(
        store,
        audit_logger=audit_logger,
        controls_store=controls_store,
        sampler=sampler or (lambda: 0.99),
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def workflow() -> ClaimWorkflow:
    return make_workflow()


@pytest.fixture
def three_part_claim() -> Claim:
    """Human-requested claim with three damaged parts and two detections."""
    return make_claim(
        human_review_requested=True,
        assessment=make_assessment(parts=[
            make_part("front bumper", "dented"),
            make_part("hood", "scratched", severity=2, cost_low=500, cost_high=1500),
            make_part("headlight", "cracked", severity=4, cost_low=150, cost_high=600),
        ]),
        detections=[
            make_detection("det_1"),
            make_detection("det_2", label=DamageLabel.SCRATCH, part="hood", box=(0.5, 0.1, 0.3, 0.2)),
        ],
    )

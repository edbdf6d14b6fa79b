"""
ClaimRouter Claim Models

Models for a vehicle-damage claim and the AI output embedded in it.

Key components:
- Claim: One insurance claim with its lifecycle status
- DamagedPart / DamageAssessment: Output of the damage agent
- QualityIssue / QualityResult: Output of the photo quality agent

AI-derived values are written once by the AI pipeline. Adjuster corrections
never mutate them; they live as overlays in the verification records.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from ..exceptions import ImmutableFieldError, InvalidStatusTransitionError
from .annotations import Annotations
from .enums import (
    AdjusterDecision,
    ClaimStatus,
    IntakePreference,
    IssueSeverity,
    QualityIssueType,
)


# =============================================================================
# Status Lifecycle
# =============================================================================

# Re-entering the current status is always allowed (no-op).
ALLOWED_STATUS_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.PENDING: frozenset({ClaimStatus.PROCESSING}),
    ClaimStatus.PROCESSING: frozenset({
        ClaimStatus.APPROVED,
        ClaimStatus.REVIEW,
        ClaimStatus.ESCALATED,
    }),
    ClaimStatus.REVIEW: frozenset({ClaimStatus.APPROVED, ClaimStatus.ESCALATED}),
    ClaimStatus.ESCALATED: frozenset({ClaimStatus.APPROVED}),
    ClaimStatus.APPROVED: frozenset(),
}

DECISION_STATUS: dict[AdjusterDecision, ClaimStatus] = {
    AdjusterDecision.APPROVE: ClaimStatus.APPROVED,
    AdjusterDecision.REVIEW: ClaimStatus.REVIEW,
    AdjusterDecision.ESCALATE: ClaimStatus.ESCALATED,
}


def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    """Check whether a claim may move from current to target status."""
    if current == target:
        return True
    return target in ALLOWED_STATUS_TRANSITIONS.get(current, frozenset())


# =============================================================================
# Quality Agent Output
# =============================================================================

@dataclass(frozen=True)
class QualityIssue:
    """A single photo quality problem."""
    type: QualityIssueType
    severity: IssueSeverity
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QualityIssue:
        return cls(
            type=QualityIssueType(data["type"]),
            severity=IssueSeverity(data["severity"]),
            description=str(data["description"]),
        )


@dataclass(frozen=True)
class QualityResult:
    """
    Result of the photo quality agent.

    Attributes:
        acceptable: Whether the photo can be used for damage assessment
        score: Quality score 0-100
        issues: Problems found in the photo
        guidance: Instructions for the claimant when a retake is needed
    """
    acceptable: bool
    score: float
    issues: tuple[QualityIssue, ...] = ()
    guidance: str = ""

    REQUIRED_FIELDS = ("acceptable", "score", "issues", "guidance")

    def to_dict(self) -> dict[str, Any]:
        return {
            "acceptable": self.acceptable,
            "score": self.score,
            "issues": [i.to_dict() for i in self.issues],
            "guidance": self.guidance,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QualityResult:
        return cls(
            acceptable=bool(data["acceptable"]),
            score=_number(data["score"]),
            issues=tuple(QualityIssue.from_dict(i) for i in data.get("issues") or []),
            guidance=str(data.get("guidance") or ""),
        )


def _number(value: Any) -> float:
    """Finite float from an AI output value; None and non-numeric strings raise."""
    if value is None or isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {value!r}")
    return number


# =============================================================================
# Damage Agent Output
# =============================================================================

@dataclass(frozen=True)
class DamagedPart:
    """
    One AI-identified damaged vehicle component.

    Attributes:
        part: Part name (e.g., "front bumper")
        damage_type: Kind of damage (e.g., "dented")
        severity: 1-10 scale
        confidence: 0-100 percentage
        cost_low: Low end of repair cost estimate (USD)
        cost_high: High end of repair cost estimate (USD)
    """
    part: str
    damage_type: str
    severity: float
    confidence: float
    cost_low: float
    cost_high: float

    REQUIRED_FIELDS = ("part", "damage_type", "severity", "confidence", "cost_low", "cost_high")

    def __post_init__(self) -> None:
        for name in ("severity", "confidence", "cost_low", "cost_high"):
            object.__setattr__(self, name, _number(getattr(self, name)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "part": self.part,
            "damage_type": self.damage_type,
            "severity": self.severity,
            "confidence": self.confidence,
            "cost_low": self.cost_low,
            "cost_high": self.cost_high,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DamagedPart:
        return cls(
            part=str(data["part"]),
            damage_type=str(data["damage_type"]),
            severity=data["severity"],
            confidence=data["confidence"],
            cost_low=data["cost_low"],
            cost_high=data["cost_high"],
        )


@dataclass(frozen=True)
class DamageAssessment:
    """
    Result of the damage agent, embedded in a Claim.

    The ordered damaged_parts sequence is what PartVerification.part_index
    points into, so it must never be reordered after it is stored.
    """
    damaged_parts: tuple[DamagedPart, ...]
    overall_severity: float
    overall_confidence: float
    total_cost_low: float
    total_cost_high: float
    summary: str = ""
    safety_concerns: tuple[str, ...] = ()
    fraud_indicators: tuple[str, ...] = ()
    recommended_action: str = "review"  # approve|review|escalate

    REQUIRED_FIELDS = (
        "damaged_parts",
        "overall_severity",
        "overall_confidence",
        "total_cost_low",
        "total_cost_high",
        "summary",
        "safety_concerns",
        "fraud_indicators",
        "recommended_action",
    )

    def __post_init__(self) -> None:
        for name in ("overall_severity", "overall_confidence", "total_cost_low", "total_cost_high"):
            object.__setattr__(self, name, _number(getattr(self, name)))

    @property
    def part_count(self) -> int:
        return len(self.damaged_parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "damaged_parts": [p.to_dict() for p in self.damaged_parts],
            "overall_severity": self.overall_severity,
            "overall_confidence": self.overall_confidence,
            "total_cost_low": self.total_cost_low,
            "total_cost_high": self.total_cost_high,
            "summary": self.summary,
            "safety_concerns": list(self.safety_concerns),
            "fraud_indicators": list(self.fraud_indicators),
            "recommended_action": self.recommended_action,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DamageAssessment:
        return cls(
            damaged_parts=tuple(DamagedPart.from_dict(p) for p in data["damaged_parts"]),
            overall_severity=data["overall_severity"],
            overall_confidence=data["overall_confidence"],
            total_cost_low=data["total_cost_low"],
            total_cost_high=data["total_cost_high"],
            summary=str(data.get("summary") or ""),
            safety_concerns=tuple(data.get("safety_concerns") or ()),
            fraud_indicators=tuple(data.get("fraud_indicators") or ()),
            recommended_action=str(data.get("recommended_action") or "review"),
        )


# =============================================================================
# Claim
# =============================================================================

@dataclass
class Claim:
    """
    One submitted insurance claim.

    Attributes:
        id: Unique identifier
        policy_number: Policy the claim is filed against
        claimant_name: Name of the claimant
        vehicle_make / vehicle_model / vehicle_year: Vehicle descriptor
        incident_date: Date of the incident
        incident_description: Claimant's description
        status: Lifecycle status
        human_review_requested: Set at intake, immutable afterward
        human_review_reason: Optional free text from the claimant
        intake_preference: ai_first or human_requested
        routing_reasons: Persisted RoutingReason dicts
        routing_snapshot: Controls in effect for the last routing decision
        annotations: Detection boxes for the claim photo
    """
    id: str
    policy_number: str
    claimant_name: str
    vehicle_make: str = ""
    vehicle_model: str = ""
    vehicle_year: Optional[int] = None
    incident_date: Optional[date] = None
    incident_description: str = ""

    status: ClaimStatus = ClaimStatus.PENDING

    # Intake preference
    human_review_requested: bool = False
    human_review_reason: Optional[str] = None
    intake_preference: IntakePreference = IntakePreference.AI_FIRST

    # AI-derived (write-once)
    quality_score: Optional[float] = None
    quality_issues: list[QualityIssue] = field(default_factory=list)
    damage_assessment: Optional[DamageAssessment] = None
    ai_summary: Optional[str] = None
    ai_recommendation: Optional[str] = None
    severity_score: Optional[float] = None
    confidence_score: Optional[float] = None
    cost_low: Optional[float] = None
    cost_high: Optional[float] = None
    safety_concerns: list[str] = field(default_factory=list)
    fraud_indicators: list[str] = field(default_factory=list)

    # Adjuster
    adjuster_decision: Optional[AdjusterDecision] = None
    adjuster_notes: Optional[str] = None

    # Routing
    routing_reasons: list[dict[str, str]] = field(default_factory=list)
    routing_snapshot: Optional[dict[str, Any]] = None

    # Localization
    annotations: Annotations = field(default_factory=Annotations)

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        policy_number: str,
        claimant_name: str,
        human_review_requested: bool = False,
        human_review_reason: Optional[str] = None,
        **kwargs: Any,
    ) -> Claim:
        """Factory method to create a new pending Claim."""
        preference = (
            IntakePreference.HUMAN_REQUESTED
            if human_review_requested
            else IntakePreference.AI_FIRST
        )
        return cls(
            id=str(uuid4()),
            policy_number=policy_number,
            claimant_name=claimant_name,
            human_review_requested=human_review_requested,
            human_review_reason=human_review_reason if human_review_requested else None,
            intake_preference=preference,
            **kwargs,
        )

    def __setattr__(self, name: str, value: Any) -> None:
        # human_review_requested is fixed once the dataclass __init__ has set it
        if name == "human_review_requested" and "human_review_requested" in self.__dict__:
            if self.__dict__["human_review_requested"] != value:
                raise ImmutableFieldError(
                    message="human_review_requested cannot change after intake",
                    claim_id=self.__dict__.get("id"),
                )
        super().__setattr__(name, value)

    @property
    def has_assessment(self) -> bool:
        return self.damage_assessment is not None

    @property
    def damaged_parts(self) -> tuple[DamagedPart, ...]:
        if self.damage_assessment is None:
            return ()
        return self.damage_assessment.damaged_parts

    def transition_to(self, target: ClaimStatus) -> ClaimStatus:
        """
        Move the claim to a new lifecycle status.

        Returns:
            The previous status

        Raises:
            InvalidStatusTransitionError: If the lifecycle forbids the move
        """
        previous = self.status
        if not can_transition(previous, target):
            raise InvalidStatusTransitionError(
                message=f"Cannot move claim from {previous.value} to {target.value}",
                claim_id=self.id,
                details={"from": previous.value, "to": target.value},
            )
        self.status = target
        self.updated_at = datetime.now(timezone.utc)
        return previous

    def apply_quality(self, quality: QualityResult) -> None:
        """Record the quality agent result. Retakes may overwrite it."""
        self.quality_score = quality.score
        self.quality_issues = list(quality.issues)
        self.updated_at = datetime.now(timezone.utc)

    def apply_assessment(self, assessment: DamageAssessment) -> None:
        """
        Write the damage agent output into the claim's AI fields.

        Raises:
            ImmutableFieldError: If an assessment was already recorded
        """
        if self.damage_assessment is not None:
            raise ImmutableFieldError(
                message="Damage assessment is write-once",
                claim_id=self.id,
            )
        self.damage_assessment = assessment
        self.ai_summary = assessment.summary
        self.ai_recommendation = assessment.recommended_action
        self.severity_score = assessment.overall_severity
        self.confidence_score = assessment.overall_confidence
        self.cost_low = assessment.total_cost_low
        self.cost_high = assessment.total_cost_high
        self.safety_concerns = list(assessment.safety_concerns)
        self.fraud_indicators = list(assessment.fraud_indicators)
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary (record store row)."""
        return {
            "id": self.id,
            "policy_number": self.policy_number,
            "claimant_name": self.claimant_name,
            "vehicle_make": self.vehicle_make,
            "vehicle_model": self.vehicle_model,
            "vehicle_year": self.vehicle_year,
            "incident_date": self.incident_date.isoformat() if self.incident_date else None,
            "incident_description": self.incident_description,
            "status": self.status.value,
            "human_review_requested": self.human_review_requested,
            "human_review_reason": self.human_review_reason,
            "intake_preference": self.intake_preference.value,
            "quality_score": self.quality_score,
            "quality_issues": [i.to_dict() for i in self.quality_issues],
            "damage_assessment": (
                self.damage_assessment.to_dict() if self.damage_assessment else None
            ),
            "ai_summary": self.ai_summary,
            "ai_recommendation": self.ai_recommendation,
            "severity_score": self.severity_score,
            "confidence_score": self.confidence_score,
            "cost_low": self.cost_low,
            "cost_high": self.cost_high,
            "safety_concerns": list(self.safety_concerns),
            "fraud_indicators": list(self.fraud_indicators),
            "adjuster_decision": (
                self.adjuster_decision.value if self.adjuster_decision else None
            ),
            "adjuster_notes": self.adjuster_notes,
            "routing_reasons": [dict(r) for r in self.routing_reasons],
            "routing_snapshot": dict(self.routing_snapshot) if self.routing_snapshot else None,
            "annotations_json": self.annotations.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Claim:
        """Rebuild a Claim from a record store row."""
        assessment = data.get("damage_assessment")
        incident_date = data.get("incident_date")
        decision = data.get("adjuster_decision")
        return cls(
            id=data["id"],
            policy_number=data["policy_number"],
            claimant_name=data["claimant_name"],
            vehicle_make=data.get("vehicle_make") or "",
            vehicle_model=data.get("vehicle_model") or "",
            vehicle_year=data.get("vehicle_year"),
            incident_date=date.fromisoformat(incident_date) if incident_date else None,
            incident_description=data.get("incident_description") or "",
            status=ClaimStatus(data.get("status", ClaimStatus.PENDING.value)),
            human_review_requested=bool(data.get("human_review_requested", False)),
            human_review_reason=data.get("human_review_reason"),
            intake_preference=IntakePreference(
                data.get("intake_preference", IntakePreference.AI_FIRST.value)
            ),
            quality_score=data.get("quality_score"),
            quality_issues=[QualityIssue.from_dict(i) for i in data.get("quality_issues") or []],
            damage_assessment=DamageAssessment.from_dict(assessment) if assessment else None,
            ai_summary=data.get("ai_summary"),
            ai_recommendation=data.get("ai_recommendation"),
            severity_score=data.get("severity_score"),
            confidence_score=data.get("confidence_score"),
            cost_low=data.get("cost_low"),
            cost_high=data.get("cost_high"),
            safety_concerns=list(data.get("safety_concerns") or []),
            fraud_indicators=list(data.get("fraud_indicators") or []),
            adjuster_decision=AdjusterDecision(decision) if decision else None,
            adjuster_notes=data.get("adjuster_notes"),
            routing_reasons=list(data.get("routing_reasons") or []),
            routing_snapshot=data.get("routing_snapshot"),
            annotations=Annotations.from_dict(data.get("annotations_json") or {}),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


def _parse_datetime(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value)

"""
ClaimRouter Domain Models

Dataclass models for claims, AI output, routing, verification and audit.

Usage:
    from claimrouter.models import (
        Claim, DamageAssessment, RoutingControls, VerificationState,
    )
"""
from __future__ import annotations

from .enums import (
    ActorType,
    AdjusterDecision,
    AuditEventType,
    ClaimStatus,
    DamageLabel,
    IntakePreference,
    IssueSeverity,
    QualityIssueType,
    REASON_CODE_LABELS,
    RejectReasonCode,
    RoutingReasonCode,
    RoutingRecommendation,
    RoutingStatus,
    SeverityLevel,
    VerificationStatus,
)
from .annotations import (
    MIN_BOX_SIZE,
    Annotations,
    BoundingBox,
    Detection,
)
from .claim import (
    ALLOWED_STATUS_TRANSITIONS,
    DECISION_STATUS,
    Claim,
    DamageAssessment,
    DamagedPart,
    QualityIssue,
    QualityResult,
    can_transition,
)
from .estimate import (
    Citation,
    Estimate,
    EstimateLineItem,
)
from .routing import (
    DEFAULT_CONTROLS,
    AssessmentSnapshot,
    ClaimSnapshot,
    EstimateSnapshot,
    RoutingControls,
    RoutingInput,
    RoutingReason,
    RoutingResult,
    recommendation_label,
    status_label,
)
from .verification import (
    BoxEdits,
    BoxVerification,
    PartEdits,
    PartVerification,
    VerificationState,
)
from .audit import (
    AuditEvent,
    ModelInfo,
    VerificationSnapshot,
)

__all__ = [
    # Enums
    "ActorType",
    "AdjusterDecision",
    "AuditEventType",
    "ClaimStatus",
    "DamageLabel",
    "IntakePreference",
    "IssueSeverity",
    "QualityIssueType",
    "REASON_CODE_LABELS",
    "RejectReasonCode",
    "RoutingReasonCode",
    "RoutingRecommendation",
    "RoutingStatus",
    "SeverityLevel",
    "VerificationStatus",
    # Annotations
    "MIN_BOX_SIZE",
    "Annotations",
    "BoundingBox",
    "Detection",
    # Claim
    "ALLOWED_STATUS_TRANSITIONS",
    "DECISION_STATUS",
    "Claim",
    "DamageAssessment",
    "DamagedPart",
    "QualityIssue",
    "QualityResult",
    "can_transition",
    # Estimate
    "Citation",
    "Estimate",
    "EstimateLineItem",
    # Routing
    "DEFAULT_CONTROLS",
    "AssessmentSnapshot",
    "ClaimSnapshot",
    "EstimateSnapshot",
    "RoutingControls",
    "RoutingInput",
    "RoutingReason",
    "RoutingResult",
    "recommendation_label",
    "status_label",
    # Verification
    "BoxEdits",
    "BoxVerification",
    "PartEdits",
    "PartVerification",
    "VerificationState",
    # Audit
    "AuditEvent",
    "ModelInfo",
    "VerificationSnapshot",
]

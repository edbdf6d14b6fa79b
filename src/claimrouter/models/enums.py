"""
ClaimRouter Enumerations

All enumeration types used throughout the ClaimRouter system.
Organized by domain area for clarity.

All enums inherit from (str, Enum) for JSON serialization compatibility.
"""
from __future__ import annotations

from enum import Enum


# =============================================================================
# Claim Lifecycle
# =============================================================================

class ClaimStatus(str, Enum):
    """Lifecycle status of a claim."""
    PENDING = "pending"          # Created, no photo processed yet
    PROCESSING = "processing"    # Photo submitted, AI pipeline running
    APPROVED = "approved"
    REVIEW = "review"            # Waiting on a human adjuster
    ESCALATED = "escalated"      # Senior adjuster / SIU


class IntakePreference(str, Enum):
    """How the claimant asked the claim to be handled at intake."""
    AI_FIRST = "ai_first"
    HUMAN_REQUESTED = "human_requested"


class AdjusterDecision(str, Enum):
    """Final actions an adjuster can take on a claim."""
    APPROVE = "approve"
    REVIEW = "review"
    ESCALATE = "escalate"


# =============================================================================
# Routing
# =============================================================================

class RoutingRecommendation(str, Enum):
    """Recommendation produced by the routing engine."""
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    ESCALATE = "ESCALATE"


class RoutingStatus(str, Enum):
    """Queue status produced by the routing engine."""
    READY_FOR_APPROVAL = "READY_FOR_APPROVAL"
    NEEDS_HUMAN = "NEEDS_HUMAN"
    PENDING_SENIOR = "PENDING_SENIOR"
    RETAKE_REQUESTED = "RETAKE_REQUESTED"
    NEEDS_SECOND_REVIEW = "NEEDS_SECOND_REVIEW"
    QA_REVIEW = "QA_REVIEW"


class RoutingReasonCode(str, Enum):
    """Enumerated justifications attached to a routing decision."""
    HUMAN_REQUESTED = "HUMAN_REQUESTED"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    HIGH_SEVERITY = "HIGH_SEVERITY"
    MISSING_EVIDENCE = "MISSING_EVIDENCE"
    PAYOUT_CAP = "PAYOUT_CAP"
    PAYOUT_CAP_SENIOR = "PAYOUT_CAP_SENIOR"
    AUTO_APPROVABLE = "AUTO_APPROVABLE"
    DUAL_REVIEW_REQUIRED = "DUAL_REVIEW_REQUIRED"
    QA_SAMPLE = "QA_SAMPLE"
    FRAUD_INDICATOR = "FRAUD_INDICATOR"
    SAFETY_CONCERN = "SAFETY_CONCERN"
    QUALITY_ISSUES = "QUALITY_ISSUES"


# =============================================================================
# Verification
# =============================================================================

class VerificationStatus(str, Enum):
    """
    Review state of a damaged part or a detection box.

    PROPOSED is the initial state: the AI proposed it, no human has acted.
    """
    PROPOSED = "proposed"
    VERIFIED = "verified"
    REJECTED = "rejected"
    NEEDS_REVIEW = "needs_review"


class RejectReasonCode(str, Enum):
    """Why an adjuster rejected or corrected an AI proposal."""
    WRONG_PART = "wrong_part"
    FALSE_POSITIVE = "false_positive"
    OCCLUDED_VIEW = "occluded_view"
    MISLOCALIZED = "mislocalized"
    SEVERITY_INCORRECT = "severity_incorrect"
    OTHER = "other"

    @property
    def label(self) -> str:
        return REASON_CODE_LABELS[self]


REASON_CODE_LABELS: dict[RejectReasonCode, str] = {
    RejectReasonCode.WRONG_PART: "Wrong part identified",
    RejectReasonCode.FALSE_POSITIVE: "False positive",
    RejectReasonCode.OCCLUDED_VIEW: "Occluded/insufficient view",
    RejectReasonCode.MISLOCALIZED: "Mislocalized evidence",
    RejectReasonCode.SEVERITY_INCORRECT: "Severity incorrect",
    RejectReasonCode.OTHER: "Other",
}


# =============================================================================
# Photo Quality / Damage
# =============================================================================

class QualityIssueType(str, Enum):
    """Photo quality problems reported by the quality agent."""
    BLUR = "blur"
    DARKNESS = "darkness"
    ANGLE = "angle"
    DISTANCE = "distance"
    OBSTRUCTION = "obstruction"
    RESOLUTION = "resolution"


class IssueSeverity(str, Enum):
    """Severity of a photo quality issue."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DamageLabel(str, Enum):
    """Damage classes for detection boxes."""
    SCRATCH = "scratch"
    DENT = "dent"
    CRACK = "crack"
    BROKEN = "broken"
    PAINT_TRANSFER = "paint_transfer"
    MISALIGNMENT = "misalignment"
    UNKNOWN = "unknown"


class SeverityLevel(str, Enum):
    """Coarse severity for detection boxes."""
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


# =============================================================================
# Audit
# =============================================================================

class ActorType(str, Enum):
    """Who performed an audited action."""
    CLAIMANT = "claimant"
    SYSTEM = "system"
    AI_QUALITY = "ai_quality"
    AI_DAMAGE = "ai_damage"
    AI_LOCALIZATION = "ai_localization"
    AI_TRIAGE = "ai_triage"
    ADJUSTER = "adjuster"
    QA_REVIEWER = "qa_reviewer"
    SENIOR_ADJUSTER = "senior_adjuster"
    MANAGER = "manager"


class AuditEventType(str, Enum):
    """Audit event types for the full claim lifecycle."""
    # Claim lifecycle
    CLAIM_CREATED = "claim_created"
    CLAIM_UPDATED = "claim_updated"
    CLAIM_SUBMITTED = "claim_submitted"
    CLAIM_STATUS_CHANGED = "claim_status_changed"

    # Photo lifecycle
    PHOTO_QUALITY_SCORED = "photo_quality_scored"
    RETAKE_REQUESTED = "retake_requested"

    # AI pipeline
    AI_QUALITY_COMPLETE = "ai_quality_complete"
    AI_DAMAGE_COMPLETE = "ai_damage_complete"

    # Routing
    ROUTING_DECISION = "routing_decision"

    # Human review
    HUMAN_REVIEW_REQUESTED = "human_review_requested"
    INTAKE_PREFERENCE_SET = "intake_preference_set"

    # Part verification
    PART_VERIFIED = "part_verified"
    PART_REJECTED = "part_rejected"
    PART_EDITED = "part_edited"
    EVIDENCE_LINKED = "evidence_linked"

    # Box verification
    BOX_VERIFIED = "box_verified"
    BOX_REJECTED = "box_rejected"
    BOX_EDITED = "box_edited"
    BOX_MARKED_UNCERTAIN = "box_marked_uncertain"
    BOX_LINKED = "box_linked"

    # Estimating
    ESTIMATE_CREATED = "estimate_created"

    # Decisions
    ADJUSTER_APPROVE = "adjuster_approve"
    ADJUSTER_REVIEW = "adjuster_review"
    ADJUSTER_ESCALATE = "adjuster_escalate"
    APPROVAL_BLOCKED = "approval_blocked"

    # QA
    QA_SAMPLED = "qa_sampled"

    # Admin
    CONTROLS_UPDATED = "controls_updated"

    # Export
    AUDIT_EXPORTED = "audit_exported"

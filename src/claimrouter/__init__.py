"""
ClaimRouter - Vehicle Damage Claim Routing & Verification

ClaimRouter turns AI photo assessments into routing RECOMMENDATIONS with
enumerated reasons, tracks the adjuster's verification of every AI
proposal, and gates approval on that verification.

Core Principle: "The AI proposes. The adjuster verifies and decides."

Key Features:
- Deterministic, cumulative routing rules with a frozen controls snapshot
- Part- and box-level verification with atomic evidence links
- Approval gate for claims where the claimant asked for a human
- Hash-chained, replayable audit log
- YAML controls packs with environment overrides

Quick Start:
    from claimrouter import ClaimWorkflow, InMemoryRecordStore

    workflow = ClaimWorkflow(InMemoryRecordStore())
    claim = workflow.create_claim("POL-1", "Dana Reyes")
    outcome = workflow.apply_assessment(claim.id, quality, damage)
    print(outcome.routing.recommendation, outcome.routing.reasons)

Version: 0.1.0
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "ClaimRouter Team"

# =============================================================================
# Core Models (Re-exported for convenience)
# =============================================================================
from .models import (
    DEFAULT_CONTROLS,
    AdjusterDecision,
    Annotations,
    AuditEventType,
    BoundingBox,
    Claim,
    ClaimStatus,
    DamageAssessment,
    DamagedPart,
    Detection,
    QualityResult,
    RejectReasonCode,
    RoutingControls,
    RoutingReasonCode,
    RoutingRecommendation,
    RoutingResult,
    RoutingStatus,
    VerificationState,
    VerificationStatus,
)

# =============================================================================
# Services
# =============================================================================
from .audit import AuditLogger
from .controls import ControlsStore, load_controls
from .engine import (
    ApprovalGate,
    ClaimWorkflow,
    RoutingEngine,
    VerificationWorkspace,
    can_approve,
    route_claim,
)
from .store import InMemoryRecordStore, RecordStore

# =============================================================================
# Exceptions
# =============================================================================
from .exceptions import (
    AgentError,
    ApprovalBlockedError,
    ClaimNotFoundError,
    ClaimRouterError,
    ControlsValidationError,
    InvalidStatusTransitionError,
    VerificationError,
)

__all__ = [
    "__version__",
    # Models
    "DEFAULT_CONTROLS",
    "AdjusterDecision",
    "Annotations",
    "AuditEventType",
    "BoundingBox",
    "Claim",
    "ClaimStatus",
    "DamageAssessment",
    "DamagedPart",
    "Detection",
    "QualityResult",
    "RejectReasonCode",
    "RoutingControls",
    "RoutingReasonCode",
    "RoutingRecommendation",
    "RoutingResult",
    "RoutingStatus",
    "VerificationState",
    "VerificationStatus",
    # Services
    "ApprovalGate",
    "AuditLogger",
    "ClaimWorkflow",
    "ControlsStore",
    "InMemoryRecordStore",
    "RecordStore",
    "RoutingEngine",
    "VerificationWorkspace",
    "can_approve",
    "load_controls",
    "route_claim",
    # Exceptions
    "AgentError",
    "ApprovalBlockedError",
    "ClaimNotFoundError",
    "ClaimRouterError",
    "ControlsValidationError",
    "InvalidStatusTransitionError",
    "VerificationError",
]

"""
ClaimRouter Engine

Core services for routing, verification and approval of claims.

Services:
- RoutingEngine: Rules-based routing recommendation with reasons
- VerificationWorkspace: Human review of AI-proposed parts and boxes
- ApprovalGate: Verification precondition for approval
- ClaimWorkflow: Claim lifecycle over a record store
- build_estimate: Deterministic line-item estimate

Usage:
    from claimrouter.engine import (
        ApprovalGate,
        ClaimWorkflow,
        RoutingEngine,
        VerificationWorkspace,
        route_claim,
    )
"""
from __future__ import annotations

# Routing
from .routing_engine import (
    RoutingEngine,
    claim_status_for,
    retake_result,
    route_claim,
)
from .estimate_builder import (
    STANDARD_LABOR_RATE,
    build_estimate,
    build_line_item,
    format_currency,
    format_currency_range,
    get_labor_hours,
    get_part_cost_range,
)

# Human review
from .verification import (
    VerificationWorkspace,
    coerce_reason_code,
    replay_verification_state,
)
from .approval_gate import (
    ApprovalGate,
    ApprovalGateResult,
    can_approve,
    verification_complete,
)

# Lifecycle
from .workflow import (
    AssessmentOutcome,
    ClaimWorkflow,
)

__all__ = [
    # Routing Engine
    "RoutingEngine",
    "claim_status_for",
    "retake_result",
    "route_claim",
    # Estimate Builder
    "STANDARD_LABOR_RATE",
    "build_estimate",
    "build_line_item",
    "format_currency",
    "format_currency_range",
    "get_labor_hours",
    "get_part_cost_range",
    # Verification
    "VerificationWorkspace",
    "coerce_reason_code",
    "replay_verification_state",
    # Approval Gate
    "ApprovalGate",
    "ApprovalGateResult",
    "can_approve",
    "verification_complete",
    # Workflow
    "AssessmentOutcome",
    "ClaimWorkflow",
]

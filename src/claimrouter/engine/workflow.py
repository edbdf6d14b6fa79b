"""
ClaimRouter Claim Workflow

Orchestrates one claim from intake to adjuster decision over a RecordStore.

Flow:
    create_claim -> start_processing -> apply_assessment -> (verification) -> decide

Key features:
- AI fields written once; estimate built and routing run on assessment
- routing_reasons and routing_snapshot persisted with the claim
- Verification state rebuilt from the claim's audit events
- Approval gate enforced on approve
- Every step audited; audit failures are logged and never undo the step
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from ..audit import AuditLogger
from ..controls import ControlsStore
from ..exceptions import (
    ApprovalBlockedError,
    ClaimNotFoundError,
    ImmutableFieldError,
    MalformedAgentOutputError,
)
from ..models import (
    DECISION_STATUS,
    ActorType,
    AdjusterDecision,
    Annotations,
    AuditEventType,
    Claim,
    ClaimStatus,
    DamageAssessment,
    Estimate,
    ModelInfo,
    QualityResult,
    RoutingReasonCode,
    RoutingResult,
    VerificationSnapshot,
    VerificationState,
)
from ..store import CLAIMS_TABLE, RecordStore
from .approval_gate import ApprovalGate
from .estimate_builder import build_estimate
from .routing_engine import RoutingEngine, Sampler, claim_status_for, retake_result
from .verification import VerificationWorkspace, replay_verification_state

logger = logging.getLogger(__name__)

DECISION_EVENTS: dict[AdjusterDecision, AuditEventType] = {
    AdjusterDecision.APPROVE: AuditEventType.ADJUSTER_APPROVE,
    AdjusterDecision.REVIEW: AuditEventType.ADJUSTER_REVIEW,
    AdjusterDecision.ESCALATE: AuditEventType.ADJUSTER_ESCALATE,
}


@dataclass(frozen=True)
class AssessmentOutcome:
    """Claim state after applying AI output, plus the routing result."""
    claim: Claim
    routing: RoutingResult
    estimate: Optional[Estimate] = None

    @property
    def retake_requested(self) -> bool:
        return self.estimate is None


class ClaimWorkflow:
    """
    Claim lifecycle service.

    Usage:
        workflow = ClaimWorkflow(InMemoryRecordStore())
        claim = workflow.create_claim("POL-1", "Dana", human_review_requested=True)
        workflow.start_processing(claim.id)
        outcome = workflow.apply_assessment(claim.id, quality, damage)

        workspace = workflow.verification_workspace(claim.id, actor="adj-1")
        workspace.verify_part(0)
        workflow.decide(claim.id, "approve", actor_id="adj-1")
    """

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
        controls_store: Optional[ControlsStore] = None,
        sampler: Optional[Sampler] = None,
        approval_gate: Optional[ApprovalGate] = None,
    ):
        self.store = store
        self.audit_logger = audit_logger if audit_logger is not None else AuditLogger(store)
        self.controls_store = controls_store if controls_store is not None else ControlsStore()
        self.routing_engine = RoutingEngine(
            controls_provider=self.controls_store.get,
            sampler=sampler,
        )
        self.approval_gate = approval_gate or ApprovalGate()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def get_claim(self, claim_id: str) -> Claim:
        row = self.store.get(CLAIMS_TABLE, claim_id)
        if row is None:
            raise ClaimNotFoundError(message=f"Claim '{claim_id}' not found", claim_id=claim_id)
        return Claim.from_dict(row)

    def list_claims(self, **filters: Any) -> list[Claim]:
        return [Claim.from_dict(row) for row in self.store.select(CLAIMS_TABLE, **filters)]

    def _save(self, claim: Claim) -> None:
        if self.store.update(CLAIMS_TABLE, claim.id, claim.to_dict()) is None:
            raise ClaimNotFoundError(message=f"Claim '{claim.id}' not found", claim_id=claim.id)

    def _audit(self, event_type: AuditEventType, actor_type: ActorType, **kwargs: Any) -> None:
        self.audit_logger.log_event(event_type, actor_type, **kwargs)

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def create_claim(
        self,
        policy_number: str,
        claimant_name: str,
        human_review_requested: bool = False,
        human_review_reason: Optional[str] = None,
        **fields: Any,
    ) -> Claim:
        """Insert a new pending claim and record the intake preference."""
        claim = Claim.create(
            policy_number=policy_number,
            claimant_name=claimant_name,
            human_review_requested=human_review_requested,
            human_review_reason=human_review_reason,
            **fields,
        )
        self.store.insert(CLAIMS_TABLE, claim.to_dict())
        logger.info("Created claim %s (intake %s)", claim.id, claim.intake_preference.value)

        self._audit(
            AuditEventType.CLAIM_CREATED,
            ActorType.CLAIMANT,
            claim_id=claim.id,
            snapshots={"before_json": None, "after_json": claim.to_dict()},
        )
        if claim.human_review_requested:
            self._audit(
                AuditEventType.HUMAN_REVIEW_REQUESTED,
                ActorType.CLAIMANT,
                claim_id=claim.id,
                payload={"reason": claim.human_review_reason},
            )
        self._audit(
            AuditEventType.INTAKE_PREFERENCE_SET,
            ActorType.CLAIMANT,
            claim_id=claim.id,
            payload={"intake_preference": claim.intake_preference.value},
        )
        return claim

    def start_processing(self, claim_id: str, actor_id: Optional[str] = None) -> Claim:
        """Mark a claim as photographed; the AI pipeline runs next."""
        claim = self.get_claim(claim_id)
        previous = claim.transition_to(ClaimStatus.PROCESSING)
        self._save(claim)
        if previous != claim.status:
            self._audit(
                AuditEventType.CLAIM_STATUS_CHANGED,
                ActorType.SYSTEM,
                claim_id=claim.id,
                actor_id=actor_id,
                payload={"from": previous.value, "to": claim.status.value},
            )
        return claim

    # -------------------------------------------------------------------------
    # AI Output
    # -------------------------------------------------------------------------

    def apply_assessment(
        self,
        claim_id: str,
        quality: QualityResult,
        damage: Optional[DamageAssessment] = None,
        annotations: Optional[Union[Annotations, dict[str, Any]]] = None,
        quality_model: Optional[ModelInfo] = None,
        damage_model: Optional[ModelInfo] = None,
    ) -> AssessmentOutcome:
        """
        Record AI output for a claim, then estimate and route it.

        A failed quality check leaves the claim in processing and returns a
        RETAKE_REQUESTED result without running the routing rules.

        Raises:
            ClaimNotFoundError: If the claim does not exist
            ImmutableFieldError: If the claim already has an assessment
            InvalidStatusTransitionError: If the claim is past processing
            MalformedAgentOutputError: If quality passed but no damage given
        """
        claim = self.get_claim(claim_id)
        if claim.has_assessment:
            raise ImmutableFieldError(
                message="Damage assessment is write-once",
                claim_id=claim.id,
            )
        if claim.status == ClaimStatus.PENDING:
            self.start_processing(claim_id)
            claim = self.get_claim(claim_id)

        claim.apply_quality(quality)
        self._audit(
            AuditEventType.AI_QUALITY_COMPLETE,
            ActorType.AI_QUALITY,
            claim_id=claim.id,
            model=quality_model,
            metrics={"quality_score": quality.score, "issue_count": len(quality.issues)},
            payload=quality.to_dict(),
        )

        if not quality.acceptable:
            routing = retake_result(self.controls_store.get(), quality.guidance)
            claim.routing_reasons = [r.to_dict() for r in routing.reasons]
            claim.routing_snapshot = dict(routing.rules_snapshot)
            self._save(claim)
            logger.info("Retake requested for claim %s (score %s)", claim.id, quality.score)
            self._audit(
                AuditEventType.RETAKE_REQUESTED,
                ActorType.AI_QUALITY,
                claim_id=claim.id,
                metrics={"quality_score": quality.score},
                payload={"guidance": quality.guidance},
            )
            return AssessmentOutcome(claim=claim, routing=routing)

        if damage is None:
            raise MalformedAgentOutputError(
                message="Damage assessment is required when the photo passes quality checks",
                stage="damage",
                claim_id=claim.id,
            )

        before = claim.to_dict()
        claim.apply_assessment(damage)
        if annotations is not None:
            claim.annotations = (
                annotations if isinstance(annotations, Annotations) else Annotations.from_dict(annotations)
            )
        self._audit(
            AuditEventType.AI_DAMAGE_COMPLETE,
            ActorType.AI_DAMAGE,
            claim_id=claim.id,
            model=damage_model,
            metrics={
                "overall_severity": damage.overall_severity,
                "overall_confidence": damage.overall_confidence,
                "total_cost_high": damage.total_cost_high,
                "part_count": damage.part_count,
            },
            payload=damage.to_dict(),
        )

        estimate = build_estimate(damage.damaged_parts)
        self._audit(
            AuditEventType.ESTIMATE_CREATED,
            ActorType.SYSTEM,
            claim_id=claim.id,
            metrics={
                "grand_total_low": estimate.grand_total_low,
                "grand_total_high": estimate.grand_total_high,
            },
            payload=estimate.to_dict(),
        )

        routing = self.routing_engine.route(claim, assessment=damage, estimate=estimate)
        claim.routing_reasons = [r.to_dict() for r in routing.reasons]
        claim.routing_snapshot = dict(routing.rules_snapshot)
        previous = claim.transition_to(claim_status_for(routing))
        self._save(claim)

        logger.info(
            "Routed claim %s: %s / %s (%s)",
            claim.id,
            routing.recommendation.value,
            routing.status.value,
            ", ".join(c.value for c in routing.reason_codes),
        )
        self._audit(
            AuditEventType.ROUTING_DECISION,
            ActorType.SYSTEM,
            claim_id=claim.id,
            decision=routing.to_dict(),
            snapshots={"before_json": before, "after_json": claim.to_dict()},
        )
        if routing.has_reason(RoutingReasonCode.QA_SAMPLE):
            self._audit(
                AuditEventType.QA_SAMPLED,
                ActorType.SYSTEM,
                claim_id=claim.id,
                payload={"qa_sample_rate": routing.rules_snapshot.get("qa_sample_rate")},
            )
        if previous != claim.status:
            self._audit(
                AuditEventType.CLAIM_STATUS_CHANGED,
                ActorType.SYSTEM,
                claim_id=claim.id,
                payload={"from": previous.value, "to": claim.status.value},
            )
        return AssessmentOutcome(claim=claim, routing=routing, estimate=estimate)

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def verification_state(self, claim_id: str) -> VerificationState:
        """Current verification state, rebuilt from the claim's audit events."""
        return replay_verification_state(self.audit_logger.events_for_claim(claim_id))

    def _verification_sink(self, claim_id: str) -> Callable[[AuditEventType, VerificationSnapshot, str], None]:
        def sink(event_type: AuditEventType, snapshot: VerificationSnapshot, actor: str) -> None:
            self._audit(
                event_type,
                ActorType.ADJUSTER,
                claim_id=claim_id,
                actor_id=actor,
                snapshots={"before_json": snapshot.before, "after_json": snapshot.after},
                payload=snapshot.to_payload(),
            )
        return sink

    def verification_workspace(self, claim_id: str, actor: str = "adjuster") -> VerificationWorkspace:
        """Workspace for one review session; every action is audited."""
        claim = self.get_claim(claim_id)
        return VerificationWorkspace.for_claim(
            claim,
            actor=actor,
            audit_sink=self._verification_sink(claim_id),
            state=self.verification_state(claim_id),
        )

    # -------------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------------

    def decide(
        self,
        claim_id: str,
        decision: Union[AdjusterDecision, str],
        actor_id: Optional[str] = None,
        verification_state: Optional[VerificationState] = None,
        notes: Optional[str] = None,
    ) -> Claim:
        """
        Apply an adjuster decision.

        Approve goes through the approval gate. When no verification state
        is passed, the one recorded in the audit log is used.

        Raises:
            ApprovalBlockedError: If the gate refuses approval
            InvalidStatusTransitionError: If the lifecycle forbids the move
        """
        decision = AdjusterDecision(decision)
        claim = self.get_claim(claim_id)

        if decision == AdjusterDecision.APPROVE:
            state = verification_state if verification_state is not None else self.verification_state(claim_id)
            gate = self.approval_gate.evaluate(claim, state)
            if not gate.allowed:
                logger.info("Approval blocked for claim %s", claim.id)
                self._audit(
                    AuditEventType.APPROVAL_BLOCKED,
                    ActorType.ADJUSTER,
                    claim_id=claim.id,
                    actor_id=actor_id,
                    decision=gate.to_dict(),
                )
                raise ApprovalBlockedError(
                    message=gate.reason or "Approval blocked",
                    claim_id=claim.id,
                    details=gate.to_dict(),
                )

        before = claim.to_dict()
        previous = claim.transition_to(DECISION_STATUS[decision])
        claim.adjuster_decision = decision
        claim.adjuster_notes = notes
        self._save(claim)
        logger.info("Claim %s: adjuster %s -> %s", claim.id, decision.value, claim.status.value)

        self._audit(
            DECISION_EVENTS[decision],
            ActorType.ADJUSTER,
            claim_id=claim.id,
            actor_id=actor_id,
            decision={"decision": decision.value, "notes": notes},
            snapshots={"before_json": before, "after_json": claim.to_dict()},
        )
        if previous != claim.status:
            self._audit(
                AuditEventType.CLAIM_STATUS_CHANGED,
                ActorType.ADJUSTER,
                claim_id=claim.id,
                actor_id=actor_id,
                payload={"from": previous.value, "to": claim.status.value},
            )
        return claim

    def export_audit(self, claim_id: str, exported_by: Optional[str] = None) -> dict[str, Any]:
        claim = self.get_claim(claim_id)
        return self.audit_logger.export_claim(
            claim_id, exported_by=exported_by, claim_snapshot=claim.to_dict(),
        )

"""
Integration tests for the claim workflow.

Tests cover:
- Intake and audit of the intake preference
- Assessment, estimate and routing persisted with the claim
- Retake flow
- Verification through the audit log
- Approval gate enforcement on decisions
- Audit chain integrity across a full lifecycle
"""
import pytest

from claimrouter.exceptions import (
    ApprovalBlockedError,
    ClaimNotFoundError,
    ImmutableFieldError,
    InvalidStatusTransitionError,
    MalformedAgentOutputError,
)
from claimrouter.models import (
    Annotations,
    AuditEventType,
    ClaimStatus,
    RoutingRecommendation,
    RoutingStatus,
    VerificationStatus,
)

from tests.conftest import (
    make_assessment,
    make_controls,
    make_detection,
    make_part,
    make_quality,
    make_workflow,
)

E = AuditEventType


def event_types(workflow, claim_id):
    return [e.event_type for e in workflow.audit_logger.events_for_claim(claim_id)]


def assessed_claim(workflow, human_review_requested=False, **assessment_kwargs):
    claim = workflow.create_claim("POL-1", "Dana Reyes", human_review_requested=human_review_requested)
    workflow.apply_assessment(
        claim.id,
        make_quality(),
        make_assessment(**assessment_kwargs),
        annotations=Annotations(detections=[make_detection("det_1"), make_detection("det_2")]),
    )
    return workflow.get_claim(claim.id)


class TestIntake:
    """create_claim / start_processing."""

    def test_create_claim_audits_intake(self, workflow):
        claim = workflow.create_claim(
            "POL-1", "Dana Reyes", human_review_requested=True, human_review_reason="Talk to a person",
        )

        assert workflow.get_claim(claim.id).status == ClaimStatus.PENDING
        assert event_types(workflow, claim.id) == [
            E.CLAIM_CREATED.value,
            E.HUMAN_REVIEW_REQUESTED.value,
            E.INTAKE_PREFERENCE_SET.value,
        ]

    def test_ai_first_skips_human_review_event(self, workflow):
        claim = workflow.create_claim("POL-1", "Dana Reyes")

        assert E.HUMAN_REVIEW_REQUESTED.value not in event_types(workflow, claim.id)

    def test_get_missing_claim(self, workflow):
        with pytest.raises(ClaimNotFoundError):
            workflow.get_claim("nope")

    def test_list_claims_by_status(self, workflow):
        first = workflow.create_claim("POL-1", "A")
        workflow.create_claim("POL-2", "B")
        workflow.start_processing(first.id)

        processing = workflow.list_claims(status=ClaimStatus.PROCESSING.value)

        assert [c.id for c in processing] == [first.id]
        assert len(workflow.list_claims()) == 2

    def test_start_processing_is_audited_once(self, workflow):
        claim = workflow.create_claim("POL-1", "A")
        workflow.start_processing(claim.id)
        workflow.start_processing(claim.id)

        assert event_types(workflow, claim.id).count(E.CLAIM_STATUS_CHANGED.value) == 1


class TestAssessment:
    """apply_assessment."""

    def test_auto_approvable_claim_stays_processing(self, workflow):
        claim = workflow.create_claim("POL-1", "A")

        outcome = workflow.apply_assessment(claim.id, make_quality(), make_assessment())

        assert outcome.routing.recommendation == RoutingRecommendation.APPROVE
        assert outcome.claim.status == ClaimStatus.PROCESSING
        assert outcome.estimate.grand_total_high == 1482
        stored = workflow.get_claim(claim.id)
        assert stored.routing_reasons == [
            {"code": "AUTO_APPROVABLE", "message": "All thresholds passed - eligible for auto-approval."},
        ]
        assert stored.routing_snapshot["payout_cap_auto"] == 1500

    def test_estimate_total_drives_routing(self, workflow):
        claim = workflow.create_claim("POL-1", "A")
        parts = [make_part("roof", "dented", cost_low=100, cost_high=200), make_part("hood", "bent")]

        outcome = workflow.apply_assessment(claim.id, make_quality(), make_assessment(parts=parts))

        assert outcome.estimate.grand_total_high == 2500 + 1500 + 282 + 376
        assert outcome.routing.status == RoutingStatus.PENDING_SENIOR
        assert outcome.claim.status == ClaimStatus.ESCALATED

    def test_human_requested_goes_to_review(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)

        assert claim.status == ClaimStatus.REVIEW
        assert claim.routing_reasons[0]["code"] == "HUMAN_REQUESTED"

    def test_assessment_events_in_order(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)

        assert event_types(workflow, claim.id)[3:] == [
            E.CLAIM_STATUS_CHANGED.value,
            E.AI_QUALITY_COMPLETE.value,
            E.AI_DAMAGE_COMPLETE.value,
            E.ESTIMATE_CREATED.value,
            E.ROUTING_DECISION.value,
            E.CLAIM_STATUS_CHANGED.value,
        ]

    def test_qa_sample_is_audited(self):
        workflow = make_workflow(controls=make_controls(qa_sample_rate=0.5), sampler=lambda: 0.1)
        claim = workflow.create_claim("POL-1", "A")

        outcome = workflow.apply_assessment(claim.id, make_quality(), make_assessment())

        assert outcome.routing.status == RoutingStatus.QA_REVIEW
        assert outcome.claim.status == ClaimStatus.REVIEW
        assert E.QA_SAMPLED.value in event_types(workflow, claim.id)

    def test_controls_change_does_not_alter_past_snapshot(self, workflow):
        claim = assessed_claim(workflow)
        workflow.controls_store.update("payout_cap_auto", 900)

        assert workflow.get_claim(claim.id).routing_snapshot["payout_cap_auto"] == 1500

    def test_assessment_is_write_once(self, workflow):
        claim = assessed_claim(workflow)
        events_before = len(event_types(workflow, claim.id))

        with pytest.raises(ImmutableFieldError):
            workflow.apply_assessment(claim.id, make_quality(), make_assessment(overall_severity=9))

        assert len(event_types(workflow, claim.id)) == events_before
        assert workflow.get_claim(claim.id).severity_score == 3

    def test_quality_pass_without_damage(self, workflow):
        claim = workflow.create_claim("POL-1", "A")

        with pytest.raises(MalformedAgentOutputError):
            workflow.apply_assessment(claim.id, make_quality())


class TestRetake:
    """Failed photo quality."""

    def test_retake_requested(self, workflow):
        claim = workflow.create_claim("POL-1", "A")

        outcome = workflow.apply_assessment(
            claim.id, make_quality(acceptable=False, score=30, guidance="Retake in daylight."),
        )

        assert outcome.retake_requested
        assert outcome.routing.status == RoutingStatus.RETAKE_REQUESTED
        stored = workflow.get_claim(claim.id)
        assert stored.status == ClaimStatus.PROCESSING
        assert stored.quality_score == 30
        assert not stored.has_assessment
        assert E.RETAKE_REQUESTED.value in event_types(workflow, claim.id)

    def test_retake_then_good_photo(self, workflow):
        claim = workflow.create_claim("POL-1", "A")
        workflow.apply_assessment(claim.id, make_quality(acceptable=False, score=30))

        outcome = workflow.apply_assessment(claim.id, make_quality(score=95), make_assessment())

        assert not outcome.retake_requested
        assert outcome.claim.quality_score == 95


class TestVerificationAndDecision:
    """Verification state from the audit log and the approval gate."""

    def test_verification_state_rebuilt_between_sessions(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)

        first = workflow.verification_workspace(claim.id, actor="adj-1")
        first.link_evidence(0, ["det_1"])
        first.verify_part(0)

        second = workflow.verification_workspace(claim.id, actor="adj-2")
        assert second.part(0).status == VerificationStatus.VERIFIED
        assert second.box("det_1").linked_part_index == 0
        assert second.state.modified_by == "adj-1"

    def test_verification_actions_are_audited(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)
        workspace = workflow.verification_workspace(claim.id, actor="adj-1")

        workspace.reject_part(0, "false_positive", notes="Glare")

        event = workflow.audit_logger.events_for_claim(claim.id)[-1]
        assert event.event_type == E.PART_REJECTED.value
        assert event.actor_id == "adj-1"
        assert event.snapshots["before_json"] is None
        assert event.snapshots["after_json"]["reason_code"] == "false_positive"

    def test_approve_blocked_for_human_requested(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)

        with pytest.raises(ApprovalBlockedError):
            workflow.decide(claim.id, "approve", actor_id="adj-1")

        assert workflow.get_claim(claim.id).status == ClaimStatus.REVIEW
        assert event_types(workflow, claim.id)[-1] == E.APPROVAL_BLOCKED.value

    def test_approve_after_verification(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)
        workflow.verification_workspace(claim.id).verify_part(0)

        approved = workflow.decide(claim.id, "approve", actor_id="adj-1", notes="Looks right")

        assert approved.status == ClaimStatus.APPROVED
        assert approved.adjuster_notes == "Looks right"
        assert event_types(workflow, claim.id)[-2:] == [
            E.ADJUSTER_APPROVE.value,
            E.CLAIM_STATUS_CHANGED.value,
        ]

    def test_approve_after_rejecting_every_part(self, workflow):
        claim = assessed_claim(
            workflow,
            human_review_requested=True,
            parts=[make_part("hood"), make_part("door"), make_part("grille")],
        )
        workspace = workflow.verification_workspace(claim.id)
        for i in range(3):
            workspace.reject_part(i, "false_positive")

        assert workflow.decide(claim.id, "approve").status == ClaimStatus.APPROVED

    def test_explicit_state_overrides_log(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)
        workspace = workflow.verification_workspace(claim.id)
        workspace.verify_part(0)

        with pytest.raises(ApprovalBlockedError):
            workflow.decide(claim.id, "approve", verification_state=type(workspace.state)())

    def test_ai_first_claim_approves_without_verification(self, workflow):
        claim = assessed_claim(workflow)

        assert workflow.decide(claim.id, "approve").status == ClaimStatus.APPROVED

    def test_escalate_then_approve(self, workflow):
        claim = assessed_claim(workflow)
        workflow.decide(claim.id, "escalate")

        assert workflow.decide(claim.id, "approve").status == ClaimStatus.APPROVED

    def test_approved_claim_is_final(self, workflow):
        claim = assessed_claim(workflow)
        workflow.decide(claim.id, "approve")

        with pytest.raises(InvalidStatusTransitionError):
            workflow.decide(claim.id, "review")

    def test_unknown_decision(self, workflow):
        claim = assessed_claim(workflow)

        with pytest.raises(ValueError):
            workflow.decide(claim.id, "deny")


class TestAuditIntegrity:
    """Full lifecycle leaves an intact chain."""

    def test_chain_valid_after_lifecycle(self, workflow):
        claim = assessed_claim(workflow, human_review_requested=True)
        workspace = workflow.verification_workspace(claim.id, actor="adj-1")
        workspace.link_evidence(0, ["det_1", "det_2"])
        workspace.edit_part(0, {"severity": 5}, "severity_incorrect")
        workflow.decide(claim.id, "approve", actor_id="adj-1")

        result = workflow.audit_logger.verify_chain(claim.id)

        assert result.is_valid
        assert result.events_checked == len(event_types(workflow, claim.id))

    def test_export(self, workflow):
        claim = assessed_claim(workflow)

        export = workflow.export_audit(claim.id, exported_by="auditor-1")

        assert export["claim_snapshot"]["id"] == claim.id
        assert export["audit_events"][0]["event_type"] == E.CLAIM_CREATED.value
        assert event_types(workflow, claim.id)[-1] == E.AUDIT_EXPORTED.value

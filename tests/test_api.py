"""
Tests for the HTTP API.

Runs the app through FastAPI's TestClient; each test gets a fresh
in-memory store from the lifespan hook.
"""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api.main import app, status_for
from api.routes import claims
from claimrouter.agents import AgentClient
from claimrouter.agents.client import QUALITY_MODEL
from claimrouter.exceptions import (
    ApprovalBlockedError,
    InvalidReasonCodeError,
    MalformedAgentOutputError,
    RateLimitedError,
    UnknownEntityError,
)


QUALITY = {"acceptable": True, "score": 92, "issues": [], "guidance": ""}

DAMAGE = {
    "damaged_parts": [
        {
            "part": "front bumper",
            "damage_type": "dented",
            "severity": 3,
            "confidence": 90,
            "cost_low": 400,
            "cost_high": 1200,
        },
        {
            "part": "headlight",
            "damage_type": "cracked",
            "severity": 4,
            "confidence": 85,
            "cost_low": 150,
            "cost_high": 600,
        },
    ],
    "overall_severity": 3,
    "overall_confidence": 90,
    "total_cost_low": 550,
    "total_cost_high": 1800,
    "summary": "Front-end damage",
    "safety_concerns": [],
    "fraud_indicators": [],
    "recommended_action": "review",
}

DETECTIONS = [
    {
        "id": "det_1",
        "label": "dent",
        "part": "front bumper",
        "severity": "moderate",
        "confidence": 0.85,
        "box": {"x": 0.1, "y": 0.2, "w": 0.3, "h": 0.2},
    },
    {
        "id": "det_2",
        "label": "crack",
        "part": "headlight",
        "severity": "severe",
        "confidence": 0.7,
        "box": {"x": 0.6, "y": 0.3, "w": 0.1, "h": 0.1},
    },
]


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("CLAIMROUTER_QA_SAMPLE_RATE", "0")
    monkeypatch.delenv("CLAIMROUTER_AGENT_API_KEY", raising=False)
    monkeypatch.delenv("CLAIMROUTER_CONTROLS_PATH", raising=False)
    with TestClient(app) as test_client:
        yield test_client


def create_claim(client, human_review_requested=False):
    response = client.post("/claims", json={
        "policy_number": "POL-2024-0042",
        "claimant_name": "Dana Reyes",
        "vehicle_make": "Honda",
        "incident_date": "2024-06-15",
        "human_review_requested": human_review_requested,
    })
    assert response.status_code == 201
    return response.json()["id"]


def assessed_claim(client, human_review_requested=True):
    claim_id = create_claim(client, human_review_requested)
    response = client.post(f"/claims/{claim_id}/assessment", json={
        "quality": QUALITY,
        "damage": DAMAGE,
        "detections": DETECTIONS,
    })
    assert response.status_code == 200
    return claim_id


# =============================================================================
# Health / Errors
# =============================================================================

class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["healthy"] is True
        assert data["agents_configured"] is False
        assert data["controls"]["qa_sample_rate"] == 0.0


class TestErrorMapping:
    """Domain errors map to HTTP status codes."""

    @pytest.mark.parametrize("error,expected", [
        (UnknownEntityError(message="x"), 404),
        (InvalidReasonCodeError(message="x"), 422),
        (ApprovalBlockedError(message="x"), 409),
        (RateLimitedError(message="x"), 429),
        (MalformedAgentOutputError(message="x"), 502),
    ])
    def test_status_for(self, error, expected):
        assert status_for(error) == expected

    def test_missing_claim(self, client):
        response = client.get("/claims/nope")

        assert response.status_code == 404
        assert response.json()["code"] == "CR_CLAIM_NOT_FOUND"


# =============================================================================
# Claims
# =============================================================================

class TestClaims:
    def test_create_and_get(self, client):
        claim_id = create_claim(client, human_review_requested=True)

        data = client.get(f"/claims/{claim_id}").json()

        assert data["status"] == "pending"
        assert data["intake_preference"] == "human_requested"
        assert data["incident_date"] == "2024-06-15"

    def test_invalid_date(self, client):
        response = client.post("/claims", json={
            "policy_number": "POL-1",
            "claimant_name": "A",
            "incident_date": "15/06/2024",
        })

        assert response.status_code == 400

    def test_list_by_status(self, client):
        create_claim(client)
        assessed_claim(client)

        assert len(client.get("/claims").json()) == 2
        review = client.get("/claims", params={"status": "review"}).json()
        assert len(review) == 1

    def test_assessment_routes_claim(self, client):
        claim_id = create_claim(client)

        response = client.post(f"/claims/{claim_id}/assessment", json={
            "quality": QUALITY,
            "damage": DAMAGE,
        })

        data = response.json()
        assert data["retake_requested"] is False
        assert data["routing"]["recommendation"] == "REVIEW"
        assert data["routing"]["reasons"][0]["code"] == "PAYOUT_CAP"
        assert data["estimate"]["grand_total_high"] == 1200 + 600 + 282 + 188
        assert data["claim"]["status"] == "review"
        assert data["claim"]["routing_snapshot"]["payout_cap_auto"] == 1500

    def test_retake(self, client):
        claim_id = create_claim(client)

        response = client.post(f"/claims/{claim_id}/assessment", json={
            "quality": {
                "acceptable": False,
                "score": 30,
                "issues": [{"type": "blur", "severity": "high", "description": "Blurry"}],
                "guidance": "Hold steady.",
            },
        })

        data = response.json()
        assert data["retake_requested"] is True
        assert data["routing"]["status"] == "RETAKE_REQUESTED"
        assert data["estimate"] is None
        assert data["guidance"]
        assert data["claim"]["status"] == "processing"

    def test_quality_pass_requires_damage(self, client):
        claim_id = create_claim(client)

        response = client.post(f"/claims/{claim_id}/assessment", json={"quality": QUALITY})

        assert response.status_code == 422

    def test_second_assessment_conflicts(self, client):
        claim_id = assessed_claim(client)

        response = client.post(f"/claims/{claim_id}/assessment", json={
            "quality": QUALITY,
            "damage": DAMAGE,
        })

        assert response.status_code == 409
        assert response.json()["code"] == "CR_IMMUTABLE_FIELD"

    def test_photo_without_agents(self, client):
        claim_id = create_claim(client)

        response = client.post(f"/claims/{claim_id}/photo", json={"image_base64": "aGVsbG8="})

        assert response.status_code == 503

    def test_photo_with_agents(self, client):
        def handler(request):
            body = json.loads(request.content)
            arguments = QUALITY if body["model"] == QUALITY_MODEL else DAMAGE
            return httpx.Response(200, json={
                "choices": [{"message": {"tool_calls": [
                    {"function": {"name": "tool", "arguments": json.dumps(arguments)}},
                ]}}],
            })

        agent = AgentClient(api_key="k", base_url="https://gateway.test/v1", transport=httpx.MockTransport(handler))
        claims.set_services(claims.workflow, agent)
        claim_id = create_claim(client)

        response = client.post(f"/claims/{claim_id}/photo", json={"image_base64": "aGVsbG8="})

        assert response.status_code == 200
        assert response.json()["claim"]["severity_score"] == 3
        events = client.get(f"/claims/{claim_id}/audit").json()["events"]
        damage_event = next(e for e in events if e["event_type"] == "ai_damage_complete")
        assert damage_event["model_name"]


# =============================================================================
# Verification + Approval
# =============================================================================

class TestVerification:
    def test_initial_state(self, client):
        claim_id = assessed_claim(client)

        data = client.get(f"/claims/{claim_id}/verification").json()

        assert data["parts"] == []
        assert data["summary"]["parts"]["proposed"] == 2
        assert data["summary"]["boxes"]["proposed"] == 2
        assert data["approval_gate"]["allowed"] is False

    def test_verify_part_opens_gate(self, client):
        claim_id = assessed_claim(client)

        data = client.post(
            f"/claims/{claim_id}/verification/parts/0/verify", json={"actor": "adj-1"},
        ).json()

        assert data["parts"][0]["status"] == "verified"
        assert data["modified_by"] == "adj-1"
        assert data["approval_gate"]["allowed"] is True

    def test_reject_requires_valid_reason(self, client):
        claim_id = assessed_claim(client)

        response = client.post(
            f"/claims/{claim_id}/verification/parts/0/reject", json={"reason_code": "meh"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "CR_INVALID_REASON_CODE"

    def test_unknown_part(self, client):
        claim_id = assessed_claim(client)

        response = client.post(f"/claims/{claim_id}/verification/parts/7/verify", json={})

        assert response.status_code == 404

    def test_edit_part(self, client):
        claim_id = assessed_claim(client)

        data = client.post(f"/claims/{claim_id}/verification/parts/1/edit", json={
            "reason_code": "severity_incorrect",
            "severity": 6,
        }).json()

        part = data["parts"][0]
        assert part["part_index"] == 1
        assert part["edited_values"] == {"severity": 6}
        assert client.get(f"/claims/{claim_id}").json()["damage_assessment"]["damaged_parts"][1]["severity"] == 4

    def test_link_evidence_both_sides(self, client):
        claim_id = assessed_claim(client)

        data = client.put(
            f"/claims/{claim_id}/verification/parts/0/evidence",
            json={"detection_ids": ["det_1", "det_2"]},
        ).json()

        assert data["parts"][0]["linked_box_ids"] == ["det_1", "det_2"]
        assert {b["detection_id"]: b["linked_part_index"] for b in data["boxes"]} == {
            "det_1": 0,
            "det_2": 0,
        }

    def test_relink_box(self, client):
        claim_id = assessed_claim(client)
        client.put(f"/claims/{claim_id}/verification/parts/0/evidence", json={"detection_ids": ["det_2"]})

        data = client.put(
            f"/claims/{claim_id}/verification/boxes/det_2/part", json={"part_index": 1},
        ).json()

        parts = {p["part_index"]: p for p in data["parts"]}
        assert parts[0]["linked_box_ids"] == []
        assert parts[1]["linked_box_ids"] == ["det_2"]

    def test_box_actions(self, client):
        claim_id = assessed_claim(client)
        base = f"/claims/{claim_id}/verification/boxes"

        client.post(f"{base}/det_1/verify", json={})
        client.post(f"{base}/det_2/uncertain", json={"notes": "Could be glare"})
        data = client.get(f"/claims/{claim_id}/verification").json()

        assert data["summary"]["boxes"]["verified"] == 1
        assert data["summary"]["boxes"]["needs_review"] == 1

    def test_unknown_box(self, client):
        claim_id = assessed_claim(client)

        response = client.post(f"/claims/{claim_id}/verification/boxes/det_9/verify", json={})

        assert response.status_code == 404


class TestDecision:
    def test_approve_blocked_until_verified(self, client):
        claim_id = assessed_claim(client)

        gate = client.get(f"/claims/{claim_id}/approval").json()
        assert gate["allowed"] is False
        assert gate["total_parts"] == 2

        blocked = client.post(f"/claims/{claim_id}/decision", json={"decision": "approve"})
        assert blocked.status_code == 409
        assert blocked.json()["code"] == "CR_APPROVAL_BLOCKED"

        client.post(f"/claims/{claim_id}/verification/parts/0/verify", json={})
        approved = client.post(
            f"/claims/{claim_id}/decision", json={"decision": "approve", "actor_id": "adj-1"},
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

    def test_approved_is_final(self, client):
        claim_id = assessed_claim(client, human_review_requested=False)
        client.post(f"/claims/{claim_id}/decision", json={"decision": "approve"})

        response = client.post(f"/claims/{claim_id}/decision", json={"decision": "escalate"})

        assert response.status_code == 409


# =============================================================================
# Controls / Routing / Audit
# =============================================================================

class TestControls:
    def test_update_and_reset(self, client):
        updated = client.put("/controls", json={"payout_cap_auto": 2000, "actor": "mgr-1"})

        assert updated.status_code == 200
        assert updated.json()["payout_cap_auto"] == 2000
        assert client.get("/controls").json()["payout_cap_auto"] == 2000

        reset = client.post("/controls/reset", json={"actor": "mgr-1"})
        assert reset.json()["payout_cap_auto"] == 1500

    def test_out_of_range(self, client):
        response = client.put("/controls", json={"confidence_threshold": 1.5})

        assert response.status_code == 422
        assert client.get("/controls").json()["confidence_threshold"] == 0.75

    def test_update_affects_next_claim_only(self, client):
        first = assessed_claim(client, human_review_requested=False)
        client.put("/controls", json={"payout_cap_auto": 5000, "payout_cap_senior": 8000})
        second = assessed_claim(client, human_review_requested=False)

        assert client.get(f"/claims/{first}").json()["routing_snapshot"]["payout_cap_auto"] == 1500
        second_claim = client.get(f"/claims/{second}").json()
        assert second_claim["routing_snapshot"]["payout_cap_auto"] == 5000
        assert second_claim["routing_reasons"][0]["code"] == "AUTO_APPROVABLE"


class TestRoute:
    def test_route_auto_approvable(self, client):
        response = client.post("/route", json={
            "claim": {"confidence_score": 90, "severity_score": 3, "cost_high": 1200},
        })

        data = response.json()
        assert data["recommendation"] == "APPROVE"
        assert data["status"] == "READY_FOR_APPROVAL"
        assert data["rules_snapshot"]["qa_sample_rate"] == 0.0

    def test_request_controls_apply_to_call_only(self, client):
        response = client.post("/route", json={
            "claim": {"confidence_score": 90, "severity_score": 3, "cost_high": 1200},
            "controls": {"payout_cap_auto": 1000},
        })

        data = response.json()
        assert data["recommendation"] == "REVIEW"
        assert [r["code"] for r in data["reasons"]] == ["PAYOUT_CAP"]
        assert client.get("/controls").json()["payout_cap_auto"] == 1500

    @pytest.mark.parametrize("controls", [
        {"qa_sample_rate": 5},
        {"confidence_threshold": 3},
        {"payout_cap_auto": -100},
    ])
    def test_out_of_range_request_controls(self, client, controls):
        response = client.post("/route", json={
            "claim": {"confidence_score": 90, "severity_score": 3, "cost_high": 1200},
            "controls": controls,
        })

        assert response.status_code == 422
        assert response.json()["code"] == "CR_CONTROLS_VALIDATION_ERROR"

    def test_empty_claim_is_not_approved(self, client):
        data = client.post("/route", json={"claim": {}}).json()

        assert data["recommendation"] != "APPROVE"


class TestAudit:
    def test_events_and_chain(self, client):
        claim_id = assessed_claim(client)
        client.post(f"/claims/{claim_id}/verification/parts/0/verify", json={"actor": "adj-1"})

        events = client.get(f"/claims/{claim_id}/audit").json()
        chain = client.get(f"/claims/{claim_id}/audit/verify").json()

        assert events["events"][0]["event_type"] == "claim_created"
        assert events["events"][-1]["event_type"] == "part_verified"
        assert chain["is_valid"] is True
        assert chain["events_checked"] == events["event_count"]

    def test_export(self, client):
        claim_id = assessed_claim(client)

        export = client.get(f"/claims/{claim_id}/audit/export", params={"exported_by": "auditor"}).json()

        assert export["claim_snapshot"]["id"] == claim_id
        events = client.get(f"/claims/{claim_id}/audit").json()["events"]
        assert events[-1]["event_type"] == "audit_exported"

    def test_audit_for_missing_claim(self, client):
        assert client.get("/claims/nope/audit").status_code == 404

"""
Tests for the AI agent client.

Uses httpx.MockTransport in place of the gateway.
"""
import json

import httpx
import pytest

from claimrouter.agents import (
    STAGE_COMPLETE,
    STAGE_QUALITY,
    AgentClient,
    parse_damage_assessment,
    parse_quality_result,
    triage_action,
)
from claimrouter.agents.client import DAMAGE_MODEL, QUALITY_MODEL, RETAKE_MESSAGE
from claimrouter.exceptions import (
    AgentStageError,
    MalformedAgentOutputError,
    QuotaExceededError,
    RateLimitedError,
)

from tests.conftest import make_assessment


QUALITY_OK = {
    "acceptable": True,
    "score": 88,
    "issues": [],
    "guidance": "",
}

QUALITY_BAD = {
    "acceptable": False,
    "score": 35,
    "issues": [{"type": "blur", "severity": "high", "description": "Motion blur"}],
    "guidance": "Hold the camera steady and retake from 2 meters.",
}

DAMAGE = {
    "damaged_parts": [
        {
            "part": "front bumper",
            "damage_type": "dented",
            "severity": 4,
            "confidence": 88,
            "cost_low": 400,
            "cost_high": 1200,
        }
    ],
    "overall_severity": 4,
    "overall_confidence": 88,
    "total_cost_low": 400,
    "total_cost_high": 1200,
    "summary": "Dent on the front bumper",
    "safety_concerns": [],
    "fraud_indicators": [],
    "recommended_action": "approve",
}


def completion(arguments, as_string=True):
    """Chat completion body with one tool call."""
    return {
        "choices": [
            {
                "message": {
                    "tool_calls": [
                        {
                            "function": {
                                "name": "tool",
                                "arguments": json.dumps(arguments) if as_string else arguments,
                            }
                        }
                    ]
                }
            }
        ]
    }


def make_client(handler) -> AgentClient:
    return AgentClient(
        api_key="test-key",
        base_url="https://gateway.test/v1",
        transport=httpx.MockTransport(handler),
    )


def routed(quality, damage=None):
    """Handler answering by model name; records requests."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append(body)
        if body["model"] == QUALITY_MODEL:
            return httpx.Response(200, json=completion(quality))
        return httpx.Response(200, json=completion(damage))

    handler.seen = seen
    return handler


# =============================================================================
# Parsing
# =============================================================================

class TestParsing:
    """Structured tool-call output."""

    def test_parse_quality_from_string_arguments(self):
        result = parse_quality_result(completion(QUALITY_BAD))

        assert not result.acceptable
        assert result.issues[0].description == "Motion blur"

    def test_parse_damage_from_dict_arguments(self):
        result = parse_damage_assessment(completion(DAMAGE, as_string=False))

        assert result.part_count == 1
        assert result.damaged_parts[0].part == "front bumper"

    def test_no_tool_call(self):
        with pytest.raises(MalformedAgentOutputError) as exc_info:
            parse_quality_result({"choices": [{"message": {"content": "sorry"}}]})

        assert exc_info.value.stage == "quality"

    def test_unparseable_arguments(self):
        body = completion(QUALITY_OK)
        body["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"] = "{not json"

        with pytest.raises(MalformedAgentOutputError):
            parse_quality_result(body)

    def test_missing_required_field(self):
        damage = {k: v for k, v in DAMAGE.items() if k != "fraud_indicators"}

        with pytest.raises(MalformedAgentOutputError) as exc_info:
            parse_damage_assessment(completion(damage))

        assert exc_info.value.details["missing"] == ["fraud_indicators"]

    def test_missing_part_field(self):
        damage = dict(DAMAGE, damaged_parts=[{"part": "hood"}])

        with pytest.raises(MalformedAgentOutputError):
            parse_damage_assessment(completion(damage))

    @pytest.mark.parametrize("value", [None, "high", float("nan")])
    def test_non_numeric_overall_value(self, value):
        damage = dict(DAMAGE, overall_confidence=value)

        with pytest.raises(MalformedAgentOutputError) as exc_info:
            parse_damage_assessment(completion(damage))

        assert exc_info.value.stage == "damage"

    @pytest.mark.parametrize("field", ["severity", "confidence", "cost_low", "cost_high"])
    def test_null_part_value(self, field):
        part = dict(DAMAGE["damaged_parts"][0], **{field: None})

        with pytest.raises(MalformedAgentOutputError):
            parse_damage_assessment(completion(dict(DAMAGE, damaged_parts=[part])))

    def test_numeric_strings_are_converted(self):
        result = parse_damage_assessment(completion(dict(DAMAGE, total_cost_high="1200")))

        assert result.total_cost_high == 1200.0

    def test_null_quality_score(self):
        with pytest.raises(MalformedAgentOutputError):
            parse_quality_result(completion(dict(QUALITY_OK, score=None)))

    def test_invalid_enum_value(self):
        quality = dict(QUALITY_BAD, issues=[{"type": "glare", "severity": "high", "description": "x"}])

        with pytest.raises(MalformedAgentOutputError):
            parse_quality_result(completion(quality))


class TestTriage:
    """Agent-level action override."""

    @pytest.mark.parametrize("kwargs,expected", [
        ({}, "approve"),
        ({"overall_confidence": 65}, "escalate"),
        ({"overall_severity": 8}, "escalate"),
        ({"fraud_indicators": ("staged",)}, "escalate"),
    ])
    def test_triage_action(self, kwargs, expected):
        assert triage_action(make_assessment(**kwargs)) == expected


# =============================================================================
# Pipeline
# =============================================================================

class TestProcessPhoto:
    """Quality then damage, with error mapping."""

    @pytest.mark.asyncio
    async def test_full_pipeline(self):
        handler = routed(QUALITY_OK, DAMAGE)
        client = make_client(handler)

        result = await client.process_photo("aGVsbG8=", claim_id="CLM-001")

        assert result.success
        assert result.stage == STAGE_COMPLETE
        assert result.recommended_action == "approve"
        assert result.damage.total_cost_high == 1200
        assert result.damage_model.name == DAMAGE_MODEL
        assert [b["model"] for b in handler.seen] == [QUALITY_MODEL, DAMAGE_MODEL]

    @pytest.mark.asyncio
    async def test_request_shape(self):
        handler = routed(QUALITY_OK, DAMAGE)
        client = make_client(handler)

        await client.assess_quality("aGVsbG8=")

        body = handler.seen[0]
        image = body["messages"][1]["content"][1]["image_url"]["url"]
        assert image == "data:image/jpeg;base64,aGVsbG8="
        assert body["tool_choice"]["function"]["name"] == body["tools"][0]["function"]["name"]

    @pytest.mark.asyncio
    async def test_failed_quality_stops_before_damage(self):
        handler = routed(QUALITY_BAD)
        client = make_client(handler)

        result = await client.process_photo("aGVsbG8=")

        assert not result.success
        assert result.stage == STAGE_QUALITY
        assert result.damage is None
        assert result.message == RETAKE_MESSAGE
        assert len(handler.seen) == 1
        assert result.to_dict()["quality_result"]["guidance"].startswith("Hold the camera")

    @pytest.mark.asyncio
    async def test_string_confidence_fails_damage_stage(self):
        handler = routed(QUALITY_OK, dict(DAMAGE, overall_confidence="high"))

        with pytest.raises(MalformedAgentOutputError) as exc_info:
            await make_client(handler).process_photo("aGVsbG8=")

        assert exc_info.value.stage == "damage"

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = make_client(lambda request: httpx.Response(429, text="slow down"))

        with pytest.raises(RateLimitedError) as exc_info:
            await client.process_photo("aGVsbG8=")

        assert exc_info.value.stage == "quality"

    @pytest.mark.asyncio
    async def test_quota_exceeded(self):
        client = make_client(lambda request: httpx.Response(402, text="pay up"))

        with pytest.raises(QuotaExceededError):
            await client.assess_damage("aGVsbG8=")

    @pytest.mark.asyncio
    async def test_damage_stage_server_error(self):
        def handler(request):
            if json.loads(request.content)["model"] == QUALITY_MODEL:
                return httpx.Response(200, json=completion(QUALITY_OK))
            return httpx.Response(503, text="unavailable")

        with pytest.raises(AgentStageError) as exc_info:
            await make_client(handler).process_photo("aGVsbG8=")

        assert exc_info.value.stage == "damage"
        assert exc_info.value.details["status_code"] == 503

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(AgentStageError) as exc_info:
            await make_client(handler).assess_quality("aGVsbG8=")

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AgentStageError):
            await make_client(handler).assess_quality("aGVsbG8=")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(MalformedAgentOutputError):
            await client.assess_quality("aGVsbG8=")

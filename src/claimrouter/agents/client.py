"""
ClaimRouter AI Agent Client

Async client for the photo quality and damage assessment agents, served
through an OpenAI-compatible chat completions gateway with forced tool
calls for structured output.

Pipeline (process_photo):
1. Quality agent. Unacceptable photo -> stop at stage "quality".
2. Damage agent.
3. Triage override of the agent's suggested action.

Failures surface as AgentError subclasses; the client never retries.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from ..exceptions import (
    AgentStageError,
    MalformedAgentOutputError,
    QuotaExceededError,
    RateLimitedError,
)
from ..models import DamageAssessment, DamagedPart, ModelInfo, QualityResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_TIMEOUT = 60.0
QUALITY_MODEL = "google/gemini-2.5-flash"
DAMAGE_MODEL = "google/gemini-2.5-pro"
PROVIDER = "lovable-ai-gateway"

STAGE_QUALITY = "quality"
STAGE_DAMAGE = "damage"
STAGE_COMPLETE = "complete"

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
QUOTA_MESSAGE = "AI credits exhausted. Please add credits to continue."
RETAKE_MESSAGE = "Photo quality check failed. Please retake the photo following the guidance provided."


# =============================================================================
# Tool Definitions
# =============================================================================

QUALITY_TOOL = {
    "type": "function",
    "function": {
        "name": "assess_photo_quality",
        "description": "Assess if a damage photo is suitable for insurance claim processing",
        "parameters": {
            "type": "object",
            "properties": {
                "acceptable": {"type": "boolean"},
                "score": {"type": "number", "description": "Quality score from 0-100"},
                "issues": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {
                                "type": "string",
                                "enum": ["blur", "darkness", "angle", "distance", "obstruction", "resolution"],
                            },
                            "severity": {"type": "string", "enum": ["low", "medium", "high"]},
                            "description": {"type": "string"},
                        },
                        "required": ["type", "severity", "description"],
                    },
                },
                "guidance": {"type": "string", "description": "Instructions for retaking photo if failed"},
            },
            "required": list(QualityResult.REQUIRED_FIELDS),
        },
    },
}

DAMAGE_TOOL = {
    "type": "function",
    "function": {
        "name": "assess_vehicle_damage",
        "description": "Assess vehicle damage from a photo for insurance claim processing",
        "parameters": {
            "type": "object",
            "properties": {
                "damaged_parts": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "part": {"type": "string"},
                            "damage_type": {"type": "string"},
                            "severity": {"type": "number", "description": "1-10 scale"},
                            "confidence": {"type": "number", "description": "0-100 confidence"},
                            "cost_low": {"type": "number"},
                            "cost_high": {"type": "number"},
                        },
                        "required": ["part", "damage_type", "severity", "confidence", "cost_low", "cost_high"],
                    },
                },
                "overall_severity": {"type": "number", "description": "1-10 scale"},
                "overall_confidence": {"type": "number", "description": "0-100 percentage"},
                "total_cost_low": {"type": "number"},
                "total_cost_high": {"type": "number"},
                "summary": {"type": "string"},
                "safety_concerns": {"type": "array", "items": {"type": "string"}},
                "fraud_indicators": {"type": "array", "items": {"type": "string"}},
                "recommended_action": {"type": "string", "enum": ["approve", "review", "escalate"]},
            },
            "required": list(DamageAssessment.REQUIRED_FIELDS),
        },
    },
}

QUALITY_SYSTEM_PROMPT = """You are a strict photo quality assessment agent for insurance claims. Your job is to ensure photos are suitable for damage assessment.

REJECTION CRITERIA (be strict):
- Blurry or out of focus images
- Too dark or overexposed
- Poor angle (not showing damage clearly)
- Too far away or too close
- Obstructions blocking the view
- Low resolution making details unclear

A photo must score at least 70 to be acceptable."""

DAMAGE_SYSTEM_PROMPT = """You are an expert vehicle damage assessment agent for insurance claims. Analyze damage photos and provide detailed assessments.

ASSESSMENT GUIDELINES:
- Identify all visible damaged parts
- Estimate repair costs based on typical market rates
- Severity scale: 1-3 (minor), 4-6 (moderate), 7-10 (severe)
- Look for fraud indicators (inconsistent damage patterns, pre-existing damage, staged photos)
- Identify safety concerns (structural damage, airbag deployment, etc.)

RECOMMENDED ACTION RULES:
- "approve" if severity <= 4 AND confidence >= 85 AND no fraud indicators
- "escalate" if severity > 7 OR confidence < 70 OR fraud indicators found
- "review" for all other cases

You can NEVER deny a claim. Only approve, review, or escalate."""


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class PhotoProcessingResult:
    """Outcome of the quality -> damage pipeline for one photo."""
    success: bool
    stage: str
    quality: QualityResult
    message: str
    damage: Optional[DamageAssessment] = None
    recommended_action: Optional[str] = None
    quality_model: Optional[ModelInfo] = None
    damage_model: Optional[ModelInfo] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "stage": self.stage,
            "quality_result": self.quality.to_dict(),
            "damage_result": self.damage.to_dict() if self.damage else None,
            "recommended_action": self.recommended_action,
            "message": self.message,
        }


def triage_action(damage: DamageAssessment) -> str:
    """
    Agent-level override of the suggested action.

    Low confidence, high severity or any fraud indicator escalates.
    """
    action = damage.recommended_action
    if damage.overall_confidence < 70:
        action = "escalate"
    if damage.overall_severity > 7:
        action = "escalate"
    if damage.fraud_indicators:
        action = "escalate"
    return action


def _tool_arguments(data: dict[str, Any], stage: str) -> dict[str, Any]:
    try:
        tool_call = data["choices"][0]["message"]["tool_calls"][0]
        arguments = tool_call["function"]["arguments"]
    except (KeyError, IndexError, TypeError):
        raise MalformedAgentOutputError(
            message=f"No {stage} assessment returned",
            stage=stage,
        ) from None
    if isinstance(arguments, dict):
        return arguments
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError) as e:
        raise MalformedAgentOutputError(
            message=f"Unparseable {stage} tool arguments: {e}",
            stage=stage,
        ) from e
    if not isinstance(parsed, dict):
        raise MalformedAgentOutputError(message=f"{stage} tool arguments are not an object", stage=stage)
    return parsed


def _check_required(arguments: dict[str, Any], required: tuple[str, ...], stage: str) -> None:
    missing = [name for name in required if name not in arguments]
    if missing:
        raise MalformedAgentOutputError(
            message=f"{stage} output missing required fields: {', '.join(missing)}",
            stage=stage,
            details={"missing": missing},
        )


def parse_quality_result(data: dict[str, Any]) -> QualityResult:
    """Parse a chat completion response into a QualityResult."""
    arguments = _tool_arguments(data, STAGE_QUALITY)
    _check_required(arguments, QualityResult.REQUIRED_FIELDS, STAGE_QUALITY)
    try:
        return QualityResult.from_dict(arguments)
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedAgentOutputError(
            message=f"Invalid quality output: {e}", stage=STAGE_QUALITY,
        ) from e


def parse_damage_assessment(data: dict[str, Any]) -> DamageAssessment:
    """Parse a chat completion response into a DamageAssessment."""
    arguments = _tool_arguments(data, STAGE_DAMAGE)
    _check_required(arguments, DamageAssessment.REQUIRED_FIELDS, STAGE_DAMAGE)
    for i, part in enumerate(arguments.get("damaged_parts") or []):
        if not isinstance(part, dict):
            raise MalformedAgentOutputError(message=f"Damaged part {i} is not an object", stage=STAGE_DAMAGE)
        _check_required(part, DamagedPart.REQUIRED_FIELDS, STAGE_DAMAGE)
    try:
        return DamageAssessment.from_dict(arguments)
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedAgentOutputError(
            message=f"Invalid damage output: {e}", stage=STAGE_DAMAGE,
        ) from e


# =============================================================================
# Client
# =============================================================================

class AgentClient:
    """
    Client for the quality and damage agents.

    Usage:
        client = AgentClient(api_key=os.environ["CLAIMROUTER_AGENT_API_KEY"])
        result = await client.process_photo(image_b64)
        if result.stage == "quality":
            print(result.quality.guidance)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        quality_model: str = QUALITY_MODEL,
        damage_model: str = DAMAGE_MODEL,
    ):
        """
        Args:
            api_key: Gateway API key
            base_url: Gateway base URL (chat completions lives under it)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.quality_model = quality_model
        self.damage_model = damage_model

    def _payload(self, model: str, system_prompt: str, user_text: str, image_b64: str, tool: dict) -> dict:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": user_text},
                        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}},
                    ],
                },
            ],
            "tools": [tool],
            "tool_choice": {"type": "function", "function": {"name": tool["function"]["name"]}},
        }

    async def _call(self, payload: dict[str, Any], stage: str) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug("Calling %s agent: %s", stage, url)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
            except TimeoutException as e:
                logger.warning("%s agent timed out after %ss", stage, self.timeout)
                raise AgentStageError(
                    message=f"{stage.capitalize()} agent timed out",
                    stage=stage,
                ) from e
            except HTTPStatusError as e:
                raise self._status_error(e, stage) from e
            except httpx.HTTPError as e:
                logger.warning("%s agent transport error: %s", stage, e)
                raise AgentStageError(
                    message=f"{stage.capitalize()} agent request failed: {e}",
                    stage=stage,
                ) from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedAgentOutputError(
                message=f"{stage.capitalize()} agent returned non-JSON body",
                stage=stage,
            ) from e

    def _status_error(self, error: HTTPStatusError, stage: str) -> Exception:
        status_code = error.response.status_code
        body = error.response.text[:500]
        logger.warning(
            "%s agent HTTP error %d: %s", stage, status_code, body,
        )
        if status_code == 429:
            return RateLimitedError(message=RATE_LIMIT_MESSAGE, stage=stage)
        if status_code == 402:
            return QuotaExceededError(message=QUOTA_MESSAGE, stage=stage)
        return AgentStageError(
            message=f"{stage.capitalize()} agent failed: {status_code}",
            stage=stage,
            details={"status_code": status_code},
        )

    async def assess_quality(self, image_b64: str) -> QualityResult:
        payload = self._payload(
            self.quality_model,
            QUALITY_SYSTEM_PROMPT,
            "Assess the quality of this vehicle damage photo. Determine if it's suitable for insurance claim processing.",
            image_b64,
            QUALITY_TOOL,
        )
        return parse_quality_result(await self._call(payload, STAGE_QUALITY))

    async def assess_damage(self, image_b64: str) -> DamageAssessment:
        payload = self._payload(
            self.damage_model,
            DAMAGE_SYSTEM_PROMPT,
            "Analyze this vehicle damage photo and provide a detailed assessment for insurance claim processing.",
            image_b64,
            DAMAGE_TOOL,
        )
        return parse_damage_assessment(await self._call(payload, STAGE_DAMAGE))

    async def process_photo(self, image_b64: str, claim_id: Optional[str] = None) -> PhotoProcessingResult:
        """Run quality, then damage (only if quality passed), then triage."""
        logger.info("Processing photo for claim %s", claim_id)
        quality_model = ModelInfo(provider=PROVIDER, name=self.quality_model)

        quality = await self.assess_quality(image_b64)
        if not quality.acceptable:
            logger.info("Photo quality failed for claim %s (score %s)", claim_id, quality.score)
            return PhotoProcessingResult(
                success=False,
                stage=STAGE_QUALITY,
                quality=quality,
                message=RETAKE_MESSAGE,
                quality_model=quality_model,
            )

        damage = await self.assess_damage(image_b64)
        action = triage_action(damage)
        return PhotoProcessingResult(
            success=True,
            stage=STAGE_COMPLETE,
            quality=quality,
            damage=damage,
            recommended_action=action,
            message=f"Assessment complete. Recommended action: {action}",
            quality_model=quality_model,
            damage_model=ModelInfo(provider=PROVIDER, name=self.damage_model),
        )

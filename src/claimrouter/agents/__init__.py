"""
ClaimRouter AI Agents

Async client for the photo quality and damage assessment agents.

Usage:
    from claimrouter.agents import AgentClient

    client = AgentClient(api_key="...")
    result = await client.process_photo(image_b64)
"""
from __future__ import annotations

from .client import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    STAGE_COMPLETE,
    STAGE_DAMAGE,
    STAGE_QUALITY,
    AgentClient,
    PhotoProcessingResult,
    parse_damage_assessment,
    parse_quality_result,
    triage_action,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT",
    "STAGE_COMPLETE",
    "STAGE_DAMAGE",
    "STAGE_QUALITY",
    "AgentClient",
    "PhotoProcessingResult",
    "parse_damage_assessment",
    "parse_quality_result",
    "triage_action",
]

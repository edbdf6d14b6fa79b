"""
ClaimRouter Controls Pack Schema

Pydantic models for validating routing controls YAML files and updates.

Schema versioning:
- schema_version tracks breaking changes to the pack layout
- Loaders reject packs with a different major version
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


SCHEMA_VERSION = "1.0.0"


class RoutingControlsSchema(BaseModel):
    """Routing thresholds with range checks."""
    model_config = ConfigDict(extra="forbid")

    confidence_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    severity_threshold: float = Field(default=7, ge=1, le=10)
    payout_cap_senior: float = Field(default=3000, ge=0)
    payout_cap_auto: float = Field(default=1500, ge=0)
    dual_review_enabled: bool = False
    qa_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)


class ControlsPackSchema(BaseModel):
    """Top-level controls pack file."""
    schema_version: str = SCHEMA_VERSION
    name: str = "default"
    description: str = ""
    controls: RoutingControlsSchema = Field(default_factory=RoutingControlsSchema)


def validate_controls_pack(data: dict[str, Any]) -> ControlsPackSchema:
    """
    Raises:
        pydantic.ValidationError: If validation fails
    """
    return ControlsPackSchema.model_validate(data)


def validate_controls(data: dict[str, Any]) -> RoutingControlsSchema:
    return RoutingControlsSchema.model_validate(data)


def check_schema_version(data: dict[str, Any]) -> bool:
    """Only the major version has to match."""
    pack_version = str(data.get("schema_version", SCHEMA_VERSION))
    return pack_version.split(".")[0] == SCHEMA_VERSION.split(".")[0]

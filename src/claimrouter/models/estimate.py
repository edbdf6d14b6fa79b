"""
ClaimRouter Estimate Models

Line-item repair estimate built from the damage assessment.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Citation:
    """Pricing source backing a line item."""
    source: str
    url: str
    retrieved_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "url": self.url,
            "retrieved_at": self.retrieved_at.isoformat(),
        }


@dataclass(frozen=True)
class EstimateLineItem:
    """Repair estimate for one damaged part."""
    part: str
    damage_type: str
    labor_hours: float
    labor_rate: float
    labor_cost: float
    part_cost_low: float
    part_cost_high: float
    total_low: float
    total_high: float
    sources: tuple[Citation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "part": self.part,
            "damage_type": self.damage_type,
            "labor_hours": self.labor_hours,
            "labor_rate": self.labor_rate,
            "labor_cost": self.labor_cost,
            "part_cost_low": self.part_cost_low,
            "part_cost_high": self.part_cost_high,
            "total_low": self.total_low,
            "total_high": self.total_high,
            "sources": [s.to_dict() for s in self.sources],
        }


@dataclass(frozen=True)
class Estimate:
    """
    Full estimate for a claim.

    grand_total_high is the value the routing engine compares against
    payout caps.
    """
    line_items: tuple[EstimateLineItem, ...]
    subtotal_low: float
    subtotal_high: float
    labor_total: float
    parts_low: float
    parts_high: float
    grand_total_low: float
    grand_total_high: float
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_items": [li.to_dict() for li in self.line_items],
            "subtotal_low": self.subtotal_low,
            "subtotal_high": self.subtotal_high,
            "labor_total": self.labor_total,
            "parts_low": self.parts_low,
            "parts_high": self.parts_high,
            "grand_total_low": self.grand_total_low,
            "grand_total_high": self.grand_total_high,
            "generated_at": self.generated_at.isoformat(),
        }

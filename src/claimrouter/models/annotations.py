"""
ClaimRouter Annotation Models

Bounding-box detections locating damage in a claim photo.

Coordinates are normalized to [0, 1] relative to the image, with (x, y) the
top-left corner. A box must fit inside the image and be at least
MIN_BOX_SIZE wide and tall so it stays drawable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from ..exceptions import InvalidDetectionError
from .enums import DamageLabel, SeverityLevel


MIN_BOX_SIZE = 0.05

# Tolerance for float sums such as 0.7 + 0.3
_EPSILON = 1e-9


@dataclass(frozen=True)
class BoundingBox:
    """Normalized bounding box {x, y, w, h}."""
    x: float
    y: float
    w: float
    h: float

    def __post_init__(self) -> None:
        problems = []
        for name in ("x", "y", "w", "h"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                problems.append(f"{name}={value} outside [0, 1]")
        if self.w < MIN_BOX_SIZE - _EPSILON:
            problems.append(f"w={self.w} below minimum {MIN_BOX_SIZE}")
        if self.h < MIN_BOX_SIZE - _EPSILON:
            problems.append(f"h={self.h} below minimum {MIN_BOX_SIZE}")
        if self.x + self.w > 1.0 + _EPSILON:
            problems.append(f"x+w={self.x + self.w:.3f} exceeds 1")
        if self.y + self.h > 1.0 + _EPSILON:
            problems.append(f"y+h={self.y + self.h:.3f} exceeds 1")
        if problems:
            raise InvalidDetectionError(
                message="Invalid bounding box: " + "; ".join(problems),
                details={"box": {"x": self.x, "y": self.y, "w": self.w, "h": self.h}},
            )

    @classmethod
    def clamped(cls, x: float, y: float, w: float, h: float) -> BoundingBox:
        """
        Build the nearest valid box for arbitrary (possibly dragged) input.

        Size is clamped to [MIN_BOX_SIZE, 1] first, then the origin is
        pulled back so the box fits inside the image.
        """
        w = min(max(w, MIN_BOX_SIZE), 1.0)
        h = min(max(h, MIN_BOX_SIZE), 1.0)
        x = min(max(x, 0.0), 1.0 - w)
        y = min(max(y, 0.0), 1.0 - h)
        return cls(x=x, y=y, w=w, h=h)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass(frozen=True)
class Detection:
    """
    One bounding-box annotation.

    Attributes:
        id: Stable detection id (e.g., "det_1")
        label: Damage class
        part: Vehicle part the damage is on
        severity: Coarse severity level
        confidence: Detector confidence 0-1
        box: Normalized location
    """
    id: str
    label: DamageLabel
    part: str
    severity: SeverityLevel
    confidence: float
    box: BoundingBox

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidDetectionError(
                message=f"Detection {self.id} confidence {self.confidence} outside [0, 1]",
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label.value,
            "part": self.part,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "box": self.box.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Detection:
        box = data["box"]
        return cls(
            id=str(data["id"]),
            label=DamageLabel(data.get("label", DamageLabel.UNKNOWN.value)),
            part=str(data.get("part") or "unknown"),
            severity=SeverityLevel(data.get("severity", SeverityLevel.MINOR.value)),
            confidence=float(data.get("confidence", 0.0)),
            box=BoundingBox(x=box["x"], y=box["y"], w=box["w"], h=box["h"]),
        )


@dataclass
class Annotations:
    """Ordered detections for a claim photo, plus free-text notes."""
    detections: list[Detection] = field(default_factory=list)
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for detection in self.detections:
            if detection.id in seen:
                raise InvalidDetectionError(
                    message=f"Duplicate detection id: {detection.id}",
                )
            seen.add(detection.id)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __len__(self) -> int:
        return len(self.detections)

    @property
    def detection_ids(self) -> list[str]:
        return [d.id for d in self.detections]

    def get(self, detection_id: str) -> Optional[Detection]:
        for detection in self.detections:
            if detection.id == detection_id:
                return detection
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"detections": [d.to_dict() for d in self.detections]}
        if self.notes:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Annotations:
        return cls(
            detections=[Detection.from_dict(d) for d in data.get("detections") or []],
            notes=data.get("notes"),
        )

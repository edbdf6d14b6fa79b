"""
ClaimRouter Verification Models

Human verification records for AI-proposed damaged parts and detection boxes.

Key components:
- PartVerification: Review record keyed by part_index
- BoxVerification: Review record keyed by detection_id
- VerificationState: All records for one claim review session

A record with status PROPOSED stands for "no human action yet". The state
hands out explicit PROPOSED records for untouched entities, so callers never
test for a missing record.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .enums import RejectReasonCode, VerificationStatus


# =============================================================================
# Edit Overlays
# =============================================================================

@dataclass(frozen=True)
class PartEdits:
    """Adjuster overrides for a damaged part. None means "keep AI value"."""
    part: Optional[str] = None
    damage_type: Optional[str] = None
    severity: Optional[float] = None

    def is_empty(self) -> bool:
        return self.part is None and self.damage_type is None and self.severity is None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in (
            ("part", self.part),
            ("damage_type", self.damage_type),
            ("severity", self.severity),
        ) if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PartEdits:
        return cls(
            part=data.get("part"),
            damage_type=data.get("damage_type"),
            severity=data.get("severity"),
        )


@dataclass(frozen=True)
class BoxEdits:
    """Adjuster overrides for a detection box."""
    label: Optional[str] = None
    part: Optional[str] = None
    severity: Optional[str] = None
    confidence: Optional[float] = None

    def is_empty(self) -> bool:
        return all(v is None for v in (self.label, self.part, self.severity, self.confidence))

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in (
            ("label", self.label),
            ("part", self.part),
            ("severity", self.severity),
            ("confidence", self.confidence),
        ) if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BoxEdits:
        return cls(
            label=data.get("label"),
            part=data.get("part"),
            severity=data.get("severity"),
            confidence=data.get("confidence"),
        )


# =============================================================================
# Records
# =============================================================================

@dataclass(frozen=True)
class PartVerification:
    """
    Verification record for one damaged part.

    Attributes:
        part_index: Index into the assessment's damaged_parts sequence
        status: proposed / verified / rejected / needs_review
        reason_code: Why rejected or edited
        notes: Free text
        linked_box_ids: Detection ids used as evidence for this part
        edited_values: Overlay on the AI values
        verified_at: When the last action was taken
        verified_by: Who took it
    """
    part_index: int
    status: VerificationStatus = VerificationStatus.PROPOSED
    reason_code: Optional[RejectReasonCode] = None
    notes: Optional[str] = None
    linked_box_ids: frozenset[str] = frozenset()
    edited_values: Optional[PartEdits] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    @property
    def is_proposed(self) -> bool:
        return self.status == VerificationStatus.PROPOSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "part_index": self.part_index,
            "status": self.status.value,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "notes": self.notes,
            "linked_box_ids": sorted(self.linked_box_ids),
            "edited_values": self.edited_values.to_dict() if self.edited_values else None,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "verified_by": self.verified_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PartVerification:
        edited = data.get("edited_values")
        reason = data.get("reason_code")
        verified_at = data.get("verified_at")
        return cls(
            part_index=int(data["part_index"]),
            status=VerificationStatus(data.get("status", VerificationStatus.PROPOSED.value)),
            reason_code=RejectReasonCode(reason) if reason else None,
            notes=data.get("notes"),
            linked_box_ids=frozenset(data.get("linked_box_ids") or ()),
            edited_values=PartEdits.from_dict(edited) if edited else None,
            verified_at=datetime.fromisoformat(verified_at) if verified_at else None,
            verified_by=data.get("verified_by"),
        )


@dataclass(frozen=True)
class BoxVerification:
    """Verification record for one detection box."""
    detection_id: str
    status: VerificationStatus = VerificationStatus.PROPOSED
    reason_code: Optional[RejectReasonCode] = None
    notes: Optional[str] = None
    linked_part_index: Optional[int] = None
    edited_values: Optional[BoxEdits] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    @property
    def is_proposed(self) -> bool:
        return self.status == VerificationStatus.PROPOSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "detection_id": self.detection_id,
            "status": self.status.value,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "notes": self.notes,
            "linked_part_index": self.linked_part_index,
            "edited_values": self.edited_values.to_dict() if self.edited_values else None,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "verified_by": self.verified_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BoxVerification:
        edited = data.get("edited_values")
        reason = data.get("reason_code")
        verified_at = data.get("verified_at")
        linked = data.get("linked_part_index")
        return cls(
            detection_id=str(data["detection_id"]),
            status=VerificationStatus(data.get("status", VerificationStatus.PROPOSED.value)),
            reason_code=RejectReasonCode(reason) if reason else None,
            notes=data.get("notes"),
            linked_part_index=int(linked) if linked is not None else None,
            edited_values=BoxEdits.from_dict(edited) if edited else None,
            verified_at=datetime.fromisoformat(verified_at) if verified_at else None,
            verified_by=data.get("verified_by"),
        )


# =============================================================================
# Aggregate State
# =============================================================================

@dataclass
class VerificationState:
    """
    All verification records for one claim review session.

    Only acted-upon entities are stored; part()/box() synthesize PROPOSED
    records for the rest.
    """
    parts: dict[int, PartVerification] = field(default_factory=dict)
    boxes: dict[str, BoxVerification] = field(default_factory=dict)
    last_modified: Optional[datetime] = None
    modified_by: Optional[str] = None

    def part(self, part_index: int) -> PartVerification:
        return self.parts.get(part_index) or PartVerification(part_index=part_index)

    def box(self, detection_id: str) -> BoxVerification:
        return self.boxes.get(detection_id) or BoxVerification(detection_id=detection_id)

    def part_statuses(self, part_count: int) -> list[VerificationStatus]:
        """Status of every part 0..part_count-1, PROPOSED where untouched."""
        return [self.part(i).status for i in range(part_count)]

    def put_part(
        self,
        record: PartVerification,
        actor: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        self.parts[record.part_index] = record
        self._touch(actor, at)

    def put_box(
        self,
        record: BoxVerification,
        actor: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        self.boxes[record.detection_id] = record
        self._touch(actor, at)

    def _touch(self, actor: Optional[str], at: Optional[datetime] = None) -> None:
        self.last_modified = at or datetime.now(timezone.utc)
        if actor is not None:
            self.modified_by = actor

    def to_dict(self) -> dict[str, Any]:
        return {
            "parts": [self.parts[i].to_dict() for i in sorted(self.parts)],
            "boxes": [self.boxes[k].to_dict() for k in sorted(self.boxes)],
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "modified_by": self.modified_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerificationState:
        parts = [PartVerification.from_dict(p) for p in data.get("parts") or []]
        boxes = [BoxVerification.from_dict(b) for b in data.get("boxes") or []]
        last_modified = data.get("last_modified")
        return cls(
            parts={p.part_index: p for p in parts},
            boxes={b.detection_id: b for b in boxes},
            last_modified=datetime.fromisoformat(last_modified) if last_modified else None,
            modified_by=data.get("modified_by"),
        )

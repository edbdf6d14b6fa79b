"""
ClaimRouter Verification Workspace

Tracks a human adjuster's review of AI-proposed damaged parts and detection
boxes for one claim.

Per-entity state machine:
    proposed -> verified | rejected | needs_review
Any state can be re-entered by a later action; each action replaces the
entity's record. Links (part <-> box) carry over from the prior record
unless the action sets them.

Key features:
- verify / reject / edit for parts and boxes
- mark_box_uncertain for a second opinion
- link_evidence / link_box_to_part keep both link directions consistent
  in a single operation
- Every mutation emits a {action, before, after} snapshot to the audit sink
- replay_verification_state() rebuilds state from those snapshots
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from ..exceptions import (
    InvalidReasonCodeError,
    UnknownEntityError,
    VerificationError,
)
from ..models import (
    AuditEvent,
    AuditEventType,
    BoxEdits,
    BoxVerification,
    Claim,
    DamageLabel,
    DamagedPart,
    Detection,
    PartEdits,
    PartVerification,
    RejectReasonCode,
    SeverityLevel,
    VerificationSnapshot,
    VerificationState,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

AuditSink = Callable[[AuditEventType, VerificationSnapshot, str], None]
ReasonCodeInput = Union[RejectReasonCode, str]


# =============================================================================
# Helpers
# =============================================================================

def coerce_reason_code(code: Optional[ReasonCodeInput]) -> RejectReasonCode:
    """
    Convert a reason code string to the enum.

    Raises:
        InvalidReasonCodeError: If code is missing or not in the enumeration
    """
    if isinstance(code, RejectReasonCode):
        return code
    if code is None:
        raise InvalidReasonCodeError(message="A reason code is required")
    try:
        return RejectReasonCode(str(code))
    except ValueError:
        allowed = ", ".join(c.value for c in RejectReasonCode)
        raise InvalidReasonCodeError(
            message=f"Unknown reason code '{code}'. Expected one of: {allowed}",
            details={"reason_code": str(code)},
        ) from None


def _merge_part_edits(previous: Optional[PartEdits], edits: PartEdits) -> PartEdits:
    if previous is None:
        return edits
    return PartEdits(
        part=edits.part if edits.part is not None else previous.part,
        damage_type=edits.damage_type if edits.damage_type is not None else previous.damage_type,
        severity=edits.severity if edits.severity is not None else previous.severity,
    )


def _merge_box_edits(previous: Optional[BoxEdits], edits: BoxEdits) -> BoxEdits:
    if previous is None:
        return edits
    return BoxEdits(
        label=edits.label if edits.label is not None else previous.label,
        part=edits.part if edits.part is not None else previous.part,
        severity=edits.severity if edits.severity is not None else previous.severity,
        confidence=edits.confidence if edits.confidence is not None else previous.confidence,
    )


def _validate_part_edits(edits: PartEdits) -> None:
    if edits.is_empty():
        raise VerificationError(message="An edit must change at least one value")
    if edits.severity is not None and not 1 <= edits.severity <= 10:
        raise VerificationError(
            message=f"Edited severity {edits.severity} outside 1-10",
        )


def _validate_box_edits(edits: BoxEdits) -> None:
    if edits.is_empty():
        raise VerificationError(message="An edit must change at least one value")
    if edits.label is not None and edits.label not in {l.value for l in DamageLabel}:
        raise VerificationError(message=f"Unknown damage label '{edits.label}'")
    if edits.severity is not None and edits.severity not in {s.value for s in SeverityLevel}:
        raise VerificationError(message=f"Unknown severity level '{edits.severity}'")
    if edits.confidence is not None and not 0.0 <= edits.confidence <= 1.0:
        raise VerificationError(
            message=f"Edited confidence {edits.confidence} outside [0, 1]",
        )


# =============================================================================
# Workspace
# =============================================================================

@dataclass
class VerificationWorkspace:
    """
    Verification state for one claim review session.

    When part_count / detection_ids are given, actions on out-of-range
    parts or unknown boxes raise UnknownEntityError. Acting on a known
    entity with no record yet creates its first record.

    Usage:
        workspace = VerificationWorkspace.for_claim(claim, actor="adj-7")
        workspace.link_evidence(0, ["det_1", "det_2"])
        workspace.verify_part(0)
        workspace.reject_part(1, "false_positive", notes="Reflection")
    """

    claim_id: str
    actor: str = "adjuster"
    part_count: Optional[int] = None
    detection_ids: Optional[frozenset[str]] = None
    state: VerificationState = field(default_factory=VerificationState)
    audit_sink: Optional[AuditSink] = None
    clock: Callable[[], datetime] = field(
        default=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def for_claim(
        cls,
        claim: Claim,
        actor: str = "adjuster",
        audit_sink: Optional[AuditSink] = None,
        state: Optional[VerificationState] = None,
    ) -> VerificationWorkspace:
        """Create a workspace bounded by the claim's parts and detections."""
        return cls(
            claim_id=claim.id,
            actor=actor,
            part_count=len(claim.damaged_parts),
            detection_ids=frozenset(claim.annotations.detection_ids),
            state=state or VerificationState(),
            audit_sink=audit_sink,
        )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def part(self, part_index: int) -> PartVerification:
        return self.state.part(part_index)

    def box(self, detection_id: str) -> BoxVerification:
        return self.state.box(detection_id)

    def _check_part(self, part_index: int) -> None:
        if isinstance(part_index, bool) or not isinstance(part_index, int) or part_index < 0:
            raise UnknownEntityError(
                message=f"Invalid part index {part_index!r}",
                claim_id=self.claim_id,
            )
        if self.part_count is not None and part_index >= self.part_count:
            raise UnknownEntityError(
                message=f"Part index {part_index} out of range (claim has {self.part_count} parts)",
                claim_id=self.claim_id,
            )

    def _check_box(self, detection_id: str) -> None:
        if self.detection_ids is not None and detection_id not in self.detection_ids:
            raise UnknownEntityError(
                message=f"Unknown detection id '{detection_id}'",
                claim_id=self.claim_id,
            )

    # -------------------------------------------------------------------------
    # Part actions
    # -------------------------------------------------------------------------

    def verify_part(self, part_index: int) -> PartVerification:
        """Accept the AI proposal (or the current edit overlay) for a part."""
        self._check_part(part_index)
        before = self.state.parts.get(part_index)
        after = PartVerification(
            part_index=part_index,
            status=VerificationStatus.VERIFIED,
            linked_box_ids=before.linked_box_ids if before else frozenset(),
            edited_values=before.edited_values if before else None,
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_part(AuditEventType.PART_VERIFIED, "verify", before, after)
        return after

    def reject_part(
        self,
        part_index: int,
        reason_code: ReasonCodeInput,
        notes: Optional[str] = None,
    ) -> PartVerification:
        """Reject an AI-proposed part. reason_code is mandatory."""
        self._check_part(part_index)
        code = coerce_reason_code(reason_code)
        before = self.state.parts.get(part_index)
        after = PartVerification(
            part_index=part_index,
            status=VerificationStatus.REJECTED,
            reason_code=code,
            notes=notes,
            linked_box_ids=before.linked_box_ids if before else frozenset(),
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_part(AuditEventType.PART_REJECTED, "reject", before, after)
        return after

    def edit_part(
        self,
        part_index: int,
        edits: Union[PartEdits, dict[str, Any]],
        reason_code: ReasonCodeInput,
        notes: Optional[str] = None,
    ) -> PartVerification:
        """
        Correct an AI-proposed part.

        An edit counts as verification of the corrected values. The AI
        values are untouched; edits are merged into the overlay.
        """
        self._check_part(part_index)
        if isinstance(edits, dict):
            edits = PartEdits.from_dict(edits)
        _validate_part_edits(edits)
        code = coerce_reason_code(reason_code)
        before = self.state.parts.get(part_index)
        after = PartVerification(
            part_index=part_index,
            status=VerificationStatus.VERIFIED,
            reason_code=code,
            notes=notes,
            linked_box_ids=before.linked_box_ids if before else frozenset(),
            edited_values=_merge_part_edits(before.edited_values if before else None, edits),
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_part(AuditEventType.PART_EDITED, "edit", before, after)
        return after

    def link_evidence(self, part_index: int, detection_ids: Iterable[str]) -> PartVerification:
        """
        Replace the full set of boxes linked as evidence for a part.

        Boxes dropped from the set are unlinked from the part; boxes added
        are moved here from any other part they were linked to.
        """
        self._check_part(part_index)
        new_ids = frozenset(detection_ids)
        for detection_id in new_ids:
            self._check_box(detection_id)

        before = self.state.parts.get(part_index)
        current = before or PartVerification(part_index=part_index)
        old_ids = current.linked_box_ids
        after = replace(current, linked_box_ids=new_ids)

        related: list[VerificationSnapshot] = []
        for detection_id in sorted(old_ids - new_ids):
            box_before = self.state.boxes.get(detection_id)
            if box_before is not None and box_before.linked_part_index == part_index:
                related.append(self._stage_box(
                    "unlink", box_before, replace(box_before, linked_part_index=None),
                ))
        moved_from: dict[int, set[str]] = {}
        for detection_id in sorted(new_ids - old_ids):
            box_before = self.state.boxes.get(detection_id)
            box_current = box_before or BoxVerification(detection_id=detection_id)
            previous_part = box_current.linked_part_index
            if previous_part is not None and previous_part != part_index:
                moved_from.setdefault(previous_part, set()).add(detection_id)
            related.append(self._stage_box(
                "link", box_before, replace(box_current, linked_part_index=part_index),
            ))
        for previous_part in sorted(moved_from):
            related.append(self._detach_boxes_from_part(moved_from[previous_part], previous_part))

        self._commit_part(AuditEventType.EVIDENCE_LINKED, "link", before, after, related)
        return after

    def _detach_boxes_from_part(self, detection_ids: Iterable[str], part_index: int) -> VerificationSnapshot:
        part_before = self.state.part(part_index)
        part_after = replace(
            part_before, linked_box_ids=part_before.linked_box_ids - frozenset(detection_ids),
        )
        return self._stage_part("unlink", self.state.parts.get(part_index), part_after)

    # -------------------------------------------------------------------------
    # Box actions
    # -------------------------------------------------------------------------

    def verify_box(self, detection_id: str) -> BoxVerification:
        self._check_box(detection_id)
        before = self.state.boxes.get(detection_id)
        after = BoxVerification(
            detection_id=detection_id,
            status=VerificationStatus.VERIFIED,
            linked_part_index=before.linked_part_index if before else None,
            edited_values=before.edited_values if before else None,
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_box(AuditEventType.BOX_VERIFIED, "verify", before, after)
        return after

    def reject_box(
        self,
        detection_id: str,
        reason_code: ReasonCodeInput,
        notes: Optional[str] = None,
    ) -> BoxVerification:
        self._check_box(detection_id)
        code = coerce_reason_code(reason_code)
        before = self.state.boxes.get(detection_id)
        after = BoxVerification(
            detection_id=detection_id,
            status=VerificationStatus.REJECTED,
            reason_code=code,
            notes=notes,
            linked_part_index=before.linked_part_index if before else None,
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_box(AuditEventType.BOX_REJECTED, "reject", before, after)
        return after

    def edit_box(
        self,
        detection_id: str,
        edits: Union[BoxEdits, dict[str, Any]],
        reason_code: ReasonCodeInput,
        notes: Optional[str] = None,
    ) -> BoxVerification:
        self._check_box(detection_id)
        if isinstance(edits, dict):
            edits = BoxEdits.from_dict(edits)
        _validate_box_edits(edits)
        code = coerce_reason_code(reason_code)
        before = self.state.boxes.get(detection_id)
        after = BoxVerification(
            detection_id=detection_id,
            status=VerificationStatus.VERIFIED,
            reason_code=code,
            notes=notes,
            linked_part_index=before.linked_part_index if before else None,
            edited_values=_merge_box_edits(before.edited_values if before else None, edits),
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_box(AuditEventType.BOX_EDITED, "edit", before, after)
        return after

    def mark_box_uncertain(self, detection_id: str, notes: Optional[str] = None) -> BoxVerification:
        """Flag a box for a second human opinion. Links are kept."""
        self._check_box(detection_id)
        before = self.state.boxes.get(detection_id)
        after = BoxVerification(
            detection_id=detection_id,
            status=VerificationStatus.NEEDS_REVIEW,
            notes=notes,
            linked_part_index=before.linked_part_index if before else None,
            edited_values=before.edited_values if before else None,
            verified_at=self.clock(),
            verified_by=self.actor,
        )
        self._commit_box(AuditEventType.BOX_MARKED_UNCERTAIN, "mark_uncertain", before, after)
        return after

    def link_box_to_part(self, detection_id: str, part_index: Optional[int]) -> BoxVerification:
        """
        Set or clear the part a box is evidence for.

        The box id is removed from its previous part's evidence set and
        added to the new part's set in the same operation.
        """
        self._check_box(detection_id)
        if part_index is not None:
            self._check_part(part_index)

        before = self.state.boxes.get(detection_id)
        current = before or BoxVerification(detection_id=detection_id)
        previous_part = current.linked_part_index
        after = replace(current, linked_part_index=part_index)

        related: list[VerificationSnapshot] = []
        if previous_part is not None and previous_part != part_index:
            related.append(self._detach_boxes_from_part([detection_id], previous_part))
        if part_index is not None:
            part_before = self.state.parts.get(part_index)
            part_current = part_before or PartVerification(part_index=part_index)
            if detection_id not in part_current.linked_box_ids:
                related.append(self._stage_part(
                    "link",
                    part_before,
                    replace(part_current, linked_box_ids=part_current.linked_box_ids | {detection_id}),
                ))

        action = "link" if part_index is not None else "unlink"
        self._commit_box(AuditEventType.BOX_LINKED, action, before, after, related)
        return after

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def effective_part(self, part_index: int, parts: Sequence[DamagedPart]) -> DamagedPart:
        """The AI part with the adjuster's edit overlay applied."""
        original = parts[part_index]
        edits = self.part(part_index).edited_values
        if edits is None:
            return original
        return replace(
            original,
            part=edits.part if edits.part is not None else original.part,
            damage_type=edits.damage_type if edits.damage_type is not None else original.damage_type,
            severity=edits.severity if edits.severity is not None else original.severity,
        )

    def effective_detection(self, detection: Detection) -> Detection:
        """The detection with the adjuster's edit overlay applied."""
        edits = self.box(detection.id).edited_values
        if edits is None:
            return detection
        return replace(
            detection,
            label=DamageLabel(edits.label) if edits.label is not None else detection.label,
            part=edits.part if edits.part is not None else detection.part,
            severity=SeverityLevel(edits.severity) if edits.severity is not None else detection.severity,
            confidence=edits.confidence if edits.confidence is not None else detection.confidence,
        )

    def summary(self) -> dict[str, dict[str, int]]:
        """Counts of records per status for parts and boxes."""
        part_keys: Iterable[Any]
        if self.part_count is not None:
            part_keys = range(self.part_count)
        else:
            part_keys = self.state.parts.keys()
        box_keys: Iterable[str] = (
            self.detection_ids if self.detection_ids is not None else self.state.boxes.keys()
        )

        def count(statuses: Iterable[VerificationStatus]) -> dict[str, int]:
            counts = {s.value: 0 for s in VerificationStatus}
            for status in statuses:
                counts[status.value] += 1
            return counts

        return {
            "parts": count(self.part(i).status for i in part_keys),
            "boxes": count(self.box(d).status for d in box_keys),
        }

    # -------------------------------------------------------------------------
    # Commit + audit
    # -------------------------------------------------------------------------

    def _stage_part(
        self,
        action: str,
        before: Optional[PartVerification],
        after: PartVerification,
    ) -> VerificationSnapshot:
        return VerificationSnapshot(
            entity_type="part",
            entity_id=after.part_index,
            action=action,
            before=before.to_dict() if before else None,
            after=after.to_dict(),
        )

    def _stage_box(
        self,
        action: str,
        before: Optional[BoxVerification],
        after: BoxVerification,
    ) -> VerificationSnapshot:
        return VerificationSnapshot(
            entity_type="box",
            entity_id=after.detection_id,
            action=action,
            before=before.to_dict() if before else None,
            after=after.to_dict(),
        )

    def _commit_part(
        self,
        event_type: AuditEventType,
        action: str,
        before: Optional[PartVerification],
        after: PartVerification,
        related: Sequence[VerificationSnapshot] = (),
    ) -> None:
        snapshot = self._stage_part(action, before, after)
        self._apply(snapshot, related)
        self._emit(event_type, snapshot, related)

    def _commit_box(
        self,
        event_type: AuditEventType,
        action: str,
        before: Optional[BoxVerification],
        after: BoxVerification,
        related: Sequence[VerificationSnapshot] = (),
    ) -> None:
        snapshot = self._stage_box(action, before, after)
        self._apply(snapshot, related)
        self._emit(event_type, snapshot, related)

    def _apply(
        self,
        snapshot: VerificationSnapshot,
        related: Sequence[VerificationSnapshot],
    ) -> None:
        # All records of one action land together; nothing is applied if
        # staging above raised.
        now = self.clock()
        for item in (snapshot, *related):
            _apply_snapshot(self.state, item.entity_type, item.after, self.actor, now)

    def _emit(
        self,
        event_type: AuditEventType,
        snapshot: VerificationSnapshot,
        related: Sequence[VerificationSnapshot],
    ) -> None:
        if self.audit_sink is None:
            return
        if related:
            snapshot = VerificationSnapshot(
                entity_type=snapshot.entity_type,
                entity_id=snapshot.entity_id,
                action=snapshot.action,
                before=snapshot.before,
                after=snapshot.after,
                related=tuple(related),
            )
        try:
            self.audit_sink(event_type, snapshot, self.actor)
        except Exception:
            # The state change stands; audit failures are reported, not rolled back
            logger.exception(
                "Failed to record %s audit event for claim %s", event_type.value, self.claim_id,
            )


# =============================================================================
# Replay
# =============================================================================

def _apply_snapshot(
    state: VerificationState,
    entity_type: str,
    after: dict[str, Any],
    actor: Optional[str],
    at: Optional[datetime] = None,
) -> None:
    if entity_type == "part":
        state.put_part(PartVerification.from_dict(after), actor, at)
    elif entity_type == "box":
        state.put_box(BoxVerification.from_dict(after), actor, at)
    else:
        raise VerificationError(message=f"Unknown verification entity type '{entity_type}'")


VERIFICATION_EVENT_TYPES = frozenset({
    AuditEventType.PART_VERIFIED.value,
    AuditEventType.PART_REJECTED.value,
    AuditEventType.PART_EDITED.value,
    AuditEventType.EVIDENCE_LINKED.value,
    AuditEventType.BOX_VERIFIED.value,
    AuditEventType.BOX_REJECTED.value,
    AuditEventType.BOX_EDITED.value,
    AuditEventType.BOX_MARKED_UNCERTAIN.value,
    AuditEventType.BOX_LINKED.value,
})


def replay_verification_state(
    events: Iterable[Union[AuditEvent, dict[str, Any]]],
) -> VerificationState:
    """
    Rebuild a VerificationState from verification audit events.

    Events are applied in the given order (oldest first); non-verification
    events are skipped.
    """
    state = VerificationState()
    for event in events:
        if isinstance(event, dict):
            event = AuditEvent.from_dict(event)
        if event.event_type not in VERIFICATION_EVENT_TYPES:
            continue
        payload = event.payload
        _apply_snapshot(state, payload["type"], payload["after"], event.actor_id, event.timestamp)
        for item in payload.get("related") or ():
            _apply_snapshot(state, item["type"], item["after"], event.actor_id, event.timestamp)
    return state

"""
ClaimRouter Audit Logger

Append-only, per-claim hash-chained audit log.

Each event stores prev_event_hash (the hash of the claim's previous event)
and event_hash = SHA-256(prev_event_hash + canonical_json(record)).
Editing or deleting a single stored event breaks verification from that
point on. Rewriting the whole chain consistently is not detectable.

Key features:
- log_event(): build, hash and persist one event
- verify_chain(): recompute every link, report the first break
- export_claim(): claim snapshot + ordered events, itself audited

Write failures are logged and reported as None unless the logger is
strict; the caller's primary change is never rolled back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from ..canon import chain_hash, to_json_compatible
from ..exceptions import AuditWriteError
from ..models import ActorType, AuditEvent, AuditEventType, ModelInfo
from ..store import AUDIT_TABLE, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ChainVerificationResult:
    """Result of verifying one claim's audit chain."""
    is_valid: bool
    events_checked: int
    claim_id: Optional[str] = None
    first_broken_index: Optional[int] = None
    errors: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_valid

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "events_checked": self.events_checked,
            "claim_id": self.claim_id,
            "first_broken_index": self.first_broken_index,
            "errors": list(self.errors),
        }


def _record_without_hash(row: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in row.items() if k != "event_hash"}


@dataclass
class AuditLogger:
    """
    Writes and reads audit events through a RecordStore.

    Usage:
        audit = AuditLogger(store)
        audit.log_event(
            AuditEventType.CLAIM_CREATED,
            ActorType.CLAIMANT,
            claim_id=claim.id,
            snapshots={"after_json": claim.to_dict()},
        )
        assert audit.verify_chain(claim.id)
    """

    store: RecordStore
    chain: bool = True
    strict: bool = False

    def log_event(
        self,
        event_type: Union[AuditEventType, str],
        actor_type: Union[ActorType, str],
        claim_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        model: Optional[ModelInfo] = None,
        metrics: Optional[dict[str, Any]] = None,
        decision: Optional[dict[str, Any]] = None,
        snapshots: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEvent]:
        """
        Append one event to the log.

        Returns:
            The stored event, or None if the write failed (non-strict mode)

        Raises:
            AuditWriteError: If the write failed and strict is set
        """
        event_value = event_type.value if isinstance(event_type, AuditEventType) else str(event_type)
        actor_value = actor_type.value if isinstance(actor_type, ActorType) else str(actor_type)
        try:
            event = AuditEvent(
                event_type=event_value,
                actor_type=actor_value,
                claim_id=claim_id,
                actor_id=actor_id,
                model=model,
                metrics=to_json_compatible(metrics) if metrics is not None else None,
                decision=to_json_compatible(decision) if decision is not None else None,
                snapshots=to_json_compatible(snapshots) if snapshots is not None else None,
                payload=to_json_compatible(payload or {}),
            )
            if self.chain:
                event.prev_event_hash = self._last_hash(claim_id)
                event.event_hash = chain_hash(event.prev_event_hash, event.hashable_record())
            self.store.insert(AUDIT_TABLE, event.to_dict())
        except Exception as e:
            if self.strict:
                raise AuditWriteError(
                    message=f"Failed to write audit event {event_value}: {e}",
                    claim_id=claim_id,
                ) from e
            logger.error(
                "Failed to write audit event %s for claim %s: %s", event_value, claim_id, e,
            )
            return None

        logger.debug("Audit event %s recorded for claim %s", event_value, claim_id)
        return event

    def _last_hash(self, claim_id: Optional[str]) -> Optional[str]:
        rows = self.store.select(AUDIT_TABLE, claim_id=claim_id)
        if not rows:
            return None
        return rows[-1].get("event_hash")

    def events_for_claim(self, claim_id: Optional[str]) -> list[AuditEvent]:
        """All events for a claim, oldest first."""
        return [AuditEvent.from_dict(row) for row in self.store.select(AUDIT_TABLE, claim_id=claim_id)]

    def verify_chain(self, claim_id: Optional[str]) -> ChainVerificationResult:
        """
        Recompute the hash chain for a claim.

        Checks, for each event in order:
        1. prev_event_hash equals the previous event's event_hash
        2. event_hash equals SHA-256(prev_event_hash + record)
        """
        rows = self.store.select(AUDIT_TABLE, claim_id=claim_id)
        result = ChainVerificationResult(is_valid=True, events_checked=0, claim_id=claim_id)

        expected_prev: Optional[str] = None
        for i, row in enumerate(rows):
            result.events_checked = i + 1
            if row.get("prev_event_hash") != expected_prev:
                result.errors.append(f"Event {i} ({row.get('id')}): prev_event_hash does not match")
            recomputed = chain_hash(row.get("prev_event_hash"), _record_without_hash(row))
            if row.get("event_hash") != recomputed:
                result.errors.append(f"Event {i} ({row.get('id')}): event_hash does not match record")
            if result.errors:
                result.is_valid = False
                result.first_broken_index = i
                logger.warning(
                    "Audit chain for claim %s broken at event %d", claim_id, i,
                )
                break
            expected_prev = row.get("event_hash")

        return result

    def export_claim(
        self,
        claim_id: str,
        exported_by: Optional[str] = None,
        claim_snapshot: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Export a claim's audit trail.

        The export itself is recorded as an audit_exported event after the
        events are read, so it is not part of the returned list.
        """
        events = self.events_for_claim(claim_id)
        exported_at = datetime.now(timezone.utc)
        export = {
            "claim_id": claim_id,
            "exported_at": exported_at.isoformat(),
            "exported_by": exported_by,
            "claim_snapshot": claim_snapshot,
            "audit_events": [e.to_dict() for e in events],
        }
        self.log_event(
            AuditEventType.AUDIT_EXPORTED,
            ActorType.ADJUSTER,
            claim_id=claim_id,
            actor_id=exported_by,
            payload={"event_count": len(events)},
        )
        return export

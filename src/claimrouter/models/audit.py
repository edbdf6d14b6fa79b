"""
ClaimRouter Audit Models

Append-only audit events recorded for every claim decision and
verification action.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4


@dataclass(frozen=True)
class ModelInfo:
    """Which AI model produced an audited result."""
    provider: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"provider": self.provider, "name": self.name, "version": self.version}


@dataclass
class AuditEvent:
    """
    One audit log record.

    Attributes:
        id: Unique identifier
        claim_id: Associated claim (None for global events like controls)
        timestamp: When the event happened (UTC)
        event_type: AuditEventType value or free-form string
        actor_type: ActorType value
        actor_id: Who acted
        model: AI model provenance, for agent events
        metrics: Numeric measurements (confidence, severity, ...)
        decision: Routing/decision details
        snapshots: {"before_json": ..., "after_json": ...}
        payload: Event-specific details
        prev_event_hash: Hash of the previous event for the same claim
        event_hash: SHA-256(prev_event_hash + canonical record)
    """
    event_type: str
    actor_type: str
    claim_id: Optional[str] = None
    actor_id: Optional[str] = None
    model: Optional[ModelInfo] = None
    metrics: Optional[dict[str, Any]] = None
    decision: Optional[dict[str, Any]] = None
    snapshots: Optional[dict[str, Any]] = None
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    prev_event_hash: Optional[str] = None
    event_hash: Optional[str] = None

    def hashable_record(self) -> dict[str, Any]:
        """The fields covered by event_hash (everything but event_hash)."""
        model = self.model or ModelInfo()
        return {
            "id": self.id,
            "claim_id": self.claim_id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "actor_type": self.actor_type,
            "actor_id": self.actor_id,
            "model_provider": model.provider,
            "model_name": model.name,
            "model_version": model.version,
            "metrics": self.metrics,
            "decision": self.decision,
            "snapshots": self.snapshots,
            "payload": self.payload,
            "prev_event_hash": self.prev_event_hash,
        }

    def to_dict(self) -> dict[str, Any]:
        record = self.hashable_record()
        record["event_hash"] = self.event_hash
        return record

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEvent:
        model = None
        if any(data.get(k) for k in ("model_provider", "model_name", "model_version")):
            model = ModelInfo(
                provider=data.get("model_provider"),
                name=data.get("model_name"),
                version=data.get("model_version"),
            )
        return cls(
            id=data["id"],
            claim_id=data.get("claim_id"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=data["event_type"],
            actor_type=data["actor_type"],
            actor_id=data.get("actor_id"),
            model=model,
            metrics=data.get("metrics"),
            decision=data.get("decision"),
            snapshots=data.get("snapshots"),
            payload=data.get("payload") or {},
            prev_event_hash=data.get("prev_event_hash"),
            event_hash=data.get("event_hash"),
        )


@dataclass(frozen=True)
class VerificationSnapshot:
    """
    Before/after pair emitted by every verification action.

    before is None when the entity had no record yet (implicit proposed).
    related holds the other records changed by the same action, e.g. the
    box side of a part evidence link.
    """
    entity_type: str  # "part" | "box"
    entity_id: Any    # part_index or detection_id
    action: str
    before: Optional[dict[str, Any]]
    after: dict[str, Any]
    related: tuple[VerificationSnapshot, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.entity_type,
            "id": self.entity_id,
            "action": self.action,
            "before": self.before,
            "after": self.after,
        }
        if self.related:
            payload["related"] = [item.to_payload() for item in self.related]
        return payload

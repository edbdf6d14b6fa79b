"""
Tests for the hash-chained audit logger.

Tests cover:
- Chain construction per claim
- Tamper detection on edit, delete and reorder
- Non-strict and strict write failures
- Export
"""
import pytest

from claimrouter.audit import AuditLogger
from claimrouter.canon import chain_hash
from claimrouter.exceptions import AuditWriteError
from claimrouter.models import ActorType, AuditEventType, ModelInfo
from claimrouter.store import AUDIT_TABLE, InMemoryRecordStore


class FailingStore(InMemoryRecordStore):
    """Store whose inserts always fail."""

    def insert(self, table, row):
        raise OSError("disk full")


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def audit(store):
    return AuditLogger(store)


def log_three(audit, claim_id="CLM-001"):
    audit.log_event(AuditEventType.CLAIM_CREATED, ActorType.CLAIMANT, claim_id=claim_id)
    audit.log_event(
        AuditEventType.AI_DAMAGE_COMPLETE,
        ActorType.AI_DAMAGE,
        claim_id=claim_id,
        model=ModelInfo(provider="gateway", name="damage-model"),
        metrics={"overall_severity": 3, "overall_confidence": 90.5},
    )
    audit.log_event(
        AuditEventType.ROUTING_DECISION,
        ActorType.SYSTEM,
        claim_id=claim_id,
        decision={"recommendation": "APPROVE"},
    )


class TestChain:
    """Event linkage and verification."""

    def test_first_event_has_no_prev(self, audit):
        event = audit.log_event(AuditEventType.CLAIM_CREATED, ActorType.CLAIMANT, claim_id="CLM-001")

        assert event.prev_event_hash is None
        assert event.event_hash == chain_hash(None, event.hashable_record())

    def test_events_link_to_previous(self, audit):
        log_three(audit)

        events = audit.events_for_claim("CLM-001")
        assert len(events) == 3
        assert events[1].prev_event_hash == events[0].event_hash
        assert events[2].prev_event_hash == events[1].event_hash

    def test_chains_are_per_claim(self, audit):
        log_three(audit, "CLM-001")
        other = audit.log_event(AuditEventType.CLAIM_CREATED, ActorType.CLAIMANT, claim_id="CLM-002")

        assert other.prev_event_hash is None

    def test_model_round_trips(self, audit):
        log_three(audit)

        event = audit.events_for_claim("CLM-001")[1]
        assert event.model == ModelInfo(provider="gateway", name="damage-model")
        assert event.metrics["overall_confidence"] == 90.5

    def test_verify_intact_chain(self, audit):
        log_three(audit)

        result = audit.verify_chain("CLM-001")

        assert result
        assert result.events_checked == 3
        assert result.first_broken_index is None

    def test_verify_empty_chain(self, audit):
        assert audit.verify_chain("CLM-404").is_valid

    def test_unchained_logger(self, store):
        audit = AuditLogger(store, chain=False)
        event = audit.log_event(AuditEventType.CLAIM_CREATED, ActorType.CLAIMANT, claim_id="CLM-001")

        assert event.event_hash is None


class TestTamperDetection:
    """Modifying stored rows breaks verification."""

    def test_edited_payload_detected(self, audit, store):
        log_three(audit)
        row = store.select(AUDIT_TABLE, claim_id="CLM-001")[1]
        store.update(AUDIT_TABLE, row["id"], {"metrics": {"overall_severity": 1}})

        result = audit.verify_chain("CLM-001")

        assert not result
        assert result.first_broken_index == 1
        assert "event_hash" in result.errors[0]

    def test_deleted_event_detected(self, audit, store):
        log_three(audit)
        row = store.select(AUDIT_TABLE, claim_id="CLM-001")[1]
        del store.tables[AUDIT_TABLE][row["id"]]

        result = audit.verify_chain("CLM-001")

        assert not result.is_valid
        assert result.first_broken_index == 1
        assert "prev_event_hash" in result.errors[0]

    def test_rehashed_single_event_detected(self, audit, store):
        log_three(audit)
        rows = store.select(AUDIT_TABLE, claim_id="CLM-001")
        tampered = dict(rows[0], actor_id="someone-else")
        tampered.pop("event_hash")
        store.update(AUDIT_TABLE, rows[0]["id"], {
            "actor_id": "someone-else",
            "event_hash": chain_hash(None, tampered),
        })

        result = audit.verify_chain("CLM-001")

        assert result.first_broken_index == 1

    def test_result_to_dict(self, audit):
        log_three(audit)

        assert audit.verify_chain("CLM-001").to_dict() == {
            "is_valid": True,
            "events_checked": 3,
            "claim_id": "CLM-001",
            "first_broken_index": None,
            "errors": [],
        }


class TestFailures:
    """Write failures never propagate unless strict."""

    def test_non_strict_returns_none(self, caplog):
        audit = AuditLogger(FailingStore())

        with caplog.at_level("ERROR", logger="claimrouter.audit.logger"):
            result = audit.log_event(AuditEventType.CLAIM_CREATED, ActorType.CLAIMANT, claim_id="CLM-001")

        assert result is None
        assert "Failed to write audit event claim_created" in caplog.text

    def test_strict_raises(self):
        audit = AuditLogger(FailingStore(), strict=True)

        with pytest.raises(AuditWriteError) as exc_info:
            audit.log_event(AuditEventType.CLAIM_CREATED, ActorType.CLAIMANT, claim_id="CLM-001")

        assert exc_info.value.claim_id == "CLM-001"


class TestExport:
    """Audit export."""

    def test_export_contains_events_and_is_audited(self, audit):
        log_three(audit)

        export = audit.export_claim("CLM-001", exported_by="adj-1", claim_snapshot={"id": "CLM-001"})

        assert len(export["audit_events"]) == 3
        assert export["claim_snapshot"] == {"id": "CLM-001"}
        events = audit.events_for_claim("CLM-001")
        assert events[-1].event_type == AuditEventType.AUDIT_EXPORTED.value
        assert events[-1].payload == {"event_count": 3}
        assert audit.verify_chain("CLM-001")

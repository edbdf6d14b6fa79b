"""
ClaimRouter Record Store

Persistence boundary for claims and audit events.

The store is pluggable: the workflow only needs insert / update / get /
select over JSON-compatible rows keyed by "id". InMemoryRecordStore backs
the API and the tests.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable


CLAIMS_TABLE = "claims"
AUDIT_TABLE = "audit_events"


@runtime_checkable
class RecordStore(Protocol):
    """
    Protocol for row stores.

    Rows are plain dicts with an "id" key. Implementations must return
    copies so callers cannot mutate stored rows in place.
    """

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        ...

    def update(self, table: str, row_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Merge changes into an existing row. Returns None if the row is missing."""
        ...

    def get(self, table: str, row_id: str) -> Optional[dict[str, Any]]:
        ...

    def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        """Rows whose fields equal every filter value, in insertion order."""
        ...


@dataclass
class InMemoryRecordStore:
    """
    Dict-backed RecordStore.

    Usage:
        store = InMemoryRecordStore()
        store.insert("claims", claim.to_dict())
        rows = store.select("audit_events", claim_id=claim.id)
    """

    tables: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)

    def _table(self, table: str) -> dict[str, dict[str, Any]]:
        return self.tables.setdefault(table, {})

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        if "id" not in row:
            raise ValueError(f"Row for table '{table}' has no id")
        rows = self._table(table)
        if row["id"] in rows:
            raise ValueError(f"Duplicate id '{row['id']}' in table '{table}'")
        rows[row["id"]] = copy.deepcopy(row)
        return copy.deepcopy(row)

    def update(self, table: str, row_id: str, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        rows = self._table(table)
        existing = rows.get(row_id)
        if existing is None:
            return None
        existing.update(copy.deepcopy(changes))
        return copy.deepcopy(existing)

    def get(self, table: str, row_id: str) -> Optional[dict[str, Any]]:
        row = self._table(table).get(row_id)
        return copy.deepcopy(row) if row is not None else None

    def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(row)
            for row in self._table(table).values()
            if all(row.get(k) == v for k, v in filters.items())
        ]

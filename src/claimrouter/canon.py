"""
Canonical JSON for the audit chain.

Audit rows are hashed as canonical JSON (sorted keys, no whitespace, UTF-8)
so that re-reading a stored row and hashing it again gives the same digest.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


def _encode(obj: Any) -> Any:
    """Fallback encoder for model values that json cannot handle."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if is_dataclass(obj) and not isinstance(obj, type):
        to_dict = getattr(obj, "to_dict", None)
        return to_dict() if callable(to_dict) else asdict(obj)
    raise TypeError(f"Cannot encode {type(obj).__name__} as canonical JSON")


def canonical_json(obj: Any) -> str:
    """
    Deterministic JSON string.

    Example:
        >>> canonical_json({"b": 1, "a": 2})
        '{"a":2,"b":1}'
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        default=_encode,
        ensure_ascii=False,
    )


def to_json_compatible(obj: Any) -> Any:
    """Detached copy of obj made only of dicts, lists and scalars."""
    return json.loads(canonical_json(obj))


def chain_hash(prev_hash: Optional[str], record: Any) -> str:
    """
    SHA-256 over prev_hash + canonical_json(record).

    The first event of a chain has no predecessor; an empty string is used.
    """
    payload = (prev_hash or "") + canonical_json(record)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()

"""
ClaimRouter Controls

YAML controls packs, environment overrides and the live controls store.

Usage:
    from claimrouter.controls import ControlsStore, load_controls

    store = ControlsStore(load_controls("packs/strict.yaml"))
"""
from __future__ import annotations

from .loader import (
    DEFAULT_CONTROLS_PATH,
    ControlsStore,
    env_overrides,
    load_controls,
    merge_controls,
)
from .schema import (
    SCHEMA_VERSION,
    ControlsPackSchema,
    RoutingControlsSchema,
    check_schema_version,
    validate_controls,
    validate_controls_pack,
)

__all__ = [
    # Loader
    "DEFAULT_CONTROLS_PATH",
    "ControlsStore",
    "env_overrides",
    "load_controls",
    "merge_controls",
    # Schema
    "SCHEMA_VERSION",
    "ControlsPackSchema",
    "RoutingControlsSchema",
    "check_schema_version",
    "validate_controls",
    "validate_controls_pack",
]

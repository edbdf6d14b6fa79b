"""
ClaimRouter Controls Loader

Loads routing controls from a YAML pack, applies environment overrides and
keeps the live, editable copy used by the routing engine.

Precedence (lowest to highest):
1. RoutingControls defaults
2. Pack file (the bundled default.yaml unless a path is given)
3. CLAIMROUTER_<FIELD> environment variables
4. Runtime updates through ControlsStore.update()
"""
from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ..exceptions import ControlsLoadError, ControlsValidationError
from ..models import (
    DEFAULT_CONTROLS,
    ActorType,
    AuditEventType,
    RoutingControls,
)
from .schema import SCHEMA_VERSION, check_schema_version, validate_controls, validate_controls_pack

logger = logging.getLogger(__name__)

# controls/ directory at the repository root
DEFAULT_CONTROLS_PATH = Path(__file__).resolve().parent / "default.yaml"

ENV_PREFIX = "CLAIMROUTER_"


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Collect CLAIMROUTER_<FIELD> overrides for known control fields."""
    environ = os.environ if environ is None else environ
    overrides: dict[str, str] = {}
    for name in RoutingControls.field_names():
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def _validated(data: dict[str, Any], source: str) -> RoutingControls:
    try:
        schema = validate_controls(data)
    except ValidationError as e:
        raise ControlsValidationError(
            message=f"Controls validation failed: {e.error_count()} errors",
            details={"errors": e.errors(include_url=False, include_context=False), "source": source},
        ) from e
    controls = RoutingControls(**schema.model_dump())
    if controls.payout_cap_senior < controls.payout_cap_auto:
        logger.warning(
            "payout_cap_senior (%s) is below payout_cap_auto (%s)",
            controls.payout_cap_senior,
            controls.payout_cap_auto,
        )
    return controls


def merge_controls(
    base: RoutingControls, changes: Mapping[str, Any], source: str = "update",
) -> RoutingControls:
    """
    Apply changes on top of base and validate the result.

    Raises:
        ControlsValidationError: If a key is unknown or a value out of range
    """
    unknown = sorted(set(changes) - set(RoutingControls.field_names()))
    if unknown:
        raise ControlsValidationError(
            message=f"Unknown control(s): {', '.join(unknown)}",
            details={"unknown": unknown, "source": source},
        )
    return _validated({**base.to_dict(), **changes}, source)


def load_controls(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RoutingControls:
    """
    Load routing controls from a pack file plus environment overrides.

    When no path is given and the bundled default pack is not present,
    the built-in defaults are used.

    Raises:
        ControlsLoadError: If the file cannot be read or parsed
        ControlsValidationError: If values are out of range
    """
    if path is None and not DEFAULT_CONTROLS_PATH.exists():
        logger.info("No controls pack found, using built-in defaults")
        base = DEFAULT_CONTROLS.to_dict()
        source = "defaults"
    else:
        pack_path = Path(path) if path is not None else DEFAULT_CONTROLS_PATH
        source = str(pack_path)
        try:
            with open(pack_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ControlsLoadError(
                message=f"Failed to load controls pack: {e}",
                details={"path": source, "error": str(e)},
            ) from e

        if not isinstance(data, dict):
            raise ControlsLoadError(
                message="Controls pack must be a mapping",
                details={"path": source},
            )
        if not check_schema_version(data):
            raise ControlsValidationError(
                message=(
                    f"Schema version mismatch: pack has {data.get('schema_version')}, "
                    f"expected {SCHEMA_VERSION}"
                ),
                details={"path": source},
            )
        try:
            pack = validate_controls_pack(data)
        except ValidationError as e:
            raise ControlsValidationError(
                message=f"Controls pack validation failed: {e.error_count()} errors",
                details={"errors": e.errors(include_url=False, include_context=False), "path": source},
            ) from e
        base = pack.controls.model_dump()
        logger.info("Loaded controls pack '%s' from %s", pack.name, source)

    overrides = env_overrides(environ)
    if overrides:
        logger.info("Applying controls overrides from environment: %s", sorted(overrides))
    return _validated({**base, **overrides}, source)


class ControlsStore:
    """
    Live routing controls, editable at runtime.

    Every routing decision reads a copy through get() and freezes it into
    its result, so later edits never change past decisions.

    Usage:
        store = ControlsStore(load_controls())
        store.update("payout_cap_auto", 2000, actor="manager-1")
        engine = RoutingEngine(controls_provider=store.get)
    """

    def __init__(
        self,
        defaults: RoutingControls = DEFAULT_CONTROLS,
        audit_logger: Optional[Any] = None,
    ):
        self._defaults = defaults
        self._current = defaults
        self.audit_logger = audit_logger

    def get(self) -> RoutingControls:
        return replace(self._current)

    @property
    def defaults(self) -> RoutingControls:
        return self._defaults

    def update(self, key: str, value: Any, actor: Optional[str] = None) -> RoutingControls:
        """
        Change one control value.

        Raises:
            ControlsValidationError: If key is unknown or value out of range
        """
        return self.update_many({key: value}, actor=actor)

    def update_many(self, changes: Mapping[str, Any], actor: Optional[str] = None) -> RoutingControls:
        before = self._current
        after = merge_controls(before, changes)
        self._current = after
        self._record(before, after, actor, action="update")
        return self.get()

    def reset_to_defaults(self, actor: Optional[str] = None) -> RoutingControls:
        before = self._current
        self._current = self._defaults
        self._record(before, self._defaults, actor, action="reset")
        return self.get()

    def _record(
        self,
        before: RoutingControls,
        after: RoutingControls,
        actor: Optional[str],
        action: str,
    ) -> None:
        changed = sorted(k for k in after.field_names() if getattr(before, k) != getattr(after, k))
        logger.info("Controls %s by %s: %s", action, actor or "unknown", changed)
        if self.audit_logger is None:
            return
        self.audit_logger.log_event(
            AuditEventType.CONTROLS_UPDATED,
            ActorType.MANAGER,
            actor_id=actor,
            snapshots={"before_json": before.to_dict(), "after_json": after.to_dict()},
            payload={"action": action, "changed": changed},
        )

"""
Configuration Loader (``docflow_config.loader``).

Responsibility
--------------
Loads individual YAML fragment files and parses them into typed
``docflow_config.schema`` dataclass instances.  Build/test tooling only;
runtime code obtains configuration through
``docflow_config.get_active_config()``.

Invariants enforced
-------------------
* No silent defaults for required fields: a missing key raises
  ``KeyError`` naming it.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from docflow_config.schema import (
    DatabaseSettings,
    EngineSettings,
    GuardDef,
    LoggingSettings,
    NotificationSettings,
    RoleDef,
    TransitionDef,
    WorkflowDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_role(data: dict[str, Any] | str) -> RoleDef:
    """Parse a RoleDef from a mapping or a bare name."""
    if isinstance(data, str):
        return RoleDef(name=data)
    return RoleDef(name=data["name"], description=data.get("description", ""))


def parse_guard(data: dict[str, Any] | str) -> GuardDef:
    """Parse a GuardDef from a mapping or a bare name."""
    if isinstance(data, str):
        return GuardDef(name=data)
    return GuardDef(name=data["name"], description=data.get("description", ""))


def parse_transition(data: dict[str, Any]) -> TransitionDef:
    """
    Parse one transition.

    ``from`` may be a single state or a list; a list expands into one
    TransitionDef per source state (see ``parse_transitions``).
    """
    return TransitionDef(
        from_state=str(data["from"]),
        to_state=str(data["to"]),
        roles=_as_tuple(data["roles"]),
        guard=data.get("guard"),
        action=data.get("action", ""),
    )


def parse_transitions(items: list[dict[str, Any]]) -> tuple[TransitionDef, ...]:
    """Parse a transitions list, expanding multi-source ``from`` entries."""
    parsed: list[TransitionDef] = []
    for item in items:
        for source in _as_tuple(item["from"]):
            parsed.append(parse_transition({**item, "from": source}))
    return tuple(parsed)


def parse_workflow(data: dict[str, Any], source_file: str = "") -> WorkflowDef:
    """Parse a WorkflowDef from the ``workflow`` mapping of a fragment."""
    return WorkflowDef(
        document_type=data["document_type"],
        description=data.get("description", ""),
        initial_state=data["initial_state"],
        states=_as_tuple(data["states"]),
        terminal_states=_as_tuple(data.get("terminal_states")),
        transitions=parse_transitions(data.get("transitions", [])),
        source_file=source_file,
    )


def parse_engine_settings(data: dict[str, Any]) -> EngineSettings:
    """Parse engine.yaml.  Every section and key is optional."""
    db = data.get("database", {}) or {}
    log = data.get("logging", {}) or {}
    notify = data.get("notifications", {}) or {}
    defaults = DatabaseSettings()
    return EngineSettings(
        database=DatabaseSettings(
            url=db.get("url", defaults.url),
            echo=bool(db.get("echo", defaults.echo)),
            pool_size=int(db.get("pool_size", defaults.pool_size)),
            max_overflow=int(db.get("max_overflow", defaults.max_overflow)),
            create_schema=bool(db.get("create_schema", defaults.create_schema)),
        ),
        logging=LoggingSettings(level=str(log.get("level", "INFO")).upper()),
        notifications=NotificationSettings(
            mode=str(notify.get("mode", "log")),
            max_workers=int(notify.get("max_workers", 2)),
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

"""
docflow_config.assembler -- composes YAML fragments into one configuration set.

Responsibility:
    Humans edit small, well-owned YAML fragments (one workflow per file).
    This module composes them into a single ``WorkflowConfigurationSet``.
    Runtime only ever sees the compiled pack.

Fragment structure::

    sets/training-ops-v1/
    +-- root.yaml              # Identity, status, predecessor, roles, guards
    +-- engine.yaml            # Database, logging, notifications (optional)
    +-- workflows/             # One YAML per document type
    |   +-- vendor_invoice.yaml
    |   +-- ...
    +-- APPROVED_FINGERPRINT   # Optional pin (see integrity.py)

Invariants enforced:
    - ``root.yaml`` must exist and name a ``config_id``.
    - A deterministic SHA-256 checksum is computed over everything that
      was assembled.

Failure modes:
    - ``AssemblyError`` -- directory or root.yaml missing, mandatory field
      absent, unknown status value.
    - ``yaml.YAMLError`` (propagated from loader) -- invalid YAML syntax.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from docflow_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_engine_settings,
    parse_guard,
    parse_role,
    parse_workflow,
)
from docflow_config.schema import (
    ConfigStatus,
    EngineSettings,
    WorkflowConfigurationSet,
    WorkflowDef,
)
from docflow_kernel.exceptions import ConfigurationError


class AssemblyError(ConfigurationError):
    """Fragment directory missing, root.yaml absent, or a required field malformed."""

    code: str = "ASSEMBLY_FAILED"


def assemble_from_directory(fragment_dir: Path) -> WorkflowConfigurationSet:
    """Compose fragments from a directory into one configuration set.

    Raises:
        AssemblyError: If required fragments are missing or malformed.
    """
    if not fragment_dir.is_dir():
        raise AssemblyError(f"Fragment directory not found: {fragment_dir}")

    # 1. root.yaml (required)
    root_path = fragment_dir / "root.yaml"
    if not root_path.exists():
        raise AssemblyError(f"root.yaml not found in {fragment_dir}")
    root_data = load_yaml_file(root_path)
    if "config_id" not in root_data:
        raise AssemblyError(f"root.yaml in {fragment_dir} has no config_id")

    # 2. engine.yaml (optional)
    engine_path = fragment_dir / "engine.yaml"
    engine_data: dict[str, Any] = {}
    engine = EngineSettings()
    if engine_path.exists():
        engine_data = load_yaml_file(engine_path)
        engine = parse_engine_settings(engine_data)

    # 3. workflows/*.yaml
    workflows: list[WorkflowDef] = []
    workflow_data: list[dict[str, Any]] = []
    workflows_dir = fragment_dir / "workflows"
    if workflows_dir.is_dir():
        for workflow_file in sorted(workflows_dir.glob("*.yaml")):
            data = load_yaml_file(workflow_file)
            if "workflow" not in data:
                raise AssemblyError(f"{workflow_file.name} has no 'workflow' section")
            try:
                workflows.append(parse_workflow(data["workflow"], workflow_file.name))
            except KeyError as exc:
                raise AssemblyError(
                    f"{workflow_file.name}: missing required field {exc}"
                ) from exc
            workflow_data.append(data["workflow"])

    # 4. Root metadata
    try:
        status = ConfigStatus(root_data.get("status", "draft"))
    except ValueError as exc:
        raise AssemblyError(f"Unknown status in root.yaml: {root_data.get('status')!r}") from exc

    roles = tuple(parse_role(r) for r in root_data.get("roles", []))
    guards = tuple(parse_guard(g) for g in root_data.get("guards", []))

    # 5. Checksum over all assembled data
    checksum = compute_checksum(
        {
            "root": root_data,
            "engine": engine_data,
            "workflows": workflow_data,
        }
    )

    return WorkflowConfigurationSet(
        config_id=root_data["config_id"],
        version=int(root_data.get("version", 1)),
        checksum=checksum,
        status=status,
        workflows=tuple(workflows),
        roles=roles,
        guards=guards,
        engine=engine,
        description=root_data.get("description", ""),
        predecessor=root_data.get("predecessor"),
    )

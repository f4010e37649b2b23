"""
Configuration Compiler -- WorkflowConfigurationSet -> CompiledWorkflowPack.

The compiler turns the YAML-derived workflow definitions into kernel
``Workflow`` values and builds the ``TransitionTable``; table construction
is where per-workflow structural validation happens, so a pack exists
only for a configuration the kernel accepts.

Compilation fails with the kernel's ConfigurationError subclasses:
  - UnknownStateError             -- rule or terminal names an undeclared state
  - WorkflowDefinitionError       -- structural defect (no terminal, dead initial, ...)
  - DuplicateTransitionRuleError  -- same (from, to, role, guard) twice
  - AmbiguousTransitionRuleError  -- two rules on (from, to) share a role
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass

from docflow_config.schema import (
    ConfigStatus,
    EngineSettings,
    GuardDef,
    RoleDef,
    WorkflowConfigurationSet,
    WorkflowDef,
)
from docflow_kernel.domain.transition_table import TransitionTable
from docflow_kernel.domain.workflow import Guard, TransitionRule, Workflow


@dataclass(frozen=True)
class CompiledWorkflowPack:
    """Validated, frozen runtime artifact.

    Attributes:
        config_id: Source configuration identifier
        config_version: Source configuration version
        checksum: Matches the source configuration set
        status: Lifecycle status of the source set
        table: The validated transition table
        roles: Declared actor roles
        guards: Declared business guards
        engine: Database, logging and notification settings
        canonical_fingerprint: Deterministic hash of the workflow content
    """

    config_id: str
    config_version: int
    checksum: str
    status: ConfigStatus
    table: TransitionTable
    roles: tuple[RoleDef, ...]
    guards: tuple[GuardDef, ...]
    engine: EngineSettings
    canonical_fingerprint: str

    @property
    def document_types(self) -> tuple[str, ...]:
        return self.table.document_types


def build_workflow(defn: WorkflowDef, guards: dict[str, GuardDef]) -> Workflow:
    """Translate one WorkflowDef into the kernel's Workflow."""
    rules = []
    for t in defn.transitions:
        guard = None
        if t.guard is not None:
            guard_def = guards.get(t.guard)
            guard = Guard(
                name=t.guard,
                description=guard_def.description if guard_def else "",
            )
        rules.append(
            TransitionRule(
                from_state=t.from_state,
                to_state=t.to_state,
                allowed_roles=frozenset(t.roles),
                guard=guard,
                action=t.action,
            )
        )
    return Workflow(
        document_type=defn.document_type,
        description=defn.description,
        initial_state=defn.initial_state,
        states=defn.states,
        rules=tuple(rules),
        terminal_states=defn.terminal_states,
    )


def compile_workflow_pack(config: WorkflowConfigurationSet) -> CompiledWorkflowPack:
    """Compile a configuration set into a CompiledWorkflowPack.

    Raises:
        ConfigurationError: subclasses raised by TransitionTable validation.
    """
    guards = {g.name: g for g in config.guards}
    workflows = [build_workflow(defn, guards) for defn in config.workflows]
    table = TransitionTable(workflows)

    return CompiledWorkflowPack(
        config_id=config.config_id,
        config_version=config.version,
        checksum=config.checksum,
        status=config.status,
        table=table,
        roles=config.roles,
        guards=config.guards,
        engine=config.engine,
        canonical_fingerprint=compute_fingerprint(config),
    )


def compute_fingerprint(config: WorkflowConfigurationSet) -> str:
    """Deterministic fingerprint of identity and workflow content.

    Engine settings are excluded so a deployment can point the same
    approved workflows at a different database.
    """
    canonical = json.dumps(
        {
            "config_id": config.config_id,
            "version": config.version,
            "roles": sorted(r.name for r in config.roles),
            "guards": sorted(g.name for g in config.guards),
            "workflows": sorted(
                (
                    {
                        "document_type": wf.document_type,
                        "initial_state": wf.initial_state,
                        "states": sorted(wf.states),
                        "terminal_states": sorted(wf.terminal_states),
                        "transitions": sorted(
                            [t.from_state, t.to_state, sorted(t.roles), t.guard or ""]
                            for t in wf.transitions
                        ),
                    }
                    for wf in config.workflows
                ),
                key=lambda w: w["document_type"],
            ),
        },
        sort_keys=True,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()

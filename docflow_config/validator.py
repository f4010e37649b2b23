"""
Configuration Validator (``docflow_config.validator``).

Responsibility
--------------
Cross-fragment checks on an assembled ``WorkflowConfigurationSet`` before
it is compiled.  Structural checks inside a single workflow (declared
states, terminals, duplicate and ambiguous rules) belong to the kernel's
``TransitionTable`` and run during compilation.

Checks
------
Errors (block compilation):
* Document types are unique across fragments.
* Every role named by a transition is declared in root.yaml.
* Every guard named by a transition is declared in root.yaml.
* Notification mode is one of ``log``, ``async``, ``none``.

Warnings (review, do not block):
* Declared roles or guards never referenced by any transition.
* A set with no workflows.
* A set whose status is ``draft``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from docflow_config.schema import ConfigStatus, WorkflowConfigurationSet

NOTIFICATION_MODES = frozenset({"log", "async", "none"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: WorkflowConfigurationSet) -> ConfigValidationResult:
    """Validate a configuration set; never raises."""
    result = ConfigValidationResult()

    if not config.workflows:
        result.add_warning(f"Configuration '{config.config_id}' declares no workflows")

    if config.status == ConfigStatus.DRAFT:
        result.add_warning(f"Configuration '{config.config_id}' is still a draft")

    seen_types: dict[str, str] = {}
    for wf in config.workflows:
        if wf.document_type in seen_types:
            result.add_error(
                f"Document type '{wf.document_type}' defined in both "
                f"{seen_types[wf.document_type]} and {wf.source_file}"
            )
        else:
            seen_types[wf.document_type] = wf.source_file

    _validate_role_references(config, result)
    _validate_guard_references(config, result)

    mode = config.engine.notifications.mode
    if mode not in NOTIFICATION_MODES:
        result.add_error(
            f"Unknown notification mode '{mode}' "
            f"(expected one of {sorted(NOTIFICATION_MODES)})"
        )
    if config.engine.notifications.max_workers < 1:
        result.add_error("notifications.max_workers must be at least 1")

    return result


def _validate_role_references(
    config: WorkflowConfigurationSet, result: ConfigValidationResult,
) -> None:
    declared = {r.name for r in config.roles}
    used: set[str] = set()
    for wf in config.workflows:
        for t in wf.transitions:
            for role in t.roles:
                used.add(role)
                if role not in declared:
                    result.add_error(
                        f"{wf.document_type}: transition '{t.from_state}' -> "
                        f"'{t.to_state}' names undeclared role '{role}'"
                    )
    for role in sorted(declared - used):
        result.add_warning(f"Role '{role}' is declared but never used")


def _validate_guard_references(
    config: WorkflowConfigurationSet, result: ConfigValidationResult,
) -> None:
    declared = {g.name for g in config.guards}
    used: set[str] = set()
    for wf in config.workflows:
        for t in wf.transitions:
            if t.guard is None:
                continue
            used.add(t.guard)
            if t.guard not in declared:
                result.add_error(
                    f"{wf.document_type}: transition '{t.from_state}' -> "
                    f"'{t.to_state}' names undeclared guard '{t.guard}'"
                )
    for guard in sorted(declared - used):
        result.add_warning(f"Guard '{guard}' is declared but never used")

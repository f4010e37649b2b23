"""
Transition table (``docflow_kernel.domain.transition_table``).

Responsibility
--------------
Holds the validated, read-only set of workflows -- one per document
type -- and answers the lookups the guard evaluator and the engine need:
candidate rules for a state pair, initial state, terminal test.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Built once at startup (normally by
``docflow_config`` from YAML) and never mutated while requests run.

Invariants enforced
-------------------
* Every state referenced by a rule is declared in ``states``.
* ``initial_state`` is declared and has an outgoing rule unless it is
  itself terminal.
* Declared terminal states have no outgoing rules; at least one terminal
  state exists.
* Every rule names at least one role.
* No duplicate ``(from, to, role, guard)`` tuple (DuplicateTransitionRuleError).
* No two rules on the same ``(from, to)`` open to the same role
  (AmbiguousTransitionRuleError) so a request matches at most one rule.

Failure modes
-------------
All defects raise a ``ConfigurationError`` subclass from the constructor,
never at request time.
"""

from __future__ import annotations

from collections.abc import Iterable

from docflow_kernel.domain.workflow import TransitionRule, Workflow
from docflow_kernel.exceptions import (
    AmbiguousTransitionRuleError,
    DuplicateTransitionRuleError,
    UnknownDocumentTypeError,
    UnknownStateError,
    WorkflowDefinitionError,
)
from docflow_kernel.logging_config import get_logger

logger = get_logger("domain.transition_table")


class _CompiledWorkflow:
    """Index over one workflow's rules."""

    __slots__ = ("workflow", "states", "terminal", "by_pair", "by_source")

    def __init__(self, workflow: Workflow) -> None:
        self.workflow = workflow
        self.states = frozenset(workflow.states)
        self.by_pair: dict[tuple[str, str], tuple[TransitionRule, ...]] = {}
        self.by_source: dict[str, tuple[TransitionRule, ...]] = {}
        for rule in workflow.rules:
            pair = (rule.from_state, rule.to_state)
            self.by_pair[pair] = self.by_pair.get(pair, ()) + (rule,)
            self.by_source[rule.from_state] = (
                self.by_source.get(rule.from_state, ()) + (rule,)
            )
        self.terminal = frozenset(
            s for s in workflow.states if s not in self.by_source
        )


def validate_workflow(workflow: Workflow) -> None:
    """Check one workflow definition; raise on the first defect."""
    doc_type = workflow.document_type
    if not doc_type:
        raise WorkflowDefinitionError("<unnamed>", "document_type is empty")

    if len(set(workflow.states)) != len(workflow.states):
        raise WorkflowDefinitionError(doc_type, "states are not unique")

    declared = set(workflow.states)
    if workflow.initial_state not in declared:
        raise UnknownStateError(doc_type, workflow.initial_state)

    sources: set[str] = set()
    seen: set[tuple[str, str, str, str | None]] = set()
    roles_by_pair: dict[tuple[str, str], set[str]] = {}

    for rule in workflow.rules:
        for state in (rule.from_state, rule.to_state):
            if state not in declared:
                raise UnknownStateError(doc_type, state)
        if not rule.allowed_roles:
            raise WorkflowDefinitionError(
                doc_type,
                f"rule '{rule.from_state}' -> '{rule.to_state}' names no roles",
            )
        sources.add(rule.from_state)

        pair = (rule.from_state, rule.to_state)
        pair_roles = roles_by_pair.setdefault(pair, set())
        for role in sorted(rule.allowed_roles):
            key = (rule.from_state, rule.to_state, role, rule.guard_name)
            if key in seen:
                raise DuplicateTransitionRuleError(
                    doc_type, rule.from_state, rule.to_state, role, rule.guard_name,
                )
            seen.add(key)
            if role in pair_roles:
                raise AmbiguousTransitionRuleError(
                    doc_type, rule.from_state, rule.to_state, role,
                )
            pair_roles.add(role)

    for terminal in workflow.terminal_states:
        if terminal not in declared:
            raise UnknownStateError(doc_type, terminal)
        if terminal in sources:
            raise WorkflowDefinitionError(
                doc_type, f"terminal state '{terminal}' has outgoing rules",
            )

    if not declared - sources:
        raise WorkflowDefinitionError(doc_type, "no terminal state")

    # A rule-less workflow is a single terminal state; otherwise the
    # initial state must lead somewhere.
    if workflow.initial_state not in sources and workflow.rules:
        raise WorkflowDefinitionError(
            doc_type,
            f"initial state '{workflow.initial_state}' has no outgoing rule",
        )


class TransitionTable:
    """Validated, read-only registry of workflows keyed by document type.

    Contract:
        Construction validates every workflow (see module docstring).  After
        construction the table is immutable; lookups are pure.
    """

    def __init__(self, workflows: Iterable[Workflow]) -> None:
        compiled: dict[str, _CompiledWorkflow] = {}
        for workflow in workflows:
            if workflow.document_type in compiled:
                raise WorkflowDefinitionError(
                    workflow.document_type, "document type registered twice",
                )
            validate_workflow(workflow)
            compiled[workflow.document_type] = _CompiledWorkflow(workflow)
        self._workflows = compiled

        logger.info(
            "transition_table_loaded",
            extra={
                "document_types": sorted(compiled),
                "rule_count": sum(len(c.workflow.rules) for c in compiled.values()),
            },
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def document_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._workflows))

    def has_document_type(self, document_type: str) -> bool:
        return document_type in self._workflows

    def workflow(self, document_type: str) -> Workflow:
        return self._get(document_type).workflow

    def lookup(
        self,
        document_type: str,
        from_state: str,
        to_state: str,
    ) -> tuple[TransitionRule, ...]:
        """Candidate rules for the pair; empty for unknown types or pairs."""
        compiled = self._workflows.get(document_type)
        if compiled is None:
            return ()
        return compiled.by_pair.get((from_state, to_state), ())

    def rules_from(self, document_type: str, state: str) -> tuple[TransitionRule, ...]:
        return self._get(document_type).by_source.get(state, ())

    def initial_state(self, document_type: str) -> str:
        return self._get(document_type).workflow.initial_state

    def states(self, document_type: str) -> frozenset[str]:
        return self._get(document_type).states

    def terminal_states(self, document_type: str) -> frozenset[str]:
        return self._get(document_type).terminal

    def is_terminal(self, document_type: str, state: str) -> bool:
        return state in self._get(document_type).terminal

    def is_declared(self, document_type: str, state: str) -> bool:
        compiled = self._workflows.get(document_type)
        return compiled is not None and state in compiled.states

    def _get(self, document_type: str) -> _CompiledWorkflow:
        compiled = self._workflows.get(document_type)
        if compiled is None:
            raise UnknownDocumentTypeError(document_type)
        return compiled

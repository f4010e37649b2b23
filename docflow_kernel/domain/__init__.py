"""
Pure domain layer.

Value objects, the transition table and the guard evaluator, with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from docflow_kernel.domain.cancellation import CancellationToken
from docflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from docflow_kernel.domain.guard_evaluator import (
    GuardDecision,
    evaluate_rules,
    evaluate_transition,
)
from docflow_kernel.domain.ports import (
    AuditLog,
    DocumentStore,
    NotificationHook,
    UnitOfWork,
    UnitOfWorkFactory,
)
from docflow_kernel.domain.results import ApplyResult
from docflow_kernel.domain.transition_table import TransitionTable
from docflow_kernel.domain.workflow import (
    AuditEntry,
    AuditOutcome,
    Guard,
    ReasonCode,
    TransitionEvent,
    TransitionRule,
    Workflow,
    WorkflowDocument,
)

__all__ = [
    "ApplyResult",
    "AuditEntry",
    "AuditLog",
    "AuditOutcome",
    "CancellationToken",
    "Clock",
    "DeterministicClock",
    "DocumentStore",
    "Guard",
    "GuardDecision",
    "NotificationHook",
    "ReasonCode",
    "SystemClock",
    "TransitionEvent",
    "TransitionRule",
    "TransitionTable",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "Workflow",
    "WorkflowDocument",
    "evaluate_rules",
    "evaluate_transition",
]

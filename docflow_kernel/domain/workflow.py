"""
Canonical workflow types (``docflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document workflow state machines: guards,
transition rules, per-document-type workflow definitions, the workflow
document snapshot, audit entries and transition events.  Every document
type (vendor invoice, payment request, ...) is described with these
types so rule matching is defined once.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* All types are ``frozen=True`` -- immutable once built.
* ``TransitionRule.allowed_roles`` is normalized to a ``frozenset``.
* Structural checks (states declared, terminals, duplicates) are made by
  ``TransitionTable`` at load time, not here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AuditOutcome(str, Enum):
    """Outcome recorded on every audit entry."""

    APPLIED = "applied"
    REJECTED = "rejected"


class ReasonCode(str, Enum):
    """Machine-readable reason for a rejected apply attempt.

    Values match the ``code`` attribute of the corresponding exception in
    ``docflow_kernel.exceptions``.
    """

    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    NO_SUCH_TRANSITION = "NO_SUCH_TRANSITION"
    ROLE_NOT_AUTHORIZED = "ROLE_NOT_AUTHORIZED"
    GUARD_NOT_SATISFIED = "GUARD_NOT_SATISFIED"
    AMBIGUOUS_TRANSITION = "AMBIGUOUS_TRANSITION"
    STORAGE_ERROR = "STORAGE_ERROR"
    APPLY_CANCELLED = "APPLY_CANCELLED"


@dataclass(frozen=True)
class Guard:
    """A named business precondition on a transition.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the caller supplies the
    boolean result with the apply request.
    """

    name: str
    description: str = ""


@dataclass(frozen=True)
class TransitionRule:
    """A legal edge ``from_state -> to_state`` open to ``allowed_roles``.

    ``action`` is a human label ("submit", "approve") used in logs and
    traces; matching is always on the state pair.
    """

    from_state: str
    to_state: str
    allowed_roles: frozenset[str]
    guard: Guard | None = None
    action: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.allowed_roles, frozenset):
            object.__setattr__(self, "allowed_roles", frozenset(self.allowed_roles))

    @property
    def guard_name(self) -> str | None:
        return self.guard.name if self.guard is not None else None

    def permits(self, role: str) -> bool:
        return role in self.allowed_roles


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one document type.

    ``terminal_states`` may be left empty, in which case every state
    without outgoing rules is terminal.
    """

    document_type: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    rules: tuple[TransitionRule, ...]
    terminal_states: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkflowDocument:
    """Snapshot of a document as seen by the engine."""

    document_type: str
    document_id: str
    current_state: str
    version: int


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of one apply attempt.

    ``seq``, ``entry_hash`` and ``prev_hash`` are filled in by the audit
    log on append; entries built by the engine leave them unset.
    """

    document_type: str
    document_id: str
    actor_id: str
    actor_role: str
    from_state: str
    to_state: str
    outcome: AuditOutcome
    reason_code: ReasonCode | None
    timestamp: datetime
    detail: str = ""
    seq: int | None = None
    entry_hash: str | None = None
    prev_hash: str | None = None

    @property
    def is_applied(self) -> bool:
        return self.outcome == AuditOutcome.APPLIED


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted to the notification hook after a committed transition."""

    document_type: str
    document_id: str
    from_state: str
    to_state: str
    actor_id: str
    actor_role: str
    version: int
    occurred_at: datetime
    action: str = ""

"""
Persistence and notification ports (``docflow_kernel.domain.ports``).

Responsibility:
    Structural interfaces the workflow engine depends on.  Adapters live
    in ``docflow_kernel.services`` (SQLAlchemy and in-memory) and
    ``docflow_services.notification``.

Architecture position:
    Kernel > Domain -- protocols only, no implementations.

Transaction contract:
    The engine opens one ``UnitOfWork`` per apply.  ``documents`` and
    ``audit`` operate inside it; nothing is visible to other units until
    ``commit()``.  Leaving the context without ``commit()`` rolls back.
    ``commit()`` raises ``VersionConflictError`` when a concurrent unit
    already moved a document this unit wrote.

Failure contract:
    Adapters signal I/O failure (connection lost, disk full, backend
    offline) by raising ``docflow_kernel.exceptions.StorageError`` from any
    method.  The engine returns it as a ``STORAGE_ERROR`` result and
    nothing is committed.  Raw SQLAlchemyError and OSError are translated
    the same way; any other exception is a bug in the adapter.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from docflow_kernel.domain.workflow import AuditEntry, TransitionEvent, WorkflowDocument


@runtime_checkable
class DocumentStore(Protocol):
    """Load and conditionally update workflow documents."""

    def load(self, document_type: str, document_id: str) -> WorkflowDocument | None:
        """Return the current snapshot, or None when absent.

        Raises ``StorageError`` when the store cannot be read.
        """
        ...

    def conditional_write(
        self,
        document_type: str,
        document_id: str,
        new_state: str,
        expected_version: int,
        actor_id: str,
    ) -> int:
        """Set ``new_state`` iff the stored version equals ``expected_version``.

        Returns the new version (``expected_version + 1``).  Raises
        ``VersionConflictError`` otherwise, ``StorageError`` on I/O failure.
        """
        ...

    def create(
        self,
        document_type: str,
        document_id: str,
        initial_state: str,
        actor_id: str,
    ) -> WorkflowDocument:
        """Register a new document at version 0."""
        ...


@runtime_checkable
class AuditLog(Protocol):
    """Append-only audit trail."""

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Store ``entry`` within the unit.

        Returns the stored copy with seq and hashes set.  Adapters that seal
        entries at commit return the entry unchanged.
        """
        ...

    def list_for(self, document_type: str, document_id: str) -> Sequence[AuditEntry]:
        ...

    def list_by_actor(self, actor_id: str) -> Sequence[AuditEntry]:
        ...

    def validate_chain(self) -> int:
        """Verify the hash chain; return the number of entries checked."""
        ...


@runtime_checkable
class UnitOfWork(Protocol):
    """One atomic unit spanning the document store and the audit log."""

    documents: DocumentStore
    audit: AuditLog

    def __enter__(self) -> UnitOfWork:
        ...

    def __exit__(self, *exc: object) -> None:
        ...

    def commit(self) -> None:
        """Make the unit durable; ``VersionConflictError`` or ``StorageError``."""
        ...

    def rollback(self) -> None:
        ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


@runtime_checkable
class NotificationHook(Protocol):
    """Receives committed transitions.  Must not raise into the engine."""

    def notify(self, event: TransitionEvent) -> None:
        ...

"""
In-memory adapters for the DocumentStore / AuditLog / UnitOfWork ports.

Responsibility:
    A thread-safe, process-local backend with the same optimistic
    concurrency semantics as the SQL adapters.  Used by property and race
    tests, and by callers that embed the engine without a database.

Concurrency model:
    Each unit of work stages its writes privately.  The backend lock is
    held only inside ``commit()``, where every staged conditional write is
    re-checked against the committed version before anything is applied.
    A unit whose document moved underneath it raises
    ``VersionConflictError`` and applies nothing.  Reads take no lock:
    the committed maps are only ever rebound to new frozen snapshots.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import replace

from docflow_kernel.domain.workflow import AuditEntry, WorkflowDocument
from docflow_kernel.exceptions import DocumentAlreadyExistsError, VersionConflictError
from docflow_kernel.logging_config import get_logger
from docflow_kernel.services.audit_log import log_appended_entry, seal_entry, verify_chain

logger = get_logger("services.memory")

_Key = tuple[str, str]


class InMemoryBackend:
    """Committed documents and audit entries shared by all units of work."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[_Key, WorkflowDocument] = {}
        self._entries: list[AuditEntry] = []

    def unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    def document(self, document_type: str, document_id: str) -> WorkflowDocument | None:
        return self._documents.get((document_type, document_id))

    @property
    def entries(self) -> tuple[AuditEntry, ...]:
        return tuple(self._entries)

    def _commit(
        self,
        creates: dict[_Key, WorkflowDocument],
        writes: dict[_Key, tuple[int, WorkflowDocument]],
        entries: list[AuditEntry],
    ) -> None:
        with self._lock:
            for key in creates:
                if key in self._documents:
                    raise DocumentAlreadyExistsError(*key)
            for key, (expected, _doc) in writes.items():
                current = self._documents.get(key)
                if key not in creates and (current is None or current.version != expected):
                    raise VersionConflictError(
                        key[0], key[1], expected,
                        current.version if current is not None else None,
                    )

            documents = dict(self._documents)
            documents.update(creates)
            for key, (_expected, doc) in writes.items():
                documents[key] = doc

            prev_hash = self._entries[-1].entry_hash if self._entries else None
            sealed_entries = []
            for entry in entries:
                sealed, _payload_hash = seal_entry(
                    entry, len(self._entries) + len(sealed_entries) + 1, prev_hash,
                )
                sealed_entries.append(sealed)
                prev_hash = sealed.entry_hash

            self._documents = documents
            self._entries.extend(sealed_entries)

        for sealed in sealed_entries:
            log_appended_entry(sealed)


class _MemoryDocumentStore:
    """Document view of one unit: committed state overlaid with staged writes."""

    def __init__(self, uow: InMemoryUnitOfWork):
        self._uow = uow

    def load(self, document_type: str, document_id: str) -> WorkflowDocument | None:
        key = (document_type, document_id)
        if key in self._uow._writes:
            return self._uow._writes[key][1]
        if key in self._uow._creates:
            return self._uow._creates[key]
        return self._uow._backend.document(document_type, document_id)

    def conditional_write(
        self,
        document_type: str,
        document_id: str,
        new_state: str,
        expected_version: int,
        actor_id: str,
    ) -> int:
        current = self.load(document_type, document_id)
        if current is None or current.version != expected_version:
            raise VersionConflictError(
                document_type,
                document_id,
                expected_version,
                current.version if current is not None else None,
            )
        key = (document_type, document_id)
        # Keep the first expected version seen by this unit; commit checks it.
        first_expected = self._uow._writes.get(key, (expected_version, None))[0]
        updated = replace(current, current_state=new_state, version=expected_version + 1)
        self._uow._writes[key] = (first_expected, updated)
        return updated.version

    def create(
        self,
        document_type: str,
        document_id: str,
        initial_state: str,
        actor_id: str,
    ) -> WorkflowDocument:
        if self.load(document_type, document_id) is not None:
            raise DocumentAlreadyExistsError(document_type, document_id)
        doc = WorkflowDocument(
            document_type=document_type,
            document_id=document_id,
            current_state=initial_state,
            version=0,
        )
        self._uow._creates[(document_type, document_id)] = doc
        return doc


class _MemoryAuditLog:
    """Audit view of one unit.  Appends are sealed at commit."""

    def __init__(self, uow: InMemoryUnitOfWork):
        self._uow = uow

    def append(self, entry: AuditEntry) -> AuditEntry:
        self._uow._entries.append(entry)
        return entry

    def list_for(self, document_type: str, document_id: str) -> Sequence[AuditEntry]:
        return tuple(
            e for e in self._uow._backend.entries
            if e.document_type == document_type and e.document_id == document_id
        )

    def list_by_actor(self, actor_id: str) -> Sequence[AuditEntry]:
        return tuple(e for e in self._uow._backend.entries if e.actor_id == actor_id)

    def validate_chain(self) -> int:
        count = verify_chain(self._uow._backend.entries)
        logger.info("audit_chain_validated", extra={"entry_count": count})
        return count


class InMemoryUnitOfWork:
    """Stages creates, conditional writes and audit appends until commit."""

    def __init__(self, backend: InMemoryBackend):
        self._backend = backend
        self._creates: dict[_Key, WorkflowDocument] = {}
        self._writes: dict[_Key, tuple[int, WorkflowDocument]] = {}
        self._entries: list[AuditEntry] = []
        self.documents = _MemoryDocumentStore(self)
        self.audit = _MemoryAuditLog(self)

    def __enter__(self) -> InMemoryUnitOfWork:
        return self

    def __exit__(self, *exc: object) -> None:
        self.rollback()

    def commit(self) -> None:
        try:
            self._backend._commit(self._creates, self._writes, self._entries)
        finally:
            self.rollback()

    def rollback(self) -> None:
        self._creates = {}
        self._writes = {}
        self._entries = []

"""Persistence adapters for the docflow kernel (write side)."""

from docflow_kernel.services.audit_log import SqlAuditLog
from docflow_kernel.services.document_store import SqlDocumentStore
from docflow_kernel.services.memory import InMemoryBackend, InMemoryUnitOfWork
from docflow_kernel.services.sequence_service import SequenceService
from docflow_kernel.services.unit_of_work import SqlUnitOfWork

__all__ = [
    "InMemoryBackend",
    "InMemoryUnitOfWork",
    "SequenceService",
    "SqlAuditLog",
    "SqlDocumentStore",
    "SqlUnitOfWork",
]

"""ORM models for the docflow kernel."""

from docflow_kernel.models.audit_entry import AuditEntryModel
from docflow_kernel.models.workflow_document import WorkflowDocumentModel

__all__ = [
    "AuditEntryModel",
    "WorkflowDocumentModel",
]

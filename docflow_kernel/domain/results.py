"""Result type returned by ``WorkflowEngine.apply``."""

from __future__ import annotations

from dataclasses import dataclass

from docflow_kernel.domain.workflow import AuditEntry, ReasonCode, WorkflowDocument
from docflow_kernel.exceptions import WorkflowError


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of one apply attempt.

    On success ``document`` holds the updated snapshot and ``audit_entry``
    the stored ``applied`` entry.  On failure ``error`` holds the typed
    exception; ``audit_entry`` is the stored ``rejected`` entry, or None
    when no document-scoped entry was written (document not found,
    storage failure).
    """

    success: bool
    document: WorkflowDocument | None = None
    error: WorkflowError | None = None
    audit_entry: AuditEntry | None = None

    @classmethod
    def ok(
        cls, document: WorkflowDocument, audit_entry: AuditEntry | None = None,
    ) -> ApplyResult:
        return cls(success=True, document=document, audit_entry=audit_entry)

    @classmethod
    def failed(
        cls, error: WorkflowError, audit_entry: AuditEntry | None = None,
    ) -> ApplyResult:
        return cls(success=False, error=error, audit_entry=audit_entry)

    @property
    def reason_code(self) -> ReasonCode | None:
        if self.error is None:
            return None
        return ReasonCode(self.error.code)

    @property
    def is_system_error(self) -> bool:
        return self.error is not None and self.error.is_system_error

    def unwrap(self) -> WorkflowDocument:
        """Return the updated document or raise the carried error."""
        if self.error is not None:
            raise self.error
        assert self.document is not None
        return self.document

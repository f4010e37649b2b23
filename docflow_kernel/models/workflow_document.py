"""
Module: docflow_kernel.models.workflow_document
Responsibility: ORM persistence for the workflow position of a business document.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/workflow.py (for the DTO) only.

Invariants enforced:
    - (document_type, document_id) is unique.
    - version starts at 0 and is incremented by exactly 1 per applied
      transition (conditional UPDATE in SqlDocumentStore; ORM listener in
      db/immutability.py for every other write path).

The business document itself (vendor invoice, payment request, ...) lives
in its owning application's tables; this row only tracks status.
"""

from sqlalchemy import BigInteger, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from docflow_kernel.db.base import TrackedBase
from docflow_kernel.domain.workflow import WorkflowDocument


class WorkflowDocumentModel(TrackedBase):
    """Current state and version of one document."""

    __tablename__ = "workflow_documents"

    __table_args__ = (
        UniqueConstraint(
            "document_type", "document_id", name="uq_workflow_document_identity",
        ),
        Index("idx_workflow_document_state", "document_type", "current_state"),
    )

    document_type: Mapped[str] = mapped_column(String(50), nullable=False)

    document_id: Mapped[str] = mapped_column(String(100), nullable=False)

    current_state: Mapped[str] = mapped_column(String(50), nullable=False)

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<WorkflowDocument {self.document_type}/{self.document_id} "
            f"{self.current_state} v{self.version}>"
        )

    def to_dto(self) -> WorkflowDocument:
        return WorkflowDocument(
            document_type=self.document_type,
            document_id=self.document_id,
            current_state=self.current_state,
            version=self.version,
        )

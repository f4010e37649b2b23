"""
SqlDocumentStore -- SQLAlchemy adapter of the DocumentStore port.

Responsibility:
    Loads workflow documents and applies state changes with optimistic
    concurrency: ``UPDATE ... WHERE version = :expected``.  A row count
    other than one means another writer got there first.

Architecture position:
    Kernel > Services -- imperative shell.  Flush-only; the unit of work
    owns commit/rollback.

Invariants enforced:
    - For a given starting version at most one conditional write succeeds.
    - version increases by exactly 1 per write.

Failure modes:
    - VersionConflictError when the stored version differs from
      ``expected_version`` (or the row vanished).
    - DocumentAlreadyExistsError from ``create`` when the (type, id) pair
      already exists.
"""

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow_kernel.domain.workflow import WorkflowDocument
from docflow_kernel.exceptions import DocumentAlreadyExistsError, VersionConflictError
from docflow_kernel.logging_config import get_logger
from docflow_kernel.models.workflow_document import WorkflowDocumentModel

logger = get_logger("services.document_store")


class SqlDocumentStore:
    """Document store backed by ``workflow_documents``."""

    def __init__(self, session: Session):
        self._session = session

    def _row(self, document_type: str, document_id: str) -> WorkflowDocumentModel | None:
        return self._session.execute(
            select(WorkflowDocumentModel)
            .where(
                WorkflowDocumentModel.document_type == document_type,
                WorkflowDocumentModel.document_id == document_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def load(self, document_type: str, document_id: str) -> WorkflowDocument | None:
        row = self._row(document_type, document_id)
        return row.to_dto() if row is not None else None

    def conditional_write(
        self,
        document_type: str,
        document_id: str,
        new_state: str,
        expected_version: int,
        actor_id: str,
    ) -> int:
        new_version = expected_version + 1
        result = self._session.execute(
            update(WorkflowDocumentModel)
            .where(
                WorkflowDocumentModel.document_type == document_type,
                WorkflowDocumentModel.document_id == document_id,
                WorkflowDocumentModel.version == expected_version,
            )
            .values(
                current_state=new_state,
                version=new_version,
                updated_by=actor_id,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            current = self._session.execute(
                select(WorkflowDocumentModel.version).where(
                    WorkflowDocumentModel.document_type == document_type,
                    WorkflowDocumentModel.document_id == document_id,
                )
            ).scalar_one_or_none()
            logger.warning(
                "conditional_write_conflict",
                extra={
                    "document_type": document_type,
                    "document_id": document_id,
                    "expected_version": expected_version,
                    "actual_version": current,
                },
            )
            raise VersionConflictError(
                document_type, document_id, expected_version, current,
            )

        logger.debug(
            "conditional_write_applied",
            extra={
                "document_type": document_type,
                "document_id": document_id,
                "new_state": new_state,
                "new_version": new_version,
            },
        )
        return new_version

    def create(
        self,
        document_type: str,
        document_id: str,
        initial_state: str,
        actor_id: str,
    ) -> WorkflowDocument:
        row = WorkflowDocumentModel(
            document_type=document_type,
            document_id=document_id,
            current_state=initial_state,
            version=0,
            created_by=actor_id,
        )
        self._session.add(row)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise DocumentAlreadyExistsError(document_type, document_id) from exc
        logger.info(
            "workflow_document_created",
            extra={
                "document_type": document_type,
                "document_id": document_id,
                "initial_state": initial_state,
            },
        )
        return row.to_dto()

"""
SqlUnitOfWork -- one SQLAlchemy session spanning document store and audit log.

Everything flushed through ``documents`` and ``audit`` commits or rolls back
together.  Leaving the context without ``commit()`` rolls back.
"""

from collections.abc import Callable

from sqlalchemy.orm import Session, sessionmaker

from docflow_kernel.logging_config import get_logger
from docflow_kernel.services.audit_log import SqlAuditLog
from docflow_kernel.services.document_store import SqlDocumentStore

logger = get_logger("services.unit_of_work")


class SqlUnitOfWork:
    """Unit of work over a fresh session from ``session_factory``."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._session: Session | None = None
        self._committed = False

    @classmethod
    def factory(cls, session_factory: sessionmaker[Session]) -> Callable[[], "SqlUnitOfWork"]:
        return lambda: cls(session_factory)

    def __enter__(self) -> "SqlUnitOfWork":
        self._session = self._session_factory()
        self._committed = False
        self.documents = SqlDocumentStore(self._session)
        self.audit = SqlAuditLog(self._session)
        return self

    def __exit__(self, *exc: object) -> None:
        try:
            if not self._committed:
                self.rollback()
        finally:
            self._session.close()
            self._session = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("Unit of work is not active")
        return self._session

    def commit(self) -> None:
        self.session.commit()
        self._committed = True
        logger.debug("unit_of_work_committed")

    def rollback(self) -> None:
        self.session.rollback()
        logger.debug("unit_of_work_rolled_back")

"""
SequenceService -- gap-free, strictly increasing audit sequence numbers.

Architecture position:
    Kernel > Services.  Flush-only; called by SqlAuditLog inside the same
    transaction as the audit row it numbers.

Mechanism:
    ``UPDATE sequence_counters SET current_value = current_value + 1``
    takes the counter row's write lock until the caller's transaction ends,
    so concurrent appenders are serialized on that row and a rollback hands
    the number back.  Never ``MAX(seq) + 1``.

Failure modes:
    - The counter row is normally seeded by ``create_tables``.  If it is
      missing, the first caller inserts it inside a savepoint; a concurrent
      insert loses with IntegrityError and retries the increment.
"""

from sqlalchemy import String, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from docflow_kernel.db.base import Base
from docflow_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), unique=True)
    current_value: Mapped[int] = mapped_column(default=0)


class SequenceService:
    AUDIT_ENTRY = "workflow_audit_entry"

    def __init__(self, session: Session):
        self._session = session

    def _increment(self, name: str) -> int | None:
        bumped = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == name)
            .values(current_value=SequenceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            return None
        return self.current_value(name)

    def next_value(self, name: str) -> int:
        """Increment ``name`` and return the new value (first value is 1)."""
        value = self._increment(name)
        if value is None:
            try:
                with self._session.begin_nested():
                    self._session.add(SequenceCounter(name=name, current_value=1))
                value = 1
            except IntegrityError:
                logger.debug("sequence_counter_race_retry", extra={"sequence_name": name})
                value = self._increment(name)
                if value is None:
                    raise
        logger.debug("sequence_allocated", extra={"sequence_name": name, "value": value})
        return value

    def current_value(self, name: str) -> int | None:
        return self._session.scalar(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        )

    def initialize_sequences(self) -> None:
        """Seed the audit counter at zero if it is missing."""
        if self.current_value(self.AUDIT_ENTRY) is None:
            self._session.add(SequenceCounter(name=self.AUDIT_ENTRY, current_value=0))
            self._session.flush()

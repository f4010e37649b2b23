"""
Module: docflow_kernel.models.audit_entry
Responsibility: ORM persistence for the tamper-evident workflow audit chain.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/workflow.py (for the DTO) only.

Invariants enforced:
    - Audit entries are append-only; UPDATE and DELETE are rejected by the
      listeners in db/immutability.py.
    - seq is unique and monotonically increasing, allocated by SequenceService.
    - hash = H(document_type | document_id | outcome | payload_hash | prev_hash),
      validated by SqlAuditLog.validate_chain().

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a mismatch.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docflow_kernel.db.base import Base
from docflow_kernel.domain.workflow import AuditEntry, AuditOutcome, ReasonCode


class AuditEntryModel(Base):
    """
    One apply attempt, applied or rejected.

    Guarantees:
        - prev_hash is None only for the genesis entry.
    """

    __tablename__ = "workflow_audit_entries"

    __table_args__ = (
        Index("idx_audit_document", "document_type", "document_id"),
        Index("idx_audit_actor", "actor_id"),
        Index("idx_audit_seq", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    document_type: Mapped[str] = mapped_column(String(50), nullable=False)

    document_id: Mapped[str] = mapped_column(String(100), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    actor_role: Mapped[str] = mapped_column(String(50), nullable=False)

    from_state: Mapped[str] = mapped_column(String(50), nullable=False)

    to_state: Mapped[str] = mapped_column(String(50), nullable=False)

    outcome: Mapped[str] = mapped_column(String(20), nullable=False)

    # Null for applied entries
    reason_code: Mapped[str | None] = mapped_column(String(40), nullable=True)

    detail: Mapped[str] = mapped_column(Text, nullable=False, default="")

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AuditEntry #{self.seq} {self.outcome} "
            f"{self.document_type}/{self.document_id} "
            f"{self.from_state}->{self.to_state}>"
        )

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_dto(self) -> AuditEntry:
        occurred_at = self.occurred_at
        # SQLite drops tzinfo on the way back; values are always stored as UTC.
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=UTC)
        return AuditEntry(
            document_type=self.document_type,
            document_id=self.document_id,
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            from_state=self.from_state,
            to_state=self.to_state,
            outcome=AuditOutcome(self.outcome),
            reason_code=ReasonCode(self.reason_code) if self.reason_code else None,
            timestamp=occurred_at,
            detail=self.detail,
            seq=self.seq,
            entry_hash=self.hash,
            prev_hash=self.prev_hash,
        )

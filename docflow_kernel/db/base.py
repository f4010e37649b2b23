"""
Module: docflow_kernel.db.base
Responsibility: declarative base for the workflow tables.
Architecture position: Kernel > DB.  Imported by every model; imports
    nothing from the rest of the kernel.

Conventions:
    - Surrogate ``id`` primary keys are uuid4 values stored as String(36),
      the same on PostgreSQL and SQLite.  Business keys such as
      (document_type, document_id) carry their own unique constraints.
    - ``datetime`` columns are timezone-aware; ``int`` columns are BIGINT.
    - TrackedBase adds created/updated timestamps and actor ids.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

ACTOR_ID_LENGTH = 100


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character text form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows that record who created them and who last changed them.

    ``updated_at`` and ``updated_by`` are bookkeeping; the immutability
    listeners never treat a change to them as a violation.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by: Mapped[str] = mapped_column(String(ACTOR_ID_LENGTH))
    updated_by: Mapped[str | None] = mapped_column(String(ACTOR_ID_LENGTH))

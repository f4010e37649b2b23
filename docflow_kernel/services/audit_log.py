"""
Audit log -- append-only, hash-chained record of every apply attempt.

Responsibility:
    Persists ``AuditEntry`` values with a monotonically increasing ``seq``
    and a cryptographic link to the previous entry.  Provides per-document
    and per-actor trace queries and full chain validation for tamper
    detection.

Architecture position:
    Kernel > Services -- imperative shell.  ``SqlAuditLog`` is the
    SQLAlchemy adapter of the ``AuditLog`` port; the chain helpers at the
    top of this module are shared with the in-memory adapter.

Invariants enforced:
    - seq comes from SequenceService (locked counter row).
    - hash = H(document_type | document_id | outcome | payload_hash | prev_hash),
      where payload_hash covers every recorded field of the entry.
    - Append-only: no update or delete methods; the ORM listeners in
      db/immutability.py reject both.

Failure modes:
    - AuditChainBrokenError from validate_chain() when a stored field, a
      payload hash, an entry hash or a prev_hash link does not match.
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from docflow_kernel.domain.workflow import AuditEntry
from docflow_kernel.exceptions import AuditChainBrokenError
from docflow_kernel.logging_config import get_logger
from docflow_kernel.models.audit_entry import AuditEntryModel
from docflow_kernel.services.sequence_service import SequenceService
from docflow_kernel.utils.hashing import hash_audit_entry, hash_payload

logger = get_logger("services.audit_log")


# ---------------------------------------------------------------------------
# Chain helpers
# ---------------------------------------------------------------------------


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def entry_payload(entry: AuditEntry) -> dict:
    """Fields covered by the payload hash (everything but storage metadata)."""
    return {
        "document_type": entry.document_type,
        "document_id": entry.document_id,
        "actor_id": entry.actor_id,
        "actor_role": entry.actor_role,
        "from_state": entry.from_state,
        "to_state": entry.to_state,
        "outcome": entry.outcome,
        "reason_code": entry.reason_code,
        "timestamp": _utc(entry.timestamp),
        "detail": entry.detail,
    }


def seal_entry(
    entry: AuditEntry, seq: int, prev_hash: str | None,
) -> tuple[AuditEntry, str]:
    """Return the entry with seq and hashes set, plus its payload hash."""
    payload_hash = hash_payload(entry_payload(entry))
    entry_hash = hash_audit_entry(
        document_type=entry.document_type,
        document_id=entry.document_id,
        outcome=entry.outcome.value,
        payload_hash=payload_hash,
        prev_hash=prev_hash,
    )
    sealed = replace(
        entry,
        timestamp=_utc(entry.timestamp),
        seq=seq,
        entry_hash=entry_hash,
        prev_hash=prev_hash,
    )
    return sealed, payload_hash


def verify_chain(entries: Iterable[AuditEntry]) -> int:
    """
    Verify entries in seq order; return how many were checked.

    Raises:
        AuditChainBrokenError: On the first entry whose recomputed hash or
            prev_hash link does not match.
    """
    previous: AuditEntry | None = None
    count = 0
    for entry in entries:
        expected_prev = previous.entry_hash if previous is not None else None
        if entry.prev_hash != expected_prev:
            logger.critical(
                "audit_chain_broken",
                extra={"seq": entry.seq, "check": "prev_hash"},
            )
            raise AuditChainBrokenError(
                entry.seq, str(expected_prev), str(entry.prev_hash),
            )

        expected_hash = hash_audit_entry(
            document_type=entry.document_type,
            document_id=entry.document_id,
            outcome=entry.outcome.value,
            payload_hash=hash_payload(entry_payload(entry)),
            prev_hash=entry.prev_hash,
        )
        if entry.entry_hash != expected_hash:
            logger.critical(
                "audit_chain_broken",
                extra={"seq": entry.seq, "check": "hash"},
            )
            raise AuditChainBrokenError(
                entry.seq, expected_hash, str(entry.entry_hash),
            )

        previous = entry
        count += 1
    return count


def log_appended_entry(entry: AuditEntry) -> None:
    logger.info(
        "audit_entry_appended",
        extra={
            "seq": entry.seq,
            "document_type": entry.document_type,
            "document_id": entry.document_id,
            "outcome": entry.outcome.value,
            "reason_code": entry.reason_code.value if entry.reason_code else None,
            "from_state": entry.from_state,
            "to_state": entry.to_state,
        },
    )


# ---------------------------------------------------------------------------
# SQLAlchemy adapter
# ---------------------------------------------------------------------------


class SqlAuditLog:
    """
    Audit log stored in ``workflow_audit_entries``.

    Contract:
        Flushes within the caller's transaction and never commits; the
        unit of work owns the boundary so an applied entry commits or
        rolls back together with the document write.
    """

    def __init__(self, session: Session):
        self._session = session
        self._sequence_service = SequenceService(session)

    def _last_hash(self) -> str | None:
        last = self._session.execute(
            select(AuditEntryModel).order_by(AuditEntryModel.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def append(self, entry: AuditEntry) -> AuditEntry:
        # Allocating seq first locks the counter row, which serializes
        # appenders before the last hash is read.
        seq = self._sequence_service.next_value(SequenceService.AUDIT_ENTRY)
        sealed, payload_hash = seal_entry(entry, seq, self._last_hash())

        self._session.add(
            AuditEntryModel(
                seq=seq,
                document_type=sealed.document_type,
                document_id=sealed.document_id,
                actor_id=sealed.actor_id,
                actor_role=sealed.actor_role,
                from_state=sealed.from_state,
                to_state=sealed.to_state,
                outcome=sealed.outcome.value,
                reason_code=sealed.reason_code.value if sealed.reason_code else None,
                detail=sealed.detail,
                occurred_at=sealed.timestamp,
                payload_hash=payload_hash,
                prev_hash=sealed.prev_hash,
                hash=sealed.entry_hash,
            )
        )
        self._session.flush()
        log_appended_entry(sealed)
        return sealed

    def list_for(self, document_type: str, document_id: str) -> Sequence[AuditEntry]:
        rows = self._session.execute(
            select(AuditEntryModel)
            .where(
                AuditEntryModel.document_type == document_type,
                AuditEntryModel.document_id == document_id,
            )
            .order_by(AuditEntryModel.seq)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def list_by_actor(self, actor_id: str) -> Sequence[AuditEntry]:
        rows = self._session.execute(
            select(AuditEntryModel)
            .where(AuditEntryModel.actor_id == actor_id)
            .order_by(AuditEntryModel.seq)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def validate_chain(self) -> int:
        rows = self._session.execute(
            select(AuditEntryModel).order_by(AuditEntryModel.seq)
        ).scalars().all()

        for row in rows:
            dto = row.to_dto()
            if hash_payload(entry_payload(dto)) != row.payload_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"seq": row.seq, "check": "payload_hash"},
                )
                raise AuditChainBrokenError(
                    row.seq, hash_payload(entry_payload(dto)), row.payload_hash,
                )

        count = verify_chain(row.to_dto() for row in rows)
        logger.info("audit_chain_validated", extra={"entry_count": count})
        return count

"""
docflow_services.workflow_engine -- the only writer of workflow state.

Responsibility:
    Applies state transitions to workflow documents.  Thin coordinator:
    rule matching is delegated to the pure guard evaluator, persistence
    to the DocumentStore / AuditLog behind one UnitOfWork, post-commit
    delivery to the NotificationHook.

Architecture position:
    Services layer.  May import from docflow_kernel (domain, services).
    Receives a validated TransitionTable, normally from
    ``docflow_config.get_active_config()`` via ``bootstrap``.

Apply order:
    1. load                       -- missing -> DOCUMENT_NOT_FOUND (no audit entry)
    2. expected_version check     -- stale   -> VERSION_CONFLICT (before guards)
    3. guard evaluation           -- rejected -> reason code
    4. cancellation check         -- cancelled -> APPLY_CANCELLED
    5. conditional write + applied audit entry, one commit
       lost race -> roll back, one rejected VERSION_CONFLICT entry
    6. notify hook (failures logged, never raised)

Invariants enforced:
    - Every apply on an existing document appends exactly one audit entry.
    - A state change and its applied audit entry commit together.
    - version moves by exactly 1 per applied transition.
    - No WorkflowError crosses the public boundary; results carry them.
      Adapter I/O failures (StorageError, SQLAlchemyError, OSError) come
      back as STORAGE_ERROR results.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from docflow_kernel.domain.cancellation import CancellationToken
from docflow_kernel.domain.clock import Clock, SystemClock
from docflow_kernel.domain.guard_evaluator import GuardDecision, evaluate_transition
from docflow_kernel.domain.ports import NotificationHook, UnitOfWork, UnitOfWorkFactory
from docflow_kernel.domain.results import ApplyResult
from docflow_kernel.domain.transition_table import TransitionTable
from docflow_kernel.domain.workflow import (
    AuditEntry,
    AuditOutcome,
    ReasonCode,
    TransitionEvent,
    WorkflowDocument,
)
from docflow_kernel.exceptions import (
    AmbiguousTransitionError,
    ApplyCancelledError,
    DocumentNotFoundError,
    GuardNotSatisfiedError,
    NoSuchTransitionError,
    RoleNotAuthorizedError,
    StorageError,
    VersionConflictError,
    WorkflowError,
)
from docflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.workflow_engine")

# Trace message and outcome codes for structured logging and traceability
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_APPLIED = "applied"
OUTCOME_REJECTED = "rejected"
OUTCOME_NOT_FOUND = "not_found"
OUTCOME_STORAGE_ERROR = "storage_error"


def _emit_workflow_trace(
    ts: datetime,
    document_type: str,
    document_id: str,
    action: str,
    from_state: str | None,
    to_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    version: int | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record for traceability."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": ts.isoformat(),
        "workflow": document_type,
        "action": action,
        "entity_type": document_type,
        "entity_id": document_id,
        "from_state": from_state,
        "to_state": to_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if version is not None:
        record["version"] = version
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    record["message"] = "workflow_transition"
    if outcome_sink is not None:
        outcome_sink(record)


class WorkflowEngine:
    """Applies transitions with optimistic concurrency and a complete audit trail."""

    def __init__(
        self,
        table: TransitionTable,
        unit_of_work: UnitOfWorkFactory,
        clock: Clock | None = None,
        notification_hook: NotificationHook | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._table = table
        self._uow = unit_of_work
        self._clock = clock or SystemClock()
        self._hook = notification_hook
        self._outcome_sink = outcome_sink

    @property
    def table(self) -> TransitionTable:
        return self._table

    # ------------------------------------------------------------------
    # apply
    # ------------------------------------------------------------------

    def apply(
        self,
        document_type: str,
        document_id: str,
        to_state: str,
        actor_id: str,
        actor_role: str,
        expected_version: int,
        business_guard_result: bool | None = None,
        cancellation: CancellationToken | None = None,
    ) -> ApplyResult:
        """Apply one transition.  Never raises WorkflowError; see ApplyResult."""
        t0 = time.monotonic()
        with LogContext.bind(
            actor_id=actor_id, document_type=document_type, document_id=document_id,
        ):
            try:
                result, document, action = self._apply(
                    document_type, document_id, to_state, actor_id, actor_role,
                    expected_version, business_guard_result, cancellation,
                )
            except StorageError as exc:
                result, document, action = self._storage_failure(exc, to_state, actor_role), None, ""
            except (SQLAlchemyError, OSError) as exc:
                error = StorageError("apply", f"{type(exc).__name__}: {exc}")
                result, document, action = self._storage_failure(error, to_state, actor_role), None, ""

            self._trace(result, document_type, document_id, to_state, document, action, t0)

        if result.success:
            self._notify(result.document, document, actor_id, actor_role, action)
        return result

    @staticmethod
    def _storage_failure(error: StorageError, to_state: str, actor_role: str) -> ApplyResult:
        logger.error(
            "workflow_storage_error",
            extra={
                "to_state": to_state,
                "actor_role": actor_role,
                "operation": error.operation,
            },
            exc_info=True,
        )
        return ApplyResult.failed(error)

    def _apply(
        self,
        document_type: str,
        document_id: str,
        to_state: str,
        actor_id: str,
        actor_role: str,
        expected_version: int,
        business_guard_result: bool | None,
        cancellation: CancellationToken | None,
    ) -> tuple[ApplyResult, WorkflowDocument | None, str]:
        with self._uow() as uow:
            document = None
            if self._table.has_document_type(document_type):
                document = uow.documents.load(document_type, document_id)

            if document is None:
                logger.warning(
                    "workflow_document_not_found",
                    extra={
                        "to_state": to_state,
                        "actor_role": actor_role,
                        "expected_version": expected_version,
                    },
                )
                return ApplyResult.failed(DocumentNotFoundError(document_type, document_id)), None, ""

            if expected_version != document.version:
                error = VersionConflictError(
                    document_type, document_id, expected_version, document.version,
                )
                return self._reject(uow, document, to_state, actor_id, actor_role, error), document, ""

            decision = evaluate_transition(
                self._table, document_type, document.current_state, to_state,
                actor_role, business_guard_result,
            )
            if not decision.allowed:
                error = self._error_for(decision, document, to_state, actor_role)
                action = decision.rule.action if decision.rule else ""
                return self._reject(uow, document, to_state, actor_id, actor_role, error), document, action

            rule = decision.rule
            if cancellation is not None and cancellation.is_cancelled:
                error = ApplyCancelledError(document_type, document_id, cancellation.reason)
                return self._reject(uow, document, to_state, actor_id, actor_role, error), document, rule.action

            try:
                new_version = uow.documents.conditional_write(
                    document_type, document_id, to_state, expected_version, actor_id,
                )
                stored = uow.audit.append(
                    self._entry(document, to_state, actor_id, actor_role, AuditOutcome.APPLIED)
                )
                uow.commit()
            except VersionConflictError as conflict:
                uow.rollback()
                lost_race = conflict
            else:
                updated = WorkflowDocument(
                    document_type=document_type,
                    document_id=document_id,
                    current_state=to_state,
                    version=new_version,
                )
                logger.info(
                    "workflow_transition_applied",
                    extra={
                        "from_state": document.current_state,
                        "to_state": to_state,
                        "actor_role": actor_role,
                        "action": rule.action,
                        "version": new_version,
                    },
                )
                return ApplyResult.ok(updated, stored), document, rule.action

        # Lost race: the applied entry was rolled back with the write.
        with self._uow() as uow:
            return (
                self._reject(uow, document, to_state, actor_id, actor_role, lost_race),
                document,
                rule.action,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _entry(
        self,
        document: WorkflowDocument,
        to_state: str,
        actor_id: str,
        actor_role: str,
        outcome: AuditOutcome,
        error: WorkflowError | None = None,
    ) -> AuditEntry:
        return AuditEntry(
            document_type=document.document_type,
            document_id=document.document_id,
            actor_id=actor_id,
            actor_role=actor_role,
            from_state=document.current_state,
            to_state=to_state,
            outcome=outcome,
            reason_code=ReasonCode(error.code) if error is not None else None,
            timestamp=self._clock.now_utc(),
            detail=str(error) if error is not None else "",
        )

    def _reject(
        self,
        uow: UnitOfWork,
        document: WorkflowDocument,
        to_state: str,
        actor_id: str,
        actor_role: str,
        error: WorkflowError,
    ) -> ApplyResult:
        """Record a rejected attempt in its own commit; the document is untouched."""
        stored = uow.audit.append(
            self._entry(document, to_state, actor_id, actor_role, AuditOutcome.REJECTED, error)
        )
        uow.commit()

        extra = {
            "from_state": document.current_state,
            "to_state": to_state,
            "actor_role": actor_role,
            "reason_code": error.code,
        }
        if isinstance(error, AmbiguousTransitionError):
            logger.critical("workflow_transition_ambiguous", extra=extra)
        else:
            logger.info("workflow_transition_rejected", extra=extra)
        return ApplyResult.failed(error, stored)

    @staticmethod
    def _error_for(
        decision: GuardDecision,
        document: WorkflowDocument,
        to_state: str,
        actor_role: str,
    ) -> WorkflowError:
        doc_type = document.document_type
        from_state = document.current_state
        code = decision.reason_code
        if code == ReasonCode.NO_SUCH_TRANSITION:
            return NoSuchTransitionError(doc_type, from_state, to_state)
        if code == ReasonCode.ROLE_NOT_AUTHORIZED:
            return RoleNotAuthorizedError(doc_type, from_state, to_state, actor_role)
        if code == ReasonCode.GUARD_NOT_SATISFIED:
            return GuardNotSatisfiedError(doc_type, decision.guard_name or "")
        if code == ReasonCode.AMBIGUOUS_TRANSITION:
            return AmbiguousTransitionError(
                doc_type, from_state, to_state, actor_role, decision.match_count,
            )
        raise AssertionError(f"Unhandled guard decision: {decision!r}")

    def _trace(
        self,
        result: ApplyResult,
        document_type: str,
        document_id: str,
        to_state: str,
        document: WorkflowDocument | None,
        action: str,
        t0: float,
    ) -> None:
        if result.success:
            outcome, reason = OUTCOME_APPLIED, "transition applied"
        elif isinstance(result.error, DocumentNotFoundError):
            outcome, reason = OUTCOME_NOT_FOUND, str(result.error)
        elif isinstance(result.error, StorageError):
            outcome, reason = OUTCOME_STORAGE_ERROR, str(result.error)
        else:
            outcome, reason = OUTCOME_REJECTED, str(result.error)
        _emit_workflow_trace(
            ts=self._clock.now_utc(),
            document_type=document_type,
            document_id=document_id,
            action=action,
            from_state=document.current_state if document is not None else None,
            to_state=to_state,
            outcome=outcome,
            reason=reason,
            duration_ms=(time.monotonic() - t0) * 1000,
            version=result.document.version if result.document is not None else None,
            outcome_sink=self._outcome_sink,
        )

    def _notify(
        self,
        updated: WorkflowDocument,
        previous: WorkflowDocument,
        actor_id: str,
        actor_role: str,
        action: str,
    ) -> None:
        if self._hook is None:
            return
        event = TransitionEvent(
            document_type=updated.document_type,
            document_id=updated.document_id,
            from_state=previous.current_state,
            to_state=updated.current_state,
            actor_id=actor_id,
            actor_role=actor_role,
            version=updated.version,
            occurred_at=self._clock.now_utc(),
            action=action,
        )
        try:
            self._hook.notify(event)
        except Exception:  # noqa: BLE001
            # The transition is committed; delivery problems are reported only.
            logger.error(
                "notification_hook_failed",
                extra={
                    "document_type": updated.document_type,
                    "document_id": updated.document_id,
                    "to_state": updated.current_state,
                    "version": updated.version,
                },
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Registration and reads
    # ------------------------------------------------------------------

    def register_document(
        self, document_type: str, document_id: str, actor_id: str,
    ) -> WorkflowDocument:
        """Create a document at its type's initial state with version 0.

        Raises:
            UnknownDocumentTypeError: If no workflow exists for the type.
            DocumentAlreadyExistsError: If the document is already registered.
        """
        initial_state = self._table.initial_state(document_type)
        with self._uow() as uow:
            document = uow.documents.create(document_type, document_id, initial_state, actor_id)
            uow.commit()
        return document

    def get_document(self, document_type: str, document_id: str) -> WorkflowDocument | None:
        with self._uow() as uow:
            return uow.documents.load(document_type, document_id)

    def list_audit(self, document_type: str, document_id: str) -> tuple[AuditEntry, ...]:
        """Audit entries for one document, oldest first."""
        with self._uow() as uow:
            return tuple(uow.audit.list_for(document_type, document_id))

    def list_audit_by_actor(self, actor_id: str) -> tuple[AuditEntry, ...]:
        with self._uow() as uow:
            return tuple(uow.audit.list_by_actor(actor_id))

    def allowed_targets(
        self, document_type: str, document_id: str, actor_role: str,
    ) -> tuple[str, ...]:
        """States ``actor_role`` may move the document to from where it is now.

        Guarded targets are included; the caller still has to satisfy the
        guard.  Unknown documents have no targets.
        """
        if not self._table.has_document_type(document_type):
            return ()
        document = self.get_document(document_type, document_id)
        if document is None:
            return ()
        return tuple(sorted(
            rule.to_state
            for rule in self._table.rules_from(document_type, document.current_state)
            if rule.permits(actor_role)
        ))

    def verify_audit_chain(self) -> int:
        """Validate the whole audit hash chain; return the number of entries.

        Raises:
            AuditChainBrokenError: If any entry was tampered with.
        """
        with self._uow() as uow:
            return uow.audit.validate_chain()

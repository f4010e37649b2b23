"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The audit trail is the record auditors rely on to reconstruct who moved a
document, when, and why an attempt was refused.  It must be append-only.
Workflow documents are mutable, but only along the engine's rules: their
identity never changes and their version only ever moves forward by one
per state change.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here intercept them:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|-----------------------------------------------------
AuditEntryModel     | ALWAYS immutable; never deleted
WorkflowDocument    | document_type / document_id never change
                    | current_state change requires version + 1
                    | version never decreases

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by are row metadata and are not checked.

2. Document state changes issued by SqlDocumentStore.conditional_write are
   Core UPDATE statements with a version predicate, so the same rules hold
   at the SQL level by construction.  These listeners cover every other
   ORM write path.

3. Model imports are inline to avoid a db <-> models import cycle.

===============================================================================
USAGE
===============================================================================

    from docflow_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from docflow_kernel.exceptions import ImmutabilityViolationError
from docflow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


# =============================================================================
# Audit entries
# =============================================================================


def _check_audit_entry_immutability(mapper, connection, target):
    """Audit entries are never updated."""
    raise _blocked(
        "AuditEntry",
        str(target.id),
        "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    """Audit entries are never deleted."""
    raise _blocked(
        "AuditEntry",
        str(target.id),
        "DELETE",
        "Audit entries cannot be deleted",
    )


# =============================================================================
# Workflow documents
# =============================================================================


def _old_new(target, attr: str):
    """Return (old, new) for a changed attribute, or None when unchanged."""
    history = get_history(target, attr)
    if not history.has_changes() or not history.deleted:
        return None
    return history.deleted[0], history.added[0] if history.added else None


def _check_document_update(mapper, connection, target):
    """
    Enforce document write rules.

    - document_type and document_id are fixed at creation.
    - version never decreases.
    - a current_state change must come with exactly version + 1.
    """
    entity_id = f"{target.document_type}/{target.document_id}"

    for attr in ("document_type", "document_id"):
        if _old_new(target, attr) is not None:
            raise _blocked(
                "WorkflowDocument", entity_id, "UPDATE",
                f"{attr} cannot change after creation",
            )

    version_change = _old_new(target, "version")
    if version_change is not None:
        old_version, new_version = version_change
        if new_version is not None and new_version < old_version:
            raise _blocked(
                "WorkflowDocument", entity_id, "UPDATE",
                f"version cannot decrease ({old_version} -> {new_version})",
            )

    state_change = _old_new(target, "current_state")
    if state_change is not None:
        if version_change is None or version_change[1] != version_change[0] + 1:
            raise _blocked(
                "WorkflowDocument", entity_id, "UPDATE",
                "state change must increment version by exactly 1",
            )


def _check_document_delete(mapper, connection, target):
    """Documents leave the engine's scope by reaching a terminal state, not by deletion."""
    raise _blocked(
        "WorkflowDocument",
        f"{target.document_type}/{target.document_id}",
        "DELETE",
        "Workflow documents cannot be deleted through the kernel",
    )


_LISTENERS = (
    ("AuditEntryModel", "before_update", _check_audit_entry_immutability),
    ("AuditEntryModel", "before_delete", _check_audit_entry_delete),
    ("WorkflowDocumentModel", "before_update", _check_document_update),
    ("WorkflowDocumentModel", "before_delete", _check_document_delete),
)


def _models():
    from docflow_kernel.models.audit_entry import AuditEntryModel
    from docflow_kernel.models.workflow_document import WorkflowDocumentModel

    return {
        "AuditEntryModel": AuditEntryModel,
        "WorkflowDocumentModel": WorkflowDocumentModel,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement listeners (idempotent).

    Call after the models are importable and before database writes begin.
    """
    global _registered
    if _registered:
        return
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        event.listen(models[model_name], event_name, fn)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """
    Remove all immutability listeners.

    WARNING: testing only.
    """
    global _registered
    if not _registered:
        return
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        if event.contains(models[model_name], event_name, fn):
            event.remove(models[model_name], event_name, fn)
    _registered = False
    logger.debug("immutability_listeners_unregistered")


def listeners_registered() -> bool:
    return _registered

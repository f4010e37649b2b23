"""
ORM immutability listener tests.

Audit entries are append-only.  Workflow documents keep their identity,
and their state only moves together with a version bump of exactly one.
"""

import pytest
from sqlalchemy import select

from docflow_kernel.db.immutability import (
    listeners_registered,
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from docflow_kernel.exceptions import ImmutabilityViolationError
from docflow_kernel.models.audit_entry import AuditEntryModel
from docflow_kernel.models.workflow_document import WorkflowDocumentModel
from docflow_kernel.services.document_store import SqlDocumentStore
from docflow_kernel.services.unit_of_work import SqlUnitOfWork
from docflow_services.workflow_engine import WorkflowEngine


@pytest.fixture
def applied_document(transition_table, session_factory, deterministic_clock, drive):
    engine = WorkflowEngine(
        transition_table, SqlUnitOfWork.factory(session_factory), clock=deterministic_clock,
    )
    return drive(engine, "vendor_invoice", "VI-I", [("ready_for_processing", "vendor")])


def _document_row(session):
    return session.execute(
        select(WorkflowDocumentModel).where(WorkflowDocumentModel.document_id == "VI-I")
    ).scalar_one()


def _audit_row(session):
    return session.execute(select(AuditEntryModel).limit(1)).scalar_one()


class TestAuditEntryImmutability:

    def test_update_rejected(self, applied_document, session):
        row = _audit_row(session)
        row.actor_role = "admin"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "AuditEntry"

    def test_delete_rejected(self, applied_document, session):
        session.delete(_audit_row(session))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestDocumentWriteRules:

    def test_state_change_without_version_rejected(self, applied_document, session):
        row = _document_row(session)
        row.current_state = "paid"
        with pytest.raises(ImmutabilityViolationError, match="increment version"):
            session.flush()

    def test_state_change_skipping_versions_rejected(self, applied_document, session):
        row = _document_row(session)
        row.current_state = "paid"
        row.version = row.version + 2
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_version_decrease_rejected(self, applied_document, session):
        row = _document_row(session)
        row.version = 0
        with pytest.raises(ImmutabilityViolationError, match="cannot decrease"):
            session.flush()

    def test_identity_change_rejected(self, applied_document, session):
        row = _document_row(session)
        row.document_id = "VI-OTHER"
        with pytest.raises(ImmutabilityViolationError, match="document_id"):
            session.flush()

    def test_delete_rejected(self, applied_document, session):
        session.delete(_document_row(session))
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_state_change_with_version_bump_allowed(self, applied_document, session):
        row = _document_row(session)
        row.current_state = "sent_to_admin"
        row.version = applied_document.version + 1
        session.flush()
        assert SqlDocumentStore(session).load("vendor_invoice", "VI-I").version == 2

    def test_metadata_update_allowed(self, applied_document, session):
        row = _document_row(session)
        row.updated_by = "maintenance"
        session.flush()


class TestListenerRegistration:

    def test_registered_for_suite(self):
        assert listeners_registered()

    def test_unregister_and_register_again(self, applied_document, session):
        unregister_immutability_listeners()
        try:
            assert not listeners_registered()
            _audit_row(session).detail = "edited"
            session.flush()
        finally:
            session.rollback()
            register_immutability_listeners()
        assert listeners_registered()

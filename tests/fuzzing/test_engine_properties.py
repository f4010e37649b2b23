"""
Hypothesis fuzzing of WorkflowEngine.apply over every shipped workflow.

Random attempt sequences (any target state, any role, fresh or stale
versions, guard on/off) must preserve:
- version == number of applied entries for the document
- one audit entry per attempt
- current_state == to_state of the last applied entry (initial if none)
- every applied entry corresponds to a rule open to its actor role
- rejected attempts never change the document
- the audit hash chain verifies
"""

from __future__ import annotations

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from docflow_config import get_active_config
from docflow_kernel.domain.clock import DeterministicClock
from docflow_kernel.domain.workflow import AuditOutcome
from docflow_kernel.services.memory import InMemoryBackend
from docflow_services.workflow_engine import WorkflowEngine

TABLE = get_active_config(config_id="training-ops").table

ROLES = ("vendor", "system", "admin", "accounting", "hr", "approver", "organization", "guest")


@st.composite
def attempt_sequences(draw):
    """Draw a document type and a list of (to_state, role, version_offset, guard)."""
    doc_type = draw(st.sampled_from(TABLE.document_types))
    states = sorted(TABLE.states(doc_type)) + ["nonexistent"]
    attempt = st.tuples(
        st.sampled_from(states),
        st.sampled_from(ROLES),
        st.sampled_from([0, 0, 0, -1, 1]),
        st.sampled_from([None, True, False]),
    )
    return doc_type, draw(st.lists(attempt, min_size=1, max_size=25))


class TestApplyInvariants:

    @given(data=attempt_sequences())
    @settings(
        max_examples=150,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow],
    )
    def test_random_sequences_keep_invariants(self, data):
        doc_type, attempts = data
        engine = WorkflowEngine(TABLE, InMemoryBackend().unit_of_work, clock=DeterministicClock())
        doc = engine.register_document(doc_type, "DOC-1", "setup")

        for to_state, role, offset, guard in attempts:
            before = engine.get_document(doc_type, "DOC-1")
            result = engine.apply(
                doc_type, "DOC-1", to_state, f"{role}-actor", role,
                expected_version=before.version + offset,
                business_guard_result=guard,
            )
            after = engine.get_document(doc_type, "DOC-1")
            if result.success:
                assert offset == 0
                assert after.version == before.version + 1
                assert after.current_state == to_state
                assert result.document == after
            else:
                assert after == before
                assert result.error is not None

        entries = engine.list_audit(doc_type, "DOC-1")
        applied = [e for e in entries if e.outcome == AuditOutcome.APPLIED]
        final = engine.get_document(doc_type, "DOC-1")

        assert len(entries) == len(attempts)
        assert final.version == len(applied)
        assert final.current_state == (applied[-1].to_state if applied else doc.current_state)
        for entry in applied:
            rules = TABLE.lookup(doc_type, entry.from_state, entry.to_state)
            assert any(rule.permits(entry.actor_role) for rule in rules)
        assert all(e.reason_code is not None for e in entries if e.outcome == AuditOutcome.REJECTED)
        assert engine.verify_audit_chain() == len(attempts)

    @given(doc_type=st.sampled_from(TABLE.document_types))
    @settings(max_examples=20, deadline=None)
    def test_terminal_states_have_no_rules(self, doc_type):
        for terminal in TABLE.terminal_states(doc_type):
            for target in TABLE.states(doc_type):
                assert TABLE.lookup(doc_type, terminal, target) == ()

    @given(doc_type=st.sampled_from(TABLE.document_types), role=st.sampled_from(ROLES))
    @settings(max_examples=50, deadline=None)
    def test_allowed_targets_are_applicable(self, doc_type, role):
        engine = WorkflowEngine(TABLE, InMemoryBackend().unit_of_work, clock=DeterministicClock())
        engine.register_document(doc_type, "DOC-2", "setup")

        for target in engine.allowed_targets(doc_type, "DOC-2", role):
            # Guarded targets need the guard; passing True satisfies any guard.
            fresh = WorkflowEngine(TABLE, InMemoryBackend().unit_of_work, clock=DeterministicClock())
            fresh.register_document(doc_type, "DOC-2", "setup")
            assert fresh.apply(doc_type, "DOC-2", target, "a", role, 0, business_guard_result=True).success

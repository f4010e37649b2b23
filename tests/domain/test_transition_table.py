"""
Transition table construction and lookup.

Verifies:
- The shipped workflows load and answer lookups
- Load-time rejection of structurally invalid workflows
- Terminal states have no outgoing rules
"""

import pytest

from docflow_kernel.domain.transition_table import TransitionTable, validate_workflow
from docflow_kernel.domain.workflow import Guard, TransitionRule, Workflow
from docflow_kernel.exceptions import (
    AmbiguousTransitionRuleError,
    DuplicateTransitionRuleError,
    UnknownDocumentTypeError,
    UnknownStateError,
    WorkflowDefinitionError,
)


def _rule(frm, to, *roles, guard=None, action=""):
    return TransitionRule(
        from_state=frm,
        to_state=to,
        allowed_roles=frozenset(roles),
        guard=Guard(guard) if guard else None,
        action=action,
    )


def _workflow(rules, states=("draft", "review", "done"), initial="draft", **kw):
    return Workflow(
        document_type=kw.pop("document_type", "memo"),
        description="test workflow",
        initial_state=initial,
        states=tuple(states),
        rules=tuple(rules),
        **kw,
    )


class TestShippedWorkflows:

    def test_all_document_types_loaded(self, transition_table):
        assert transition_table.document_types == (
            "organization_invoice",
            "payment_request",
            "profile_change",
            "timesheet",
            "vendor_invoice",
        )

    def test_initial_states(self, transition_table):
        for doc_type in transition_table.document_types:
            assert transition_table.initial_state(doc_type) == "pending"

    def test_lookup_returns_matching_rule(self, transition_table):
        rules = transition_table.lookup("vendor_invoice", "pending", "ready_for_processing")
        assert len(rules) == 1
        assert rules[0].allowed_roles == frozenset({"vendor"})
        assert rules[0].action == "submit"

    def test_reject_rule_expanded_from_every_review_state(self, transition_table):
        for state in ("ready_for_processing", "sent_to_admin", "sent_to_accounting", "ready_for_payment"):
            rules = transition_table.lookup("vendor_invoice", state, "rejected")
            assert len(rules) == 1
            assert rules[0].guard_name == "has_admin_comment"

    def test_lookup_unknown_pair_is_empty(self, transition_table):
        assert transition_table.lookup("vendor_invoice", "pending", "paid") == ()

    def test_lookup_unknown_type_is_empty(self, transition_table):
        assert transition_table.lookup("purchase_order", "pending", "approved") == ()

    def test_terminal_states_have_no_outgoing_rules(self, transition_table):
        for doc_type in transition_table.document_types:
            for state in transition_table.terminal_states(doc_type):
                assert transition_table.rules_from(doc_type, state) == ()
                assert transition_table.is_terminal(doc_type, state)

    def test_profile_change_terminals(self, transition_table):
        assert transition_table.terminal_states("profile_change") == frozenset({"approved", "rejected"})

    def test_unknown_document_type_raises_on_workflow(self, transition_table):
        with pytest.raises(UnknownDocumentTypeError):
            transition_table.workflow("purchase_order")

    def test_is_declared(self, transition_table):
        assert transition_table.is_declared("payment_request", "returned_to_hr")
        assert not transition_table.is_declared("profile_change", "returned_to_hr")


class TestValidation:

    def test_valid_workflow_passes(self):
        validate_workflow(_workflow([
            _rule("draft", "review", "author"),
            _rule("review", "done", "editor"),
        ]))

    def test_undeclared_state_in_rule(self):
        with pytest.raises(UnknownStateError) as exc_info:
            validate_workflow(_workflow([_rule("draft", "published", "author")]))
        assert exc_info.value.state == "published"

    def test_undeclared_initial_state(self):
        with pytest.raises(UnknownStateError):
            validate_workflow(_workflow([_rule("draft", "done", "author")], initial="new"))

    def test_rule_without_roles(self):
        with pytest.raises(WorkflowDefinitionError):
            validate_workflow(_workflow([_rule("draft", "done")]))

    def test_duplicate_rule(self):
        with pytest.raises(DuplicateTransitionRuleError) as exc_info:
            validate_workflow(_workflow([
                _rule("draft", "review", "author"),
                _rule("draft", "review", "author"),
                _rule("review", "done", "editor"),
            ]))
        assert exc_info.value.role == "author"

    def test_same_role_twice_on_pair_with_different_guards_is_ambiguous(self):
        with pytest.raises(AmbiguousTransitionRuleError):
            validate_workflow(_workflow([
                _rule("draft", "review", "author"),
                _rule("draft", "review", "author", guard="has_attachment"),
                _rule("review", "done", "editor"),
            ]))

    def test_same_pair_for_different_roles_is_allowed(self):
        validate_workflow(_workflow([
            _rule("draft", "review", "author"),
            _rule("draft", "review", "editor", guard="has_attachment"),
            _rule("review", "done", "editor"),
        ]))

    def test_declared_terminal_with_outgoing_rule(self):
        with pytest.raises(WorkflowDefinitionError):
            validate_workflow(_workflow(
                [_rule("draft", "review", "author"), _rule("review", "done", "editor")],
                terminal_states=("review",),
            ))

    def test_no_terminal_state(self):
        with pytest.raises(WorkflowDefinitionError):
            validate_workflow(_workflow(
                [_rule("draft", "review", "author"), _rule("review", "draft", "editor")],
                states=("draft", "review"),
            ))

    def test_duplicate_document_type_in_table(self):
        wf = _workflow([_rule("draft", "done", "author")])
        with pytest.raises(WorkflowDefinitionError):
            TransitionTable([wf, wf])

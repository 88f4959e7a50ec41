"""
Structural tests for the procurement state machines.
"""

import pytest

from fleet_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
    find_transition,
)

WORKFLOWS = [REQUISITION_WORKFLOW, PURCHASE_ORDER_WORKFLOW]


def _reachable(workflow):
    seen = {workflow.initial_state}
    frontier = [workflow.initial_state]
    while frontier:
        state = frontier.pop()
        for t in workflow.transitions:
            if t.from_state == state and t.to_state not in seen:
                seen.add(t.to_state)
                frontier.append(t.to_state)
    return seen


@pytest.mark.parametrize("workflow", WORKFLOWS, ids=lambda w: w.name)
class TestWorkflowStructure:

    def test_initial_state_is_declared(self, workflow):
        assert workflow.initial_state in workflow.states

    def test_transitions_use_declared_states(self, workflow):
        for t in workflow.transitions:
            assert t.from_state in workflow.states
            assert t.to_state in workflow.states

    def test_every_state_reachable(self, workflow):
        assert _reachable(workflow) == set(workflow.states)

    def test_state_names_lowercase(self, workflow):
        assert all(s == s.lower() for s in workflow.states)

    def test_actions_unique_per_state(self, workflow):
        pairs = [(t.from_state, t.action) for t in workflow.transitions]
        assert len(pairs) == len(set(pairs))


class TestRequisitionWorkflow:

    def test_terminal_states(self):
        assert REQUISITION_WORKFLOW.terminal_states() == frozenset({"received", "cancelled"})

    def test_order_only_from_approved(self):
        assert find_transition(REQUISITION_WORKFLOW, "approved", "order").to_state == "ordered"
        assert find_transition(REQUISITION_WORKFLOW, "pending_approval", "order") is None
        assert find_transition(REQUISITION_WORKFLOW, "draft", "order") is None

    def test_release_returns_to_approved(self):
        assert find_transition(REQUISITION_WORKFLOW, "ordered", "release").to_state == "approved"
        assert find_transition(REQUISITION_WORKFLOW, "ordered", "repair_orphan").to_state == "approved"

    @pytest.mark.parametrize("state", ["received", "cancelled"])
    def test_cannot_cancel_terminal(self, state):
        assert find_transition(REQUISITION_WORKFLOW, state, "cancel") is None


class TestPurchaseOrderWorkflow:

    def test_terminal_states(self):
        assert PURCHASE_ORDER_WORKFLOW.terminal_states() == frozenset({"received", "cancelled"})

    def test_cancel_only_from_ordered(self):
        cancels = [t for t in PURCHASE_ORDER_WORKFLOW.transitions if t.action == "cancel"]
        assert [t.from_state for t in cancels] == ["ordered"]

    def test_only_receipt_touches_ledger(self):
        touching = [t.action for t in PURCHASE_ORDER_WORKFLOW.transitions if t.touches_ledger]
        assert touching == ["receive"]

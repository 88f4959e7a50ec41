"""
Procurement Workflows.

State machines for requisition and purchase order processing.  The service
looks every move up here before changing a status; a move that is not in
the table raises ``InvalidStateTransitionError``.
"""

from dataclasses import dataclass

from fleet_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    touches_ledger: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def terminal_states(self) -> frozenset[str]:
        outgoing = {t.from_state for t in self.transitions}
        return frozenset(s for s in self.states if s not in outgoing)


def find_transition(workflow: Workflow, current_state: str, action: str) -> Transition | None:
    """Find the transition for ``action`` out of ``current_state``."""
    for t in workflow.transitions:
        if t.from_state == current_state and t.action == action:
            return t
    return None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

APPROVER_RECORDED = Guard(
    name="approver_recorded",
    description="Approver identity and approval time are recorded",
)

NOT_LINKED_TO_ACTIVE_PO = Guard(
    name="not_linked_to_active_po",
    description="Requisition is not part of another live purchase order",
)

EVIDENCE_ATTACHED = Guard(
    name="evidence_attached",
    description="At least one goods receipt photo or scan is attached",
)

PO_LINK_UNRESOLVED = Guard(
    name="po_link_unresolved",
    description="Linked PO number no longer resolves to a purchase order",
)


# -----------------------------------------------------------------------------
# Requisition Workflow
# -----------------------------------------------------------------------------

REQUISITION_WORKFLOW = Workflow(
    name="requisition",
    description="Purchase requisition lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending_approval",
        "approved",
        "ordered",
        "received",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "pending_approval", action="submit"),
        Transition("pending_approval", "approved", action="approve", guard=APPROVER_RECORDED),
        Transition("approved", "ordered", action="order", guard=NOT_LINKED_TO_ACTIVE_PO),
        Transition("ordered", "received", action="receive"),
        # PO cancelled: the requisition can be ordered again
        Transition("ordered", "approved", action="release"),
        # Manual remediation of a dangling PO link
        Transition("ordered", "approved", action="repair_orphan", guard=PO_LINK_UNRESOLVED),
        Transition("draft", "cancelled", action="cancel"),
        Transition("pending_approval", "cancelled", action="cancel"),
        Transition("approved", "cancelled", action="cancel"),
        Transition("ordered", "cancelled", action="cancel"),
    ),
)

logger.info(
    "procurement_requisition_workflow_registered",
    extra={
        "workflow_name": REQUISITION_WORKFLOW.name,
        "state_count": len(REQUISITION_WORKFLOW.states),
        "transition_count": len(REQUISITION_WORKFLOW.transitions),
        "initial_state": REQUISITION_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "ordered",
        "received",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "ordered", action="place"),
        Transition("ordered", "received", action="receive", guard=EVIDENCE_ATTACHED, touches_ledger=True),
        Transition("ordered", "cancelled", action="cancel"),
    ),
)

logger.info(
    "procurement_po_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)

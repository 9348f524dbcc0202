"""
Stock-take and adjustment lifecycles (``inventory_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the two state machines of the reconciliation
core, plus the generic Guard / Transition / Workflow types they are
built from.

    StockTake:        draft --start--> in_progress --complete--> completed
                      draft | in_progress --cancel--> cancelled

    StockAdjustment:  pending --approve--> approved
                      pending --reject-->  rejected

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions are one-directional; terminal states have no outgoing
  edges, so a completed stock-take or an approved adjustment can never
  be re-opened.
* ``Workflow.transition_for`` is the only lookup services use to decide
  whether an action is legal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``mutates_ledger=True`` marks the transitions that write inventory
    movements (adjustment approval).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    mutates_ledger: bool = False
    requires_privilege: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def transition_for(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        state = _value(from_state)
        for transition in self.transitions:
            if transition.from_state == state and transition.action == action:
                return transition
        return None

    def actions_from(self, from_state: str) -> tuple[str, ...]:
        state = _value(from_state)
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def is_terminal(self, state: str) -> bool:
        return _value(state) in self.terminal_states


def _value(state) -> str:
    return state.value if isinstance(state, Enum) else str(state)


# =========================================================================
# Stock take lifecycle
# =========================================================================


class StockTakeStatus(str, Enum):
    """Stock-take session states."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


STOCK_TAKE_TRANSITIONS: dict[StockTakeStatus, frozenset[StockTakeStatus]] = {
    StockTakeStatus.DRAFT: frozenset({
        StockTakeStatus.IN_PROGRESS,
        StockTakeStatus.CANCELLED,
    }),
    StockTakeStatus.IN_PROGRESS: frozenset({
        StockTakeStatus.COMPLETED,
        StockTakeStatus.CANCELLED,
    }),
    StockTakeStatus.COMPLETED: frozenset(),
    StockTakeStatus.CANCELLED: frozenset(),
}

TERMINAL_STOCK_TAKE_STATUSES: frozenset[StockTakeStatus] = frozenset({
    StockTakeStatus.COMPLETED,
    StockTakeStatus.CANCELLED,
})

_COUNTING_OPEN = Guard(
    "counting_open",
    "Counts may only be recorded while the stock take is in progress",
)

STOCK_TAKE_WORKFLOW = Workflow(
    name="stock_take",
    description="Physical count of all active inventory items",
    initial_state=StockTakeStatus.DRAFT.value,
    states=tuple(s.value for s in StockTakeStatus),
    transitions=(
        Transition("draft", "in_progress", action="start"),
        Transition("in_progress", "in_progress", action="record_count", guard=_COUNTING_OPEN),
        Transition("in_progress", "completed", action="complete"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("in_progress", "cancelled", action="cancel"),
    ),
    terminal_states=("completed", "cancelled"),
)


# =========================================================================
# Adjustment lifecycle
# =========================================================================


class AdjustmentStatus(str, Enum):
    """Stock adjustment approval states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdjustmentType(str, Enum):
    """Direction of a proposed correction."""

    INCREASE = "increase"
    DECREASE = "decrease"
    CORRECTION = "correction"


ADJUSTMENT_TRANSITIONS: dict[AdjustmentStatus, frozenset[AdjustmentStatus]] = {
    AdjustmentStatus.PENDING: frozenset({
        AdjustmentStatus.APPROVED,
        AdjustmentStatus.REJECTED,
    }),
    AdjustmentStatus.APPROVED: frozenset(),
    AdjustmentStatus.REJECTED: frozenset(),
}

TERMINAL_ADJUSTMENT_STATUSES: frozenset[AdjustmentStatus] = frozenset({
    AdjustmentStatus.APPROVED,
    AdjustmentStatus.REJECTED,
})

_DISTINCT_APPROVER = Guard(
    "distinct_approver",
    "Approver must hold an approver role and differ from the creator",
)

ADJUSTMENT_WORKFLOW = Workflow(
    name="stock_adjustment",
    description="Two-actor approval of inventory corrections",
    initial_state=AdjustmentStatus.PENDING.value,
    states=tuple(s.value for s in AdjustmentStatus),
    transitions=(
        Transition(
            "pending", "approved", action="approve",
            guard=_DISTINCT_APPROVER, mutates_ledger=True, requires_privilege=True,
        ),
        Transition("pending", "rejected", action="reject", requires_privilege=True),
    ),
    terminal_states=("approved", "rejected"),
)


def classify_adjustment(quantity_before, quantity_after) -> AdjustmentType:
    """``increase`` when the count went up, ``decrease`` when it went down.

    Raises:
        ValueError: quantities are equal (nothing to adjust).
    """
    if quantity_after > quantity_before:
        return AdjustmentType.INCREASE
    if quantity_after < quantity_before:
        return AdjustmentType.DECREASE
    raise ValueError("quantity_before equals quantity_after")

"""
Tests for AdjustmentApprovalGate.

Covers:
- Privilege: only approver roles decide, the adjustment stays pending
  otherwise
- Self-approval: blocked unless the approver holds a self-approval role
- Approve applies exactly one ADJUSTMENT movement
- A decrease that no longer fits rolls the approval back to pending
- Reject is terminal and leaves the ledger alone
- Stock take to approved adjustment end to end
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.dtos import ApprovalOutcome, LedgerStatus, MovementType
from inventory_kernel.domain.workflow import AdjustmentStatus, AdjustmentType
from inventory_kernel.exceptions import (
    AdjustmentNotFoundError,
    ApprovalPrivilegeError,
    InvalidAdjustmentError,
    InvalidStateTransitionError,
    InventoryItemNotFoundError,
    SelfApprovalError,
)
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.services.approval_gate import AdjustmentApprovalGate
from inventory_kernel.services.stock_take_service import StockTakeWorkflowService


@pytest.fixture
def gate(session, ledger, deterministic_clock):
    return AdjustmentApprovalGate(session, ledger, deterministic_clock)


@pytest.fixture
def selector(session):
    return InventorySelector(session)


@pytest.fixture
def cherry(create_item):
    return create_item("Cherry", "Toppings", "pcs", 100, cost_per_unit="2.50")


@pytest.fixture
def pending(gate, cherry, clerk):
    return gate.request_adjustment(
        cherry.id, AdjustmentType.DECREASE, Decimal("92"), "Breakage", clerk,
    )


class TestRequest:

    def test_snapshot_of_current_quantity(self, pending, cherry, clerk):
        assert pending.status == AdjustmentStatus.PENDING
        assert pending.quantity_before == Decimal("100")
        assert pending.quantity_after == Decimal("92")
        assert pending.unit_cost == Decimal("2.50")
        assert pending.created_by == clerk.actor_id
        assert pending.adjustment_quantity == Decimal("-8")
        assert pending.adjustment_value == Decimal("-20.00")

    @pytest.mark.parametrize(
        "adjustment_type,target",
        [
            (AdjustmentType.DECREASE, 100),
            (AdjustmentType.DECREASE, 120),
            (AdjustmentType.INCREASE, 90),
            (AdjustmentType.CORRECTION, -1),
        ],
    )
    def test_invalid_requests(self, gate, cherry, clerk, adjustment_type, target):
        with pytest.raises(InvalidAdjustmentError):
            gate.request_adjustment(cherry.id, adjustment_type, target, "Recount", clerk)

    def test_reason_required(self, gate, cherry, clerk):
        with pytest.raises(InvalidAdjustmentError):
            gate.request_adjustment(cherry.id, AdjustmentType.DECREASE, 90, " ", clerk)

    def test_unknown_item(self, gate, clerk):
        with pytest.raises(InventoryItemNotFoundError):
            gate.request_adjustment(uuid4(), AdjustmentType.DECREASE, 1, "Recount", clerk)

    def test_request_does_not_move_stock(self, pending, cherry, selector):
        assert selector.get_item(cherry.id).available_quantity == Decimal("100")


class TestPrivilege:

    def test_clerk_cannot_approve(self, gate, pending, selector, cherry):
        other_clerk = Actor(actor_id=uuid4(), role="clerk")
        with pytest.raises(ApprovalPrivilegeError) as exc_info:
            gate.approve(pending.id, other_clerk)

        assert exc_info.value.actor_role == "clerk"
        assert gate.get_adjustment(pending.id).status == AdjustmentStatus.PENDING
        assert selector.get_item(cherry.id).available_quantity == Decimal("100")
        assert selector.movement_history(cherry.id) == []

    def test_clerk_cannot_reject(self, gate, pending, clerk):
        with pytest.raises(ApprovalPrivilegeError):
            gate.reject(pending.id, clerk, "no")
        assert gate.get_adjustment(pending.id).status == AdjustmentStatus.PENDING

    def test_privilege_logged(self, gate, pending, clerk, captured_logs):
        with pytest.raises(ApprovalPrivilegeError):
            gate.approve(pending.id, clerk)
        assert any(r["message"] == "approval_privilege_denied" for r in captured_logs())

    def test_custom_approver_roles(self, session, ledger, deterministic_clock, pending, clerk):
        gate = AdjustmentApprovalGate(
            session, ledger, deterministic_clock, approver_roles=("supervisor",),
        )
        supervisor = Actor(actor_id=uuid4(), role="supervisor")
        result = gate.approve(pending.id, supervisor)
        assert result.outcome == ApprovalOutcome.APPROVED


class TestSelfApproval:

    def test_manager_cannot_approve_own(self, gate, cherry, manager):
        own = gate.request_adjustment(cherry.id, AdjustmentType.DECREASE, 95, "Spoilage", manager)
        with pytest.raises(SelfApprovalError):
            gate.approve(own.id, manager)
        assert gate.get_adjustment(own.id).status == AdjustmentStatus.PENDING

    def test_admin_may_approve_own(self, gate, cherry, admin, selector):
        own = gate.request_adjustment(cherry.id, AdjustmentType.DECREASE, 95, "Spoilage", admin)
        result = gate.approve(own.id, admin)
        assert result.is_success
        assert selector.get_item(cherry.id).available_quantity == Decimal("95")


class TestApprove:

    def test_applies_one_movement(self, gate, pending, cherry, manager, selector):
        result = gate.approve(pending.id, manager)

        assert result.outcome == ApprovalOutcome.APPROVED
        assert result.adjustment.status == AdjustmentStatus.APPROVED
        assert result.adjustment.approved_by == manager.actor_id
        assert result.adjustment.approved_at is not None
        assert result.movement.movement_type == MovementType.ADJUSTMENT
        assert result.movement.quantity_delta == Decimal("-8")
        assert result.movement.reference_id == pending.reference_number
        assert result.movement.created_by == manager.actor_id

        assert selector.get_item(cherry.id).available_quantity == Decimal("92")
        assert len(selector.movement_history(cherry.id)) == 1

    def test_increase(self, gate, cherry, clerk, manager, selector):
        found = gate.request_adjustment(cherry.id, AdjustmentType.INCREASE, 104, "Found box", clerk)
        gate.approve(found.id, manager)
        assert selector.get_item(cherry.id).available_quantity == Decimal("104")

    def test_approve_twice(self, gate, pending, manager, admin):
        gate.approve(pending.id, manager)
        with pytest.raises(InvalidStateTransitionError):
            gate.approve(pending.id, admin)

    def test_unknown_adjustment(self, gate, manager):
        with pytest.raises(AdjustmentNotFoundError):
            gate.approve(uuid4(), manager)

    def test_rolled_back_when_stock_moved(self, gate, ledger, cherry, clerk, manager, selector):
        """Counted at 100 -> 92, but 95 were sold before the manager approved."""
        shrink = gate.request_adjustment(cherry.id, AdjustmentType.DECREASE, 92, "Breakage", clerk)
        ledger.consume(cherry.id, 95, MovementType.SALE, "SALE", "SO-9", clerk)

        result = gate.approve(shrink.id, manager)

        assert result.outcome == ApprovalOutcome.ROLLED_BACK
        assert not result.is_success
        assert result.ledger_result.status == LedgerStatus.INSUFFICIENT_STOCK
        assert result.adjustment.status == AdjustmentStatus.PENDING
        assert result.adjustment.approved_by is None
        assert selector.get_item(cherry.id).available_quantity == Decimal("5")
        assert len(selector.movement_history(cherry.id)) == 1


class TestReject:

    def test_reject_is_terminal(self, gate, pending, manager, admin, selector, cherry):
        rejected = gate.reject(pending.id, manager, "Recount first")

        assert rejected.status == AdjustmentStatus.REJECTED
        assert rejected.rejected_by == manager.actor_id
        assert rejected.rejection_reason == "Recount first"
        assert selector.get_item(cherry.id).available_quantity == Decimal("100")
        with pytest.raises(InvalidStateTransitionError):
            gate.approve(pending.id, admin)


class TestStockTakeToLedger:

    def test_count_approve_apply(self, session, gate, deterministic_clock, cherry, clerk, manager, selector):
        workflow = StockTakeWorkflowService(session, deterministic_clock)
        info = workflow.create("Monthly count", manager)
        detail = workflow.start(info.id, manager)
        workflow.record_count(detail.items[0].id, 92, clerk)
        workflow.complete(info.id, manager)
        (adjustment,) = workflow.create_adjustments_from_stock_take(info.id, clerk)

        result = gate.approve(adjustment.id, manager)

        assert result.is_success
        assert selector.get_item(cherry.id).available_quantity == Decimal("92")
        movements = selector.movements_for_reference("STOCK_ADJUSTMENT", adjustment.reference_number)
        assert len(movements) == 1
        assert movements[0].quantity_delta == Decimal("-8")
        assert movements[0].notes.endswith("Stock Take: ST-000001")
        assert ledger_is_consistent(session, cherry.id)


def ledger_is_consistent(session, item_id):
    selector = InventorySelector(session)
    return selector.reconstruct_quantity(item_id) == selector.get_item(item_id).available_quantity

"""
Tests for InventoryLedgerService.

Covers:
- consume(): sequential sales, insufficient stock leaves no trace,
  programming errors raise, unknown / inactive items come back as results
- replenish(): last-cost and weighted-average cost policies,
  PRODUCTION_OUTPUT movements
- apply_adjustment(): only approved adjustments apply
- verify_item(): movement-sum invariant and drift detection
- Property: random consume/replenish sequences never go negative and are
  always explained by the movement trail
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import update

from inventory_kernel.domain.dtos import LedgerStatus, MovementType, StockAdjustmentInfo
from inventory_kernel.domain.workflow import AdjustmentStatus, AdjustmentType
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidMovementTypeError,
    InvalidQuantityError,
    InventoryItemInactiveError,
    InventoryItemNotFoundError,
    LedgerDriftError,
)
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.services.ledger_service import CostPolicy, InventoryLedgerService


@pytest.fixture
def selector(session):
    return InventorySelector(session)


def sale(ledger, item_id, quantity, actor, reference="SO-1"):
    return ledger.consume(item_id, Decimal(quantity), MovementType.SALE, "SALE", reference, actor)


class TestConsume:

    def test_sequential_sales_and_shortfall(self, ledger, create_item, selector, clerk):
        """5000 g of Vanilla, two 2000 g sales, then a 1500 g sale that does not fit."""
        vanilla = create_item("Vanilla", "Flavors", "g", 5000)

        first = sale(ledger, vanilla.id, 2000, clerk)
        assert first.is_success
        assert first.movement.quantity_delta == Decimal("-2000")
        assert first.movement.quantity_before == Decimal("5000")
        assert first.movement.quantity_after == Decimal("3000")

        second = sale(ledger, vanilla.id, 2000, clerk)
        assert second.is_success
        assert second.quantity_after == Decimal("1000")

        third = sale(ledger, vanilla.id, 1500, clerk)
        assert not third.is_success
        assert third.status == LedgerStatus.INSUFFICIENT_STOCK
        assert isinstance(third.error, InsufficientStockError)
        assert third.error.requested == Decimal("1500")
        assert third.error.available == Decimal("1000")
        assert third.movement is None

        assert selector.get_item(vanilla.id).available_quantity == Decimal("1000")
        assert len(selector.movement_history(vanilla.id)) == 2
        assert ledger.verify_item(vanilla.id) == Decimal("1000")

    def test_consume_exact_remaining_quantity(self, ledger, create_item, selector, clerk):
        cone = create_item("Waffle Cone", "Cones", "pcs", 3)
        result = sale(ledger, cone.id, 3, clerk)
        assert result.is_success
        assert selector.get_item(cone.id).available_quantity == Decimal("0")

    def test_movement_records_actor_and_reference(self, ledger, create_item, clerk):
        cherry = create_item("Cherry", "Toppings", "pcs", 10, cost_per_unit="0.10")
        result = ledger.consume(
            cherry.id, 2, MovementType.SALE, "SALE", "SO-77", clerk, notes="two cherries",
        )
        movement = result.movement
        assert movement.movement_type == MovementType.SALE
        assert movement.reference_type == "SALE"
        assert movement.reference_id == "SO-77"
        assert movement.created_by == clerk.actor_id
        assert movement.notes == "two cherries"
        assert movement.unit_cost == Decimal("0.10")

    def test_production_consume_allowed(self, ledger, create_item, admin):
        milk = create_item("Milk", "Dairy", "L", 20)
        result = ledger.consume(
            milk.id, 5, MovementType.PRODUCTION_CONSUME, "PRODUCTION_BATCH", "PB-1", admin,
        )
        assert result.movement.movement_type == MovementType.PRODUCTION_CONSUME

    @pytest.mark.parametrize("movement_type", [MovementType.REPLENISH, MovementType.ADJUSTMENT])
    def test_wrong_movement_type_raises(self, ledger, create_item, clerk, movement_type):
        item = create_item("Oreo", "Flavors", "g", 100)
        with pytest.raises(InvalidMovementTypeError):
            ledger.consume(item.id, 1, movement_type, "SALE", "SO-1", clerk)

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity_raises(self, ledger, create_item, clerk, quantity):
        item = create_item("Oreo", "Flavors", "g", 100)
        with pytest.raises(InvalidQuantityError):
            ledger.consume(item.id, quantity, MovementType.SALE, "SALE", "SO-1", clerk)

    def test_float_quantity_raises(self, ledger, create_item, clerk):
        item = create_item("Oreo", "Flavors", "g", 100)
        with pytest.raises(TypeError):
            ledger.consume(item.id, 1.5, MovementType.SALE, "SALE", "SO-1", clerk)

    def test_unknown_item(self, ledger, clerk):
        result = sale(ledger, uuid4(), 1, clerk)
        assert result.status == LedgerStatus.ITEM_NOT_FOUND
        assert isinstance(result.error, InventoryItemNotFoundError)

    def test_inactive_item(self, ledger, create_item, admin, clerk):
        item = create_item("Kitkat", "Flavors", "g", 500)
        ledger.deactivate_item(item.id, admin)
        result = sale(ledger, item.id, 1, clerk)
        assert result.status == LedgerStatus.ITEM_INACTIVE
        assert isinstance(result.error, InventoryItemInactiveError)

    def test_logs(self, ledger, create_item, clerk, captured_logs):
        item = create_item("Honey Sauce", "Toppings", "ml", 100)
        sale(ledger, item.id, 60, clerk)
        sale(ledger, item.id, 60, clerk)

        messages = [r["message"] for r in captured_logs()]
        assert "stock_consumed" in messages
        assert "stock_insufficient" in messages
        consumed = next(r for r in captured_logs() if r["message"] == "stock_consumed")
        assert consumed["item_id"] == str(item.id)
        assert consumed["quantity_delta"].startswith("-60")


class TestReplenish:

    def test_last_cost_overwrites(self, ledger, create_item, selector, admin):
        item = create_item("Caramel Sauce", "Toppings", "ml", 1000, cost_per_unit="0.02")
        result = ledger.replenish(item.id, 500, Decimal("0.03"), "PO-9", admin)

        assert result.is_success
        assert result.movement.movement_type == MovementType.REPLENISH
        assert result.movement.quantity_delta == Decimal("500")
        assert result.movement.reference_type == "REPLENISH"
        assert result.movement.reference_id == "PO-9"
        refreshed = selector.get_item(item.id)
        assert refreshed.available_quantity == Decimal("1500")
        assert refreshed.cost_per_unit == Decimal("0.03")

    def test_weighted_average(self, session, deterministic_clock, create_item, selector, admin):
        ledger = InventoryLedgerService(
            session, deterministic_clock, cost_policy=CostPolicy.WEIGHTED_AVERAGE,
        )
        item = create_item("Strawberry", "Flavors", "g", 100, cost_per_unit="2")
        ledger.replenish(item.id, 100, Decimal("4"), "PO-1", admin)

        assert selector.get_item(item.id).cost_per_unit == Decimal("3")

    def test_none_cost_keeps_existing(self, ledger, create_item, selector, admin):
        item = create_item("Cherry", "Toppings", "pcs", 10, cost_per_unit="0.10")
        ledger.replenish(item.id, 5, None, None, admin)
        assert selector.get_item(item.id).cost_per_unit == Decimal("0.10")

    def test_production_output(self, ledger, create_item, admin):
        item = create_item("Vanilla Tub", "Flavors", "kg", 0)
        result = ledger.replenish(
            item.id, 5, Decimal("10"), "PB-3", admin,
            movement_type=MovementType.PRODUCTION_OUTPUT, reference_type="PRODUCTION_BATCH",
        )
        assert result.movement.movement_type == MovementType.PRODUCTION_OUTPUT
        assert result.movement.reference_type == "PRODUCTION_BATCH"

    def test_sale_type_rejected(self, ledger, create_item, admin):
        item = create_item("Cherry", "Toppings", "pcs", 10)
        with pytest.raises(InvalidMovementTypeError):
            ledger.replenish(item.id, 5, None, None, admin, movement_type=MovementType.SALE)

    def test_negative_cost_rejected(self, ledger, create_item, admin):
        item = create_item("Cherry", "Toppings", "pcs", 10)
        with pytest.raises(InvalidQuantityError):
            ledger.replenish(item.id, 5, Decimal("-1"), None, admin)


class TestApplyAdjustment:

    def _adjustment(self, item, before, after, status=AdjustmentStatus.APPROVED):
        return StockAdjustmentInfo(
            id=uuid4(),
            reference_number="ADJ-000001",
            stock_take_id=None,
            inventory_item_id=item.id,
            adjustment_type=AdjustmentType.DECREASE if after < before else AdjustmentType.INCREASE,
            quantity_before=Decimal(before),
            quantity_after=Decimal(after),
            unit_cost=Decimal("1"),
            reason="Stock take variance",
            status=status,
            created_by=uuid4(),
            created_at=None,
        )

    def test_pending_adjustment_not_applied(self, ledger, create_item, selector, manager):
        item = create_item("Cherry", "Toppings", "pcs", 100)
        result = ledger.apply_adjustment(
            self._adjustment(item, 100, 92, AdjustmentStatus.PENDING), manager,
        )
        assert result.status == LedgerStatus.INVALID_STATE
        assert selector.get_item(item.id).available_quantity == Decimal("100")

    def test_decrease(self, ledger, create_item, selector, manager):
        item = create_item("Cherry", "Toppings", "pcs", 100)
        result = ledger.apply_adjustment(self._adjustment(item, 100, 92), manager)
        assert result.is_success
        assert result.movement.movement_type == MovementType.ADJUSTMENT
        assert result.movement.quantity_delta == Decimal("-8")
        assert result.movement.reference_type == "STOCK_ADJUSTMENT"
        assert result.movement.reference_id == "ADJ-000001"
        assert selector.get_item(item.id).available_quantity == Decimal("92")

    def test_increase(self, ledger, create_item, selector, manager):
        item = create_item("Cherry", "Toppings", "pcs", 10)
        ledger.apply_adjustment(self._adjustment(item, 10, 13), manager)
        assert selector.get_item(item.id).available_quantity == Decimal("13")

    def test_decrease_that_no_longer_fits(self, ledger, create_item, manager, clerk):
        item = create_item("Cherry", "Toppings", "pcs", 10)
        sale(ledger, item.id, 8, clerk)
        result = ledger.apply_adjustment(self._adjustment(item, 10, 5), manager)
        assert result.status == LedgerStatus.INSUFFICIENT_STOCK


class TestVerifyItem:

    def test_detects_drift(self, ledger, create_item, session, clerk):
        item = create_item("Oreo", "Flavors", "g", 100)
        sale(ledger, item.id, 10, clerk)
        # bulk update bypasses the ledger and the ORM listeners
        session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item.id)
            .values(available_quantity=Decimal("50"))
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(LedgerDriftError) as exc_info:
            ledger.verify_item(item.id)
        assert exc_info.value.reconstructed == Decimal("90")

    def test_unknown_item(self, ledger):
        with pytest.raises(InventoryItemNotFoundError):
            ledger.verify_item(uuid4())


class TestRegisterItem:

    def test_opening_quantity_has_no_movement(self, create_item, selector):
        item = create_item("Crushed Nuts", "Toppings", "grams", 250)
        assert item.unit == "g"
        assert item.initial_quantity == Decimal("250")
        assert selector.movement_history(item.id) == []

    def test_negative_opening_rejected(self, ledger, admin):
        with pytest.raises(InvalidQuantityError):
            ledger.register_item("Bad", "Flavors", "g", admin, initial_quantity=Decimal("-1"))


operations = st.lists(
    st.tuples(st.sampled_from(["consume", "replenish"]), st.integers(min_value=1, max_value=400)),
    min_size=1,
    max_size=15,
)


class TestLedgerProperties:

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(opening=st.integers(min_value=0, max_value=500), ops=operations)
    def test_never_negative_and_explained_by_movements(
        self, ledger, create_item, selector, clerk, admin, opening, ops,
    ):
        item = create_item(f"Item {uuid4()}", "Flavors", "g", opening)
        expected = Decimal(opening)

        for op, amount in ops:
            if op == "consume":
                result = sale(ledger, item.id, amount, clerk)
                if amount <= expected:
                    assert result.is_success
                    expected -= amount
                else:
                    assert result.status == LedgerStatus.INSUFFICIENT_STOCK
            else:
                assert ledger.replenish(item.id, amount, None, None, admin).is_success
                expected += amount

            available = selector.get_item(item.id).available_quantity
            assert available >= 0
            assert available == expected

        assert ledger.verify_item(item.id) == expected
        assert selector.reconstruct_quantity(item.id) == expected

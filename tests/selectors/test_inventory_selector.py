"""
Tests for InventorySelector.

Covers name lookup, active / low-stock listings, movement history
ordering, per-reference movements, per-type totals and expiring stock.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from inventory_kernel.domain.dtos import MovementType
from inventory_kernel.exceptions import InventoryItemNotFoundError
from inventory_kernel.selectors.inventory_selector import InventorySelector


@pytest.fixture
def selector(session):
    return InventorySelector(session)


class TestItemLookups:

    def test_find_by_name_is_case_insensitive(self, create_item, selector):
        vanilla = create_item("Vanilla", "Flavors", "g", 100)
        assert [i.id for i in selector.find_items_by_name("  vanilla ")] == [vanilla.id]

    def test_find_by_name_is_exact(self, create_item, selector):
        create_item("Vanilla", "Flavors", "g", 100)
        assert selector.find_items_by_name("Vanil") == []

    def test_find_by_name_orders_by_category(self, create_item, selector):
        create_item("Banana", "Toppings", "pcs", 10)
        create_item("Banana", "Flavors", "g", 500)
        assert [i.category for i in selector.find_items_by_name("banana")] == ["Flavors", "Toppings"]

    def test_inactive_excluded_by_default(self, create_item, ledger, admin, selector):
        item = create_item("Kitkat", "Flavors", "g", 100)
        ledger.deactivate_item(item.id, admin)
        assert selector.find_items_by_name("Kitkat") == []
        assert len(selector.find_items_by_name("Kitkat", active_only=False)) == 1
        assert selector.list_active_items() == []

    def test_list_active_by_category(self, create_item, selector):
        create_item("Vanilla", "Flavors", "g", 100)
        create_item("Cherry", "Toppings", "pcs", 10)
        assert [i.name for i in selector.list_active_items("Toppings")] == ["Cherry"]

    def test_low_stock(self, create_item, selector):
        create_item("Vanilla", "Flavors", "g", 100, minimum_stock_level=500)
        create_item("Cherry", "Toppings", "pcs", 10, minimum_stock_level=5)
        low = selector.low_stock_items()
        assert [i.name for i in low] == ["Vanilla"]
        assert low[0].is_low_stock

    def test_get_unknown(self, selector):
        from uuid import uuid4

        assert selector.get_item(uuid4()) is None


class TestMovementQueries:

    def test_history_newest_first(self, create_item, ledger, clerk, deterministic_clock, selector):
        item = create_item("Vanilla", "Flavors", "g", 1000)
        for order in ("SO-1", "SO-2", "SO-3"):
            ledger.consume(item.id, 100, MovementType.SALE, "SALE", order, clerk)
            deterministic_clock.advance(60)

        history = selector.movement_history(item.id)
        assert [m.reference_id for m in history] == ["SO-3", "SO-2", "SO-1"]
        assert len(selector.movement_history(item.id, limit=2)) == 2

    def test_movements_for_reference(self, sundae_stock, ledger, clerk, selector):
        for name in ("Cherry", "Waffle Cone"):
            ledger.consume(sundae_stock[name].id, 1, MovementType.SALE, "SALE", "SO-5", clerk)
        ledger.consume(sundae_stock["Cherry"].id, 1, MovementType.SALE, "SALE", "SO-6", clerk)

        movements = selector.movements_for_reference("SALE", "SO-5")
        assert {m.inventory_item_id for m in movements} == {
            sundae_stock["Cherry"].id, sundae_stock["Waffle Cone"].id,
        }

    def test_movement_totals(self, create_item, ledger, clerk, admin, selector):
        item = create_item("Vanilla", "Flavors", "g", 1000)
        ledger.consume(item.id, 100, MovementType.SALE, "SALE", "SO-1", clerk)
        ledger.consume(item.id, 50, MovementType.SALE, "SALE", "SO-2", clerk)
        ledger.replenish(item.id, 500, None, "PO-1", admin)

        totals = {t.movement_type: t for t in selector.movement_totals()}
        assert totals[MovementType.SALE].movement_count == 2
        assert totals[MovementType.SALE].total_delta == Decimal("-150")
        assert totals[MovementType.REPLENISH].total_delta == Decimal("500")
        assert totals[MovementType.ADJUSTMENT].movement_count == 0

    def test_movement_totals_window(self, create_item, ledger, clerk, deterministic_clock, selector):
        item = create_item("Vanilla", "Flavors", "g", 1000)
        ledger.consume(item.id, 100, MovementType.SALE, "SALE", "SO-1", clerk)
        deterministic_clock.advance(3600)
        ledger.consume(item.id, 10, MovementType.SALE, "SALE", "SO-2", clerk)

        start = datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)
        totals = {t.movement_type: t for t in selector.movement_totals(start, start + timedelta(days=1))}
        assert totals[MovementType.SALE].movement_count == 1
        assert totals[MovementType.SALE].total_delta == Decimal("-10")

    def test_reconstruct_unknown(self, selector):
        from uuid import uuid4

        with pytest.raises(InventoryItemNotFoundError):
            selector.reconstruct_quantity(uuid4())


class TestExpiringItems:

    def test_within_window_soonest_first(self, create_item, selector, deterministic_clock):
        create_item("Strawberry", "Flavors", "g", 500, expiration_date=date(2024, 1, 6))
        create_item("Whipped Cream", "Toppings", "ml", 800, expiration_date=date(2024, 1, 3))
        create_item("Waffle Cone", "Cones", "pcs", 40, expiration_date=date(2024, 3, 1))
        create_item("Sprinkles", "Toppings", "g", 200)

        expiring = selector.expiring_items(deterministic_clock.now())

        assert [i.name for i in expiring] == ["Whipped Cream", "Strawberry"]
        assert expiring[0].expiration_date == date(2024, 1, 3)

    def test_cutoff_day_is_inclusive(self, create_item, selector):
        create_item("Strawberry", "Flavors", "g", 500, expiration_date=date(2024, 1, 8))
        assert [i.name for i in selector.expiring_items(date(2024, 1, 1))] == ["Strawberry"]
        assert selector.expiring_items(date(2024, 1, 1), days_ahead=6) == []

    def test_already_expired_included(self, create_item, selector):
        create_item("Banana", "Toppings", "pcs", 10, expiration_date=date(2023, 12, 28))
        assert [i.name for i in selector.expiring_items(date(2024, 1, 1))] == ["Banana"]

    def test_inactive_excluded(self, create_item, ledger, admin, selector):
        item = create_item("Kitkat", "Flavors", "g", 100, expiration_date=date(2024, 1, 2))
        ledger.deactivate_item(item.id, admin)
        assert selector.expiring_items(date(2024, 1, 1)) == []

    def test_expiration_date_can_be_updated(self, create_item, ledger, admin, selector):
        item = create_item("Strawberry", "Flavors", "g", 500, expiration_date=date(2024, 1, 3))

        updated = ledger.set_expiration_date(item.id, date(2024, 2, 1), admin)

        assert updated.expiration_date == date(2024, 2, 1)
        assert selector.expiring_items(date(2024, 1, 1)) == []

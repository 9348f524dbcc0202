"""
Unit tests for variance arithmetic and report aggregation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from inventory_kernel.domain.dtos import StockTakeInfo, StockTakeItemInfo
from inventory_kernel.domain.variance import (
    build_variance_report,
    compute_variance,
    total_variance_value,
)
from inventory_kernel.domain.workflow import StockTakeStatus

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_stock_take() -> StockTakeInfo:
    return StockTakeInfo(
        id=uuid4(),
        reference_number="ST-000001",
        title="Monthly count",
        description=None,
        status=StockTakeStatus.COMPLETED,
        location="main",
        initiated_by=uuid4(),
        initiated_at=NOW,
        started_at=NOW,
        completed_at=NOW,
        cancelled_at=None,
        total_items_counted=0,
        total_variance_value=Decimal("0"),
    )


def make_item(name, system, physical, unit_cost="1"):
    unit_cost = Decimal(unit_cost)
    variance_quantity, variance_value = compute_variance(
        Decimal(system), None if physical is None else Decimal(physical), unit_cost,
    )
    return StockTakeItemInfo(
        id=uuid4(),
        stock_take_id=uuid4(),
        inventory_item_id=uuid4(),
        item_name=name,
        item_category="Toppings",
        unit="pcs",
        system_quantity=Decimal(system),
        physical_quantity=None if physical is None else Decimal(physical),
        unit_cost=unit_cost,
        variance_quantity=variance_quantity,
        variance_value=variance_value,
        counted_by=None,
        counted_at=None,
    )


class TestComputeVariance:

    def test_shortage(self):
        assert compute_variance(Decimal("100"), Decimal("92"), Decimal("2.50")) == (
            Decimal("-8"),
            Decimal("-20.00"),
        )

    def test_surplus(self):
        assert compute_variance(Decimal("10"), Decimal("13"), Decimal("0.5")) == (
            Decimal("3"),
            Decimal("1.5"),
        )

    def test_uncounted_has_no_variance(self):
        assert compute_variance(Decimal("10"), None, Decimal("1")) == (None, None)


class TestVarianceReport:

    def test_aggregates(self):
        items = [
            make_item("Cherry", "100", "92", "2.50"),
            make_item("Banana", "10", "12", "1.00"),
            make_item("Waffle Cone", "50", "50"),
            make_item("Crushed Nuts", "20", None),
        ]
        report = build_variance_report(make_stock_take(), items)

        assert report.total_items == 4
        assert report.items_counted == 3
        assert report.items_with_variance == 2
        assert report.positive_variances == 1
        assert report.negative_variances == 1
        assert report.total_variance_value == Decimal("-18.00")
        assert [i.item_name for i in report.variance_items] == ["Banana", "Cherry"]

    def test_uncounted_items_contribute_zero(self):
        items = [make_item("Cherry", "100", None), make_item("Banana", "5", None)]
        assert total_variance_value(items) == Decimal("0")

    def test_same_input_same_report(self):
        stock_take = make_stock_take()
        items = [make_item("b", "3", "1"), make_item("a", "3", "4"), make_item("B", "1", "0")]
        assert build_variance_report(stock_take, items) == build_variance_report(
            stock_take, list(reversed(items))
        )

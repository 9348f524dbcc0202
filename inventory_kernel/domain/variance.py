"""
Variance arithmetic for stock takes.

Pure functions shared by the workflow service (when a count is
recorded or a session completes) and by the read side (reports).
Uncounted items (``physical_quantity is None``) carry no variance and
contribute zero to every total.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from inventory_kernel.domain.dtos import StockTakeInfo, StockTakeItemInfo, VarianceReport

ZERO = Decimal("0")


def compute_variance(
    system_quantity: Decimal,
    physical_quantity: Decimal | None,
    unit_cost: Decimal,
) -> tuple[Decimal | None, Decimal | None]:
    """Return ``(variance_quantity, variance_value)``.

    variance_quantity = physical - system
    variance_value    = variance_quantity * unit_cost

    Both are None while the item is uncounted.
    """
    if physical_quantity is None:
        return None, None
    variance_quantity = physical_quantity - system_quantity
    return variance_quantity, variance_quantity * unit_cost


def total_variance_value(items: Iterable[StockTakeItemInfo]) -> Decimal:
    return sum((item.variance_value or ZERO for item in items), ZERO)


def build_variance_report(
    stock_take: StockTakeInfo,
    items: Iterable[StockTakeItemInfo],
) -> VarianceReport:
    """Aggregate a stock take's items into a ``VarianceReport``."""
    items = list(items)
    counted = [i for i in items if i.is_counted]
    with_variance = sorted(
        (i for i in counted if i.has_variance),
        key=lambda i: (i.item_name.lower(), str(i.id)),
    )
    return VarianceReport(
        stock_take=stock_take,
        total_items=len(items),
        items_counted=len(counted),
        items_with_variance=len(with_variance),
        positive_variances=sum(1 for i in with_variance if i.variance_quantity > 0),
        negative_variances=sum(1 for i in with_variance if i.variance_quantity < 0),
        total_variance_value=total_variance_value(counted),
        variance_items=tuple(with_variance),
    )

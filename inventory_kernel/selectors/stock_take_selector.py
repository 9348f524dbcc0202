"""
StockTakeSelector -- listings and dashboard figures for stock takes and
adjustments.

Filters mirror the stock-take screens: status, location, initiator,
date range and free-text search.  All filters are optional and combine
with AND.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from inventory_kernel.domain.dtos import StockAdjustmentInfo, StockTakeInfo, StockTakeStats
from inventory_kernel.domain.workflow import (
    AdjustmentStatus,
    AdjustmentType,
    StockTakeStatus,
)
from inventory_kernel.models.adjustment import StockAdjustment
from inventory_kernel.models.stock_take import StockTake
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockTakeFilters:
    status: StockTakeStatus | None = None
    location: str | None = None
    initiated_by: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None


@dataclass(frozen=True)
class AdjustmentFilters:
    status: AdjustmentStatus | None = None
    adjustment_type: AdjustmentType | None = None
    created_by: UUID | None = None
    stock_take_id: UUID | None = None
    inventory_item_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None


def _month_start(as_of: datetime) -> datetime:
    return as_of.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class StockTakeSelector(BaseSelector[StockTake]):
    """Read-only queries over stock_takes and stock_adjustments."""

    def get_stock_take(self, stock_take_id: UUID) -> StockTakeInfo | None:
        return self._dto_or_none(select(StockTake).where(StockTake.id == stock_take_id))

    def list_stock_takes(self, filters: StockTakeFilters | None = None) -> list[StockTakeInfo]:
        """Newest first."""
        f = filters or StockTakeFilters()
        stmt = select(StockTake)
        if f.status is not None:
            stmt = stmt.where(StockTake.status == StockTakeStatus(f.status).value)
        if f.location:
            stmt = stmt.where(StockTake.location == f.location)
        if f.initiated_by is not None:
            stmt = stmt.where(StockTake.created_by_id == f.initiated_by)
        if f.date_from is not None:
            stmt = stmt.where(StockTake.initiated_at >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(StockTake.initiated_at <= f.date_to)
        if f.search:
            pattern = f"%{f.search.strip().lower()}%"
            stmt = stmt.where(or_(
                func.lower(StockTake.title).like(pattern),
                func.lower(StockTake.reference_number).like(pattern),
                func.lower(func.coalesce(StockTake.description, "")).like(pattern),
            ))
        stmt = stmt.order_by(StockTake.initiated_at.desc(), StockTake.reference_number.desc())
        return self._dtos(stmt)

    def list_adjustments(self, filters: AdjustmentFilters | None = None) -> list[StockAdjustmentInfo]:
        """Newest first.  ``AdjustmentFilters(status=PENDING)`` is the approval queue."""
        f = filters or AdjustmentFilters()
        stmt = select(StockAdjustment)
        if f.status is not None:
            stmt = stmt.where(StockAdjustment.status == AdjustmentStatus(f.status).value)
        if f.adjustment_type is not None:
            stmt = stmt.where(
                StockAdjustment.adjustment_type == AdjustmentType(f.adjustment_type).value
            )
        if f.created_by is not None:
            stmt = stmt.where(StockAdjustment.created_by_id == f.created_by)
        if f.stock_take_id is not None:
            stmt = stmt.where(StockAdjustment.stock_take_id == f.stock_take_id)
        if f.inventory_item_id is not None:
            stmt = stmt.where(StockAdjustment.inventory_item_id == f.inventory_item_id)
        if f.date_from is not None:
            stmt = stmt.where(StockAdjustment.created_at >= f.date_from)
        if f.date_to is not None:
            stmt = stmt.where(StockAdjustment.created_at <= f.date_to)
        if f.search:
            pattern = f"%{f.search.strip().lower()}%"
            stmt = stmt.where(or_(
                func.lower(StockAdjustment.reference_number).like(pattern),
                func.lower(StockAdjustment.reason).like(pattern),
                func.lower(func.coalesce(StockAdjustment.notes, "")).like(pattern),
            ))
        stmt = stmt.order_by(
            StockAdjustment.created_at.desc(), StockAdjustment.reference_number.desc(),
        )
        return self._dtos(stmt)

    def stock_take_stats(self, as_of: datetime) -> StockTakeStats:
        """Totals for the dashboard; "this month" is the calendar month of ``as_of``."""
        month_start = _month_start(as_of)

        total = self.session.execute(select(func.count(StockTake.id))).scalar_one()
        active = self.session.execute(
            select(func.count(StockTake.id)).where(
                StockTake.status.in_([
                    StockTakeStatus.DRAFT.value,
                    StockTakeStatus.IN_PROGRESS.value,
                ])
            )
        ).scalar_one()
        completed_this_month, variance_this_month = self.session.execute(
            select(
                func.count(StockTake.id),
                func.coalesce(func.sum(StockTake.total_variance_value), 0),
            ).where(
                StockTake.status == StockTakeStatus.COMPLETED.value,
                StockTake.completed_at >= month_start,
                StockTake.completed_at <= as_of,
            )
        ).one()
        pending = self.session.execute(
            select(func.count(StockAdjustment.id)).where(
                StockAdjustment.status == AdjustmentStatus.PENDING.value
            )
        ).scalar_one()

        return StockTakeStats(
            total_stock_takes=total,
            active_stock_takes=active,
            completed_this_month=completed_this_month,
            pending_adjustments=pending,
            total_variance_this_month=Decimal(str(variance_this_month)),
        )

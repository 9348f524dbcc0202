"""
InventorySelector -- read access to items and the movement trail.

Responsibility:
    Item lookups (by id, by name), low-stock and expiring-stock listings,
    per-item movement history, per-type movement totals over a date range,
    and the movement-sum reconstruction of an item's on-hand quantity.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import (
    InventoryItemInfo,
    MovementRecord,
    MovementTotals,
    MovementType,
)
from inventory_kernel.exceptions import InventoryItemNotFoundError
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[InventoryItem]):
    """Read-only queries over inventory_items and inventory_movements."""

    def get_item(self, item_id: UUID) -> InventoryItemInfo | None:
        return self._dto_or_none(select(InventoryItem).where(InventoryItem.id == item_id))

    def find_items_by_name(
        self,
        name: str,
        active_only: bool = True,
    ) -> list[InventoryItemInfo]:
        """Exact, case-insensitive name match."""
        stmt = select(InventoryItem).where(
            func.lower(InventoryItem.name) == name.strip().lower()
        )
        if active_only:
            stmt = stmt.where(InventoryItem.is_active.is_(True))
        stmt = stmt.order_by(InventoryItem.category, InventoryItem.id)
        return self._dtos(stmt)

    def list_active_items(self, category: str | None = None) -> list[InventoryItemInfo]:
        stmt = select(InventoryItem).where(InventoryItem.is_active.is_(True))
        if category is not None:
            stmt = stmt.where(InventoryItem.category == category)
        stmt = stmt.order_by(InventoryItem.name, InventoryItem.id)
        return self._dtos(stmt)

    def low_stock_items(self) -> list[InventoryItemInfo]:
        """Active items at or below their minimum stock level."""
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.is_active.is_(True),
                InventoryItem.available_quantity <= InventoryItem.minimum_stock_level,
            )
            .order_by(InventoryItem.name, InventoryItem.id)
        )
        return self._dtos(stmt)

    def expiring_items(
        self,
        as_of: date | datetime,
        days_ahead: int = 7,
    ) -> list[InventoryItemInfo]:
        """Active items whose expiration_date falls on or before as_of + days_ahead.

        Already-expired items are included.  Soonest first.
        """
        if isinstance(as_of, datetime):
            as_of = as_of.date()
        cutoff = as_of + timedelta(days=days_ahead)
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.is_active.is_(True),
                InventoryItem.expiration_date.is_not(None),
                InventoryItem.expiration_date <= cutoff,
            )
            .order_by(InventoryItem.expiration_date, InventoryItem.name, InventoryItem.id)
        )
        return self._dtos(stmt)

    def movement_history(self, item_id: UUID, limit: int | None = 50) -> list[MovementRecord]:
        """Newest first."""
        stmt = (
            select(InventoryMovement)
            .where(InventoryMovement.inventory_item_id == item_id)
            .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._dtos(stmt)

    def movements_for_reference(self, reference_type: str, reference_id: str) -> list[MovementRecord]:
        stmt = (
            select(InventoryMovement)
            .where(
                InventoryMovement.reference_type == reference_type,
                InventoryMovement.reference_id == reference_id,
            )
            .order_by(InventoryMovement.created_at, InventoryMovement.id)
        )
        return self._dtos(stmt)

    def movement_totals(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[MovementTotals]:
        """Count and signed quantity total per movement type in [start, end)."""
        stmt = select(
            InventoryMovement.movement_type,
            func.count(InventoryMovement.id),
            func.coalesce(func.sum(InventoryMovement.quantity_delta), 0),
        ).group_by(InventoryMovement.movement_type)
        if start is not None:
            stmt = stmt.where(InventoryMovement.created_at >= start)
        if end is not None:
            stmt = stmt.where(InventoryMovement.created_at < end)

        totals = {
            row[0]: MovementTotals(
                movement_type=MovementType(row[0]),
                movement_count=row[1],
                total_delta=Decimal(str(row[2])),
            )
            for row in self.session.execute(stmt)
        }
        return [
            totals.get(t.value, MovementTotals(t, 0, Decimal("0")))
            for t in MovementType
        ]

    def reconstruct_quantity(self, item_id: UUID) -> Decimal:
        """initial_quantity + sum(quantity_delta) for one item.

        Raises:
            InventoryItemNotFoundError: unknown item.
        """
        initial = self.session.execute(
            select(InventoryItem.initial_quantity).where(InventoryItem.id == item_id)
        ).scalar_one_or_none()
        if initial is None:
            raise InventoryItemNotFoundError(str(item_id))
        delta_sum = self.session.execute(
            select(func.coalesce(func.sum(InventoryMovement.quantity_delta), 0))
            .where(InventoryMovement.inventory_item_id == item_id)
        ).scalar_one()
        return initial + Decimal(str(delta_sum))

"""
Module: inventory_kernel.models.movement
Responsibility: The append-only movement ledger.  One row per change to an
    item's available_quantity.
Architecture position: Kernel > Models.  Inherits from TrackedBase.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py).
    - quantity_after == quantity_before + quantity_delta (set by the ledger).
    - quantity_delta != 0.

Audit relevance:
    The sum of quantity_delta per item plus the item's initial_quantity is
    the item's available_quantity.  This table is the only history of stock.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.dtos import MovementRecord, MovementType


class InventoryMovement(TrackedBase):
    """One immutable quantity change on one inventory item."""

    __tablename__ = "inventory_movements"

    __table_args__ = (
        CheckConstraint(
            "quantity_delta <> 0",
            name="non_zero",
        ),
        Index("idx_inv_movement_item", "inventory_item_id", "created_at"),
        Index("idx_inv_movement_type", "movement_type"),
        Index("idx_inv_movement_reference", "reference_type", "reference_id"),
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False,
    )
    movement_type: Mapped[str] = mapped_column(String(30), nullable=False)

    quantity_delta: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_before: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> MovementRecord:
        return MovementRecord(
            id=self.id,
            inventory_item_id=self.inventory_item_id,
            movement_type=MovementType(self.movement_type),
            quantity_delta=self.quantity_delta,
            quantity_before=self.quantity_before,
            quantity_after=self.quantity_after,
            unit_cost=self.unit_cost,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            created_by=self.created_by_id,
            created_at=self.created_at,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement {self.movement_type} item={self.inventory_item_id} "
            f"{self.quantity_before}->{self.quantity_after}>"
        )

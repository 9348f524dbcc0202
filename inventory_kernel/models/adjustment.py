"""
Module: inventory_kernel.models.adjustment
Responsibility: ORM persistence for proposed inventory corrections awaiting
    (or past) approval.
Architecture position: Kernel > Models.  Inherits from TrackedBase.
    created_by_id is the proposing actor.

Invariants enforced:
    - quantity_after >= 0 and quantity_after != quantity_before (CHECK).
    - approved / rejected rows are frozen (db/immutability.py).
    - movement_id is set iff status == approved.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.dtos import StockAdjustmentInfo
from inventory_kernel.domain.workflow import AdjustmentStatus, AdjustmentType


class StockAdjustment(TrackedBase):
    """A proposed correction to one item's on-hand quantity."""

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        CheckConstraint(
            "quantity_after >= 0",
            name="after_non_negative",
        ),
        CheckConstraint(
            "quantity_after <> quantity_before",
            name="non_zero",
        ),
        Index("idx_stock_adjustment_status", "status"),
        Index("idx_stock_adjustment_stock_take", "stock_take_id"),
        Index("idx_stock_adjustment_item", "inventory_item_id"),
    )

    reference_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    stock_take_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("stock_takes.id"), nullable=True,
    )
    stock_take_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("stock_take_items.id"), nullable=True,
    )
    inventory_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False,
    )

    adjustment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity_before: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AdjustmentStatus.PENDING.value,
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    movement_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_movements.id"), nullable=True,
    )

    def to_dto(self) -> StockAdjustmentInfo:
        return StockAdjustmentInfo(
            id=self.id,
            reference_number=self.reference_number,
            stock_take_id=self.stock_take_id,
            inventory_item_id=self.inventory_item_id,
            adjustment_type=AdjustmentType(self.adjustment_type),
            quantity_before=self.quantity_before,
            quantity_after=self.quantity_after,
            unit_cost=self.unit_cost,
            reason=self.reason,
            status=AdjustmentStatus(self.status),
            created_by=self.created_by_id,
            created_at=self.created_at,
            approved_by=self.approved_by_id,
            approved_at=self.approved_at,
            rejected_by=self.rejected_by_id,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockAdjustment {self.reference_number} {self.adjustment_type} "
            f"{self.quantity_before}->{self.quantity_after} status={self.status}>"
        )

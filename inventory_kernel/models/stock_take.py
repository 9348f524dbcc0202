"""
Module: inventory_kernel.models.stock_take
Responsibility: ORM persistence for stock-take sessions and their per-item
    snapshot/count rows.
Architecture position: Kernel > Models.  Inherits from TrackedBase.
    StockTake.created_by_id is the initiating actor.

Invariants enforced (db/immutability.py):
    - A completed or cancelled StockTake is frozen, except for the one-time
      sign-off (approved_by_id, approved_at) of a completed count.
    - StockTakeItem snapshot columns (inventory_item_id, item_name,
      item_category, unit, system_quantity, unit_cost) never change.
    - StockTakeItem count columns change only while the parent stock take
      is in_progress.
    - One StockTakeItem per (stock_take, inventory_item).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.dtos import StockTakeInfo, StockTakeItemInfo
from inventory_kernel.domain.workflow import StockTakeStatus


class StockTake(TrackedBase):
    """A bounded counting session."""

    __tablename__ = "stock_takes"

    __table_args__ = (
        Index("idx_stock_take_status", "status"),
        Index("idx_stock_take_location", "location"),
        Index("idx_stock_take_initiated_at", "initiated_at"),
    )

    reference_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StockTakeStatus.DRAFT.value,
    )
    location: Mapped[str] = mapped_column(String(100), nullable=False)

    initiated_at: Mapped[datetime] = mapped_column(nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    started_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    total_items_counted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_variance_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items: Mapped[list["StockTakeItem"]] = relationship(
        back_populates="stock_take",
        order_by="StockTakeItem.item_name",
    )

    def to_dto(self) -> StockTakeInfo:
        return StockTakeInfo(
            id=self.id,
            reference_number=self.reference_number,
            title=self.title,
            description=self.description,
            status=StockTakeStatus(self.status),
            location=self.location,
            initiated_by=self.created_by_id,
            initiated_at=self.initiated_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            approved_by=self.approved_by_id,
            approved_at=self.approved_at,
            total_items_counted=self.total_items_counted,
            total_variance_value=self.total_variance_value,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<StockTake {self.reference_number} status={self.status}>"


class StockTakeItem(TrackedBase):
    """Snapshot of one inventory item at stock-take start, plus its count."""

    __tablename__ = "stock_take_items"

    __table_args__ = (
        UniqueConstraint(
            "stock_take_id", "inventory_item_id",
            name="uq_stock_take_item_per_inventory_item",
        ),
        Index("idx_stock_take_item_stock_take", "stock_take_id"),
    )

    stock_take_id: Mapped[UUID] = mapped_column(
        ForeignKey("stock_takes.id"), nullable=False,
    )
    inventory_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_items.id"), nullable=False,
    )

    # Snapshot (immutable)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    item_category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    system_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    # Count (mutable while in_progress)
    physical_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    variance_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    variance_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    counted_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    counted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    stock_take: Mapped[StockTake] = relationship(back_populates="items")

    def to_dto(self) -> StockTakeItemInfo:
        return StockTakeItemInfo(
            id=self.id,
            stock_take_id=self.stock_take_id,
            inventory_item_id=self.inventory_item_id,
            item_name=self.item_name,
            item_category=self.item_category,
            unit=self.unit,
            system_quantity=self.system_quantity,
            physical_quantity=self.physical_quantity,
            unit_cost=self.unit_cost,
            variance_quantity=self.variance_quantity,
            variance_value=self.variance_value,
            counted_by=self.counted_by_id,
            counted_at=self.counted_at,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockTakeItem {self.item_name!r} system={self.system_quantity} "
            f"physical={self.physical_quantity}>"
        )

"""
Module: inventory_kernel.models.inventory_item
Responsibility: ORM persistence for stocked items (ingredients, toppings,
    cones, finished products).
Architecture position: Kernel > Models.  Inherits from TrackedBase.

Invariants enforced:
    - available_quantity >= 0 (CHECK constraint, plus the ledger's
      conditional UPDATE).
    - available_quantity is never assigned through the ORM; only the
      ledger's single-statement UPDATEs change it (see db/immutability.py).
    - initial_quantity is fixed at registration.  Together with the movement
      rows it reconstructs available_quantity at any time.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.domain.dtos import InventoryItemInfo


class InventoryItem(TrackedBase):
    """
    A stocked item with its canonical on-hand quantity.

    Guarantees:
        - unit is one of the canonical units (g, kg, ml, L, pcs).
        - cost_per_unit / price_per_unit are per stored unit.
        - expiration_date is the best-before of the stock on hand, if tracked.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        CheckConstraint(
            "available_quantity >= 0",
            name="available_non_negative",
        ),
        Index("idx_inventory_item_name", "name"),
        Index("idx_inventory_item_category", "category"),
        Index("idx_inventory_item_active", "is_active"),
        Index("idx_inventory_item_expiration", "expiration_date"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)

    available_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    initial_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    cost_per_unit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    price_per_unit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    minimum_stock_level: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_dto(self) -> InventoryItemInfo:
        return InventoryItemInfo(
            id=self.id,
            name=self.name,
            category=self.category,
            unit=self.unit,
            available_quantity=self.available_quantity,
            initial_quantity=self.initial_quantity,
            cost_per_unit=self.cost_per_unit,
            price_per_unit=self.price_per_unit,
            minimum_stock_level=self.minimum_stock_level,
            is_active=self.is_active,
            expiration_date=self.expiration_date,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.name!r} {self.available_quantity}{self.unit} "
            f"active={self.is_active}>"
        )

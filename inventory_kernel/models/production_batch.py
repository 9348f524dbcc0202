"""
Module: inventory_kernel.models.production_batch
Responsibility: Legacy finished-goods stock kept per production batch.
    Older products were never registered as inventory items; their
    sellable stock lives here, one row per batch.
Architecture position: Kernel > Models.  Read and decremented only by
    the sales module's LegacyBatchBackedSource.

Invariants enforced:
    - quantity_remaining >= 0 (CHECK constraint, plus conditional UPDATE).
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class ProductionBatch(TrackedBase):
    """Finished goods produced in one batch."""

    __tablename__ = "production_batches"

    __table_args__ = (
        CheckConstraint(
            "quantity_remaining >= 0",
            name="remaining_non_negative",
        ),
        Index("idx_production_batch_product", "product_name", "produced_at"),
    )

    batch_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity_produced: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_remaining: Mapped[Decimal] = mapped_column(nullable=False)
    produced_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ProductionBatch {self.batch_number} {self.product_name!r} "
            f"remaining={self.quantity_remaining}{self.unit}>"
        )

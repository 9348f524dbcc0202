"""
Reference counter table backing ``ST-000001`` / ``ADJ-000001`` numbers.

One row per reference kind.  Incremented only by
ReferenceNumberService through a single conditional UPDATE.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class ReferenceCounter(Base):
    """Named, monotonically increasing counter."""

    __tablename__ = "reference_counters"

    kind: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

"""
Module: inventory_kernel.db.base
Responsibility: Declarative base for the inventory schema.  Fixes how ids,
    quantities and timestamps are stored and names every constraint so the
    CHECK constraints guarding stock levels are addressable by name.
Architecture position: Kernel > DB.  Every model module imports from here;
    this module imports nothing from the rest of the kernel.

Invariants enforced:
    - Ids are uuid4 values stored as 36-character strings, identical on
      PostgreSQL and SQLite.
    - Quantities, costs and variances are Numeric(38, 9).  A float never
      reaches a quantity column.
    - Every tracked row records its creator; ``touch()`` records the last
      modifier.

Failure modes:
    - IntegrityError from the named CHECK constraints (for example
      ``ck_inventory_items_available_non_negative``) when a write would
      break a stock rule the services failed to catch.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Constraint names are stable across backends so tests and logs can refer
# to them.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID stored as String(36)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all inventory models.

    Guarantees:
        - ``id`` defaults to ``uuid4()``.
        - ``Decimal`` annotations become Numeric(38, 9), ``datetime``
          annotations become timezone-aware DateTime, ``int`` annotations
          (reference counters) become BigInteger.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base recording who created a row and who last changed it.

    ``updated_at`` and ``updated_by_id`` are bookkeeping, so the
    immutability listeners allow them to change on frozen rows.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by_id: Mapped[PyUUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(nullable=True)

    def touch(self, actor_id: PyUUID, at: datetime | None = None) -> None:
        """Record the last modifier; ``at`` overrides the database clock."""
        self.updated_by_id = actor_id
        if at is not None:
            self.updated_at = at


UUID = PyUUID

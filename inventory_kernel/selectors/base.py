"""
Module: inventory_kernel.selectors.base
Responsibility: Shared plumbing for the read side of the kernel: item
    listings, movement histories, approval queues and the stock-take
    dashboard.
Architecture position: Kernel > Selectors.  May import from db/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Fresh reads: rows are re-populated from the database on every query,
      so a selector sharing a session with the ledger never reports a
      quantity the ledger's conditional UPDATE has already changed.
    - Selectors return frozen DTOs (``to_dto()``), never ORM instances.
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Read-only queries over the caller's session."""

    def __init__(self, session: Session):
        self.session = session

    def _dtos(self, stmt: Select) -> list[Any]:
        """Run an entity SELECT and return ``to_dto()`` of each row, freshly loaded."""
        rows = self.session.execute(stmt.execution_options(populate_existing=True)).scalars()
        return [row.to_dto() for row in rows]

    def _dto_or_none(self, stmt: Select) -> Any | None:
        row = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

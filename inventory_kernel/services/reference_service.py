"""
ReferenceNumberService -- human-readable reference numbers.

Responsibility:
    Allocates ``ST-000001`` style numbers for stock takes and
    ``ADJ-000001`` style numbers for adjustments from a counter row per
    kind.

Architecture position:
    Kernel > Services.  Called by the stock-take workflow and the
    approval gate.

Invariants enforced:
    - Numbers are unique and strictly increasing per kind.  The counter
      row is incremented with a single ``UPDATE ... RETURNING``; the
      aggregate-max-plus-one pattern is never used.
    - The increment is transactional: a rolled-back caller releases
      its number.

Failure modes:
    - Concurrent first use of a kind is absorbed by
      ``INSERT ... ON CONFLICT DO NOTHING``.
"""

from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.reference_counter import ReferenceCounter

logger = get_logger("services.reference")


class ReferenceNumberService:
    """
    Allocates reference numbers from locked counter rows.

    Usage:
        refs = ReferenceNumberService(session)
        refs.next_reference(ReferenceNumberService.STOCK_TAKE)  # "ST-000001"
    """

    STOCK_TAKE = "stock_take"
    ADJUSTMENT = "adjustment"

    DEFAULT_PREFIXES: dict[str, str] = {
        STOCK_TAKE: "ST",
        ADJUSTMENT: "ADJ",
    }

    def __init__(
        self,
        session: Session,
        prefixes: dict[str, str] | None = None,
        width: int = 6,
    ):
        self._session = session
        self._prefixes = {**self.DEFAULT_PREFIXES, **(prefixes or {})}
        self._width = width

    def next_value(self, kind: str) -> int:
        """Increment and return the counter for ``kind`` (first value is 1)."""
        value = self._increment(kind)
        if value is None:
            self._ensure_counter(kind)
            value = self._increment(kind)
        logger.debug(
            "reference_allocated",
            extra={"kind": kind, "value": value},
        )
        return value

    def next_reference(self, kind: str) -> str:
        """Return the next formatted reference, e.g. ``ADJ-000042``."""
        if kind not in self._prefixes:
            raise ValueError(f"Unknown reference kind: {kind!r}")
        return f"{self._prefixes[kind]}-{self.next_value(kind):0{self._width}d}"

    def current_value(self, kind: str) -> int | None:
        """Current counter value without incrementing."""
        return self._session.execute(
            select(ReferenceCounter.current_value).where(ReferenceCounter.kind == kind)
        ).scalar_one_or_none()

    def _increment(self, kind: str) -> int | None:
        return self._session.execute(
            update(ReferenceCounter)
            .where(ReferenceCounter.kind == kind)
            .values(current_value=ReferenceCounter.current_value + 1)
            .returning(ReferenceCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

    def _ensure_counter(self, kind: str) -> None:
        dialect = self._session.get_bind().dialect.name
        values = {"id": uuid4(), "kind": kind, "current_value": 0}
        if dialect == "postgresql":
            stmt = postgresql.insert(ReferenceCounter).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(ReferenceCounter).values(**values)
        else:
            self._session.add(ReferenceCounter(**values))
            self._session.flush()
            return
        self._session.execute(stmt.on_conflict_do_nothing(index_elements=["kind"]))
        logger.info("reference_counter_created", extra={"kind": kind})

"""
Actor identity passed into every ledger, stock-take and approval call.

Authentication lives outside the kernel.  Callers hand in an ``Actor``
(identifier + role) explicitly; no ambient session state is consulted.
"""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Actor:
    """An authenticated staff member (or the system itself).

    ``role`` is a free string matched against the configured approver
    roles (``manager``, ``admin`` by default).
    """

    actor_id: UUID
    role: str
    name: str | None = None

    def has_role(self, roles) -> bool:
        return self.role.lower() in {r.lower() for r in roles}


SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")

SYSTEM_ACTOR = Actor(actor_id=SYSTEM_ACTOR_ID, role="system", name="system")

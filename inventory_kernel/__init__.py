"""
Inventory Kernel

The reconciliation core of the shop system:
- Append-only movement ledger with per-item atomic quantity updates
- Stock-take sessions with snapshot-at-start and variance reporting
- Two-actor approval of variance-driven adjustments
- Unit conversion for the mass / volume / count families
"""

__version__ = "0.1.0"

"""
Stock Control Module (``inventory_modules.stock_control``).

Responsibility
--------------
Configured, transaction-owning entrypoint for deliveries, stock takes and
adjustment approval.

Architecture
------------
Layer: **Modules**.  Wires ``ShopConfiguration.policies`` into the kernel
services; never the reverse.
"""

from inventory_modules.stock_control.service import StockControlService

__all__ = ["StockControlService"]

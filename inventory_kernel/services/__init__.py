"""Kernel services: the ledger, the stock-take workflow and the approval gate."""

from inventory_kernel.services.approval_gate import AdjustmentApprovalGate
from inventory_kernel.services.ledger_service import CostPolicy, InventoryLedgerService
from inventory_kernel.services.reference_service import ReferenceNumberService
from inventory_kernel.services.stock_take_service import StockTakeWorkflowService

__all__ = [
    "InventoryLedgerService",
    "CostPolicy",
    "StockTakeWorkflowService",
    "AdjustmentApprovalGate",
    "ReferenceNumberService",
]

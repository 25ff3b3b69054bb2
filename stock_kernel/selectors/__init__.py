"""Selectors for the stock kernel (read side)."""

from stock_kernel.selectors.cash_flow import CashFlowAggregator
from stock_kernel.selectors.inventory_selector import InventorySelector, inventory_kpis
from stock_kernel.selectors.report_selector import ReportSelector

__all__ = [
    "CashFlowAggregator",
    "InventorySelector",
    "ReportSelector",
    "inventory_kpis",
]

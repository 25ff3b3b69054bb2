"""ORM models for the stock ledger."""

from stock_kernel.models.adjustment import InventoryAdjustment
from stock_kernel.models.cash_session import CashDrawerSession
from stock_kernel.models.expense import Expense
from stock_kernel.models.inventory_lot import InventoryLot
from stock_kernel.models.product import Product
from stock_kernel.models.purchase import Purchase
from stock_kernel.models.sale import Sale, SaleAllocation, SaleItem
from stock_kernel.models.staff_account import StaffAccount

__all__ = [
    "Product",
    "Purchase",
    "InventoryLot",
    "InventoryAdjustment",
    "Sale",
    "SaleItem",
    "SaleAllocation",
    "Expense",
    "CashDrawerSession",
    "StaffAccount",
]

"""Services for the stock kernel (write side)."""

from stock_kernel.services.adjustment_ledger import AdjustmentLedger
from stock_kernel.services.authorizer import Authorizer, CredentialAuthorizer
from stock_kernel.services.closure_coordinator import ClosureCoordinator
from stock_kernel.services.expense_service import ExpenseService
from stock_kernel.services.lot_store import LotStore
from stock_kernel.services.product_service import ProductService
from stock_kernel.services.purchase_service import PurchaseService
from stock_kernel.services.sale_service import SaleService
from stock_kernel.services.stock_allocator import StockAllocator

__all__ = [
    "AdjustmentLedger",
    "Authorizer",
    "ClosureCoordinator",
    "CredentialAuthorizer",
    "ExpenseService",
    "LotStore",
    "ProductService",
    "PurchaseService",
    "SaleService",
    "StockAllocator",
]

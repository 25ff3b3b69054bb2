"""
stock_services -- Transactional command/query surface over stock_kernel.

Dependency direction:
    stock_services/ -> stock_kernel/  (allowed)
    stock_kernel/   -> stock_services/ (FORBIDDEN)
"""

from stock_services.ledger_api import MAX_READ_RETRIES, StockLedgerApi

__all__ = [
    "MAX_READ_RETRIES",
    "StockLedgerApi",
]

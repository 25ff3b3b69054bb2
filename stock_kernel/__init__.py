"""
Stock Kernel

Lot-based perishable inventory with a daily cash drawer ledger:
- FIFO (first-expiring) stock consumption, all-or-nothing per sale
- Append-only adjustment and sale-allocation trails
- Daily cash-flow aggregation and once-per-day drawer closure
- Four-eyes manager authorization for closure
"""

__version__ = "0.1.0"

"""
ORM-level append-only enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | Rule
---------------------|-----------------------------------------------------
InventoryAdjustment  | Never updated, never deleted (audit log)
SaleAllocation       | Never updated, never deleted (sale provenance)
InventoryLot         | Never deleted; initial_quantity, purchase_price,
                     | product_id and purchase_id frozen after insert
CashDrawerSession    | Never deleted; no field changes once end_time is set

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below inspect attribute history and raise
ImmutabilityViolationError, aborting the flush.  Bulk ``update()`` /
``delete()`` statements bypass mapper events; the kernel never issues them
against these tables.

Usage:

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_LOT_FROZEN_FIELDS = ("initial_quantity", "purchase_price", "product_id", "purchase_id")

_registered = False


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(target.id), reason)


def _check_adjustment_update(mapper, connection, target):
    _block("InventoryAdjustment", target, "UPDATE", "adjustments are append-only")


def _check_adjustment_delete(mapper, connection, target):
    _block("InventoryAdjustment", target, "DELETE", "adjustments are append-only")


def _check_allocation_update(mapper, connection, target):
    _block("SaleAllocation", target, "UPDATE", "sale allocations are append-only")


def _check_allocation_delete(mapper, connection, target):
    _block("SaleAllocation", target, "DELETE", "sale allocations are append-only")


def _check_lot_update(mapper, connection, target):
    for name in _LOT_FROZEN_FIELDS:
        if get_history(target, name).deleted:
            _block("InventoryLot", target, "UPDATE", f"{name} is immutable")


def _check_lot_delete(mapper, connection, target):
    _block("InventoryLot", target, "DELETE", "lots are depleted, never deleted")


def _check_session_update(mapper, connection, target):
    history = get_history(target, "end_time")
    if history.deleted:
        previous = history.deleted[0]
    elif history.unchanged:
        previous = history.unchanged[0]
    else:
        previous = None
    if previous is not None:
        _block("CashDrawerSession", target, "UPDATE", "closed sessions are never edited")


def _check_session_delete(mapper, connection, target):
    _block("CashDrawerSession", target, "DELETE", "cash drawer sessions are never deleted")


def _listener_table():
    from stock_kernel.models import (
        CashDrawerSession,
        InventoryAdjustment,
        InventoryLot,
        SaleAllocation,
    )

    return (
        (InventoryAdjustment, "before_update", _check_adjustment_update),
        (InventoryAdjustment, "before_delete", _check_adjustment_delete),
        (SaleAllocation, "before_update", _check_allocation_update),
        (SaleAllocation, "before_delete", _check_allocation_delete),
        (InventoryLot, "before_update", _check_lot_update),
        (InventoryLot, "before_delete", _check_lot_delete),
        (CashDrawerSession, "before_update", _check_session_update),
        (CashDrawerSession, "before_delete", _check_session_delete),
    )


def register_immutability_listeners() -> None:
    """Register every append-only listener.  Safe to call repeatedly."""
    global _registered
    if _registered:
        return
    for model, name, fn in _listener_table():
        event.listen(model, name, fn)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  TESTS ONLY."""
    global _registered
    if not _registered:
        return
    for model, name, fn in _listener_table():
        if event.contains(model, name, fn):
            event.remove(model, name, fn)
    _registered = False

"""
Typed exception hierarchy for the stock kernel.

Every error the kernel raises is a subclass of ``StockKernelError`` and
carries:

  1. A ``code`` class attribute (machine-readable, API-safe).
  2. Structured attributes with the data needed to act on the error.

Callers catch by type and read attributes; they never parse messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidAmountError
    |   +-- AdjustmentOutOfBoundsError
    |
    +-- InsufficientStockError
    |   +-- StockShortageError
    |
    +-- ConflictError
    |   +-- AlreadyClosedError
    |   +-- ConcurrentModificationError
    |   +-- DayClosedError
    |   +-- ImmutabilityViolationError
    |
    +-- AuthorizationError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- LotNotFoundError
    |   +-- PurchaseNotFoundError
    |   +-- SessionNotFoundError
    |   +-- ExpenseNotFoundError
    |
    +-- TransientError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed or out-of-range input
                | INVALID_QUANTITY            | Quantity <= 0 or not a number
                | INVALID_AMOUNT              | Negative / malformed money amount
                | ADJUSTMENT_OUT_OF_BOUNDS    | Adjustment would leave lot outside bounds
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Requested exceeds available for a product
                | STOCK_SHORTAGE              | One or more cart lines cannot be filled
----------------|-----------------------------|-----------------------------------------
Conflict        | ALREADY_CLOSED              | Cash drawer already closed for the date
                | CONCURRENT_MODIFICATION     | Row changed by a concurrent writer
                | DAY_CLOSED                  | Cash record touches a closed date
                | IMMUTABILITY_VIOLATION      | Append-only record about to change
----------------|-----------------------------|-----------------------------------------
Authorization   | AUTHORIZATION_FAILED        | Manager re-validation rejected
----------------|-----------------------------|-----------------------------------------
Not found       | PRODUCT_NOT_FOUND           | Unknown product id
                | LOT_NOT_FOUND               | Unknown lot id
                | PURCHASE_NOT_FOUND          | Unknown purchase id
                | SESSION_NOT_FOUND           | Unknown cash drawer session
                | EXPENSE_NOT_FOUND           | Unknown expense id
----------------|-----------------------------|-----------------------------------------
Transient       | TRANSIENT                   | Storage unreachable / connection dropped

Validation, stock, conflict and authorization errors are terminal for the
request.  Only TransientError on a read may be retried; writes must be
re-queried before deciding to resubmit.
"""


class StockKernelError(Exception):
    """Base exception for all stock kernel errors."""

    code: str = "STOCK_KERNEL_ERROR"


# Validation


class ValidationError(StockKernelError):
    """Input is malformed or out of range."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!s}: {reason}")


class InvalidQuantityError(ValidationError):
    """A quantity is zero, negative or not a decimal."""

    code: str = "INVALID_QUANTITY"


class InvalidAmountError(ValidationError):
    """A money amount is negative or not a decimal."""

    code: str = "INVALID_AMOUNT"


class AdjustmentOutOfBoundsError(ValidationError):
    """An adjustment would push a lot outside 0 <= stock <= initial."""

    code: str = "ADJUSTMENT_OUT_OF_BOUNDS"

    def __init__(
        self,
        lot_id: str,
        quantity_delta: str,
        stock_quantity: str,
        reason: str,
    ):
        self.lot_id = lot_id
        self.quantity_delta = quantity_delta
        self.stock_quantity = stock_quantity
        super().__init__("quantity_delta", quantity_delta, reason)


# Stock


class InsufficientStockError(StockKernelError):
    """Requested quantity exceeds what the product's lots hold."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: str, available: str):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class StockShortageError(InsufficientStockError):
    """One or more lines of a sale cannot be filled.

    ``shortages`` holds one InsufficientStockError per short product so the
    caller sees the whole cart in a single round trip.
    """

    code: str = "STOCK_SHORTAGE"

    def __init__(self, shortages: tuple[InsufficientStockError, ...]):
        self.shortages = shortages
        first = shortages[0]
        StockKernelError.__init__(
            self,
            f"{len(shortages)} product(s) short of stock",
        )
        self.product_id = first.product_id
        self.requested = first.requested
        self.available = first.available


# Conflict


class ConflictError(StockKernelError):
    """The request conflicts with committed state."""

    code: str = "CONFLICT"


class AlreadyClosedError(ConflictError):
    """The cash drawer has already been closed for this calendar date.

    ``existing_session`` is the committed CashSessionInfo, returned to the
    caller unchanged.
    """

    code: str = "ALREADY_CLOSED"

    def __init__(self, session_date: str, session_id: str, existing_session=None):
        self.session_date = session_date
        self.session_id = session_id
        self.existing_session = existing_session
        super().__init__(
            f"Cash drawer already closed for {session_date} (session {session_id})"
        )


class ConcurrentModificationError(ConflictError):
    """A concurrent writer changed the row between read and write."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}"
        )


class DayClosedError(ConflictError):
    """A cash-relevant record belongs to a date whose drawer is closed."""

    code: str = "DAY_CLOSED"

    def __init__(self, session_date: str, entity_type: str, entity_id: str):
        self.session_date = session_date
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: "
            f"cash drawer for {session_date} is closed"
        )


class ImmutabilityViolationError(ConflictError):
    """An append-only record, or a closed session, was about to change."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Authorization


class AuthorizationError(StockKernelError):
    """Manager re-validation for a privileged action failed."""

    code: str = "AUTHORIZATION_FAILED"

    def __init__(self, reason: str, approver: str | None = None):
        self.reason = reason
        self.approver = approver
        super().__init__(f"Authorization failed: {reason}")


# Not found


class NotFoundError(StockKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class LotNotFoundError(NotFoundError):
    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: str):
        self.lot_id = lot_id
        super().__init__(f"Inventory lot not found: {lot_id}")


class PurchaseNotFoundError(NotFoundError):
    code: str = "PURCHASE_NOT_FOUND"

    def __init__(self, purchase_id: str):
        self.purchase_id = purchase_id
        super().__init__(f"Purchase not found: {purchase_id}")


class SessionNotFoundError(NotFoundError):
    code: str = "SESSION_NOT_FOUND"

    def __init__(self, session_ref: str):
        self.session_ref = session_ref
        super().__init__(f"Cash drawer session not found: {session_ref}")


class ExpenseNotFoundError(NotFoundError):
    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


# Transient


class TransientError(StockKernelError):
    """Storage is unreachable or the connection dropped mid-request.

    Safe to retry only for reads.  For writes the caller must re-query
    state first: the write may or may not have committed.
    """

    code: str = "TRANSIENT"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Transient failure during {operation}: {detail}")

"""
Domain DTOs -- closed enums and frozen value objects crossing layer boundaries.

Responsibility:
    Services and selectors return these objects, never ORM rows.  Every
    status, reason and payment method is a closed ``str`` Enum so an invalid
    value cannot be represented past the input boundary.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Enums
# =============================================================================


class LotStatus(str, Enum):
    """Derived alert status of a lot (see domain.status.classify)."""

    NORMAL = "normal"
    LOW_STOCK = "low_stock"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED = "expired"
    DEPLETED = "depleted"


class AdjustmentReason(str, Enum):
    """Why a lot's stock was corrected by hand."""

    MERMA = "merma"  # spoilage / shrinkage
    CADUCADO = "caducado"  # expired and discarded
    DANO = "daño"  # damaged
    AJUSTE_MANUAL = "ajuste_manual"  # count correction upwards

    @property
    def is_decrease(self) -> bool:
        return self is not AdjustmentReason.AJUSTE_MANUAL


DECREASE_REASONS: frozenset[AdjustmentReason] = frozenset({
    AdjustmentReason.MERMA,
    AdjustmentReason.CADUCADO,
    AdjustmentReason.DANO,
})


class PaymentMethod(str, Enum):
    EFECTIVO = "efectivo"
    TARJETA = "tarjeta"
    TRANSFERENCIA = "transferencia"


class ExpenseCategory(str, Enum):
    COMBUSTIBLE = "combustible"
    SERVICIOS = "servicios"
    MANTENIMIENTO = "mantenimiento"
    COMPRAS_MENORES = "compras_menores"


class UnitOfMeasure(str, Enum):
    KG = "kg"
    PIEZA = "pieza"
    RUEDA = "rueda"
    BOTE = "bote"
    PAQUETE = "paquete"


class SaleStatus(str, Enum):
    COMPLETED = "completed"


class DifferenceType(str, Enum):
    """Classification of the cash reconciliation gap."""

    EXACT = "exact"
    SURPLUS = "surplus"
    DEFICIT = "deficit"


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    NEAR_EXPIRY = "near_expiry"


# =============================================================================
# Catalog & lots
# =============================================================================


@dataclass(frozen=True)
class ProductInfo:
    product_id: UUID
    name: str
    unit_of_measure: UnitOfMeasure
    sale_price: Decimal
    low_stock_threshold: Decimal | None = None
    sold_by_weight: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class InventoryLotInfo:
    """Immutable snapshot of a lot as persisted."""

    lot_id: UUID
    product_id: UUID
    initial_quantity: Decimal
    stock_quantity: Decimal
    purchase_price: Decimal
    purchase_id: UUID
    created_at: datetime
    expiration_date: date | None = None

    @property
    def is_depleted(self) -> bool:
        return self.stock_quantity == 0


@dataclass(frozen=True)
class LotListing:
    """A lot with its derived, read-time fields."""

    lot_id: UUID
    product_id: UUID
    initial_quantity: Decimal
    stock_quantity: Decimal
    purchase_price: Decimal
    purchase_id: UUID
    created_at: datetime
    expiration_date: date | None
    status: LotStatus
    percentage_remaining: float
    days_until_expiry: int | None
    supplier_name: str | None = None
    purchase_date: date | None = None


@dataclass(frozen=True)
class ProductStockSummary:
    """One row of the inventory overview."""

    product_id: UUID
    product_name: str
    unit_of_measure: UnitOfMeasure
    total_stock: Decimal
    active_lots: int
    has_low_stock: bool
    has_near_expiry: bool
    avg_percentage_remaining: float
    min_percentage_remaining: float


@dataclass(frozen=True)
class InventoryAlert:
    alert_type: AlertType
    lot_id: UUID
    product_id: UUID
    product_name: str
    stock_quantity: Decimal
    expiration_date: date | None
    days_until_expiry: int | None


@dataclass(frozen=True)
class InventoryKpis:
    total_products: int
    low_stock_products: int
    near_expiry_products: int
    total_lots: int
    avg_stock_percentage: int


# =============================================================================
# Consumption, adjustments, sales, purchases, expenses
# =============================================================================


@dataclass(frozen=True)
class AllocationLine:
    """Quantity taken from one lot."""

    lot_id: UUID
    quantity: Decimal
    unit_cost: Decimal = Decimal("0")


@dataclass(frozen=True)
class ConsumptionResult:
    product_id: UUID
    requested: Decimal
    allocations: tuple[AllocationLine, ...]

    @property
    def pairs(self) -> list[tuple[UUID, Decimal]]:
        """``[(lot_id, quantity_taken), ...]`` in FIFO order."""
        return [(a.lot_id, a.quantity) for a in self.allocations]

    @property
    def cost_of_goods(self) -> Decimal:
        return sum((a.quantity * a.unit_cost for a in self.allocations), Decimal("0"))


@dataclass(frozen=True)
class AdjustmentRecord:
    """Append-only audit entry for a manual stock correction."""

    adjustment_id: UUID
    lot_id: UUID
    product_id: UUID
    quantity_delta: Decimal
    reason: AdjustmentReason
    actor_id: UUID
    created_at: datetime
    stock_before: Decimal
    stock_after: Decimal
    note: str | None = None
    product_name: str | None = None


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: UUID
    quantity: Decimal | str | int
    unit_price: Decimal | str | int | None = None  # defaults to product sale_price


@dataclass(frozen=True)
class SaleLineInfo:
    product_id: UUID
    quantity: Decimal
    price_at_sale: Decimal
    line_total: Decimal
    allocations: tuple[AllocationLine, ...] = ()


@dataclass(frozen=True)
class SaleReceipt:
    sale_id: UUID
    sale_date: date
    payment_method: PaymentMethod
    total_amount: Decimal
    actor_id: UUID
    created_at: datetime
    lines: tuple[SaleLineInfo, ...] = ()


@dataclass(frozen=True)
class SaleOutcome:
    """Result of a sale request: a sale id, or the shortages that blocked it."""

    sale_id: UUID | None
    receipt: SaleReceipt | None = None
    shortages: tuple = ()

    @property
    def success(self) -> bool:
        return self.sale_id is not None


@dataclass(frozen=True)
class PurchaseLineRequest:
    product_id: UUID
    quantity: Decimal | str | int
    unit_cost: Decimal | str | int
    expiration_date: date | None = None


@dataclass(frozen=True)
class PurchaseInfo:
    purchase_id: UUID
    purchase_date: date
    payment_method: PaymentMethod
    total_cost: Decimal
    actor_id: UUID
    supplier_name: str | None = None
    notes: str | None = None
    lot_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class ExpenseInfo:
    expense_id: UUID
    amount: Decimal
    description: str
    category: ExpenseCategory
    payment_method: PaymentMethod
    expense_date: date
    actor_id: UUID
    created_at: datetime


# =============================================================================
# Cash flow & closure
# =============================================================================


@dataclass(frozen=True)
class SalesBreakdown:
    total: Decimal
    count: int
    cash: Decimal
    card: Decimal
    transfer: Decimal


@dataclass(frozen=True)
class ExpensesBreakdown:
    """Cash-paid outflows; non-cash amounts are carried for visibility only."""

    purchases: Decimal
    operations: Decimal
    total: Decimal
    non_cash_purchases: Decimal = Decimal("0.00")
    non_cash_operations: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class CashFlowTotals:
    cash_in: Decimal
    cash_out: Decimal
    net: Decimal


@dataclass(frozen=True)
class ClosureStatus:
    is_closed: bool
    starting_cash: Decimal | None = None
    ending_cash: Decimal | None = None
    difference: Decimal | None = None
    difference_type: DifferenceType | None = None


@dataclass(frozen=True)
class DailyCashFlow:
    flow_date: date
    sales: SalesBreakdown
    expenses: ExpensesBreakdown
    cash_flow: CashFlowTotals
    closure: ClosureStatus = field(default_factory=lambda: ClosureStatus(is_closed=False))

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: ``{date, sales, expenses, cash_flow: {in, out, net}, closure}``."""
        closure_type = self.closure.difference_type
        return {
            "date": self.flow_date.isoformat(),
            "sales": {
                "total": self.sales.total,
                "count": self.sales.count,
                "cash": self.sales.cash,
                "card": self.sales.card,
                "transfer": self.sales.transfer,
            },
            "expenses": {
                "purchases": self.expenses.purchases,
                "operations": self.expenses.operations,
                "total": self.expenses.total,
                "non_cash_purchases": self.expenses.non_cash_purchases,
                "non_cash_operations": self.expenses.non_cash_operations,
            },
            "cash_flow": {
                "in": self.cash_flow.cash_in,
                "out": self.cash_flow.cash_out,
                "net": self.cash_flow.net,
            },
            "closure": {
                "is_closed": self.closure.is_closed,
                "starting_cash": self.closure.starting_cash,
                "ending_cash": self.closure.ending_cash,
                "difference": self.closure.difference,
                "difference_type": closure_type.value if closure_type else None,
            },
        }


@dataclass(frozen=True)
class Reconciliation:
    starting_cash: Decimal
    ending_cash: Decimal
    expected_ending: Decimal
    difference: Decimal
    difference_type: DifferenceType


@dataclass(frozen=True)
class CashSessionInfo:
    session_id: UUID
    session_date: date
    user_id: UUID
    approved_by_id: UUID
    start_time: datetime
    end_time: datetime | None
    starting_cash: Decimal
    ending_cash: Decimal
    calculated_sales: Decimal
    cash_in: Decimal
    cash_out: Decimal
    cash_net: Decimal
    expected_ending: Decimal
    difference: Decimal
    difference_type: DifferenceType
    notes: str | None = None

    @property
    def closed(self) -> bool:
        return self.end_time is not None


@dataclass(frozen=True)
class CashClosureResult:
    success: bool
    session_id: UUID
    session_date: date
    difference_type: DifferenceType
    difference_amount: Decimal
    breakdown: DailyCashFlow
    session: CashSessionInfo
    message: str


# =============================================================================
# Authorization
# =============================================================================


@dataclass(frozen=True)
class ManagerCredentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AuthorizedApprover:
    approver_id: UUID
    username: str
    role: str


# =============================================================================
# Period reports
# =============================================================================


@dataclass(frozen=True)
class FinancialSummary:
    """
    Profit and loss over an inclusive date range.

    ``cost_of_goods`` prices the quantity actually sold at the unit cost of
    the lots it was drawn from.  ``gross_profit`` is sales minus that cost;
    ``net_profit`` further subtracts operational expenses.  ``cash_result``
    is the cash-basis view: sales minus every purchase and expense paid in
    the period, whatever the payment method.
    """

    start_date: date
    end_date: date
    days: int
    sales: SalesBreakdown
    average_daily_sales: Decimal
    purchases: Decimal
    expenses: Decimal
    cost_of_goods: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    gross_margin_percentage: Decimal
    cash_result: Decimal

    @property
    def total_costs(self) -> Decimal:
        return self.purchases + self.expenses

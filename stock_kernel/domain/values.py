"""
Values -- fixed-point money and quantity normalisation.

Responsibility:
    Every money amount entering the kernel is converted to a Decimal and
    rounded to 2 places (ROUND_HALF_UP); every arithmetic result on money is
    rounded again before it is stored or compared.  Quantities are Decimals
    rounded to the configured number of places.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - InvalidAmountError on non-numeric, NaN/Infinity or float input.
    - InvalidQuantityError on the same for quantities.

Floats are rejected: callers pass ``str``, ``int`` or ``Decimal``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, TypeVar

from stock_kernel.exceptions import (
    InvalidAmountError,
    InvalidQuantityError,
    ValidationError,
)

MONEY_PLACES = 2
_MONEY_EXPONENT = Decimal("0.01")

ZERO = Decimal("0")
ZERO_MONEY = Decimal("0.00")

E = TypeVar("E", bound=Enum)


def _to_decimal(value: Decimal | str | int, field: str, error_cls) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise error_cls(field, repr(value), "must be Decimal, str or int (floats are not accepted)")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise error_cls(field, repr(value), "not a decimal number") from exc
    if not result.is_finite():
        raise error_cls(field, repr(value), "must be a finite number")
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round a Decimal to 2 places, half-up."""
    return amount.quantize(_MONEY_EXPONENT, rounding=ROUND_HALF_UP)


def to_money(value: Decimal | str | int, field: str = "amount") -> Decimal:
    """Parse and round a money amount (may be negative)."""
    return round_money(_to_decimal(value, field, InvalidAmountError))


def to_non_negative_money(value: Decimal | str | int, field: str = "amount") -> Decimal:
    amount = to_money(value, field)
    if amount < ZERO:
        raise InvalidAmountError(field, str(amount), "must be >= 0")
    return amount


def to_positive_money(value: Decimal | str | int, field: str = "amount") -> Decimal:
    amount = to_money(value, field)
    if amount <= ZERO:
        raise InvalidAmountError(field, str(amount), "must be > 0")
    return amount


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """Sum money amounts and round the result."""
    return round_money(sum(amounts, ZERO_MONEY))


def round_quantity(quantity: Decimal, places: int) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return quantity.quantize(exponent, rounding=ROUND_HALF_UP)


def to_quantity(
    value: Decimal | str | int,
    places: int,
    field: str = "quantity",
) -> Decimal:
    """Parse and round a signed quantity."""
    return round_quantity(_to_decimal(value, field, InvalidQuantityError), places)


def to_positive_quantity(
    value: Decimal | str | int,
    places: int,
    field: str = "quantity",
) -> Decimal:
    """Parse a quantity that must be strictly positive after rounding."""
    quantity = to_quantity(value, places, field)
    if quantity <= ZERO:
        raise InvalidQuantityError(field, str(quantity), "must be > 0")
    return quantity



def to_non_negative_quantity(
    value: Decimal | str | int,
    places: int,
    field: str = "quantity",
) -> Decimal:
    quantity = to_quantity(value, places, field)
    if quantity < ZERO:
        raise InvalidQuantityError(field, str(quantity), "must be >= 0")
    return quantity


def to_enum(enum_cls: type[E], value: E | str, field: str) -> E:
    """Coerce a raw value into a closed enum, or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, repr(value), f"must be one of: {allowed}") from exc


def require_text(value: str | None, field: str, max_length: int) -> str:
    """Strip and validate a required free-text field."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(field, repr(value), "must not be empty")
    if len(text) > max_length:
        raise ValidationError(field, f"<{len(text)} chars>", f"longer than {max_length}")
    return text

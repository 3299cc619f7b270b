"""
Domain validation helpers.

Pure checks with no I/O, used at the service boundary to turn caller input
into exact Decimals and to reject anything that could break an invariant
before the store is touched.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from store_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    MONEY_INTEGER_DIGITS,
    QUANTITY_DECIMAL_PLACES,
    QUANTITY_INTEGER_DIGITS,
    STORAGE_DECIMAL_PLACES,
    STORAGE_INTEGER_DIGITS,
    decimal_places,
    integer_digits,
    normalize_decimal,
)
from store_kernel.exceptions import (
    InvalidAmountError,
    InvalidPinError,
    InvalidQuantityError,
    InvalidRoleError,
    InvalidTransactionTypeError,
    ValidationError,
)
from store_kernel.models.transaction import TransactionType
from store_kernel.models.user import UserRole


def _to_decimal(value: Any) -> Decimal | None:
    # Floats are rejected: 0.1 has no exact Decimal form
    if isinstance(value, bool) or isinstance(value, float):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def require_amount(
    value: Any,
    name: str = "amount",
    *,
    positive: bool = False,
    places: int = MONEY_DECIMAL_PLACES,
    max_digits: int = MONEY_INTEGER_DIGITS,
) -> Decimal:
    """
    Coerce value to a Decimal money amount.

    Args:
        value: Decimal, int or numeric string.  Floats are rejected.
        name: Field name used in the error.
        positive: Require > 0 instead of >= 0.
        places: Maximum number of fractional digits.
        max_digits: Maximum number of integer digits.

    Raises:
        InvalidAmountError: If value is not numeric, negative (or zero when
            positive=True), too large or too precise.
    """
    amount = _to_decimal(value)
    if amount is None:
        raise InvalidAmountError(name, value, "must be a Decimal, int or numeric string")
    if positive and amount <= 0:
        raise InvalidAmountError(name, value, "must be greater than zero")
    if amount < 0:
        raise InvalidAmountError(name, value, "must not be negative")
    if integer_digits(amount) > max_digits:
        raise InvalidAmountError(name, value, f"at most {max_digits} integer digits")
    if decimal_places(amount) > places:
        raise InvalidAmountError(name, value, f"at most {places} decimal places")
    return normalize_decimal(amount)


def require_payment_amount(value: Any, name: str = "amount") -> Decimal:
    """Payments must be > 0 and may carry the full storage precision."""
    return require_storage_amount(value, name, positive=True)


def require_storage_amount(
    value: Any,
    name: str = "amount",
    *,
    positive: bool = False,
) -> Decimal:
    """An amount compared against transaction totals (payments, credit limits)."""
    return require_amount(
        value,
        name,
        positive=positive,
        places=STORAGE_DECIMAL_PLACES,
        max_digits=STORAGE_INTEGER_DIGITS,
    )


def require_quantity(
    value: Any,
    name: str = "quantity",
    *,
    positive: bool = True,
) -> Decimal:
    """
    Coerce value to a Decimal stock quantity.

    Raises:
        InvalidQuantityError: If value is not numeric, not positive (or
            negative when positive=False), or has more than
            QUANTITY_INTEGER_DIGITS integer or QUANTITY_DECIMAL_PLACES
            fractional digits.
    """
    quantity = _to_decimal(value)
    if quantity is None:
        raise InvalidQuantityError(name, value, "must be a Decimal, int or numeric string")
    if positive and quantity <= 0:
        raise InvalidQuantityError(name, value, "must be greater than zero")
    if quantity < 0:
        raise InvalidQuantityError(name, value, "must not be negative")
    if integer_digits(quantity) > QUANTITY_INTEGER_DIGITS:
        raise InvalidQuantityError(
            name, value, f"at most {QUANTITY_INTEGER_DIGITS} integer digits"
        )
    if decimal_places(quantity) > QUANTITY_DECIMAL_PLACES:
        raise InvalidQuantityError(
            name, value, f"at most {QUANTITY_DECIMAL_PLACES} decimal places"
        )
    return normalize_decimal(quantity)


def require_text(value: Any, name: str) -> str:
    """Non-blank string, stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(name, "must be a non-empty string")
    return value.strip()


def require_pin(pin: Any) -> str:
    """A PIN is a non-empty string of decimal digits."""
    if not isinstance(pin, str) or not pin:
        raise InvalidPinError("PIN must be a non-empty string")
    if not (pin.isascii() and pin.isdigit()):
        raise InvalidPinError("PIN must contain digits only")
    return pin


def parse_role(role: Any) -> UserRole:
    try:
        return UserRole(role)
    except ValueError:
        raise InvalidRoleError(str(role)) from None


def parse_transaction_type(transaction_type: Any) -> TransactionType:
    try:
        return TransactionType(transaction_type)
    except ValueError:
        raise InvalidTransactionTypeError(str(transaction_type)) from None

"""
Immutable data transfer objects returned by services and selectors.

Services never hand ORM instances to callers: every public method returns
one of these frozen dataclasses, built inside the unit of work, so results
stay valid after the session closes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from store_kernel.db.types import exact_arithmetic
from store_kernel.models.transaction import TransactionType
from store_kernel.models.user import UserRole


@dataclass(frozen=True)
class UserInfo:
    """Operator identity.  The PIN hash is deliberately not exposed."""

    id: int
    name: str
    role: UserRole
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class ProductInfo:
    id: int
    name: str
    description: str | None
    price: Decimal
    barcode: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class StockLotInfo:
    id: int
    product_id: int
    stock_group: str
    quantity: Decimal
    cost_price: Decimal
    created_at: datetime

    @property
    def is_empty(self) -> bool:
        return self.quantity == 0


@dataclass(frozen=True)
class LotAllocation:
    """Quantity to take from one lot, produced by oldest-lot-first allocation."""

    stock_id: int
    quantity: Decimal


@dataclass(frozen=True)
class ClientInfo:
    id: int
    name: str
    contact: str | None
    address: str | None
    credit_limit: Decimal
    created_at: datetime


@dataclass(frozen=True)
class TransactionItemRequest:
    """
    One requested line of a transaction.

    ``stock_id`` may be omitted for sale and adjustment lines; the quantity
    is then taken oldest-lot-first across the product's lots.  ``price``
    overrides the product's current price when given.
    """

    product_id: int
    quantity: Decimal
    stock_id: int | None = None
    price: Decimal | None = None


@dataclass(frozen=True)
class TransactionItemInfo:
    id: int
    transaction_id: int
    product_id: int
    stock_id: int
    quantity: Decimal
    price: Decimal
    created_at: datetime

    @property
    def line_amount(self) -> Decimal:
        with exact_arithmetic():
            return self.quantity * self.price


@dataclass(frozen=True)
class PaymentInfo:
    id: int
    transaction_id: int
    amount: Decimal
    payment_date: datetime


@dataclass(frozen=True)
class TransactionInfo:
    """A committed transaction with its items and payments."""

    id: int
    transaction_type: TransactionType
    client_id: int | None
    total_amount: Decimal
    is_paid: bool
    created_at: datetime
    items: tuple[TransactionItemInfo, ...] = field(default_factory=tuple)
    payments: tuple[PaymentInfo, ...] = field(default_factory=tuple)

    @property
    def amount_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal("0"))

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.amount_paid

"""
Module: store_kernel.models.transaction
Responsibility: ORM persistence for transaction headers and their line
    items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced (by TransactionService):
    - total_amount == sum(item.quantity * item.price), exactly.
    - is_paid == (sum(payments.amount) >= total_amount); once True it never
      reverts.
    - Headers, items and the payments supplied at commit time are written in
      one unit of work; after commit only is_paid changes.
    - item.quantity > 0, and item.stock_id names a lot of item.product_id.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from store_kernel.db.base import TimestampedBase
from store_kernel.db.types import exact_arithmetic

if TYPE_CHECKING:
    from store_kernel.models.client import Client
    from store_kernel.models.payment import Payment
    from store_kernel.models.product import Product
    from store_kernel.models.stock import StockLot


class TransactionType(str, Enum):
    """
    Kind of transaction and its effect on stock.

    SALE and ADJUSTMENT consume stock from the referenced lots; PURCHASE
    adds to them.
    """

    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"

    @property
    def consumes_stock(self) -> bool:
        return self in (TransactionType.SALE, TransactionType.ADJUSTMENT)


class Transaction(TimestampedBase):
    """Header of a sale, purchase or stock adjustment."""

    __tablename__ = "transactions"

    __table_args__ = (
        # Query: a client's unpaid transactions (credit check)
        Index("idx_transactions_client_paid", "client_id", "is_paid"),
        {"sqlite_autoincrement": True},
    )

    transaction_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # NULL for cash / anonymous sales
    client_id: Mapped[int | None] = mapped_column(
        ForeignKey("clients.id"),
        nullable=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    client: Mapped[Client | None] = relationship(back_populates="transactions")

    items: Mapped[list[TransactionItem]] = relationship(
        back_populates="transaction",
        order_by="TransactionItem.id",
    )

    payments: Mapped[list[Payment]] = relationship(
        back_populates="transaction",
        order_by="Payment.id",
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.id}: {self.transaction_type} "
            f"total={self.total_amount} paid={self.is_paid}>"
        )


class TransactionItem(TimestampedBase):
    """One line of a transaction, pinned to the stock lot it moved."""

    __tablename__ = "transaction_items"

    __table_args__ = (
        Index("idx_transaction_items_transaction", "transaction_id"),
        Index("idx_transaction_items_stock", "stock_id"),
        {"sqlite_autoincrement": True},
    )

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
    )

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    stock_id: Mapped[int] = mapped_column(
        ForeignKey("stock.id"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    # Unit price at the time of the transaction
    price: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    transaction: Mapped[Transaction] = relationship(back_populates="items")
    product: Mapped[Product] = relationship()
    lot: Mapped[StockLot] = relationship()

    @property
    def line_amount(self) -> Decimal:
        with exact_arithmetic():
            return self.quantity * self.price

    def __repr__(self) -> str:
        return (
            f"<TransactionItem {self.id}: lot={self.stock_id} "
            f"{self.quantity} x {self.price}>"
        )

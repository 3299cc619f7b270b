"""
Module: store_kernel.models.payment
Responsibility: ORM persistence for payments against a transaction.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced (by TransactionService):
    - amount > 0.
    - Cumulative payments for a transaction never exceed its total_amount.
    - Payments are append-only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from store_kernel.db.base import Base

if TYPE_CHECKING:
    from store_kernel.models.transaction import Transaction


class Payment(Base):
    """A (possibly partial) payment towards one transaction."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_transaction", "transaction_id"),
        {"sqlite_autoincrement": True},
    )

    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    payment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    transaction: Mapped[Transaction] = relationship(back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment {self.id}: txn={self.transaction_id} amount={self.amount}>"

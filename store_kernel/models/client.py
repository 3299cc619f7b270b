"""
Module: store_kernel.models.client
Responsibility: ORM persistence for clients who may buy on credit.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced (by TransactionService, not the ORM):
    - A sale left unpaid may not push the client's outstanding balance
      above credit_limit.  The outstanding balance is derived from
      transactions and payments; it is never stored.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from store_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from store_kernel.models.transaction import Transaction


class Client(TimestampedBase):
    """A customer or supplier the store transacts with."""

    __tablename__ = "clients"

    __table_args__ = {"sqlite_autoincrement": True}

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    contact: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    address: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    credit_limit: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    transactions: Mapped[list[Transaction]] = relationship(
        back_populates="client",
        order_by="Transaction.id",
    )

    def __repr__(self) -> str:
        return f"<Client {self.id}: {self.name} limit={self.credit_limit}>"

"""
Module: store_kernel.models.stock
Responsibility: ORM persistence for stock lots.  Each lot is a batch of one
    product received at a specific unit cost, the basis for lot-based (not
    averaged) costing.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity >= 0 after every committed adjustment.  Enforced by
      InventoryService under a row lock; the ORM does not check it.
    - cost_price is fixed at creation.  No service updates it.
    - Lots are never deleted, only zeroed, so transaction items can always
      resolve the lot they consumed.
    - Lot ids are assigned in receipt order; oldest-lot-first allocation
      orders by id.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from store_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from store_kernel.models.product import Product


class StockLot(TimestampedBase):
    """A batch of stock for one product."""

    __tablename__ = "stock"

    __table_args__ = (
        # Query: lots for a product in receipt order (FIFO)
        Index("idx_stock_product", "product_id", "id"),
        {"sqlite_autoincrement": True},
    )

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id"),
        nullable=False,
    )

    stock_group: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    cost_price: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    product: Mapped[Product] = relationship(back_populates="lots")

    def __repr__(self) -> str:
        return (
            f"<StockLot {self.id}: product={self.product_id} "
            f"group={self.stock_group} qty={self.quantity}>"
        )

"""
Module: store_kernel.models.product
Responsibility: ORM persistence for sellable products.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - price >= 0 (enforced by InventoryService at creation).
    - Products are never deleted; stock lots and transaction items keep
      pointing at them.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from store_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from store_kernel.models.stock import StockLot


class Product(TimestampedBase):
    """A product with its current unit selling price."""

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_products_barcode", "barcode"),
        {"sqlite_autoincrement": True},
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Current unit selling price; items snapshot it at sale time
    price: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    barcode: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    lots: Mapped[list[StockLot]] = relationship(
        back_populates="product",
        order_by="StockLot.id",
    )

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.name} @ {self.price}>"

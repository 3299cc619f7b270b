"""
InventoryService -- products and stock lots.

Responsibility:
    Creates products, receives stock into lots, and moves lot quantities.
    ``reserve_and_deduct`` is the single place where stock is consumed and
    the only guard of the non-negative-quantity invariant.

Architecture position:
    Kernel > Services.  Used directly by callers receiving stock and by
    TransactionService for sales, purchases and adjustments.

Invariants enforced:
    - price >= 0 and cost_price >= 0.
    - lot quantity >= 0 after every deduction.  The lot row is read with
      ``SELECT ... FOR UPDATE`` (PostgreSQL) inside a transaction that on
      SQLite was opened with BEGIN IMMEDIATE, so two concurrent deductions
      can never both pass the check against the same quantity.
    - cost_price is fixed at lot creation; nothing here updates it.
    - Lots are never deleted, only drawn down to zero.

Failure modes:
    - ProductNotFoundError / StockLotNotFoundError for unknown references.
    - InsufficientStockError (no mutation performed).
    - InvalidAmountError / InvalidQuantityError on bad input.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import or_, select

from store_kernel.db.types import exact_arithmetic
from store_kernel.domain.dtos import LotAllocation, ProductInfo, StockLotInfo
from store_kernel.domain.validation import (
    require_amount,
    require_quantity,
    require_text,
)
from store_kernel.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    StockLotNotFoundError,
)
from store_kernel.logging_config import get_logger
from store_kernel.models.product import Product
from store_kernel.models.stock import StockLot
from store_kernel.services.base import BaseService

logger = get_logger("services.inventory")


class InventoryService(BaseService[StockLot]):
    """
    Service for products and lot-based stock.

    Lot selection is the caller's decision: deductions name an explicit lot.
    ``allocate_fifo`` offers the store's default policy, oldest lot first,
    for callers that do not pick a lot themselves.
    """

    # -------------------------------------------------------------------
    # DTO conversion and row access
    # -------------------------------------------------------------------

    @staticmethod
    def _product_to_dto(product: Product) -> ProductInfo:
        return ProductInfo(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            barcode=product.barcode,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )

    @staticmethod
    def _lot_to_dto(lot: StockLot) -> StockLotInfo:
        return StockLotInfo(
            id=lot.id,
            product_id=lot.product_id,
            stock_group=lot.stock_group,
            quantity=lot.quantity,
            cost_price=lot.cost_price,
            created_at=lot.created_at,
        )

    def _get_product(self, product_id: int) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _lock_lot(self, stock_id: int) -> StockLot:
        """Read a lot with a row lock, bypassing any stale identity-map copy."""
        lot = self.session.execute(
            select(StockLot)
            .where(StockLot.id == stock_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if lot is None:
            raise StockLotNotFoundError(stock_id)
        return lot

    def lock_lots(
        self,
        stock_ids: Iterable[int] = (),
        product_ids: Iterable[int] = (),
    ) -> list[int]:
        """
        Row-lock lots by id and by product, in ascending lot id order.

        Callers about to move several lots take all their locks here first,
        so two units of work never wait on each other's lots in opposite
        order.

        Returns:
            Ids of the locked lots, ascending.
        """
        stock_ids = sorted(stock_ids)
        product_ids = sorted(product_ids)
        conditions = []
        if stock_ids:
            conditions.append(StockLot.id.in_(stock_ids))
        if product_ids:
            conditions.append(StockLot.product_id.in_(product_ids))
        if not conditions:
            return []
        lots = self.session.execute(
            select(StockLot)
            .where(or_(*conditions))
            .order_by(StockLot.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
        return [lot.id for lot in lots]

    def _lock_product_lots(self, product_id: int) -> list[StockLot]:
        return list(
            self.session.execute(
                select(StockLot)
                .where(StockLot.product_id == product_id)
                .order_by(StockLot.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    # -------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------

    def create_product(
        self,
        name: str,
        description: str | None,
        price: Decimal | int | str,
        barcode: str | None = None,
    ) -> ProductInfo:
        """
        Create a product.

        Args:
            name: Display name.
            description: Free text, may be None.
            price: Unit selling price, >= 0.
            barcode: Optional barcode for scanner lookup.

        Returns:
            Created ProductInfo.

        Raises:
            InvalidAmountError: If price is negative or not a valid amount.
        """
        product = Product(
            name=require_text(name, "name"),
            description=description,
            price=require_amount(price, "price"),
            barcode=barcode,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_created",
            extra={"product_id": product.id, "price": product.price},
        )
        return self._product_to_dto(product)

    def get_product(self, product_id: int) -> ProductInfo | None:
        product = self.session.get(Product, product_id)
        return self._product_to_dto(product) if product else None

    def find_product_by_barcode(self, barcode: str) -> ProductInfo | None:
        """Return the oldest product carrying this barcode, or None."""
        product = self.session.execute(
            select(Product).where(Product.barcode == barcode).order_by(Product.id)
        ).scalars().first()
        return self._product_to_dto(product) if product else None

    def update_price(self, product_id: int, price: Decimal | int | str) -> ProductInfo:
        """
        Change a product's current price.

        Committed transactions keep the price they were sold at.
        """
        product = self._get_product(product_id)
        product.price = require_amount(price, "price")
        self.session.flush()
        # updated_at is refreshed server-side
        self.session.refresh(product)

        logger.info(
            "product_price_updated",
            extra={"product_id": product.id, "price": product.price},
        )
        return self._product_to_dto(product)

    # -------------------------------------------------------------------
    # Stock lots
    # -------------------------------------------------------------------

    def receive_stock(
        self,
        product_id: int,
        stock_group: str,
        quantity: Decimal | int | str,
        unit_cost: Decimal | int | str,
    ) -> StockLotInfo:
        """
        Receive a new lot of stock for a product.

        Args:
            product_id: Product the lot belongs to.
            stock_group: Free-form group label (shelf, batch, supplier...).
            quantity: Quantity received, >= 0.
            unit_cost: Acquisition cost per unit, >= 0.  Fixed for the
                lifetime of the lot.

        Returns:
            The new StockLotInfo.

        Raises:
            ProductNotFoundError: If the product does not exist.
            InvalidQuantityError / InvalidAmountError: On bad input.
        """
        qty = require_quantity(quantity, positive=False)
        cost = require_amount(unit_cost, "unit_cost")
        group = require_text(stock_group, "stock_group")
        product = self._get_product(product_id)

        lot = StockLot(
            product_id=product.id,
            stock_group=group,
            quantity=qty,
            cost_price=cost,
        )
        self.session.add(lot)
        self.session.flush()

        if qty == 0:
            logger.warning(
                "empty_lot_received",
                extra={"stock_id": lot.id, "product_id": product.id},
            )
        logger.info(
            "stock_received",
            extra={
                "stock_id": lot.id,
                "product_id": product.id,
                "stock_group": group,
                "quantity": qty,
                "cost_price": cost,
            },
        )
        return self._lot_to_dto(lot)

    def get_stock_lot(self, stock_id: int) -> StockLotInfo | None:
        lot = self.session.get(StockLot, stock_id)
        return self._lot_to_dto(lot) if lot else None

    def list_stock_lots(
        self,
        product_id: int,
        include_empty: bool = False,
    ) -> list[StockLotInfo]:
        """
        List a product's lots in receipt order.

        Args:
            product_id: Product to list.
            include_empty: If False, lots drawn down to zero are skipped.
        """
        lots = self.session.execute(
            select(StockLot)
            .where(StockLot.product_id == product_id)
            .order_by(StockLot.id)
        ).scalars()
        return [
            self._lot_to_dto(lot)
            for lot in lots
            if include_empty or lot.quantity > 0
        ]

    def available_quantity(self, product_id: int) -> Decimal:
        """Total quantity on hand across all lots of a product."""
        lots = self.list_stock_lots(product_id)
        with exact_arithmetic():
            return sum((lot.quantity for lot in lots), Decimal("0"))

    def reserve_and_deduct(
        self,
        stock_id: int,
        quantity: Decimal | int | str,
    ) -> StockLotInfo:
        """
        Atomically take quantity out of a lot.

        Preconditions:
            - Called inside the caller's unit of work.
        Postconditions:
            - On success the lot quantity is reduced by exactly ``quantity``
              and is still >= 0.
            - On failure nothing is changed.

        Args:
            stock_id: Lot to draw from.
            quantity: Amount to deduct, > 0.

        Returns:
            The lot after the deduction.

        Raises:
            StockLotNotFoundError: If the lot does not exist.
            InsufficientStockError: If the lot holds less than ``quantity``.
        """
        qty = require_quantity(quantity)

        # INVARIANT: check and decrement under the same row lock
        lot = self._lock_lot(stock_id)
        if lot.quantity < qty:
            logger.info(
                "stock_deduction_rejected",
                extra={
                    "stock_id": stock_id,
                    "requested": qty,
                    "available": lot.quantity,
                },
            )
            raise InsufficientStockError(
                requested=qty,
                available=lot.quantity,
                stock_id=stock_id,
            )

        lot.quantity = lot.quantity - qty
        assert lot.quantity >= 0, "lot quantity must never go negative"
        self.session.flush()

        logger.info(
            "stock_deducted",
            extra={"stock_id": stock_id, "quantity": qty, "remaining": lot.quantity},
        )
        return self._lot_to_dto(lot)

    def restock(
        self,
        stock_id: int,
        quantity: Decimal | int | str,
    ) -> StockLotInfo:
        """
        Add quantity to an existing lot (purchase against a known lot).

        The lot's cost_price is unchanged; receiving at a different cost
        should create a new lot with ``receive_stock`` instead.
        """
        qty = require_quantity(quantity)
        lot = self._lock_lot(stock_id)
        lot.quantity = lot.quantity + qty
        self.session.flush()

        logger.info(
            "stock_restocked",
            extra={"stock_id": stock_id, "quantity": qty, "remaining": lot.quantity},
        )
        return self._lot_to_dto(lot)

    def allocate_fifo(
        self,
        product_id: int,
        quantity: Decimal | int | str,
    ) -> list[LotAllocation]:
        """
        Split a quantity across a product's lots, oldest lot first.

        Lots are read under lock, so the allocation stays valid for the rest
        of the caller's unit of work.  Nothing is deducted here.

        Returns:
            One LotAllocation per lot touched, in lot order.

        Raises:
            ProductNotFoundError: If the product does not exist.
            InsufficientStockError: If all lots together hold less than
                ``quantity`` (``product_id`` is set on the error).
        """
        qty = require_quantity(quantity)
        self._get_product(product_id)

        allocations: list[LotAllocation] = []
        remaining = qty
        available = Decimal("0")
        for lot in self._lock_product_lots(product_id):
            if lot.quantity <= 0:
                continue
            available += lot.quantity
            if remaining > 0:
                take = min(lot.quantity, remaining)
                allocations.append(LotAllocation(stock_id=lot.id, quantity=take))
                remaining -= take

        if remaining > 0:
            raise InsufficientStockError(
                requested=qty,
                available=available,
                product_id=product_id,
            )
        return allocations

"""
TransactionService -- commit sales, purchases and adjustments; record payments.

Responsibility:
    Turns a list of requested lines plus optional payments into a committed
    transaction: validates input, resolves prices and lots, checks credit,
    moves stock and writes the header, items and payments.  Records later
    (partial) payments against an existing transaction.

Architecture position:
    Kernel > Services.  Orchestrates InventoryService for stock movement and
    TransactionSelector for paid amounts and outstanding balances.

Invariants enforced:
    - total_amount == sum(quantity * price) over the items, exactly.
    - Stock effect: SALE and ADJUSTMENT deduct from lots through
      reserve_and_deduct; PURCHASE adds to an existing lot.
    - Every item's lot belongs to the item's product.
    - Credit: a SALE for a client that is not paid in full at commit may
      not push the client's outstanding balance above credit_limit.  The
      client row is locked for the check.
    - Payments are > 0 and their running sum never exceeds total_amount.
    - is_paid == (amount paid >= total_amount) and never reverts.
    - commit_transaction is all-or-nothing: it runs in a SAVEPOINT, so a
      failure on item N undoes the deductions of items 1..N-1 even if the
      caller goes on to commit the surrounding unit of work.

Failure modes:
    - EmptyTransactionError, InvalidTransactionTypeError,
      InvalidQuantityError, InvalidAmountError, StockLotMismatchError.
    - ProductNotFoundError, StockLotNotFoundError, ClientNotFoundError,
      UserNotFoundError (unknown actor).
    - InsufficientStockError, CreditLimitExceededError, OverpaymentError.
    - TransactionNotFoundError, TransactionAlreadyPaidError (record_payment).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select

from store_kernel.db.types import STORAGE_INTEGER_DIGITS, exact_arithmetic, integer_digits
from store_kernel.domain.dtos import LotAllocation, TransactionInfo, TransactionItemRequest
from store_kernel.domain.validation import (
    parse_transaction_type,
    require_amount,
    require_payment_amount,
    require_quantity,
)
from store_kernel.exceptions import (
    ClientNotFoundError,
    CreditLimitExceededError,
    EmptyTransactionError,
    InvalidAmountError,
    OverpaymentError,
    ProductNotFoundError,
    StockLotMismatchError,
    StockLotNotFoundError,
    TransactionAlreadyPaidError,
    TransactionNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from store_kernel.logging_config import LogContext, get_logger
from store_kernel.models.client import Client
from store_kernel.models.payment import Payment
from store_kernel.models.transaction import Transaction, TransactionItem, TransactionType
from store_kernel.selectors.transaction_selector import (
    TransactionSelector,
    to_transaction_info,
)
from store_kernel.services.base import BaseService
from store_kernel.services.identity_service import IdentityService
from store_kernel.services.inventory_service import InventoryService

logger = get_logger("services.transaction")

ZERO = Decimal("0")


@dataclass(frozen=True)
class _Line:
    """A validated request line with its price resolved."""

    product_id: int
    quantity: Decimal
    price: Decimal
    stock_id: int | None


class TransactionService(BaseService[Transaction]):
    """
    Service for committing transactions and recording payments.

    Contract:
        commit_transaction(...) -> TransactionInfo
        record_payment(transaction_id, amount) -> TransactionInfo
    """

    def __init__(self, session):
        super().__init__(session)
        self._inventory = InventoryService(session)
        self._identity = IdentityService(session)
        self._selector = TransactionSelector(session)

    # -------------------------------------------------------------------
    # Input handling
    # -------------------------------------------------------------------

    @staticmethod
    def _coerce_item(item, index: int) -> TransactionItemRequest:
        if isinstance(item, TransactionItemRequest):
            return item
        if isinstance(item, dict):
            try:
                return TransactionItemRequest(**item)
            except TypeError as exc:
                raise ValidationError(f"items[{index}]", str(exc)) from exc
        raise ValidationError(
            f"items[{index}]", "must be a TransactionItemRequest or a dict"
        )

    def _lock_client(self, client_id: int) -> Client:
        client = self.session.execute(
            select(Client)
            .where(Client.id == client_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if client is None:
            raise ClientNotFoundError(client_id)
        return client

    def _resolve_line(self, request: TransactionItemRequest, index: int) -> _Line:
        quantity = require_quantity(request.quantity, f"items[{index}].quantity")
        product = self._inventory.get_product(request.product_id)
        if product is None:
            raise ProductNotFoundError(request.product_id)
        if request.price is None:
            price = product.price
        else:
            price = require_amount(request.price, f"items[{index}].price")
        return _Line(
            product_id=product.id,
            quantity=quantity,
            price=price,
            stock_id=request.stock_id,
        )

    def _check_lot(self, line: _Line) -> None:
        lot = self._inventory.get_stock_lot(line.stock_id)
        if lot is None:
            raise StockLotNotFoundError(line.stock_id)
        if lot.product_id != line.product_id:
            raise StockLotMismatchError(line.stock_id, line.product_id, lot.product_id)

    # -------------------------------------------------------------------
    # Stock movement
    # -------------------------------------------------------------------

    def _move_stock(
        self,
        txn_type: TransactionType,
        line: _Line,
    ) -> list[LotAllocation]:
        """Apply one line's stock effect and return the lots it touched."""
        if line.stock_id is None:
            if not txn_type.consumes_stock:
                raise ValidationError(
                    "stock_id", "purchase items must name the stock lot they add to"
                )
            allocations = self._inventory.allocate_fifo(line.product_id, line.quantity)
        else:
            self._check_lot(line)
            allocations = [LotAllocation(stock_id=line.stock_id, quantity=line.quantity)]

        for allocation in allocations:
            if txn_type.consumes_stock:
                self._inventory.reserve_and_deduct(allocation.stock_id, allocation.quantity)
            else:
                self._inventory.restock(allocation.stock_id, allocation.quantity)
        return allocations

    # -------------------------------------------------------------------
    # Credit
    # -------------------------------------------------------------------

    def _check_credit(self, client: Client, unpaid: Decimal) -> None:
        outstanding = self._selector.outstanding_balance(client.id)
        if outstanding + unpaid > client.credit_limit:
            logger.info(
                "credit_limit_rejected",
                extra={
                    "credit_limit": client.credit_limit,
                    "outstanding": outstanding,
                    "requested": unpaid,
                },
            )
            raise CreditLimitExceededError(
                client_id=client.id,
                credit_limit=client.credit_limit,
                outstanding=outstanding,
                requested=unpaid,
            )

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------

    def commit_transaction(
        self,
        transaction_type: TransactionType | str,
        items: Sequence[TransactionItemRequest | dict],
        payments: Iterable[Decimal | int | str] = (),
        client_id: int | None = None,
        actor_id: int | None = None,
    ) -> TransactionInfo:
        """
        Commit a transaction with its items and any up-front payments.

        Preconditions:
            - Called inside the caller's unit of work.
        Postconditions:
            - On success: one header, one item per lot touched, one payment
              per supplied amount, and every lot moved by exactly the item
              quantity.
            - On failure: nothing from this call remains in the session.

        Args:
            transaction_type: "sale", "purchase" or "adjustment".
            items: Requested lines.  A line without stock_id on a sale or
                adjustment is split oldest-lot-first; purchases must name
                the lot.  A line without price uses the product's current
                price.
            payments: Amounts paid at commit time, each > 0.
            client_id: Client the transaction is for, or None.
            actor_id: Operator performing the commit.  Recorded in the log
                context only.

        Returns:
            The committed TransactionInfo.
        """
        txn_type = parse_transaction_type(transaction_type)
        requests = [self._coerce_item(item, n) for n, item in enumerate(items)]
        if not requests:
            raise EmptyTransactionError()
        amounts = [
            require_payment_amount(p, f"payments[{n}]") for n, p in enumerate(payments)
        ]
        if actor_id is not None and self._identity.find_user_by_id(actor_id) is None:
            raise UserNotFoundError(actor_id)

        with (
            LogContext.bind(actor_id=actor_id, client_id=client_id),
            exact_arithmetic(),
        ):
            savepoint = self.session.begin_nested()
            try:
                txn = self._commit(txn_type, requests, amounts, client_id)
                savepoint.commit()
            except Exception:
                savepoint.rollback()
                logger.info(
                    "transaction_rejected",
                    extra={"transaction_type": txn_type.value},
                )
                raise

            logger.info(
                "transaction_committed",
                extra={
                    "transaction_id": txn.id,
                    "transaction_type": txn_type.value,
                    "total_amount": txn.total_amount,
                    "item_count": len(txn.items),
                    "is_paid": txn.is_paid,
                },
            )
            return to_transaction_info(txn)

    def _commit(
        self,
        txn_type: TransactionType,
        requests: list[TransactionItemRequest],
        amounts: list[Decimal],
        client_id: int | None,
    ) -> Transaction:
        lines = [self._resolve_line(r, n) for n, r in enumerate(requests)]
        total = sum((line.quantity * line.price for line in lines), ZERO)
        if integer_digits(total) > STORAGE_INTEGER_DIGITS:
            raise InvalidAmountError(
                "total_amount", total, f"at most {STORAGE_INTEGER_DIGITS} integer digits"
            )
        paid = sum(amounts, ZERO)

        if paid > total:
            raise OverpaymentError(
                transaction_id=None,
                total_amount=total,
                already_paid=ZERO,
                amount=paid,
            )

        client = self._lock_client(client_id) if client_id is not None else None
        if client is not None and txn_type is TransactionType.SALE and paid < total:
            self._check_credit(client, total - paid)

        # Row locks are taken up front, in stock id order
        self._inventory.lock_lots(
            stock_ids={line.stock_id for line in lines if line.stock_id is not None},
            product_ids={
                line.product_id
                for line in lines
                if line.stock_id is None and txn_type.consumes_stock
            },
        )

        txn = Transaction(
            transaction_type=txn_type.value,
            client_id=client_id,
            total_amount=total,
            is_paid=paid >= total,
        )
        self.session.add(txn)

        for line in lines:
            for allocation in self._move_stock(txn_type, line):
                self.session.add(
                    TransactionItem(
                        transaction=txn,
                        product_id=line.product_id,
                        stock_id=allocation.stock_id,
                        quantity=allocation.quantity,
                        price=line.price,
                    )
                )
        for amount in amounts:
            self.session.add(Payment(transaction=txn, amount=amount))

        self.session.flush()
        return txn

    def record_payment(
        self,
        transaction_id: int,
        amount: Decimal | int | str,
    ) -> TransactionInfo:
        """
        Record a (possibly partial) payment against a transaction.

        Args:
            transaction_id: Transaction being paid.
            amount: Amount paid, > 0.

        Returns:
            The transaction after the payment.  is_paid becomes True once
            the payments reach the total.

        Raises:
            TransactionNotFoundError: If the transaction does not exist.
            TransactionAlreadyPaidError: If it is already settled.
            OverpaymentError: If the payment would exceed the remaining due.
        """
        value = require_payment_amount(amount)

        txn = self.session.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(transaction_id)

        with (
            LogContext.bind(transaction_id=txn.id, client_id=txn.client_id),
            exact_arithmetic(),
        ):
            if txn.is_paid:
                raise TransactionAlreadyPaidError(txn.id)

            already_paid = self._selector.amount_paid(txn.id)
            if already_paid + value > txn.total_amount:
                raise OverpaymentError(
                    transaction_id=txn.id,
                    total_amount=txn.total_amount,
                    already_paid=already_paid,
                    amount=value,
                )

            self.session.add(Payment(transaction=txn, amount=value))
            if already_paid + value >= txn.total_amount:
                txn.is_paid = True
            self.session.flush()

            logger.info(
                "payment_recorded",
                extra={
                    "amount": value,
                    "amount_paid": already_paid + value,
                    "is_paid": txn.is_paid,
                },
            )
            return to_transaction_info(txn)

"""
Module: store_kernel.selectors.transaction_selector
Responsibility: Read-side queries over transactions and payments: a
    transaction with its lines, the amount paid so far, and a client's
    outstanding balance.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Sums are computed in Python over exact Decimals.  On SQLite amounts are
      stored as text, and SQL SUM() would coerce them to floating point.
    - Outstanding balance counts only the remaining due of unpaid sales:
      sum(total_amount - paid) over the client's sales with is_paid False.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from store_kernel.db.types import exact_arithmetic
from store_kernel.domain.dtos import PaymentInfo, TransactionInfo, TransactionItemInfo
from store_kernel.models.payment import Payment
from store_kernel.models.transaction import Transaction, TransactionType
from store_kernel.selectors.base import BaseSelector

ZERO = Decimal("0")


def to_transaction_info(txn: Transaction) -> TransactionInfo:
    """Build the DTO for a transaction, its items and its payments."""
    return TransactionInfo(
        id=txn.id,
        transaction_type=TransactionType(txn.transaction_type),
        client_id=txn.client_id,
        total_amount=txn.total_amount,
        is_paid=txn.is_paid,
        created_at=txn.created_at,
        items=tuple(
            TransactionItemInfo(
                id=item.id,
                transaction_id=item.transaction_id,
                product_id=item.product_id,
                stock_id=item.stock_id,
                quantity=item.quantity,
                price=item.price,
                created_at=item.created_at,
            )
            for item in txn.items
        ),
        payments=tuple(
            PaymentInfo(
                id=p.id,
                transaction_id=p.transaction_id,
                amount=p.amount,
                payment_date=p.payment_date,
            )
            for p in txn.payments
        ),
    )


class TransactionSelector(BaseSelector[Transaction]):
    """Read-only queries over transactions."""

    def get_transaction(self, transaction_id: int) -> TransactionInfo | None:
        txn = self.session.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .options(selectinload(Transaction.items), selectinload(Transaction.payments))
        ).scalar_one_or_none()
        return to_transaction_info(txn) if txn else None

    def amount_paid(self, transaction_id: int) -> Decimal:
        """Sum of all payments recorded against a transaction."""
        amounts = self.session.execute(
            select(Payment.amount).where(Payment.transaction_id == transaction_id)
        ).scalars()
        with exact_arithmetic():
            return sum(amounts, ZERO)

    def _unpaid_sales(self, client_id: int) -> list[Transaction]:
        return list(
            self.session.execute(
                select(Transaction)
                .where(
                    Transaction.client_id == client_id,
                    Transaction.transaction_type == TransactionType.SALE.value,
                    Transaction.is_paid.is_(False),
                )
                .order_by(Transaction.id)
                .options(selectinload(Transaction.payments))
            ).scalars()
        )

    def outstanding_balance(self, client_id: int) -> Decimal:
        """
        What the client still owes.

        Returns:
            sum(total_amount - amount paid) over the client's unpaid sales.
            Zero for a client with no unpaid sales (or no such client).
        """
        unpaid = self._unpaid_sales(client_id)
        with exact_arithmetic():
            return sum(
                (
                    txn.total_amount - sum((p.amount for p in txn.payments), ZERO)
                    for txn in unpaid
                ),
                ZERO,
            )

    def unpaid_transactions(self, client_id: int) -> list[TransactionInfo]:
        """The client's unpaid sales, oldest first."""
        txns = self._unpaid_sales(client_id)
        return [to_transaction_info(txn) for txn in txns]

"""
ORM model tests for the store tables.

Tests: ExactDecimal storage, decimal helpers, TransactionType stock effect,
and relationship loading between products, lots and transactions.

These are ORM-level tests only.  Service-layer behaviour is tested elsewhere.
"""

from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, StatementError

from store_kernel.db.types import (
    decimal_places,
    exact_arithmetic,
    integer_digits,
    normalize_decimal,
)
from store_kernel.models import (
    Payment,
    Product,
    StockLot,
    Transaction,
    TransactionItem,
    TransactionType,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _add_product(session, price=Decimal("5.00")) -> Product:
    product = Product(name="Widget", description=None, price=price)
    session.add(product)
    session.flush()
    return product


class TestNormalizeDecimal:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("6.000000000", "6"),
            ("2.500", "2.5"),
            ("100", "100"),
            ("0E-9", "0"),
        ],
    )
    def test_strips_trailing_zeros(self, raw, expected):
        assert str(normalize_decimal(Decimal(raw))) == expected

    def test_no_exponent_for_round_hundreds(self):
        """Decimal("1E+2").normalize() would print in exponent form."""
        assert str(normalize_decimal(Decimal("100.00"))) == "100"

    @pytest.mark.parametrize(
        "raw, places",
        [("5", 0), ("5.00", 0), ("2.125", 3), ("0.0001", 4), ("0E-9", 0), ("1E+3", 0)],
    )
    def test_decimal_places(self, raw, places):
        assert decimal_places(Decimal(raw)) == places

    def test_long_values_kept_whole(self):
        """Thirty-three significant digits survive normalization unrounded."""
        raw = "123456789012345678901234.123456789"
        assert str(normalize_decimal(Decimal(raw))) == raw

    @pytest.mark.parametrize(
        "raw, digits",
        [("0", 0), ("0.5", 0), ("7", 1), ("99.99", 2), ("1E+3", 4), ("1" + "0" * 30, 31)],
    )
    def test_integer_digits(self, raw, digits):
        assert integer_digits(Decimal(raw)) == digits

    def test_exact_arithmetic_does_not_round(self):
        a = Decimal("999999999999.999")
        b = Decimal("9999999999999.9999")
        with exact_arithmetic():
            product = a * b
        assert product == Decimal("9" * 14 + "899" + "0" * 8 + ".0000001")


class TestExactDecimal:
    """Decimal columns round-trip exactly on SQLite."""

    def test_stored_as_text(self, session):
        product = _add_product(session, Decimal("0.10"))

        raw = session.execute(
            text("SELECT price, typeof(price) FROM products WHERE id = :id"),
            {"id": product.id},
        ).one()

        assert raw[0] == "0.1"
        assert raw[1] == "text"

    def test_round_trip_is_exact(self, session):
        product = _add_product(session, Decimal("1234567.123456789"))
        session.expire_all()

        assert session.get(Product, product.id).price == Decimal("1234567.123456789")

    def test_excess_precision_rejected(self, session):
        session.add(Product(name="Dust", price=Decimal("0.0000000001")))
        with pytest.raises(StatementError) as exc_info:
            session.flush()
        assert isinstance(exc_info.value.orig, ValueError)
        session.rollback()

    def test_excess_integer_digits_rejected(self, session):
        session.add(Product(name="Hoard", price=Decimal("1" + "0" * 29)))
        with pytest.raises(StatementError) as exc_info:
            session.flush()
        assert isinstance(exc_info.value.orig, ValueError)
        session.rollback()

    def test_widest_value_round_trips(self, session):
        widest = Decimal("9" * 29 + "." + "9" * 9)
        product = _add_product(session, widest)
        session.expire_all()

        assert session.get(Product, product.id).price == widest


class TestTransactionType:
    def test_stock_effect(self):
        assert TransactionType.SALE.consumes_stock
        assert TransactionType.ADJUSTMENT.consumes_stock
        assert not TransactionType.PURCHASE.consumes_stock

    def test_values(self):
        assert TransactionType("sale") is TransactionType.SALE
        with pytest.raises(ValueError):
            TransactionType("refund")


class TestRelationships:
    def test_transaction_graph(self, session):
        product = _add_product(session)
        lot = StockLot(
            product_id=product.id,
            stock_group="A",
            quantity=Decimal("10"),
            cost_price=Decimal("2"),
        )
        session.add(lot)
        session.flush()

        txn = Transaction(
            transaction_type=TransactionType.SALE.value,
            total_amount=Decimal("10"),
            is_paid=False,
        )
        session.add(txn)
        session.add(
            TransactionItem(
                transaction=txn,
                product_id=product.id,
                stock_id=lot.id,
                quantity=Decimal("2"),
                price=Decimal("5"),
            )
        )
        session.add(Payment(transaction=txn, amount=Decimal("4")))
        session.flush()
        session.expire_all()

        loaded = session.get(Transaction, txn.id)
        assert [item.line_amount for item in loaded.items] == [Decimal("10")]
        assert loaded.items[0].lot.id == lot.id
        assert [p.amount for p in loaded.payments] == [Decimal("4")]
        assert loaded.created_at is not None
        assert session.get(Product, product.id).lots[0].id == lot.id

    def test_item_requires_existing_lot(self, session):
        """Foreign keys are enforced on SQLite."""
        product = _add_product(session)
        txn = Transaction(
            transaction_type=TransactionType.SALE.value,
            total_amount=Decimal("5"),
        )
        session.add(txn)
        session.add(
            TransactionItem(
                transaction=txn,
                product_id=product.id,
                stock_id=999,
                quantity=Decimal("1"),
                price=Decimal("5"),
            )
        )
        with pytest.raises(IntegrityError, match="FOREIGN KEY"):
            session.flush()
        session.rollback()

"""
Concurrency tests against a file-backed SQLite store.

Each thread opens its own unit of work on its own connection.  Writers are
serialized by BEGIN IMMEDIATE, so check-then-act on a lot quantity or a
client's outstanding balance can never interleave.

Properties checked:
- N concurrent deductions from one lot: exactly the ones that fit succeed,
  and final quantity == initial - sum(succeeded).
- N concurrent unpaid sales to one client never push the outstanding
  balance past the credit limit.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from store_kernel.domain.dtos import TransactionItemRequest
from store_kernel.exceptions import CreditLimitExceededError, InsufficientStockError
from store_kernel.selectors.transaction_selector import TransactionSelector
from store_kernel.services.client_service import ClientService
from store_kernel.services.inventory_service import InventoryService
from store_kernel.services.transaction_service import TransactionService

pytestmark = pytest.mark.slow_locks

THREADS = 8


def _seed_lot(database, quantity: Decimal, price: Decimal = Decimal("1.00")):
    with database.session_scope() as session:
        inventory = InventoryService(session)
        product = inventory.create_product("Widget", None, price)
        lot = inventory.receive_stock(product.id, "A", quantity, Decimal("0.50"))
    return product, lot


def _run_concurrently(work, count: int = THREADS) -> list:
    """Release ``count`` calls of work(i) at once; return their outcomes."""
    barrier = Barrier(count)

    def _task(i):
        barrier.wait()
        try:
            return work(i)
        except (InsufficientStockError, CreditLimitExceededError) as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_task, range(count)))


class TestConcurrentDeduction:
    def test_only_what_fits_is_deducted(self, file_database):
        """8 threads each take 3 from a lot of 10: exactly 3 succeed."""
        _, lot = _seed_lot(file_database, Decimal("10"))

        def deduct(_):
            with file_database.session_scope() as session:
                return InventoryService(session).reserve_and_deduct(lot.id, Decimal("3"))

        outcomes = _run_concurrently(deduct)
        succeeded = [o for o in outcomes if not isinstance(o, Exception)]
        failed = [o for o in outcomes if isinstance(o, InsufficientStockError)]

        assert len(succeeded) == 3
        assert len(failed) == THREADS - 3

        with file_database.session_scope() as session:
            final = InventoryService(session).get_stock_lot(lot.id).quantity
        assert final == Decimal("10") - 3 * Decimal("3")
        assert final >= 0

    def test_concurrent_sales_never_oversell(self, file_database):
        product, lot = _seed_lot(file_database, Decimal("5"))

        def sell(_):
            with file_database.session_scope() as session:
                return TransactionService(session).commit_transaction(
                    "sale",
                    [TransactionItemRequest(product.id, Decimal("2"), stock_id=lot.id)],
                )

        outcomes = _run_concurrently(sell)
        sold = sum(
            (o.items[0].quantity for o in outcomes if not isinstance(o, Exception)),
            Decimal("0"),
        )

        with file_database.session_scope() as session:
            final = InventoryService(session).get_stock_lot(lot.id).quantity
        assert sold == Decimal("4")
        assert final == Decimal("5") - sold


class TestConcurrentCredit:
    def test_credit_limit_holds_under_contention(self, file_database):
        """8 unpaid sales of 20 against a limit of 100: exactly 5 succeed."""
        product, lot = _seed_lot(file_database, Decimal("1000"))
        with file_database.session_scope() as session:
            client = ClientService(session).create_client("Acme", credit_limit=Decimal("100"))

        def sell(_):
            with file_database.session_scope() as session:
                return TransactionService(session).commit_transaction(
                    "sale",
                    [TransactionItemRequest(product.id, Decimal("20"), stock_id=lot.id)],
                    client_id=client.id,
                )

        outcomes = _run_concurrently(sell)
        succeeded = [o for o in outcomes if not isinstance(o, Exception)]
        rejected = [o for o in outcomes if isinstance(o, CreditLimitExceededError)]

        assert len(succeeded) == 5
        assert len(rejected) == THREADS - 5
        with file_database.session_scope() as session:
            assert TransactionSelector(session).outstanding_balance(client.id) == Decimal("100")
            assert InventoryService(session).get_stock_lot(lot.id).quantity == Decimal("900")

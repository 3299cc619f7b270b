"""
Pytest fixtures for the store kernel test suite.

Provides:
- An independent in-memory SQLite store per test (``database``) and a
  session on it that is rolled back at teardown (``session``)
- A file-backed SQLite store in tmp_path for tests that need real
  concurrent connections (``file_database``)
- Service and factory fixtures for common test data
- Structured log capture

Note:
    In-memory stores share one connection (StaticPool).  A test must not
    hold the ``session`` fixture open and also use
    ``database.session_scope()``; use one or the other.
"""

import json
import logging
from collections.abc import Generator
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from store_kernel.db.engine import Database
from store_kernel.domain.dtos import ClientInfo, ProductInfo, StockLotInfo, UserInfo
from store_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from store_kernel.models.user import UserRole
from store_kernel.selectors.transaction_selector import TransactionSelector
from store_kernel.services.client_service import ClientService
from store_kernel.services.identity_service import IdentityService
from store_kernel.services.inventory_service import InventoryService
from store_kernel.services.schema_service import SchemaManager
from store_kernel.services.transaction_service import TransactionService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture store_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, inventory_service):
            inventory_service.reserve_and_deduct(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_deducted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("store_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture(scope="function")
def database() -> Generator[Database, None, None]:
    """A private in-memory store with the schema created."""
    db = Database.in_memory()
    SchemaManager(db).ensure_schema()
    yield db
    db.dispose()


@pytest.fixture(scope="function")
def file_database(tmp_path) -> Generator[Database, None, None]:
    """A file-backed store; each thread may open its own connection."""
    db = Database.from_url(f"sqlite:///{tmp_path / 'store.db'}", busy_timeout=30.0)
    SchemaManager(db).ensure_schema()
    yield db
    db.dispose()


@pytest.fixture(scope="function")
def session(database) -> Generator[Session, None, None]:
    """A session on the in-memory store, rolled back at teardown."""
    sess = database.session()
    yield sess
    try:
        sess.rollback()
    finally:
        sess.close()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def identity_service(session: Session) -> IdentityService:
    return IdentityService(session)


@pytest.fixture
def inventory_service(session: Session) -> InventoryService:
    return InventoryService(session)


@pytest.fixture
def client_service(session: Session) -> ClientService:
    return ClientService(session)


@pytest.fixture
def transaction_service(session: Session) -> TransactionService:
    return TransactionService(session)


@pytest.fixture
def transaction_selector(session: Session) -> TransactionSelector:
    return TransactionSelector(session)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_product(inventory_service: InventoryService):
    """Factory fixture to create test products."""

    def _create_product(
        name: str = "Widget",
        price: Decimal | str = Decimal("5.00"),
        description: str | None = None,
        barcode: str | None = None,
    ) -> ProductInfo:
        return inventory_service.create_product(name, description, price, barcode)

    return _create_product


@pytest.fixture
def create_lot(inventory_service: InventoryService):
    """Factory fixture to receive a stock lot."""

    def _create_lot(
        product_id: int,
        quantity: Decimal | str = Decimal("10"),
        unit_cost: Decimal | str = Decimal("2.00"),
        stock_group: str = "A",
    ) -> StockLotInfo:
        return inventory_service.receive_stock(product_id, stock_group, quantity, unit_cost)

    return _create_lot


@pytest.fixture
def create_client(client_service: ClientService):
    """Factory fixture to create test clients."""

    def _create_client(
        name: str = "Acme Hardware",
        credit_limit: Decimal | str = Decimal("0"),
        contact: str | None = None,
        address: str | None = None,
    ) -> ClientInfo:
        return client_service.create_client(name, contact, address, credit_limit)

    return _create_client


@pytest.fixture
def create_user(identity_service: IdentityService):
    """Factory fixture to create operators."""

    def _create_user(
        name: str = "Cashier",
        pin: str = "4321",
        role: UserRole = UserRole.OPERATOR,
    ) -> UserInfo:
        return identity_service.create_user(name, pin, role)

    return _create_user


@pytest.fixture
def stocked_widget(create_product, create_lot):
    """Widget priced 5.00 with one lot of 10 at cost 2.00, group "A"."""
    product = create_product("Widget", Decimal("5.00"))
    lot = create_lot(product.id, Decimal("10"), Decimal("2.00"), "A")
    return product, lot

"""
store_services.app -- the application facade over the store kernel.

Responsibility:
    Owns the store's lifecycle (data directory, Database, schema, bootstrap
    operator) and exposes the caller-facing operations.  Each operation runs
    in its own unit of work and returns a plain result object instead of
    raising: either the created or updated record, or a typed failure reason
    carrying the exception's ``code``.

Architecture position:
    Services -- the only layer that reads configuration and composes kernel
    services.  ``store_kernel`` never imports from here.

Invariants enforced:
    - One unit of work per operation: a failed operation leaves nothing
      behind.
    - Every operation runs under a fresh correlation id in the log context.

Failure modes:
    - startup() raises StorageUnavailableError if the store cannot be
      opened or provisioned.
    - Operations never raise StoreKernelError; they report it in the
      result.  Programming errors still propagate.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from store_config import StoreConfig, get_active_config
from store_kernel.db.engine import Database
from store_kernel.domain.dtos import TransactionItemRequest, UserInfo
from store_kernel.exceptions import StorageUnavailableError, StoreKernelError
from store_kernel.logging_config import LogContext, configure_logging, get_logger
from store_kernel.selectors.transaction_selector import TransactionSelector
from store_kernel.services.client_service import ClientService
from store_kernel.services.identity_service import IdentityService
from store_kernel.services.inventory_service import InventoryService
from store_kernel.services.schema_service import SchemaManager
from store_kernel.services.transaction_service import TransactionService

logger = get_logger("app")

LOGIN_OK = "Login successful"
LOGIN_INVALID_PIN = "Invalid PIN"
LOGIN_ERROR = "Authentication error"


@dataclass(frozen=True)
class LoginResponse:
    """Outcome of a PIN login."""

    success: bool
    message: str
    user_id: int | None = None
    name: str | None = None
    role: str | None = None

    @classmethod
    def for_user(cls, user: UserInfo) -> LoginResponse:
        return cls(
            success=True,
            message=LOGIN_OK,
            user_id=user.id,
            name=user.name,
            role=user.role.value,
        )


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a facade operation: a record, or a typed failure."""

    success: bool
    record: Any = None
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, record: Any) -> OperationResult:
        return cls(success=True, record=record)

    @classmethod
    def failure(cls, exc: StoreKernelError) -> OperationResult:
        return cls(success=False, error_code=exc.code, message=str(exc))


class StoreApp:
    """
    Facade used by the shop front end and the CLI.

    Contract:
        Call startup() before any operation and shutdown() when done.
        A Database may be injected (tests); otherwise one is opened from
        the configuration.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        database: Database | None = None,
    ):
        self.config = config or get_active_config()
        self._database = database
        self._owns_database = database is None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    @property
    def database(self) -> Database:
        if self._database is None:
            raise StorageUnavailableError("Store has not been started")
        return self._database

    def startup(self) -> UserInfo | None:
        """
        Open and provision the store.

        Returns:
            The bootstrap operator if this start created it, else None.
        """
        configure_logging(level=self.config.logging.level)
        settings = self.config.database

        if self._database is None:
            if settings.uses_data_dir:
                settings.data_dir.mkdir(parents=True, exist_ok=True)
            self._database = Database.from_url(
                settings.resolved_url,
                echo=settings.echo,
                busy_timeout=settings.busy_timeout_seconds,
            )

        manager = SchemaManager(
            self._database,
            bootstrap_name=self.config.bootstrap.admin_name,
            bootstrap_pin=self.config.bootstrap.admin_pin,
        )
        manager.ensure_schema()
        created = manager.ensure_bootstrap_user()
        logger.info("store_started", extra={"dialect": self._database.dialect_name})
        return created

    def shutdown(self) -> None:
        if self._database is not None and self._owns_database:
            self._database.dispose()
            self._database = None
        logger.info("store_stopped")

    def __enter__(self) -> StoreApp:
        self.startup()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        work: Callable[[Session], Any],
        actor_id: int | None = None,
    ) -> OperationResult:
        with LogContext.bind(correlation_id=uuid4().hex, actor_id=actor_id):
            try:
                with self.database.session_scope() as session:
                    record = work(session)
            except StoreKernelError as exc:
                logger.info(
                    "operation_failed",
                    extra={"operation": operation, "error_code": exc.code},
                )
                return OperationResult.failure(exc)
            return OperationResult.ok(record)

    # -------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------

    def login(self, pin: str) -> LoginResponse:
        """Authenticate an operator by PIN."""
        with LogContext.bind(correlation_id=uuid4().hex):
            try:
                with self.database.session_scope() as session:
                    user = IdentityService(session).authenticate(pin)
            except StoreKernelError:
                logger.error("login_failed", exc_info=True)
                return LoginResponse(success=False, message=LOGIN_ERROR)

        if user is None:
            return LoginResponse(success=False, message=LOGIN_INVALID_PIN)
        return LoginResponse.for_user(user)

    def create_user(self, name: str, pin: str, role: str = "operator") -> OperationResult:
        return self._run(
            "create_user",
            lambda s: IdentityService(s).create_user(name, pin, role),
        )

    def change_pin(self, user_id: int, current_pin: str, new_pin: str) -> OperationResult:
        return self._run(
            "change_pin",
            lambda s: IdentityService(s).change_pin(user_id, current_pin, new_pin),
            actor_id=user_id,
        )

    # -------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------

    def create_product(
        self,
        name: str,
        description: str | None,
        price: Decimal | int | str,
        barcode: str | None = None,
    ) -> OperationResult:
        return self._run(
            "create_product",
            lambda s: InventoryService(s).create_product(name, description, price, barcode),
        )

    def receive_stock(
        self,
        product_id: int,
        stock_group: str,
        quantity: Decimal | int | str,
        unit_cost: Decimal | int | str,
    ) -> OperationResult:
        return self._run(
            "receive_stock",
            lambda s: InventoryService(s).receive_stock(
                product_id, stock_group, quantity, unit_cost
            ),
        )

    # -------------------------------------------------------------------
    # Clients and transactions
    # -------------------------------------------------------------------

    def create_client(
        self,
        name: str,
        contact: str | None = None,
        address: str | None = None,
        credit_limit: Decimal | int | str = Decimal("0"),
    ) -> OperationResult:
        return self._run(
            "create_client",
            lambda s: ClientService(s).create_client(name, contact, address, credit_limit),
        )

    def commit_transaction(
        self,
        transaction_type: str,
        items: Sequence[TransactionItemRequest | dict],
        payments: Iterable[Decimal | int | str] = (),
        client_id: int | None = None,
        actor_id: int | None = None,
    ) -> OperationResult:
        return self._run(
            "commit_transaction",
            lambda s: TransactionService(s).commit_transaction(
                transaction_type,
                items,
                payments=payments,
                client_id=client_id,
                actor_id=actor_id,
            ),
            actor_id=actor_id,
        )

    def record_payment(
        self,
        transaction_id: int,
        amount: Decimal | int | str,
    ) -> OperationResult:
        return self._run(
            "record_payment",
            lambda s: TransactionService(s).record_payment(transaction_id, amount),
        )

    def get_transaction(self, transaction_id: int) -> OperationResult:
        """Read a transaction back.  The record is None if it does not exist."""
        return self._run(
            "get_transaction",
            lambda s: TransactionSelector(s).get_transaction(transaction_id),
        )

"""
SchemaManager -- create the store's tables and the first operator.

Responsibility:
    Brings an empty store to a usable state: creates every table and index
    if missing, and, when no operator exists yet, creates the bootstrap
    administrator so somebody can log in.

Architecture position:
    Kernel > Services.  Unlike the other services it works on a Database
    rather than a Session, because DDL and the bootstrap check run as their
    own units of work at startup.

Invariants enforced:
    - Idempotent: running ensure_schema() and ensure_bootstrap_user() on an
      initialized store changes nothing.
    - The bootstrap user is only created when the users table is empty.

Failure modes:
    - StorageUnavailableError if the store cannot be reached or written.
"""

from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

import store_kernel.models  # noqa: F401  (registers all tables on Base.metadata)
from store_kernel.db.base import Base
from store_kernel.db.engine import Database, _storage_error
from store_kernel.domain.dtos import UserInfo
from store_kernel.logging_config import get_logger
from store_kernel.models.user import UserRole
from store_kernel.services.identity_service import IdentityService

logger = get_logger("services.schema")

DEFAULT_BOOTSTRAP_NAME = "Admin"
DEFAULT_BOOTSTRAP_PIN = "1234"


class SchemaManager:
    """
    Schema creation and first-run bootstrap for one Database.

    Args:
        database: Store to manage.
        bootstrap_name: Name of the administrator created on first run.
        bootstrap_pin: PIN of that administrator.  Operators are expected
            to change it after the first login.
    """

    def __init__(
        self,
        database: Database,
        bootstrap_name: str = DEFAULT_BOOTSTRAP_NAME,
        bootstrap_pin: str = DEFAULT_BOOTSTRAP_PIN,
    ):
        self._database = database
        self._bootstrap_name = bootstrap_name
        self._bootstrap_pin = bootstrap_pin

    def ensure_schema(self) -> None:
        """Create all tables and indexes that do not exist yet."""
        try:
            Base.metadata.create_all(self._database.engine)
        except OperationalError as exc:
            logger.error("schema_creation_failed", exc_info=True)
            raise _storage_error(exc) from exc
        logger.info("schema_ready", extra={"tables": self.table_names()})

    def table_names(self) -> list[str]:
        return sorted(inspect(self._database.engine).get_table_names())

    def ensure_bootstrap_user(self) -> UserInfo | None:
        """
        Create the bootstrap administrator if the store has no operators.

        Returns:
            The created UserInfo, or None when operators already exist.
        """
        with self._database.session_scope() as session:
            identity = IdentityService(session)
            if identity.count_users() > 0:
                return None
            user = identity.create_user(
                self._bootstrap_name,
                self._bootstrap_pin,
                UserRole.ADMIN,
            )

        logger.warning(
            "bootstrap_user_created",
            extra={
                "user_id": user.id,
                "user_name": user.name,
                "detail": "default administrator PIN in use; change it after first login",
            },
        )
        return user

    def drop_schema(self) -> None:
        """Drop every table.  Destroys all data; for tests and resets only."""
        Base.metadata.drop_all(self._database.engine)
        logger.warning("schema_dropped")

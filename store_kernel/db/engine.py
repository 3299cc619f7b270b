"""
Module: store_kernel.db.engine
Responsibility: The store handle.  A ``Database`` owns one SQLAlchemy engine
    and its session factory and provides the transactional scope used by
    every caller.  There is no process-wide handle: each component receives
    a ``Database`` (or a ``Session`` opened from one), so tests run against
    independent in-memory stores.
Architecture position: Kernel > DB.  May import from db/ and exceptions only.
    MUST NOT import from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - Atomic units of work: session_scope() commits on normal exit and rolls
      back on any exception, so partial multi-row writes are never visible.
    - Serialized writers on SQLite: every transaction starts with
      ``BEGIN IMMEDIATE``, taking the database write lock up front.  This is
      the SQLite equivalent of ``SELECT ... FOR UPDATE`` (which SQLite does
      not support) and makes check-then-act stock deductions safe.
    - Foreign keys are enforced on SQLite (``PRAGMA foreign_keys=ON``).
    - PostgreSQL sessions run READ COMMITTED with explicit row locks.

Failure modes:
    - StorageUnavailableError when the driver raises OperationalError
      (unreachable server, locked database past the busy timeout, disk I/O).
      The driver message is preserved verbatim.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from store_kernel.exceptions import StorageUnavailableError
from store_kernel.logging_config import get_logger

logger = get_logger("db.engine")

DEFAULT_BUSY_TIMEOUT_SECONDS = 30.0


def _storage_error(exc: OperationalError) -> StorageUnavailableError:
    return StorageUnavailableError(str(exc.orig) if exc.orig is not None else str(exc))


def _install_sqlite_listeners(engine: Engine) -> None:
    """Take transaction control away from pysqlite so BEGIN IMMEDIATE and
    SAVEPOINT behave as written."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Explicit store handle: engine + session factory.

    Contract:
        Construct with ``Database.from_url(...)`` or ``Database.in_memory()``.
        Open units of work with ``session_scope()``; services never commit.

    Guarantees:
        - Sessions are created with expire_on_commit=False so DTOs built
          inside a scope stay readable after it closes.
        - Distinct Database objects share no state.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(
        cls,
        database_url: str,
        *,
        echo: bool = False,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
    ) -> "Database":
        """
        Open a store from a SQLAlchemy URL.

        Args:
            database_url: ``sqlite:///path/to/store.db``, ``sqlite://`` for an
                in-memory store, or a ``postgresql://`` URL.
            echo: If True, log all SQL statements.
            busy_timeout: Seconds a SQLite writer waits for the write lock.
            pool_size: Connections kept in the pool (server databases only).
            max_overflow: Connections beyond pool_size (server databases only).
            pool_pre_ping: Test connections before use (server databases only).

        Returns:
            A new Database.
        """
        url = make_url(database_url)

        if url.get_backend_name() == "sqlite":
            if url.database in (None, "", ":memory:"):
                # One shared connection, otherwise each checkout sees an
                # empty database.
                engine = create_engine(
                    url,
                    echo=echo,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                engine = create_engine(
                    url,
                    echo=echo,
                    connect_args={
                        "check_same_thread": False,
                        "timeout": busy_timeout,
                    },
                )
            _install_sqlite_listeners(engine)
        else:
            engine = create_engine(
                url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                isolation_level="READ COMMITTED",
            )

        logger.info(
            "engine_initialized",
            extra={
                "dialect": engine.dialect.name,
                "database": url.database or ":memory:",
                "echo": echo,
            },
        )
        return cls(engine)

    @classmethod
    def in_memory(cls, echo: bool = False) -> "Database":
        """Open a private in-memory SQLite store."""
        return cls.from_url("sqlite://", echo=echo)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> Session:
        """Get a new session.  The caller owns commit/rollback/close."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit, the session is committed and closed.
            On exception, it is rolled back and closed and the exception is
            re-raised; OperationalError is re-raised as
            StorageUnavailableError.

        Usage:
            with database.session_scope() as session:
                InventoryService(session).receive_stock(...)
        """
        session = self.session()
        logger.debug("unit_of_work_started")
        try:
            yield session
            session.commit()
            logger.debug("unit_of_work_committed")
        except OperationalError as exc:
            session.rollback()
            logger.error("storage_unavailable", exc_info=True)
            raise _storage_error(exc) from exc
        except Exception:
            session.rollback()
            logger.warning("unit_of_work_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def ping(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            StorageUnavailableError: If a trivial query fails.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError as exc:
            raise _storage_error(exc) from exc

    def dispose(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()
        logger.info("engine_disposed", extra={"dialect": self.dialect_name})

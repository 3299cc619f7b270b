"""
Tests for SchemaManager.

Covers:
- Table creation and idempotency
- Bootstrap administrator on an empty store
"""

from store_kernel.db.engine import Database
from store_kernel.models.user import UserRole
from store_kernel.services.identity_service import IdentityService
from store_kernel.services.schema_service import SchemaManager

EXPECTED_TABLES = [
    "clients",
    "payments",
    "products",
    "stock",
    "transaction_items",
    "transactions",
    "users",
]


class TestEnsureSchema:
    def test_creates_all_tables(self):
        db = Database.in_memory()
        manager = SchemaManager(db)
        manager.ensure_schema()

        assert manager.table_names() == EXPECTED_TABLES
        db.dispose()

    def test_idempotent(self, database):
        manager = SchemaManager(database)
        manager.ensure_schema()
        manager.ensure_schema()
        assert manager.table_names() == EXPECTED_TABLES

    def test_drop_schema(self, database):
        manager = SchemaManager(database)
        manager.drop_schema()
        assert manager.table_names() == []


class TestBootstrapUser:
    def test_creates_admin_on_empty_store(self, database):
        """First start creates Admin / 1234."""
        created = SchemaManager(database).ensure_bootstrap_user()

        assert created is not None
        assert created.name == "Admin"
        assert created.role is UserRole.ADMIN

        with database.session_scope() as session:
            assert IdentityService(session).authenticate("1234") == created

    def test_not_created_twice(self, database):
        manager = SchemaManager(database)
        manager.ensure_bootstrap_user()

        assert manager.ensure_bootstrap_user() is None
        with database.session_scope() as session:
            assert IdentityService(session).count_users() == 1

    def test_not_created_when_users_exist(self, database):
        with database.session_scope() as session:
            IdentityService(session).create_user("Owner", "9090", UserRole.ADMIN)

        assert SchemaManager(database).ensure_bootstrap_user() is None

    def test_configured_credentials(self, database):
        manager = SchemaManager(database, bootstrap_name="Boss", bootstrap_pin="2468")
        created = manager.ensure_bootstrap_user()

        assert created.name == "Boss"
        with database.session_scope() as session:
            assert IdentityService(session).authenticate("1234") is None
            assert IdentityService(session).authenticate("2468") is not None

    def test_warning_logged(self, database, captured_logs):
        SchemaManager(database).ensure_bootstrap_user()

        record = next(r for r in captured_logs() if r["message"] == "bootstrap_user_created")
        assert record["level"] == "WARNING"
        assert "1234" not in str({k: v for k, v in record.items() if k != "ts"})

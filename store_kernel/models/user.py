"""
Module: store_kernel.models.user
Responsibility: ORM persistence for operators who log in with a PIN.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - pin_hash is unique across users (uq_users_pin_hash): a PIN identifies
      exactly one operator, which is what PIN-only login relies on.
    - role is set at creation; no service mutates it.
    - The raw PIN is never stored, only its SHA-256 hex digest.
"""

from enum import Enum

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from store_kernel.db.base import TimestampedBase


class UserRole(str, Enum):
    """Operator privilege level."""

    ADMIN = "admin"
    OPERATOR = "operator"


class User(TimestampedBase):
    """An operator account."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("pin_hash", name="uq_users_pin_hash"),
        {"sqlite_autoincrement": True},
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    pin_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.name} ({self.role})>"

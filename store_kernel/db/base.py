"""
Module: store_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the integer primary key convention, the type annotation map for
    consistent column types, and the TimestampedBase mixin.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - Integer primary keys: identifiers are opaque, monotonically assigned
      integers.  SQLite tables are declared AUTOINCREMENT so an id is never
      reused, even after the highest row is removed.
    - Decimal precision: type_annotation_map maps Python Decimal to
      ExactDecimal, so no model can accidentally declare a float column.
    - Creation timestamps are server-defaulted.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from store_kernel.db.types import ExactDecimal


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model in the store inherits from Base (or TimestampedBase).
        Base provides an autoincrement integer primary key and a
        type_annotation_map that enforces consistent column types.

    Guarantees:
        - id is an INTEGER PRIMARY KEY assigned by the database.
        - Decimal maps to ExactDecimal -- lossless on SQLite and PostgreSQL.
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(),
        datetime: DateTime(timezone=True),
        int: Integer,
    }

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )


class TimestampedBase(Base):
    """
    Abstract base with a creation timestamp.

    Guarantees:
        - created_at is set to the store's CURRENT_TIMESTAMP on INSERT and
          never changes afterwards.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

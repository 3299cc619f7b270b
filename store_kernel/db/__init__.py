"""Database infrastructure: declarative base, column types, store handle."""

from store_kernel.db.base import Base, TimestampedBase
from store_kernel.db.engine import Database

__all__ = [
    "Base",
    "Database",
    "TimestampedBase",
]

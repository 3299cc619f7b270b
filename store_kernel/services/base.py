"""
Common base for the store's write-side services.

Every service is built on one SQLAlchemy ``Session`` supplied by the caller
and writes through ``session.flush()``.  Committing belongs to whoever
opened the unit of work (``Database.session_scope()``, ``StoreApp`` or a
test fixture), so a sale that touches several lots either lands whole or
not at all.

A service that has to undo its own partial work wraps it in
``session.begin_nested()`` rather than rolling back the caller's
transaction.  Read-only queries live in ``store_kernel.selectors``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from store_kernel.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseService(ABC, Generic[ModelT]):
    """Holds the caller's session; parameterized by the service's main model."""

    def __init__(self, session: Session):
        self.session = session

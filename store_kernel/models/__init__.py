"""ORM models for the store kernel."""

from store_kernel.models.client import Client
from store_kernel.models.payment import Payment
from store_kernel.models.product import Product
from store_kernel.models.stock import StockLot
from store_kernel.models.transaction import (
    Transaction,
    TransactionItem,
    TransactionType,
)
from store_kernel.models.user import User, UserRole

__all__ = [
    "Client",
    "Payment",
    "Product",
    "StockLot",
    "Transaction",
    "TransactionItem",
    "TransactionType",
    "User",
    "UserRole",
]

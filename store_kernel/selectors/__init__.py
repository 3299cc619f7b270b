"""Selectors for the store kernel (read side)."""

from store_kernel.selectors.transaction_selector import (
    TransactionSelector,
    to_transaction_info,
)

__all__ = [
    "TransactionSelector",
    "to_transaction_info",
]

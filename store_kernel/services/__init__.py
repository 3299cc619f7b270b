"""Services for the store kernel (write side)."""

from store_kernel.services.client_service import ClientService
from store_kernel.services.identity_service import IdentityService
from store_kernel.services.inventory_service import InventoryService
from store_kernel.services.schema_service import SchemaManager
from store_kernel.services.transaction_service import TransactionService

__all__ = [
    "ClientService",
    "IdentityService",
    "InventoryService",
    "SchemaManager",
    "TransactionService",
]

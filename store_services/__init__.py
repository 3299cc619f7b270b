"""
store_services -- application layer over the store kernel.

Responsibility:
    Lifecycle and caller-facing operations (``StoreApp``).  This is the
    only layer that reads configuration and opens a Database.

Architecture position:
    Dependency direction:
        store_services/ -> store_kernel/, store_config/  (allowed)
        store_kernel/   -> store_services/               (FORBIDDEN)
"""

from store_services.app import LoginResponse, OperationResult, StoreApp

__all__ = [
    "LoginResponse",
    "OperationResult",
    "StoreApp",
]

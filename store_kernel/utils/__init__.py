"""Utility functions for the store kernel."""

from store_kernel.utils.hashing import hash_pin, pin_matches

__all__ = [
    "hash_pin",
    "pin_matches",
]

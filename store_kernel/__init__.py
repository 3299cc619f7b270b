"""
Store Kernel - point-of-sale / inventory back office

A relational ledger for a small shop with:
- PIN-based operator authentication
- Lot-based stock with atomic, non-negative depletion
- Atomic multi-item sale, purchase and adjustment transactions
- Partial payments against client credit limits
"""

__version__ = "0.1.0"

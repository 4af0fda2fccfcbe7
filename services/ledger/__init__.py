"""
Ledger Service

Derives available cash and share positions from a user's filled orders.
"""

from .calculator import LedgerCalculator

__all__ = ["LedgerCalculator"]

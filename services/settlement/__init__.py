"""
Cash Settlement Service

Turns each filled trade into the offsetting cash-movement order.
"""

from .agent import CashSettlementAgent

__all__ = ["CashSettlementAgent"]

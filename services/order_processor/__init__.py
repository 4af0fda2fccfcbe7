"""
Order Processor Service

Submission and cancellation of orders against the derived ledger.
"""

from .processor import OrderProcessor

__all__ = ["OrderProcessor"]

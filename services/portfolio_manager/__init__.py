"""
Portfolio Manager Service

Values a user's account from derived positions and latest market closes.
"""

from .service import PortfolioService
from .valuator import PortfolioValuator

__all__ = ["PortfolioService", "PortfolioValuator"]

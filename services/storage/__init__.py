"""
Storage Service

SQLAlchemy implementation of the trading repository and unit of work.
"""

from .repository import SqlTradingRepository, SqlUnitOfWork

__all__ = ["SqlTradingRepository", "SqlUnitOfWork"]

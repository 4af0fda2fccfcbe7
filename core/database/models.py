# Database models for ledger state
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from .connection import Base


class User(Base):
    """Account holder; reference data, never written by the engine"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    account_number = Column(String(20), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Instrument(Base):
    """Tradable instrument; kind MONEDA marks the cash-equivalent instrument"""
    __tablename__ = "instruments"

    id = Column(Integer, primary_key=True, index=True)
    ticker = Column(String(10), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(10), nullable=False, index=True)


class MarketData(Base):
    """Daily price bar for an instrument"""
    __tablename__ = "marketdata"

    id = Column(Integer, primary_key=True, index=True)
    instrument_id = Column(Integer, ForeignKey("instruments.id"), nullable=False)
    open = Column(Numeric(10, 2))
    high = Column(Numeric(10, 2))
    low = Column(Numeric(10, 2))
    close = Column(Numeric(10, 2))
    previous_close = Column(Numeric(10, 2))
    date = Column(Date, nullable=False)

    __table_args__ = (
        Index('idx_marketdata_instrument_date', 'instrument_id', 'date'),
    )


class Order(Base):
    """Order ledger entry; status changes at most once, NEW -> CANCELLED"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    instrument_id = Column(Integer, ForeignKey("instruments.id"), nullable=False)
    side = Column(String(10), nullable=False)
    kind = Column(String(10), nullable=False)
    size = Column(Numeric(18, 2), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_orders_user_status', 'user_id', 'status'),
        Index('idx_orders_instrument', 'instrument_id'),
    )

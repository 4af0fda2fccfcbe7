# Ledger domain types and API schemas
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")

# Column precision of orders.size and orders.price
SIZE_MAX_DIGITS = 18
PRICE_MAX_DIGITS = 12
# Settlement size is the notional, stored in orders.size
MAX_NOTIONAL = Decimal(10) ** (SIZE_MAX_DIGITS - 2)


def to_money(value: Union[Decimal, int, float, str, None]) -> Decimal:
    """Quantize an amount to 2 decimal places, rounding half up."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() keeps floats from leaking binary noise into the amount
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def notional_fits(size: Decimal, price: Decimal) -> bool:
    """True when size x price, rounded to cents, stays below MAX_NOTIONAL."""
    notional = size * price
    # Quantizing a huge product would exceed the decimal context precision
    return notional < MAX_NOTIONAL and to_money(notional) < MAX_NOTIONAL


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    CASH_IN = "CASH_IN"
    CASH_OUT = "CASH_OUT"


class OrderKind(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class OrderStatus(str, Enum):
    NEW = "NEW"
    FILLED = "FILLED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TRADE_SIDES = frozenset({OrderSide.BUY, OrderSide.SELL})
CASH_SIDES = frozenset({OrderSide.CASH_IN, OrderSide.CASH_OUT})


@dataclass(frozen=True)
class UserInfo:
    id: int
    email: str
    account_number: str


@dataclass(frozen=True)
class InstrumentInfo:
    id: int
    ticker: str
    name: str
    kind: str


@dataclass(frozen=True)
class FilledOrder:
    """A filled order together with the instrument it was placed on."""

    id: int
    instrument: InstrumentInfo
    side: OrderSide
    size: Decimal
    price: Decimal


@dataclass(frozen=True)
class OrderDraft:
    """Order content before the store assigns an id."""

    user_id: int
    instrument_id: int
    side: OrderSide
    kind: OrderKind
    size: Decimal
    price: Decimal
    status: OrderStatus
    timestamp: datetime


@dataclass(frozen=True)
class OrderRecord:
    id: int
    user_id: int
    instrument_id: int
    side: OrderSide
    kind: OrderKind
    size: Decimal
    price: Decimal
    status: OrderStatus
    timestamp: datetime


@dataclass
class Position:
    """Net holding and cost basis for one user/instrument pair."""

    instrument_id: int
    ticker: str
    name: str
    quantity: Decimal = ZERO
    total_value: Decimal = ZERO
    total_return: Decimal = ZERO


class LedgerBaseModel(BaseModel):
    """Base model for API schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SubmitOrderRequest(LedgerBaseModel):
    user_id: int
    instrument_id: int
    side: OrderSide
    kind: OrderKind
    quantity: Decimal = Field(..., gt=0, max_digits=SIZE_MAX_DIGITS, decimal_places=2)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=PRICE_MAX_DIGITS, decimal_places=2)

    @model_validator(mode="after")
    def check_price(self) -> "SubmitOrderRequest":
        if self.kind == OrderKind.LIMIT and self.price is None:
            raise ValueError("price is required for LIMIT orders")
        if self.price is not None and not notional_fits(self.quantity, self.price):
            raise ValueError("quantity x price exceeds the maximum order amount")
        return self


class CancelOrderRequest(LedgerBaseModel):
    order_id: int


class OrderView(LedgerBaseModel):
    id: int
    user_id: int
    instrument_id: int
    side: OrderSide
    kind: OrderKind
    quantity: Decimal
    price: Decimal
    status: OrderStatus
    timestamp: datetime

    @classmethod
    def from_record(cls, record: OrderRecord) -> "OrderView":
        return cls(
            id=record.id,
            user_id=record.user_id,
            instrument_id=record.instrument_id,
            side=record.side,
            kind=record.kind,
            quantity=to_money(record.size),
            price=to_money(record.price),
            status=record.status,
            timestamp=record.timestamp,
        )


class PositionView(LedgerBaseModel):
    instrument_id: int
    ticker: str
    name: str
    quantity: Decimal
    total_value: Decimal
    total_return: Decimal

    @classmethod
    def from_position(cls, position: Position) -> "PositionView":
        return cls(
            instrument_id=position.instrument_id,
            ticker=position.ticker,
            name=position.name,
            quantity=to_money(position.quantity),
            total_value=to_money(position.total_value),
            total_return=to_money(position.total_return),
        )


class PortfolioView(LedgerBaseModel):
    total_account_value: Decimal
    available_cash: Decimal
    positions: List[PositionView] = Field(default_factory=list)

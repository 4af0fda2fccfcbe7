"""
In-memory ledger store implementing the trading repository interfaces.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from core.trading.models import (
    FilledOrder,
    InstrumentInfo,
    OrderDraft,
    OrderRecord,
    OrderStatus,
    UserInfo,
)


class FakeTradingRepository:
    def __init__(self, store: "FakeLedgerStore"):
        self.store = store

    async def find_user(self, user_id: int, for_update: bool = False) -> Optional[UserInfo]:
        return self.store.users.get(user_id)

    async def find_instrument(self, instrument_id: int) -> Optional[InstrumentInfo]:
        return self.store.instruments.get(instrument_id)

    async def find_instrument_by_kind(self, kind: str) -> Optional[InstrumentInfo]:
        for instrument in sorted(self.store.instruments.values(), key=lambda i: i.id):
            if instrument.kind == kind:
                return instrument
        return None

    async def find_filled_orders(self, user_id: int) -> List[FilledOrder]:
        # Yield so unserialized callers would interleave here
        await asyncio.sleep(0)
        return [
            FilledOrder(
                id=order.id,
                instrument=self.store.instruments[order.instrument_id],
                side=order.side,
                size=order.size,
                price=order.price,
            )
            for order in self.store.orders.values()
            if order.user_id == user_id and order.status == OrderStatus.FILLED
        ]

    async def find_latest_market_close(self, instrument_id: int) -> Optional[Decimal]:
        return self.store.closes.get(instrument_id)

    async def find_order(self, order_id: int) -> Optional[OrderRecord]:
        return self.store.orders.get(order_id)

    async def save_order(self, draft: OrderDraft) -> OrderRecord:
        self.store.next_id += 1
        record = OrderRecord(id=self.store.next_id, **draft.__dict__)
        self.store.orders[record.id] = record
        return record

    async def transition_order(self, order_id: int, from_status: OrderStatus,
                               to_status: OrderStatus, timestamp: datetime) -> bool:
        order = self.store.orders.get(order_id)
        if order is None or order.status != from_status:
            return False
        self.store.orders[order_id] = replace(order, status=to_status, timestamp=timestamp)
        return True


class FakeLedgerStore:
    """Unit of work over dicts; a failing transaction restores the orders it found."""

    def __init__(self):
        self.users: Dict[int, UserInfo] = {}
        self.instruments: Dict[int, InstrumentInfo] = {}
        self.closes: Dict[int, Decimal] = {}
        self.orders: Dict[int, OrderRecord] = {}
        self.next_id = 0
        self.commits = 0
        self.rollbacks = 0

    def repository(self) -> FakeTradingRepository:
        return FakeTradingRepository(self)

    @asynccontextmanager
    async def transaction(self):
        snapshot = dict(self.orders)
        next_id = self.next_id
        try:
            yield self.repository()
        except BaseException:
            self.orders = snapshot
            self.next_id = next_id
            self.rollbacks += 1
            raise
        self.commits += 1

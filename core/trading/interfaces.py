from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import AsyncContextManager, List, Optional, Protocol, runtime_checkable

from core.trading.models import (
    FilledOrder,
    InstrumentInfo,
    OrderDraft,
    OrderRecord,
    OrderStatus,
    UserInfo,
)


@runtime_checkable
class TradingRepository(Protocol):
    """Read/write access to ledger data inside one transaction.

    Lookups return ``None`` for unknown ids; raising ``NotFoundError`` is the
    caller's decision.
    """

    async def find_user(self, user_id: int, for_update: bool = False) -> Optional[UserInfo]:
        ...

    async def find_instrument(self, instrument_id: int) -> Optional[InstrumentInfo]:
        ...

    async def find_instrument_by_kind(self, kind: str) -> Optional[InstrumentInfo]:
        ...

    async def find_filled_orders(self, user_id: int) -> List[FilledOrder]:
        ...

    async def find_latest_market_close(self, instrument_id: int) -> Optional[Decimal]:
        ...

    async def find_order(self, order_id: int) -> Optional[OrderRecord]:
        ...

    async def save_order(self, draft: OrderDraft) -> OrderRecord:
        ...

    async def transition_order(
        self,
        order_id: int,
        from_status: OrderStatus,
        to_status: OrderStatus,
        timestamp: datetime,
    ) -> bool:
        """Change status only if the order is still in ``from_status``.

        Returns False when no row matched.
        """
        ...


@runtime_checkable
class TradingUnitOfWork(Protocol):
    """Factory for transactional repository scopes.

    Everything written through the yielded repository commits together when
    the block exits normally and rolls back if it raises.
    """

    def transaction(self) -> AsyncContextManager[TradingRepository]:
        ...

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from core.logging import get_trading_logger_safe
from core.trading.interfaces import TradingRepository
from core.trading.models import (
    InstrumentInfo,
    OrderDraft,
    OrderKind,
    OrderSide,
    OrderStatus,
    to_money,
)
from core.utils.exceptions import OrderValidationError, SettlementGapError

# Unit price of the cash-equivalent instrument
CASH_UNIT_PRICE = Decimal("1.00")

_SETTLEMENT_SIDES = {
    OrderSide.BUY: OrderSide.CASH_OUT,
    OrderSide.SELL: OrderSide.CASH_IN,
}


class CashSettlementAgent:
    """
    Builds the cash order that settles a filled trade.

    The ledger folds cash orders by size, so a settlement carries the trade's
    notional (size x price) as its size at a unit price of 1.00. Its
    size x price therefore equals the trade's.
    """

    def __init__(self, cash_instrument_kind: str = "MONEDA"):
        self.cash_instrument_kind = cash_instrument_kind
        self.logger = get_trading_logger_safe("cash_settlement")

    async def resolve_cash_instrument(self, repository: TradingRepository) -> InstrumentInfo:
        """Look up the cash-equivalent instrument or fail the surrounding transaction."""
        instrument = await repository.find_instrument_by_kind(self.cash_instrument_kind)
        if instrument is None:
            self.logger.error("Cash instrument missing, cannot settle trade",
                              cash_instrument_kind=self.cash_instrument_kind)
            raise SettlementGapError(self.cash_instrument_kind)
        return instrument

    def settle(
        self,
        user_id: int,
        cash_instrument: InstrumentInfo,
        trade_side: OrderSide,
        size: Decimal,
        price: Decimal,
        timestamp: Optional[datetime] = None,
    ) -> OrderDraft:
        if trade_side not in _SETTLEMENT_SIDES:
            raise OrderValidationError(
                f"Only BUY and SELL trades are settled, got {trade_side.value}",
                field="side",
                value=trade_side.value,
            )

        settlement = OrderDraft(
            user_id=user_id,
            instrument_id=cash_instrument.id,
            side=_SETTLEMENT_SIDES[trade_side],
            kind=OrderKind.MARKET,
            size=to_money(size * price),
            price=CASH_UNIT_PRICE,
            status=OrderStatus.FILLED,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

        self.logger.debug("Settlement order built",
                          user_id=user_id,
                          trade_side=trade_side.value,
                          settlement_side=settlement.side.value,
                          amount=str(settlement.size))
        return settlement

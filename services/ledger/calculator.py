from decimal import Decimal
from typing import Dict, Iterable, List

from core.trading.models import FilledOrder, OrderSide, Position, ZERO, to_money


class LedgerCalculator:
    """
    Pure fold over filled-order history.

    Nothing is persisted: cash and positions are recomputed from the full
    history on every call, so cost grows with the size of the history.
    Both folds are sums, so their results do not depend on input order.
    """

    def __init__(self, cash_instrument_kind: str = "MONEDA"):
        self.cash_instrument_kind = cash_instrument_kind

    def is_cash(self, order: FilledOrder) -> bool:
        return order.instrument.kind == self.cash_instrument_kind

    def compute_available_cash(self, filled_orders: Iterable[FilledOrder]) -> Decimal:
        """CASH_IN minus CASH_OUT sizes over orders on the cash instrument."""
        cash = ZERO
        for order in filled_orders:
            if not self.is_cash(order):
                continue
            if order.side == OrderSide.CASH_IN:
                cash += order.size
            elif order.side == OrderSide.CASH_OUT:
                cash -= order.size
        return to_money(cash)

    def compute_positions(self, filled_orders: Iterable[FilledOrder]) -> List[Position]:
        """Net quantity and cost basis per non-cash instrument.

        Instruments appear in first-occurrence order; flat positions are kept.
        """
        positions: Dict[int, Position] = {}
        for order in filled_orders:
            if self.is_cash(order) or order.side not in (OrderSide.BUY, OrderSide.SELL):
                continue

            position = positions.get(order.instrument.id)
            if position is None:
                position = Position(
                    instrument_id=order.instrument.id,
                    ticker=order.instrument.ticker,
                    name=order.instrument.name,
                )
                positions[order.instrument.id] = position

            sign = 1 if order.side == OrderSide.BUY else -1
            position.quantity += sign * order.size
            position.total_value += sign * order.size * order.price

        for position in positions.values():
            position.quantity = to_money(position.quantity)
            position.total_value = to_money(position.total_value)
        return list(positions.values())

    def compute_net_quantity(self, filled_orders: Iterable[FilledOrder], instrument_id: int) -> Decimal:
        """Sum of BUY sizes minus SELL sizes for one instrument."""
        quantity = ZERO
        for order in filled_orders:
            if order.instrument.id != instrument_id or self.is_cash(order):
                continue
            if order.side == OrderSide.BUY:
                quantity += order.size
            elif order.side == OrderSide.SELL:
                quantity -= order.size
        return to_money(quantity)

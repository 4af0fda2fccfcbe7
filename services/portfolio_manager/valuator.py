from decimal import Decimal
from typing import Mapping, Optional, Sequence, Union

from core.trading.models import Position, ZERO, to_money

PriceSource = Union[Optional[Decimal], Mapping[int, Optional[Decimal]]]

HUNDRED = Decimal("100")


class PortfolioValuator:
    """Marks positions to market and totals the account."""

    def compute_total_account_value(
        self,
        positions: Sequence[Position],
        latest_price: PriceSource,
        available_cash: Decimal,
    ) -> Decimal:
        """Return cash plus the current value of every position.

        ``latest_price`` is either one reference price applied to every
        position or a mapping of instrument id to price. A missing price
        counts as 0. Each position's ``total_return`` is set as a percentage
        of its cost basis, or 0.00 when the cost basis is zero.
        """
        total = Decimal(available_cash)
        for position in positions:
            price = self._price_for(position, latest_price)
            current_value = position.quantity * price
            position.total_return = self._total_return(current_value, position.total_value)
            total += current_value
        return to_money(total)

    @staticmethod
    def _price_for(position: Position, latest_price: PriceSource) -> Decimal:
        if isinstance(latest_price, Mapping):
            price = latest_price.get(position.instrument_id)
        else:
            price = latest_price
        return price if price is not None else ZERO

    @staticmethod
    def _total_return(current_value: Decimal, cost_basis: Decimal) -> Decimal:
        if cost_basis == 0:
            return ZERO
        return to_money((current_value - cost_basis) / cost_basis * HUNDRED)

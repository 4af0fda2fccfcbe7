import time
from decimal import Decimal
from typing import Dict, List, Optional

from core.logging import get_trading_logger_safe
from core.monitoring import TradingMetricsCollector
from core.trading.interfaces import TradingRepository, TradingUnitOfWork
from core.trading.models import PortfolioView, Position, PositionView
from core.utils.exceptions import NotFoundError
from services.ledger.calculator import LedgerCalculator
from .valuator import PortfolioValuator, PriceSource


class PortfolioService:
    """Answers portfolio requests from the order history and latest closes."""

    def __init__(
        self,
        unit_of_work: TradingUnitOfWork,
        ledger: LedgerCalculator,
        valuator: PortfolioValuator,
        price_source: str = "per_position",
        metrics: Optional[TradingMetricsCollector] = None,
    ):
        self.unit_of_work = unit_of_work
        self.ledger = ledger
        self.valuator = valuator
        self.price_source = price_source
        self.metrics = metrics
        self.logger = get_trading_logger_safe("portfolio_service")

    async def get_portfolio(self, user_id: int) -> PortfolioView:
        started = time.perf_counter()
        async with self.unit_of_work.transaction() as repository:
            user = await repository.find_user(user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            filled_orders = await repository.find_filled_orders(user_id)
            available_cash = self.ledger.compute_available_cash(filled_orders)
            positions = self.ledger.compute_positions(filled_orders)
            latest_price = await self._latest_prices(repository, positions)

        total_account_value = self.valuator.compute_total_account_value(
            positions, latest_price, available_cash
        )

        if self.metrics:
            self.metrics.record_processing_time("get_portfolio", time.perf_counter() - started)

        self.logger.info("Portfolio valued",
                         user_id=user_id,
                         positions=len(positions),
                         available_cash=str(available_cash),
                         total_account_value=str(total_account_value),
                         price_source=self.price_source)

        return PortfolioView(
            total_account_value=total_account_value,
            available_cash=available_cash,
            positions=[PositionView.from_position(p) for p in positions],
        )

    async def _latest_prices(self, repository: TradingRepository, positions: List[Position]) -> PriceSource:
        if not positions:
            return None

        if self.price_source == "first_position":
            # Every position is valued at the first position's latest close
            return await repository.find_latest_market_close(positions[0].instrument_id)

        prices: Dict[int, Optional[Decimal]] = {}
        for position in positions:
            prices[position.instrument_id] = await repository.find_latest_market_close(position.instrument_id)
        return prices

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from core.database.models import Instrument, Order
from core.trading.locks import UserLockRegistry
from core.trading.models import OrderKind, OrderSide, OrderStatus, SubmitOrderRequest
from core.utils.exceptions import InvalidTransitionError, SettlementGapError
from services.ledger.calculator import LedgerCalculator
from services.order_processor.processor import OrderProcessor
from services.portfolio_manager.service import PortfolioService
from services.portfolio_manager.valuator import PortfolioValuator
from services.settlement.agent import CashSettlementAgent
from tests.fixtures.ledger_fixtures import count_orders, seed_reference_data


@pytest.fixture
def processor(unit_of_work):
    return OrderProcessor(
        unit_of_work=unit_of_work,
        ledger=LedgerCalculator(),
        settlement_agent=CashSettlementAgent(),
        user_locks=UserLockRegistry(),
    )


@pytest.fixture
def portfolio_service(unit_of_work):
    return PortfolioService(unit_of_work, LedgerCalculator(), PortfolioValuator())


def _request(user_id, instrument_id, side, kind=OrderKind.MARKET, quantity="1", price=None):
    return SubmitOrderRequest(
        user_id=user_id, instrument_id=instrument_id, side=side, kind=kind,
        quantity=Decimal(quantity), price=Decimal(price) if price is not None else None,
    )


async def _orders(db_manager, user_id):
    async with db_manager.get_session() as session:
        result = await session.execute(select(Order).where(Order.user_id == user_id).order_by(Order.id))
        return list(result.scalars())


async def test_market_buy_without_cash_is_rejected(processor, seed):
    view = await processor.submit(_request(seed.empty_user_id, seed.instrument_ids["PAMP"], OrderSide.BUY))
    assert view.status == OrderStatus.REJECTED
    assert view.price == Decimal("100.00")


async def test_limit_sell_of_held_shares_stays_new(processor, seed):
    pamp = seed.instrument_ids["PAMP"]
    bought = await processor.submit(_request(seed.rich_user_id, pamp, OrderSide.BUY))
    view = await processor.submit(_request(seed.rich_user_id, pamp, OrderSide.SELL,
                                           OrderKind.LIMIT, "1", "1000.00"))

    assert bought.status == OrderStatus.FILLED
    assert view.status == OrderStatus.NEW
    assert view.price == Decimal("1000.00")


async def test_unaffordable_limit_buy_is_rejected(processor, seed):
    view = await processor.submit(_request(seed.rich_user_id, seed.instrument_ids["PAMP"], OrderSide.BUY,
                                           OrderKind.LIMIT, "1", "999999.00"))
    assert view.status == OrderStatus.REJECTED


async def test_oversized_limit_sell_is_rejected(processor, seed):
    view = await processor.submit(_request(seed.rich_user_id, seed.instrument_ids["PAMP"], OrderSide.SELL,
                                           OrderKind.LIMIT, "9999", "100.00"))
    assert view.status == OrderStatus.REJECTED


async def test_cancel_new_then_filled(processor, seed):
    pamp = seed.instrument_ids["PAMP"]
    new_order = await processor.submit(_request(seed.rich_user_id, pamp, OrderSide.BUY,
                                                OrderKind.LIMIT, "1", "90.00"))
    filled_order = await processor.submit(_request(seed.rich_user_id, pamp, OrderSide.BUY))

    cancelled = await processor.cancel(new_order.id)
    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.timestamp >= new_order.timestamp

    with pytest.raises(InvalidTransitionError) as exc_info:
        await processor.cancel(filled_order.id)
    assert "Cannot cancel order with status FILLED" in str(exc_info.value)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await processor.cancel(new_order.id)
    assert "Cannot cancel order with status CANCELLED" in str(exc_info.value)


async def test_filled_trade_writes_exactly_one_settlement(processor, db_manager, seed):
    view = await processor.submit(_request(seed.rich_user_id, seed.instrument_ids["METR"], OrderSide.BUY,
                                           quantity="4"))

    orders = await _orders(db_manager, seed.rich_user_id)
    settlements = [o for o in orders if o.id > view.id]
    assert len(settlements) == 1
    settlement = settlements[0]
    assert settlement.instrument_id == seed.cash_instrument_id
    assert settlement.side == OrderSide.CASH_OUT.value
    assert settlement.status == OrderStatus.FILLED.value
    assert settlement.kind == OrderKind.MARKET.value
    assert Decimal(settlement.size) * Decimal(settlement.price) == Decimal("1000.00")


async def test_trade_and_settlement_keep_cash_consistent(processor, portfolio_service, seed):
    pamp = seed.instrument_ids["PAMP"]
    await processor.submit(_request(seed.rich_user_id, pamp, OrderSide.BUY, quantity="10"))
    await processor.submit(_request(seed.rich_user_id, pamp, OrderSide.SELL, quantity="4"))

    portfolio = await portfolio_service.get_portfolio(seed.rich_user_id)

    assert portfolio.available_cash == Decimal("9400.00")  # 10000 - 1000 + 400
    assert portfolio.positions[0].quantity == Decimal("6.00")
    assert portfolio.total_account_value == Decimal("10000.00")


async def test_settlement_failure_rolls_back_trade(unit_of_work, db_manager, seed):
    class FailingAgent(CashSettlementAgent):
        def settle(self, *args, **kwargs):
            raise RuntimeError("cannot build settlement")

    processor = OrderProcessor(unit_of_work, LedgerCalculator(), FailingAgent(), UserLockRegistry())
    before = await count_orders(db_manager, seed.rich_user_id)

    with pytest.raises(RuntimeError):
        await processor.submit(_request(seed.rich_user_id, seed.instrument_ids["PAMP"], OrderSide.BUY))

    assert await count_orders(db_manager, seed.rich_user_id) == before


async def test_missing_cash_instrument_is_fatal_and_persists_nothing(db_manager, unit_of_work):
    data = await seed_reference_data(db_manager, with_cash_instrument=False)
    async with db_manager.get_session() as session:
        async with session.begin():
            unpriced = Instrument(ticker="NOPX", name="No Price S.A.", kind="ACCIONES")
            session.add(unpriced)
            await session.flush()
            unpriced_id = unpriced.id

    processor = OrderProcessor(unit_of_work, LedgerCalculator(), CashSettlementAgent(), UserLockRegistry())

    with pytest.raises(SettlementGapError):
        await processor.submit(_request(data.empty_user_id, unpriced_id, OrderSide.BUY))

    assert await count_orders(db_manager, data.empty_user_id) == 0


async def test_concurrent_submissions_cannot_overdraw(processor, portfolio_service, seed):
    pamp = seed.instrument_ids["PAMP"]

    # 10,000.00 covers three 3,000.00 buys
    views = await asyncio.gather(*[
        processor.submit(_request(seed.rich_user_id, pamp, OrderSide.BUY, quantity="30"))
        for _ in range(5)
    ])

    assert sorted(v.status.value for v in views) == ["FILLED"] * 3 + ["REJECTED"] * 2
    portfolio = await portfolio_service.get_portfolio(seed.rich_user_id)
    assert portfolio.available_cash == Decimal("1000.00")

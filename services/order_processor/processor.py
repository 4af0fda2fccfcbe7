import time
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from core.logging import get_trading_logger_safe, get_audit_logger_safe
from core.monitoring import TradingMetricsCollector
from core.trading.interfaces import TradingRepository, TradingUnitOfWork
from core.trading.locks import UserLockRegistry
from core.trading.models import (
    CASH_SIDES,
    TRADE_SIDES,
    FilledOrder,
    InstrumentInfo,
    OrderDraft,
    OrderKind,
    OrderRecord,
    OrderSide,
    OrderStatus,
    OrderView,
    SubmitOrderRequest,
    ZERO,
    notional_fits,
    to_money,
)
from core.utils.exceptions import InvalidTransitionError, NotFoundError, OrderValidationError
from services.ledger.calculator import LedgerCalculator
from services.settlement.agent import CashSettlementAgent


class OrderProcessor:
    """
    Decides, persists and settles orders.

    Submissions for one user are serialized by a per-user lock and by a row
    lock on the user inside the transaction, so the funds check and the
    writes that depend on it cannot interleave with another submission for
    the same user. A filled trade and its settlement order commit together.
    """

    def __init__(
        self,
        unit_of_work: TradingUnitOfWork,
        ledger: LedgerCalculator,
        settlement_agent: CashSettlementAgent,
        user_locks: UserLockRegistry,
        metrics: Optional[TradingMetricsCollector] = None,
    ):
        self.unit_of_work = unit_of_work
        self.ledger = ledger
        self.settlement_agent = settlement_agent
        self.user_locks = user_locks
        self.metrics = metrics
        self.logger = get_trading_logger_safe("order_processor")
        self.audit_logger = get_audit_logger_safe("order_processor")

    async def submit(self, request: SubmitOrderRequest) -> OrderView:
        started = time.perf_counter()
        settlement: Optional[OrderRecord] = None

        async with self.user_locks.hold(request.user_id):
            async with self.unit_of_work.transaction() as repository:
                user = await repository.find_user(request.user_id, for_update=True)
                if user is None:
                    raise NotFoundError("User", request.user_id)

                instrument = await repository.find_instrument(request.instrument_id)
                if instrument is None:
                    raise NotFoundError("Instrument", request.instrument_id)

                self._validate_side(request.side, instrument)

                size = to_money(request.quantity)
                price = await self._resolve_price(repository, request)
                if not notional_fits(size, price):
                    raise OrderValidationError(
                        f"Order amount {size} x {price} exceeds the maximum order amount",
                        field="quantity",
                        value=str(size),
                    )
                status = OrderStatus.FILLED if request.kind == OrderKind.MARKET else OrderStatus.NEW

                filled_orders = await repository.find_filled_orders(user.id)
                status = self._check_funds(request.side, instrument, size, price, status, filled_orders)

                now = datetime.now(timezone.utc)
                order = await repository.save_order(OrderDraft(
                    user_id=user.id,
                    instrument_id=instrument.id,
                    side=request.side,
                    kind=request.kind,
                    size=size,
                    price=price,
                    status=status,
                    timestamp=now,
                ))

                if order.status == OrderStatus.FILLED and order.side in TRADE_SIDES:
                    cash_instrument = await self.settlement_agent.resolve_cash_instrument(repository)
                    settlement = await repository.save_order(self.settlement_agent.settle(
                        user_id=user.id,
                        cash_instrument=cash_instrument,
                        trade_side=order.side,
                        size=order.size,
                        price=order.price,
                        timestamp=now,
                    ))

        self.audit_logger.info("Order submitted",
                               order_id=order.id,
                               user_id=order.user_id,
                               instrument_id=order.instrument_id,
                               side=order.side.value,
                               kind=order.kind.value,
                               size=str(order.size),
                               price=str(order.price),
                               status=order.status.value)
        if settlement is not None:
            self.audit_logger.info("Trade settled",
                                   order_id=order.id,
                                   settlement_order_id=settlement.id,
                                   settlement_side=settlement.side.value,
                                   amount=str(settlement.size))

        if self.metrics:
            self.metrics.record_order_processed(order.side.value, order.kind.value, order.status.value)
            if settlement is not None:
                self.metrics.record_settlement(settlement.side.value)
            self.metrics.record_processing_time("submit", time.perf_counter() - started)

        return OrderView.from_record(order)

    async def cancel(self, order_id: int) -> OrderView:
        started = time.perf_counter()

        async with self.unit_of_work.transaction() as repository:
            order = await repository.find_order(order_id)
            if order is None:
                raise NotFoundError("Order", order_id)

            if order.status != OrderStatus.NEW:
                raise InvalidTransitionError(order.status.value, order_id=order_id)

            now = datetime.now(timezone.utc)
            changed = await repository.transition_order(
                order_id, OrderStatus.NEW, OrderStatus.CANCELLED, now
            )
            if not changed:
                # Status moved between read and write
                current = await repository.find_order(order_id)
                current_status = current.status.value if current is not None else order.status.value
                self.logger.warning("Cancel lost race", order_id=order_id, current_status=current_status)
                raise InvalidTransitionError(current_status, order_id=order_id)

            cancelled = replace(order, status=OrderStatus.CANCELLED, timestamp=now)

        self.audit_logger.info("Order cancelled", order_id=order_id, user_id=cancelled.user_id)
        if self.metrics:
            self.metrics.record_order_cancelled()
            self.metrics.record_processing_time("cancel", time.perf_counter() - started)

        return OrderView.from_record(cancelled)

    def _validate_side(self, side: OrderSide, instrument: InstrumentInfo) -> None:
        is_cash_instrument = instrument.kind == self.ledger.cash_instrument_kind
        if side in CASH_SIDES and not is_cash_instrument:
            raise OrderValidationError(
                f"{side.value} orders are only allowed on the {self.ledger.cash_instrument_kind} instrument",
                field="side",
                value=side.value,
            )
        if side in TRADE_SIDES and is_cash_instrument:
            raise OrderValidationError(
                f"{side.value} orders are not allowed on the {self.ledger.cash_instrument_kind} instrument",
                field="side",
                value=side.value,
            )

    async def _resolve_price(self, repository: TradingRepository, request: SubmitOrderRequest) -> Decimal:
        if request.kind == OrderKind.MARKET:
            close = await repository.find_latest_market_close(request.instrument_id)
            return to_money(close) if close is not None else ZERO
        return to_money(request.price)

    def _check_funds(
        self,
        side: OrderSide,
        instrument: InstrumentInfo,
        size: Decimal,
        price: Decimal,
        status: OrderStatus,
        filled_orders: List[FilledOrder],
    ) -> OrderStatus:
        """Return REJECTED when the ledger cannot cover the order, else ``status``."""
        if side == OrderSide.BUY:
            available_cash = self.ledger.compute_available_cash(filled_orders)
            if size * price > available_cash:
                self.logger.info("Order rejected: insufficient cash",
                                 instrument_id=instrument.id,
                                 required=str(to_money(size * price)),
                                 available=str(available_cash))
                return OrderStatus.REJECTED

        elif side == OrderSide.SELL:
            held = self.ledger.compute_net_quantity(filled_orders, instrument.id)
            if held < size:
                self.logger.info("Order rejected: insufficient position",
                                 instrument_id=instrument.id,
                                 requested=str(size),
                                 held=str(held))
                return OrderStatus.REJECTED

        elif side == OrderSide.CASH_OUT:
            available_cash = self.ledger.compute_available_cash(filled_orders)
            if size > available_cash:
                self.logger.info("Withdrawal rejected: insufficient cash",
                                 requested=str(size),
                                 available=str(available_cash))
                return OrderStatus.REJECTED

        return status

"""
Repository pattern for ledger database operations.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import SQLAlchemyError

from core.database.connection import DatabaseManager
from core.database.models import Instrument, MarketData, Order, User
from core.logging import get_database_logger_safe
from core.trading.models import (
    FilledOrder,
    InstrumentInfo,
    OrderDraft,
    OrderKind,
    OrderRecord,
    OrderSide,
    OrderStatus,
    UserInfo,
    to_money,
)

logger = get_database_logger_safe("services.storage.repository")


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_instrument_info(row: Instrument) -> InstrumentInfo:
    return InstrumentInfo(id=row.id, ticker=row.ticker, name=row.name, kind=row.kind)


def _to_order_record(row: Order) -> OrderRecord:
    return OrderRecord(
        id=row.id,
        user_id=row.user_id,
        instrument_id=row.instrument_id,
        side=OrderSide(row.side),
        kind=OrderKind(row.kind),
        size=to_money(row.size),
        price=to_money(row.price),
        status=OrderStatus(row.status),
        timestamp=_aware(row.timestamp),
    )


class SqlTradingRepository:
    """
    Trading repository bound to one session.

    Never commits: the unit of work that created it owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_user(self, user_id: int, for_update: bool = False) -> Optional[UserInfo]:
        """
        Get user by id.

        Args:
            user_id: User id to look up
            for_update: Lock the user row until the transaction ends

        Returns:
            UserInfo if found, None otherwise
        """
        try:
            stmt = select(User).where(User.id == user_id)
            if for_update:
                stmt = stmt.with_for_update()
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return UserInfo(id=row.id, email=row.email, account_number=row.account_number)

        except SQLAlchemyError as e:
            logger.error("Failed to get user", user_id=user_id, error=str(e))
            raise

    async def find_instrument(self, instrument_id: int) -> Optional[InstrumentInfo]:
        try:
            result = await self.session.execute(
                select(Instrument).where(Instrument.id == instrument_id)
            )
            row = result.scalar_one_or_none()
            return _to_instrument_info(row) if row is not None else None

        except SQLAlchemyError as e:
            logger.error("Failed to get instrument", instrument_id=instrument_id, error=str(e))
            raise

    async def find_instrument_by_kind(self, kind: str) -> Optional[InstrumentInfo]:
        """Get the first instrument of a kind, lowest id first."""
        try:
            result = await self.session.execute(
                select(Instrument).where(Instrument.kind == kind).order_by(Instrument.id).limit(1)
            )
            row = result.scalar_one_or_none()
            return _to_instrument_info(row) if row is not None else None

        except SQLAlchemyError as e:
            logger.error("Failed to get instrument by kind", kind=kind, error=str(e))
            raise

    async def find_filled_orders(self, user_id: int) -> List[FilledOrder]:
        """
        Get every FILLED order of a user with its instrument.

        Args:
            user_id: Owner of the orders

        Returns:
            Filled orders in insertion order
        """
        try:
            stmt = (
                select(Order, Instrument)
                .join(Instrument, Order.instrument_id == Instrument.id)
                .where(Order.user_id == user_id, Order.status == OrderStatus.FILLED.value)
                .order_by(Order.id)
            )
            result = await self.session.execute(stmt)
            return [
                FilledOrder(
                    id=order.id,
                    instrument=_to_instrument_info(instrument),
                    side=OrderSide(order.side),
                    size=to_money(order.size),
                    price=to_money(order.price),
                )
                for order, instrument in result.all()
            ]

        except SQLAlchemyError as e:
            logger.error("Failed to get filled orders", user_id=user_id, error=str(e))
            raise

    async def find_latest_market_close(self, instrument_id: int) -> Optional[Decimal]:
        """Close of the most recent market data row (latest date, then highest id)."""
        try:
            stmt = (
                select(MarketData.close)
                .where(MarketData.instrument_id == instrument_id)
                .order_by(MarketData.date.desc(), MarketData.id.desc())
                .limit(1)
            )
            result = await self.session.execute(stmt)
            close = result.scalar_one_or_none()
            return to_money(close) if close is not None else None

        except SQLAlchemyError as e:
            logger.error("Failed to get latest close", instrument_id=instrument_id, error=str(e))
            raise

    async def find_order(self, order_id: int) -> Optional[OrderRecord]:
        try:
            # populate_existing: re-reads must see writes made by other transactions
            stmt = (
                select(Order)
                .where(Order.id == order_id)
                .execution_options(populate_existing=True)
            )
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            return _to_order_record(row) if row is not None else None

        except SQLAlchemyError as e:
            logger.error("Failed to get order", order_id=order_id, error=str(e))
            raise

    async def save_order(self, draft: OrderDraft) -> OrderRecord:
        """
        Insert a new order.

        Args:
            draft: Order content

        Returns:
            The stored order with its assigned id

        Raises:
            SQLAlchemyError: If database operation fails
        """
        row = Order(
            user_id=draft.user_id,
            instrument_id=draft.instrument_id,
            side=draft.side.value,
            kind=draft.kind.value,
            size=draft.size,
            price=draft.price,
            status=draft.status.value,
            timestamp=draft.timestamp,
        )
        try:
            self.session.add(row)
            await self.session.flush()  # Get ID without committing

            logger.debug("Created order", order_id=row.id, user_id=draft.user_id,
                         side=draft.side.value, status=draft.status.value)
            return OrderRecord(
                id=row.id,
                user_id=draft.user_id,
                instrument_id=draft.instrument_id,
                side=draft.side,
                kind=draft.kind,
                size=draft.size,
                price=draft.price,
                status=draft.status,
                timestamp=draft.timestamp,
            )

        except SQLAlchemyError as e:
            logger.error("Failed to create order", user_id=draft.user_id, error=str(e))
            raise

    async def transition_order(
        self,
        order_id: int,
        from_status: OrderStatus,
        to_status: OrderStatus,
        timestamp: datetime,
    ) -> bool:
        """Conditional status update; False when the order left ``from_status``."""
        try:
            stmt = (
                update(Order)
                .where(Order.id == order_id, Order.status == from_status.value)
                .values(status=to_status.value, timestamp=timestamp)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            return result.rowcount == 1

        except SQLAlchemyError as e:
            logger.error("Failed to transition order", order_id=order_id,
                         from_status=from_status.value, to_status=to_status.value, error=str(e))
            raise


class SqlUnitOfWork:
    """One ``transaction()`` block is one database transaction."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlTradingRepository]:
        async with self.db_manager.get_session() as session:
            async with session.begin():
                yield SqlTradingRepository(session)

# Seed demo reference data and deposits
import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.database.models import Instrument, MarketData, Order, User
from core.logging import configure_logging, get_logger
from core.trading.models import OrderKind, OrderSide, OrderStatus

logger = get_logger(__name__)

DEMO_USERS = [
    {"email": "ledger.demo@example.com", "account_number": "10001"},
    {"email": "ledger.empty@example.com", "account_number": "10002"},
]

DEMO_INSTRUMENTS = [
    {"ticker": "PAMP", "name": "Pampa Holding S.A.", "kind": "ACCIONES"},
    {"ticker": "METR", "name": "MetroGAS S.A.", "kind": "ACCIONES"},
    {"ticker": "TECO2", "name": "Telecom", "kind": "ACCIONES"},
]

# (previous_close, close) per ticker over two sessions
DEMO_CLOSES = {
    "PAMP": [("918.00", "925.85"), ("925.85", "931.10")],
    "METR": [("228.00", "229.50"), ("229.50", "232.00")],
    "TECO2": [("1045.00", "1048.50"), ("1048.50", "1041.25")],
}

DEMO_DEPOSIT = Decimal("1000000.00")


async def seed_data(settings: Optional[Settings] = None) -> bool:
    """Seed demo data; returns False when the cash instrument already exists"""
    settings = settings or Settings()
    db_manager = DatabaseManager(
        settings.database.url,
        environment=settings.environment.value,
        schema_management=settings.database.schema_management,
    )
    await db_manager.init()

    try:
        async with db_manager.get_session() as session:
            async with session.begin():
                kind = settings.ledger.cash_instrument_kind
                existing = await session.execute(select(Instrument.id).where(Instrument.kind == kind))
                if existing.first() is not None:
                    logger.info("Seed data already present, skipping", cash_instrument_kind=kind)
                    return False

                cash = Instrument(ticker="ARS", name="PESOS", kind=kind)
                session.add(cash)

                users = [User(**u) for u in DEMO_USERS]
                session.add_all(users)

                instruments = {i["ticker"]: Instrument(**i) for i in DEMO_INSTRUMENTS}
                session.add_all(instruments.values())
                await session.flush()

                first_day = date.today() - timedelta(days=len(next(iter(DEMO_CLOSES.values()))))
                for ticker, closes in DEMO_CLOSES.items():
                    for offset, (previous_close, close) in enumerate(closes):
                        session.add(MarketData(
                            instrument_id=instruments[ticker].id,
                            open=Decimal(previous_close),
                            high=max(Decimal(previous_close), Decimal(close)),
                            low=min(Decimal(previous_close), Decimal(close)),
                            close=Decimal(close),
                            previous_close=Decimal(previous_close),
                            date=first_day + timedelta(days=offset),
                        ))

                # Opening deposit for the first demo user
                session.add(Order(
                    user_id=users[0].id,
                    instrument_id=cash.id,
                    side=OrderSide.CASH_IN.value,
                    kind=OrderKind.MARKET.value,
                    size=DEMO_DEPOSIT,
                    price=Decimal("1.00"),
                    status=OrderStatus.FILLED.value,
                    timestamp=datetime.now(timezone.utc),
                ))

        logger.info("Seeded demo data",
                    users=len(DEMO_USERS),
                    instruments=len(DEMO_INSTRUMENTS) + 1,
                    deposit=str(DEMO_DEPOSIT))
        return True
    finally:
        await db_manager.shutdown()


if __name__ == "__main__":
    _settings = Settings()
    configure_logging(_settings)
    asyncio.run(seed_data(_settings))

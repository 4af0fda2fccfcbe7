"""
Pytest configuration and shared fixtures for trade ledger tests.
"""
import pytest
from dependency_injector import providers
from httpx import ASGITransport, AsyncClient

from app.containers import AppContainer
from core.config.settings import Settings, DatabaseSettings, LoggingSettings, LedgerSettings
from core.database.connection import DatabaseManager
from core.trading.models import OrderSide
from services.storage.repository import SqlUnitOfWork
from tests.fixtures.ledger_fixtures import CASH_KIND, SeedData, insert_order, seed_reference_data


@pytest.fixture
def test_settings(tmp_path):
    """Test settings backed by a throwaway SQLite file."""
    return Settings(
        environment="testing",
        database=DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"
        ),
        ledger=LedgerSettings(cash_instrument_kind=CASH_KIND),
        logging=LoggingSettings(
            level="INFO",
            file_enabled=False,
            multi_channel_enabled=False,
            logs_dir=str(tmp_path / "logs"),
        ),
    )


@pytest.fixture
async def db_manager(test_settings):
    """Database manager with the schema created."""
    manager = DatabaseManager(test_settings.database.url, environment="testing")
    await manager.init()
    yield manager
    await manager.shutdown()


@pytest.fixture
def unit_of_work(db_manager):
    return SqlUnitOfWork(db_manager)


@pytest.fixture
async def seed(db_manager) -> SeedData:
    """Reference data plus a 10,000.00 deposit for the rich user."""
    data = await seed_reference_data(db_manager)
    await insert_order(db_manager, data.rich_user_id, data.cash_instrument_id,
                       OrderSide.CASH_IN, "10000.00")
    return data


@pytest.fixture
def container(test_settings):
    """Application container pointed at the test settings."""
    container = AppContainer()
    container.settings.override(providers.Object(test_settings))
    yield container
    container.unwire()
    container.reset_singletons()


@pytest.fixture
async def api_client(container):
    """HTTP client against the app; yields (client, seed data)."""
    from api.main import create_app

    db_manager = container.db_manager()
    await db_manager.init()
    data = await seed_reference_data(db_manager)
    await insert_order(db_manager, data.rich_user_id, data.cash_instrument_id,
                       OrderSide.CASH_IN, "10000.00")

    app = create_app(container)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, data

    await db_manager.shutdown()

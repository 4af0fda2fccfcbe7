# Dependency injection container for the trade ledger
from dependency_injector import containers, providers
from prometheus_client import CollectorRegistry

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.monitoring.prometheus_metrics import TradingMetricsCollector
from core.trading.locks import UserLockRegistry
from services.ledger.calculator import LedgerCalculator
from services.order_processor.processor import OrderProcessor
from services.portfolio_manager.service import PortfolioService
from services.portfolio_manager.valuator import PortfolioValuator
from services.settlement.agent import CashSettlementAgent
from services.storage.repository import SqlUnitOfWork


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # --- Observability: Prometheus ---
    # Shared registry used by the API /metrics endpoint and collectors
    prometheus_registry = providers.Singleton(CollectorRegistry)
    trading_metrics = providers.Singleton(
        TradingMetricsCollector,
        registry=prometheus_registry,
    )

    # Database with environment awareness
    db_manager = providers.Singleton(
        DatabaseManager,
        url=settings.provided.database.url,
        environment=settings.provided.environment.value,
        schema_management=settings.provided.database.schema_management,
        echo=settings.provided.database.echo,
    )

    unit_of_work = providers.Singleton(SqlUnitOfWork, db_manager=db_manager)

    # Per-user serialization of submissions
    user_locks = providers.Singleton(
        UserLockRegistry,
        max_locks=settings.provided.ledger.max_user_locks,
    )

    # --- Ledger components ---
    ledger_calculator = providers.Singleton(
        LedgerCalculator,
        cash_instrument_kind=settings.provided.ledger.cash_instrument_kind,
    )

    settlement_agent = providers.Singleton(
        CashSettlementAgent,
        cash_instrument_kind=settings.provided.ledger.cash_instrument_kind,
    )

    portfolio_valuator = providers.Singleton(PortfolioValuator)

    # --- Exposed services ---
    order_processor = providers.Singleton(
        OrderProcessor,
        unit_of_work=unit_of_work,
        ledger=ledger_calculator,
        settlement_agent=settlement_agent,
        user_locks=user_locks,
        metrics=trading_metrics,
    )

    portfolio_service = providers.Singleton(
        PortfolioService,
        unit_of_work=unit_of_work,
        ledger=ledger_calculator,
        valuator=portfolio_valuator,
        price_source=settings.provided.ledger.valuation_price_source,
        metrics=trading_metrics,
    )

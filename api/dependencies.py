from fastapi import Depends
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from core.config.settings import Settings
from core.database.connection import DatabaseManager
from services.order_processor.processor import OrderProcessor
from services.portfolio_manager.service import PortfolioService


@inject
def get_settings(
    settings: Settings = Depends(Provide[AppContainer.settings])
) -> Settings:
    return settings


@inject
def get_db_manager(
    db_manager: DatabaseManager = Depends(Provide[AppContainer.db_manager])
) -> DatabaseManager:
    return db_manager


@inject
def get_order_processor(
    order_processor: OrderProcessor = Depends(Provide[AppContainer.order_processor])
) -> OrderProcessor:
    return order_processor


@inject
def get_portfolio_service(
    portfolio_service: PortfolioService = Depends(Provide[AppContainer.portfolio_service])
) -> PortfolioService:
    return portfolio_service

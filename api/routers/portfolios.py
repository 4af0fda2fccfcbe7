from fastapi import APIRouter, Depends

from api.dependencies import get_portfolio_service
from api.schemas.responses import ErrorResponse
from core.trading.models import PortfolioView
from services.portfolio_manager.service import PortfolioService

router = APIRouter(
    prefix="/portfolio",
    tags=["Portfolios"],
    responses={404: {"model": ErrorResponse}},
)


@router.get("/{user_id}", response_model=PortfolioView)
async def get_portfolio(
    user_id: int,
    service: PortfolioService = Depends(get_portfolio_service)
):
    """
    Total account value, available cash and positions of a user.

    Recomputed from the user's full filled-order history on every call.
    """
    return await service.get_portfolio(user_id)

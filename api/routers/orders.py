from fastapi import APIRouter, Depends

from api.dependencies import get_order_processor
from api.schemas.responses import ErrorResponse
from core.trading.models import CancelOrderRequest, OrderView, SubmitOrderRequest
from services.order_processor.processor import OrderProcessor

router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


@router.post("/submit", response_model=OrderView)
async def submit_order(
    request: SubmitOrderRequest,
    processor: OrderProcessor = Depends(get_order_processor)
):
    """
    Submit a BUY, SELL, CASH_IN or CASH_OUT order.

    MARKET orders fill at the latest close or are rejected immediately;
    LIMIT orders stay NEW unless the ledger cannot cover them.
    """
    return await processor.submit(request)


@router.post("/cancel", response_model=OrderView, responses={409: {"model": ErrorResponse}})
async def cancel_order(
    request: CancelOrderRequest,
    processor: OrderProcessor = Depends(get_order_processor)
):
    """Cancel an order that is still NEW."""
    return await processor.cancel(request.order_id)

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from fastapi import Request
from uuid import uuid4

from core.logging.correlation import CorrelationIdManager


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request_id and a correlation_id to every HTTP request.

    - Sets request.state.request_id
    - Reuses an incoming X-Correlation-ID header, else generates one
    - Adds X-Request-ID and X-Correlation-ID headers to the response
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        incoming = request.headers.get("X-Correlation-ID")
        if incoming:
            corr_id = CorrelationIdManager.set_correlation_id(incoming)
        else:
            corr_id = CorrelationIdManager.set_correlation_id(
                CorrelationIdManager.generate_correlation_id()
            )
        CorrelationIdManager.set_correlation_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        finally:
            CorrelationIdManager.clear_correlation()

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Correlation-ID"] = corr_id
        return response

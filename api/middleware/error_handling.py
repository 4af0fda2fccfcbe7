from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.schemas.responses import ErrorResponse
from core.logging import get_api_logger_safe, get_error_logger_safe
from core.utils.exceptions import create_error_context

logger = get_api_logger_safe("api.middleware.error_handling")
error_logger = get_error_logger_safe("api.middleware.error_handling")


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Masks unhandled exceptions behind an opaque 500 response"""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            # Let FastAPI handle HTTP exceptions normally
            raise
        except Exception as e:
            context = create_error_context(
                e, operation=f"{request.method} {request.url.path}"
            )
            logger.error("Unhandled API exception", path=request.url.path, method=request.method)
            error_logger.error("Unhandled API exception", exc_info=True, **context)

            body = ErrorResponse(
                error="internal_error",
                message="An unexpected error occurred",
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

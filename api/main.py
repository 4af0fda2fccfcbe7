import uvicorn
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.containers import AppContainer
from api.middleware.error_handling import ErrorHandlingMiddleware
from api.middleware.request_ids import RequestIdMiddleware
from api.routers import orders, portfolios
from api.schemas.responses import ErrorResponse, HealthResponse, HealthStatus
from core.config.validator import ConfigurationValidator
from core.logging import get_api_logger_safe, configure_logging
from core.utils.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    OrderValidationError,
    SettlementGapError,
    TradeLedgerException,
)

logger = get_api_logger_safe("api.main")

# Status codes for the ledger error taxonomy; anything else is a 500
ERROR_STATUS = {
    NotFoundError: (404, "not_found"),
    InvalidTransitionError: (409, "invalid_transition"),
    OrderValidationError: (400, "validation_error"),
    SettlementGapError: (500, "settlement_gap"),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    container = app.state.container
    settings = container.settings()
    db_manager = container.db_manager()

    # Startup
    logger.info("Starting Trade Ledger API server", environment=settings.environment.value)
    await db_manager.init()

    validator = ConfigurationValidator(settings, db_manager)
    if not await validator.validate_all():
        summary = validator.get_validation_summary()
        logger.error("Startup validation failed", **summary)
        await db_manager.shutdown()
        raise RuntimeError("Startup configuration validation failed")

    yield

    # Shutdown
    logger.info("Shutting down Trade Ledger API server")
    await db_manager.shutdown()


def _error_response(status_code: int, error: str, exc: TradeLedgerException) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=exc.message,
        details=exc.details or None,
        timestamp=exc.timestamp,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def ledger_exception_handler(request: Request, exc: TradeLedgerException) -> JSONResponse:
    for exc_type, (status_code, error) in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            break
    else:
        status_code, error = 500, "internal_error"

    log = logger.error if status_code >= 500 else logger.info
    log("Request failed",
        path=request.url.path,
        method=request.method,
        status_code=status_code,
        error_type=type(exc).__name__,
        error_message=exc.message)

    if status_code >= 500 and not isinstance(exc, SettlementGapError):
        body = ErrorResponse(error=error, message="An unexpected error occurred")
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    return _error_response(status_code, error, exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    logger.info("Request validation failed", path=request.url.path, errors=len(errors))
    body = ErrorResponse(
        error="validation_error",
        message="Request validation failed",
        details={"errors": errors},
    )
    return JSONResponse(status_code=400, content=body.model_dump(mode="json"))


def create_app(container: Optional[AppContainer] = None) -> FastAPI:
    """Creates and configures the FastAPI application"""
    container = container or AppContainer()
    settings = container.settings()

    app = FastAPI(
        title="Trade Ledger API",
        version=settings.version,
        description="""
        # Trade Ledger API

        Order submission, cancellation and portfolio valuation over a
        ledger derived from each user's filled orders.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Store DI container
    app.state.container = container

    # Configure logging for API context (idempotent)
    configure_logging(settings)

    # Use DI: shared Prometheus registry from container
    app.state.prom_registry = container.prometheus_registry()

    # Wire dependency injection
    container.wire(modules=["api.dependencies"])

    # Exception handlers for the ledger error taxonomy
    app.add_exception_handler(TradeLedgerException, ledger_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Last added is outermost: request ids wrap error handling
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Security check for production
    cors_origins = settings.api.cors_origins
    if settings.environment.value == "production" and "*" in cors_origins:
        raise ValueError(
            "CORS wildcard (*) not allowed in production. "
            "Specify exact origins in API__CORS_ORIGINS environment variable."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.api.cors_credentials,
        allow_methods=settings.api.cors_methods,
        allow_headers=settings.api.cors_headers,
    )

    app.include_router(orders.router, prefix="/api/v1")
    app.include_router(portfolios.router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def health_check():
        database_ok = await container.db_manager().verify_connection()
        return HealthResponse(
            status=HealthStatus.HEALTHY if database_ok else HealthStatus.UNHEALTHY,
            service="trade-ledger-api",
            version=settings.version,
            environment=settings.environment.value,
            checks={"database": database_ok},
        )

    if settings.monitoring.metrics_enabled:
        # Prometheus metrics endpoint
        @app.get("/metrics", tags=["Monitoring"])
        def metrics():
            data = generate_latest(app.state.prom_registry)
            return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


def _build_uvicorn_log_config() -> dict:
    """Return a minimal log config that cooperates with our structlog handlers.

    Only levels and propagation are set; handlers stay as wired by the
    enhanced logging setup.
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "loggers": {
            "uvicorn": {"level": "INFO", "propagate": True},
            "uvicorn.error": {"level": "INFO", "propagate": True},
            "uvicorn.access": {"level": "INFO", "propagate": True},
        },
    }


def run(host: Optional[str] = None, port: Optional[int] = None):
    """Main function to run the API server"""
    app = create_app()
    settings = app.state.container.settings()

    uvicorn.run(
        app,
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_level=settings.logging.level.lower(),
        access_log=True,
        log_config=_build_uvicorn_log_config(),
    )


if __name__ == "__main__":
    run()

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from eshop.config import settings
from eshop.api.v1.router import api_router
from eshop.core.exceptions import ShopError, RateLimitExceededError
from eshop.database import init_db, async_session_factory
from eshop.services.rate_limiter import RateLimiters


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup creates missing tables; shutdown closes the rate limit store.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    await app.state.rate_limiters.close()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Storefront", "description": "Public catalog, delivery prices, cart quotes and checkout"},
    {"name": "Orders", "description": "Order management, status changes and warehouse fulfillment"},
    {"name": "Products", "description": "Product catalog with per-warehouse stock"},
    {"name": "Categories", "description": "Built-in and custom product categories"},
    {"name": "Customers", "description": "Customer records and their orders"},
    {"name": "Inventory", "description": "Reserved stock, availability checks and stock returns"},
    {"name": "Analytics", "description": "Sales dashboard"},
]


def _error_response(request: Request, status_code: int, message, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "type": error_type,
            "path": str(request.url.path),
            "method": request.method,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses with a uniform body."""

    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        response = _error_response(request, exc.status_code, exc.message, type(exc).__name__)
        if isinstance(exc, RateLimitExceededError):
            response.headers["Retry-After"] = str(exc.retry_after)
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(request, exc.status_code, exc.detail, "HTTPException")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _error_response(request, 500, message, type(exc).__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=OPENAPI_TAGS,
    )

    app.state.rate_limiters = RateLimiters.from_settings(settings)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint with database validation."""
        health_status = {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": "unknown"
            }
        }

        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
            health_status["checks"]["database"] = "connected"
        except Exception as e:
            logger.error(f"Health check database error: {e}")
            health_status["status"] = "unhealthy"
            health_status["checks"]["database"] = f"error: {e}"

        if health_status["status"] == "unhealthy":
            return JSONResponse(status_code=503, content=health_status)

        return health_status

    return app


app = create_app()

"""Main application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import redis
import httpx
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from config import (
    API_VERSION,
    OTEL_ENABLED,
    RATE_LIMIT_PER_MINUTE_IP,
    RATE_LIMIT_PER_MINUTE_USER,
    REDIS_URL,
)
from database import init_db, engine
from errors import register_exception_handlers
from monitoring import init_profiling
from logging_config import setup_logging
from routers import (
    addresses,
    admin,
    auth as auth_router,
    cart,
    orders,
    payments,
    products,
    settings,
    wishlist,
)
from redis_rate_limiter import RedisRateLimiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting application...")

    init_db()

    http_client = httpx.AsyncClient(timeout=30.0)
    if OTEL_ENABLED:
        HTTPXClientInstrumentor().instrument_client(http_client)
    app.state.http_client = http_client
    logger.info("HTTP client initialized")

    init_profiling()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    await http_client.aclose()
    app.state.redis_client.close()
    logger.info("Application shutdown complete")


def create_app(redis_client: Optional[redis.Redis] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        redis_client: Redis client to use; one is created from REDIS_URL when omitted

    Returns:
        Configured application
    """
    if redis_client is None:
        redis_client = redis.from_url(REDIS_URL, decode_responses=True)
        if OTEL_ENABLED:
            RedisInstrumentor().instrument(redis_client=redis_client)

    app = FastAPI(
        title="EZPC Store Service",
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.redis_client = redis_client
    app.state.http_client = None

    register_exception_handlers(app)

    # Redis-backed dual-tier rate limiting
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=RATE_LIMIT_PER_MINUTE_IP,
        requests_per_minute_user=RATE_LIMIT_PER_MINUTE_USER
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(auth_router.router)
    app.include_router(products.router)
    app.include_router(cart.router)
    app.include_router(wishlist.router)
    app.include_router(orders.router)
    app.include_router(addresses.router)
    app.include_router(settings.router)
    app.include_router(payments.router)
    app.include_router(admin.router)

    if OTEL_ENABLED:
        FastAPIInstrumentor.instrument_app(app)

    return app


if OTEL_ENABLED:
    SQLAlchemyInstrumentor().instrument(engine=engine)

setup_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
FastAPI Application Factory

Creates and configures the API application. The store client is built in
the lifespan (or injected, for tests) and kept on ``app.state``.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from redis.exceptions import RedisError

from src.config import Settings, get_settings
from src.config.logging import configure_logging
from src.database.connection import Database
from src.serving.api.errors import register_exception_handlers
from src.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from src.serving.api.routes import (
    customers_router,
    financial_metrics_router,
    health_router,
    market_research_router,
    orders_router,
    products_router,
    reports_router,
)
from src.serving.cache import close_redis, init_redis

logger = structlog.get_logger(__name__)

API_PREFIX = "/api"


def create_api_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Configuration (defaults to cached environment settings)
        database: Pre-built store client; when omitted one is created from
            settings at startup and disposed at shutdown

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings=settings)
        logger.info("Starting Coffee Shop Analytics API", environment=settings.app_env)

        owns_database = app.state.database is None
        if owns_database:
            app.state.database = Database.from_settings(settings)
        await app.state.database.connect()
        await app.state.database.create_all()

        if settings.redis.enabled:
            try:
                await init_redis(settings)
            except (RedisError, OSError) as e:
                logger.warning("Redis unavailable, caching disabled", error=str(e))

        yield

        logger.info("Shutting down...")
        await close_redis()
        if owns_database:
            await app.state.database.dispose()
            app.state.database = None

    app = FastAPI(
        title="Coffee Shop Analytics API",
        description="Orders, loyalty counters, inventory and profitability reports for a coffee shop",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.started_at = time.monotonic()

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )

    app.include_router(health_router, prefix=API_PREFIX, tags=["Health"])
    app.include_router(products_router, prefix=f"{API_PREFIX}/products", tags=["Products"])
    app.include_router(customers_router, prefix=f"{API_PREFIX}/customers", tags=["Customers"])
    app.include_router(orders_router, prefix=f"{API_PREFIX}/orders", tags=["Orders"])
    app.include_router(reports_router, prefix=f"{API_PREFIX}/reports", tags=["Reports"])
    app.include_router(financial_metrics_router, prefix=f"{API_PREFIX}/financial-metrics", tags=["Financial Metrics"])
    app.include_router(market_research_router, prefix=f"{API_PREFIX}/market-research", tags=["Market Research"])

    @app.get(f"{API_PREFIX}/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
        }

    return app

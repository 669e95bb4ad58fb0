"""Storefront API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly, one router per resource
    - Global error handlers map StorefrontError → structured JSON responses
    - CORS configured from settings (credentials allowed for the session cookie)
    - Logging and the database are initialized on startup via lifespan
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.error_handlers import register_error_handlers
from storefront.api.routes import accounts, cart, health, items, orders, users
from storefront.config import get_settings
from storefront.infrastructure import database
from storefront.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info(f"Storefront API started (payments: {settings.payment_provider})")
    yield
    await manager.dispose()
    logger.info("Storefront API shutting down")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Storefront API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(accounts.router)
    app.include_router(users.router)
    app.include_router(items.router)
    app.include_router(cart.router)
    app.include_router(orders.router)

    register_error_handlers(app)
    return app


app = create_app()

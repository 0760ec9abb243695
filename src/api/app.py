"""FastAPI application for the billing API."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.billing import router as billing_router
from src.api.errors import register_error_handlers
from src.services import async_engine, init_models

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: Any = None):
    """Create missing tables on startup and dispose the engine on shutdown."""
    logger.info("Billing API starting...")
    try:
        await init_models()
        logger.info("✓ Database tables ready")
    except Exception as e:
        logger.error("Failed to initialize database: %s", e, exc_info=True)
        raise

    try:
        yield
    finally:
        await async_engine.dispose()
        logger.info("✓ Database engine disposed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="PAMSIMAS Billing",
        description="Meter readings, bills and cash book for a village water cooperative",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Operator app is served from a different origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(billing_router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()

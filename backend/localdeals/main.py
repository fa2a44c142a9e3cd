"""LocalDeals Backend -- FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from localdeals import models  # noqa: F401  registers all tables on Base.metadata
from localdeals.api.v1.router import api_v1_router
from localdeals.config import settings
from localdeals.core.errors import register_exception_handlers
from localdeals.db.session import engine
from localdeals.dependencies import close_singletons, get_code_check, get_ttl_store
from localdeals.models.base import Base

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    # Startup
    logger.info("Starting LocalDeals API server...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Pick the verification strategy and code store once, before serving
    get_code_check()
    get_ttl_store()
    logger.info(f"Verification mode: {settings.VERIFICATION_MODE}")
    logger.info(f"Code store backend: {settings.CODE_STORE_BACKEND}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables verified/created")
    except Exception as e:
        logger.error(f"Database init failed: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Shutting down LocalDeals API server...")
    try:
        await close_singletons()
        logger.info("Redis and email clients closed")
    except Exception as e:
        logger.warning(f"Error closing clients: {e}")


app = FastAPI(
    title="LocalDeals API",
    description="Community-moderated local deals board",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register API router
app.include_router(api_v1_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "LocalDeals API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/health",
    }

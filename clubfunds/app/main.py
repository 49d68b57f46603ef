"""
FastAPI Application Entry Point.

This is the main application file for the Club Funds Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from clubfunds.app.core.config import settings
from clubfunds.app.api.v1.router import router as api_v1_router
from clubfunds.app.core.observability import ObservabilityMiddleware, configure_logging
from clubfunds.app.core.redis_client import close_redis, ping_redis
from clubfunds.app.db.session import engine, Base
from clubfunds.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from clubfunds.app.models.club import Club
from clubfunds.app.models.campaign import Campaign
from clubfunds.app.models.event import Event
from clubfunds.app.models.income import Income
from clubfunds.app.models.expense import Expense

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup and closes the Redis pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Financial rollup and allocation engine for club fundraising",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and lock backend reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Welcome to Club Funds Backend API",
        "docs": "/docs",
        "health": "/health",
    }

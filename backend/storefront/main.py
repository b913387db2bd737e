"""
Storefront Backend Application.

FastAPI application serving the shop catalog, checkout and order history.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import stripe
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from storefront.api.v1 import router as api_v1_router
from storefront.core.config import settings
from storefront.core.database import close_db, init_db
from storefront.core.logging import setup_logging
from storefront.modules.shop.errors import (
    InternalError,
    NotFoundError,
    ShopError,
    ShopValidationError,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting Storefront Backend...")

    await init_db()
    logger.info("Database initialized")

    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set - checkout will fail")

    yield

    logger.info("Shutting down Storefront Backend...")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Storefront Backend

    ## Features

    - **Catalog**: Items mirrored to Stripe products, cursor pagination
    - **Checkout**: Stripe Checkout sessions for carts
    - **Orders**: Order history with price snapshots
    """,
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Error handlers ====================


@app.exception_handler(ShopValidationError)
async def validation_error_handler(request: Request, exc: ShopValidationError) -> ORJSONResponse:
    return ORJSONResponse(status_code=400, content={"detail": exc.code})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> ORJSONResponse:
    return ORJSONResponse(status_code=404, content={"detail": exc.code})


@app.exception_handler(InternalError)
async def internal_error_handler(request: Request, exc: InternalError) -> ORJSONResponse:
    # Cause already logged where it was caught
    return ORJSONResponse(status_code=500, content={"detail": exc.code})


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> ORJSONResponse:
    logger.error(f"Unhandled shop error on {request.url.path}: {exc!r}")
    return ORJSONResponse(status_code=500, content={"detail": InternalError.code})


@app.exception_handler(stripe.StripeError)
async def stripe_error_handler(request: Request, exc: stripe.StripeError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=502,
        content={
            "detail": "payment_provider_error",
            "message": exc.user_message or str(exc),
            "code": exc.code,
        },
    )


# Include API router
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["System"])
async def health_check() -> dict:
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


@app.get("/", tags=["System"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "api": settings.api_v1_prefix,
    }

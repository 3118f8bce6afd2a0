"""
FastAPI Application

Entry point for the Dimension & Freight Resolution API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import structlog

from freight_engine.config import get_settings
from freight_engine.config.logging import configure_logging
from freight_engine.database.connection import close_database, init_database
from freight_engine.database.repositories import StoreError, VariantNotFoundError
from freight_engine.quality.validators import DimensionValidationError
from freight_engine.serving.api.middleware import RequestLoggingMiddleware
from freight_engine.serving.api.routes import (
    dimensions_router,
    freight_router,
    health_router,
    patterns_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Freight Engine API", environment=settings.app_env)

    try:
        await init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Freight Engine API",
    description="Shipping dimension resolution, carton estimation and freight quoting",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Store unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Dimension store unavailable"})


@app.exception_handler(VariantNotFoundError)
async def variant_not_found_handler(request: Request, exc: VariantNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"Variant {exc.variant_sku} not found"})


@app.exception_handler(DimensionValidationError)
async def dimension_validation_handler(request: Request, exc: DimensionValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": {"error": "Invalid dimensions", "details": exc.errors, "fields": exc.fields}},
    )


app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(dimensions_router, prefix="/api/v1", tags=["Dimensions"])
app.include_router(freight_router, prefix="/api/v1/freight", tags=["Freight"])
app.include_router(patterns_router, prefix="/api/v1/patterns", tags=["Patterns"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Freight Engine API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.database import init_db, close_db
from .core.logging_config import setup_logging
from .core.cors_middleware import CustomCORSMiddleware
from .api import tracking_router, content_router, system_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging()
    init_db()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started")

    yield

    # Shutdown
    close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Attribution tracking and content personalization API for UTM Content Magic.",
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Tracking endpoints allow all origins, other endpoints are restricted
app.add_middleware(
    CustomCORSMiddleware,
    restricted_origins=settings.CORS_ORIGINS,
    tracking_paths=settings.TRACKING_PATHS,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler that keeps CORS headers on errors."""
    origin = request.headers.get("origin")

    if isinstance(exc, HTTPException):
        response = JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail}
        )
    else:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        response = JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    is_tracking_endpoint = any(request.url.path.startswith(path) for path in settings.TRACKING_PATHS)
    if origin and (is_tracking_endpoint or origin in settings.CORS_ORIGINS):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Include API routers
app.include_router(tracking_router)
app.include_router(content_router)
app.include_router(system_router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/system/health"
    }

"""
Complaint Image Service - Main Application
FastAPI app hosting the throttled image pipeline and photo uploads to MinIO/S3.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared_schemas.common import ErrorResponse
from shared_schemas.image_service import HealthCheckResponse
from image_service.core.config import settings
from image_service.core.exceptions import DisposedError
from image_service.s3.client import S3Client
from image_service.services.image_service import ImageService
from image_service.api import complaints, internal

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the storage client and image service on startup, disposes them on shutdown.
    """
    # Startup
    logger.info("Starting Complaint Image Service...")

    storage = S3Client.from_settings(settings)
    try:
        storage.ensure_bucket_exists(settings.IMAGE_BUCKET)
        logger.info(f" Photo bucket ready: {settings.IMAGE_BUCKET}")
    except Exception as e:
        logger.error(f"Failed to initialize bucket {settings.IMAGE_BUCKET}: {e}")
        # Continue anyway - uploads will report per-file storage errors

    app.state.storage = storage
    app.state.image_service = ImageService.from_settings(settings, storage)

    logger.info("Complaint Image Service started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Complaint Image Service...")
    app.state.image_service.dispose()
    storage.close()


# Create FastAPI app
app = FastAPI(
    title="Complaint Image Service",
    description="Throttled processing, caching and upload of complaint photos to MinIO/S3",
    version="1.0.0",
    lifespan=lifespan
)


# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Mobile and web clients
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(complaints.router)
app.include_router(internal.router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with service information."""
    return {
        "service": "Complaint Image Service",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "upload": "/complaints/{complaint_id}/images",
            "cache": "/internal/cache",
            "health": "/health"
        },
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc"
        }
    }


@app.get("/health", tags=["health"], response_model=HealthCheckResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    try:
        # Test S3 connection
        request.app.state.storage.client.list_buckets()

        return HealthCheckResponse(
            status="healthy",
            s3_connection="ok"
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "s3_connection": "failed"
            }
        )


@app.exception_handler(DisposedError)
async def disposed_exception_handler(request, exc):
    """Operations after shutdown are hard failures for the caller."""
    logger.warning(f"Request after disposal: {exc}")
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(detail=str(exc), error_code="disposed").model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="Internal server error").model_dump()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "image_service.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )

"""
FastAPI application exposing Tessera's job state to presentation clients.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tessera.core.config import settings
from tessera.api import router as api_router
from tessera.middleware import LoggingMiddleware
from tessera.services.orchestrator import get_orchestrator, shutdown_orchestrator
from tessera.services.storage import ensure_directories

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Tessera upload client...")
    ensure_directories(settings.STAGING_DIR)
    orchestrator = get_orchestrator()
    logger.info(
        f"Uploading to {orchestrator.uploader.upload_url} in chunks of {orchestrator.uploader.chunk_size} bytes, "
        f"progress from {orchestrator.channel.base_url}"
    )

    yield

    # Shutdown
    logger.info("Shutting down Tessera upload client...")
    await shutdown_orchestrator()
    logger.info("Application shutdown completed successfully!")


# Create FastAPI application
app = FastAPI(
    title="Tessera Upload Client",
    description="Chunked file uploads with live job progress",
    version="1.0.0",
    lifespan=lifespan
)

# Add middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Tessera Upload Client",
        "version": "1.0.0",
        "docs": "/docs",
        "api": "/api/v1"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}

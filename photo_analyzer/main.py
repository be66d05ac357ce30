"""FastAPI application entry point.

This module initializes the FastAPI application with CORS,
middleware, route registration and the lifecycle of the
metadata, conversion and storage collaborators.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import urlparse

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from photo_analyzer import __version__
from photo_analyzer.api.endpoints import metadata
from photo_analyzer.core.config import Settings, get_settings
from photo_analyzer.core.logging import setup_logging
from photo_analyzer.middleware.error_handler import ErrorHandlerMiddleware, setup_exception_handlers
from photo_analyzer.services.image_converter import JpegImageConverter
from photo_analyzer.services.metadata_extractor import create_extractor
from photo_analyzer.services.object_store import LocalObjectStore
from photo_analyzer.services.photo_analysis import PhotoAnalyzer

logger = logging.getLogger(__name__)


def build_analyzer(settings: Settings) -> PhotoAnalyzer:
    """Construct the analyzer and its collaborators from settings.

    Args:
        settings: Application settings.

    Returns:
        PhotoAnalyzer with a running extractor, plus converter and
        store when persistence is enabled.
    """
    extractor = create_extractor(settings.METADATA_BACKEND, settings.EXIFTOOL_PATH)

    converter = None
    store = None
    if settings.PERSIST_IMAGES:
        converter = JpegImageConverter(
            quality=settings.JPEG_QUALITY,
            max_dimension=settings.JPEG_MAX_DIMENSION,
            strip_metadata=settings.STRIP_EXIF,
        )
        store = LocalObjectStore(
            base_path=settings.STORAGE_PATH,
            public_base_url=settings.PUBLIC_BASE_URL,
        )

    return PhotoAnalyzer(extractor=extractor, converter=converter, store=store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Builds the analyzer on startup unless one was already attached
    (tests), and stops the metadata extractor on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    setup_logging(settings)

    # Startup
    logger.info("Starting photo analyzer...")
    logger.info(f"Environment: {settings.APP_ENV}")
    logger.info(f"Metadata backend: {settings.METADATA_BACKEND}")
    logger.info(f"Persist images: {settings.PERSIST_IMAGES}")

    if getattr(app.state, "analyzer", None) is None:
        app.state.analyzer = build_analyzer(settings)

    yield

    # Shutdown
    logger.info("Shutting down photo analyzer...")
    app.state.analyzer.extractor.close()


def create_application(
    settings: Optional[Settings] = None,
    analyzer: Optional[PhotoAnalyzer] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings).
        analyzer: Pre-built analyzer; built from settings at startup if None.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Photo Analyzer API",
        description=(
            "Extracts GPS position, capture time and camera details from "
            "uploaded photos, optionally publishing a normalized JPEG."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.analyzer = analyzer

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handling middleware
    app.add_middleware(ErrorHandlerMiddleware)

    # Setup exception handlers
    setup_exception_handlers(app)

    # Register routers
    app.include_router(metadata.router)

    # Serve stored JPEGs under the path of their public URLs.
    # The bucket directory is created at startup, hence check_dir=False.
    if settings.PERSIST_IMAGES:
        app.mount(
            storage_mount_path(settings.PUBLIC_BASE_URL),
            StaticFiles(directory=settings.STORAGE_PATH, check_dir=False),
            name="storage",
        )

    return app


def storage_mount_path(public_base_url: str) -> str:
    """Return the URL path stored images are served from.

    Example:
        >>> storage_mount_path("http://localhost:3000/storage/")
        '/storage'
    """
    return urlparse(public_base_url).path.rstrip("/") or "/"


def run() -> None:
    """Run the API with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "photo_analyzer.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


# Create the application instance
app = create_application()

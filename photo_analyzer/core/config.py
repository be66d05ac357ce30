"""Application configuration using Pydantic Settings.

This module provides type-safe environment variable management
for the HTTP server, the metadata backend, JPEG conversion and
image persistence.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        APP_ENV: Application environment (development, staging, production).
        DEBUG: Enable debug mode.
        HOST: Interface the server binds to.
        PORT: Port the server listens on.
        CORS_ORIGINS: Comma-separated list of allowed CORS origins.
        MAX_UPLOAD_BYTES: Largest accepted photo upload.
        METADATA_BACKEND: Metadata extractor to use (exiftool or pillow).
        EXIFTOOL_PATH: Optional path to the exiftool executable.
        JPEG_QUALITY: Quality of the normalized JPEG (1-100).
        JPEG_MAX_DIMENSION: Downsize the JPEG so neither side exceeds this.
        STRIP_EXIF: Drop all metadata from the normalized JPEG.
        PERSIST_IMAGES: Convert uploads to JPEG, store them and return the URL.
        STORAGE_PATH: Root directory of the image bucket.
        PUBLIC_BASE_URL: URL prefix the bucket is served under.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # CORS
    CORS_ORIGINS: str = "*"

    # Uploads
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024

    # Metadata extraction
    METADATA_BACKEND: Literal["exiftool", "pillow"] = "exiftool"
    EXIFTOOL_PATH: Optional[str] = None

    # JPEG conversion
    JPEG_QUALITY: int = 90
    JPEG_MAX_DIMENSION: Optional[int] = None
    STRIP_EXIF: bool = True

    # Persistence
    PERSIST_IMAGES: bool = False
    STORAGE_PATH: Path = Path("storage")
    PUBLIC_BASE_URL: str = "http://localhost:3000/storage"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string.

        Returns:
            List of allowed origin URLs.
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance.
    """
    return Settings()

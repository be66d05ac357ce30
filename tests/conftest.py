"""
Shared fixtures for the photo analyzer tests.

Images are generated on the fly with Pillow; EXIF blocks (GPS, camera,
timestamps, orientation) are embedded with piexif so every test controls
exactly which tags a photo carries.
"""

import io
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from unittest.mock import MagicMock

import piexif
import pytest
from fastapi.testclient import TestClient
from loguru import logger
from PIL import Image

from photo_analyzer.core.config import Settings
from photo_analyzer.core.logging import setup_logging
from photo_analyzer.main import create_application
from photo_analyzer.services.photo_analysis import PhotoAnalyzer


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# =============================================================================
# IMAGE FIXTURES
# =============================================================================

# 40° 26' 46" N, 73° 59' 0" W (Manhattan)
NYC_LATITUDE = 40 + 26 / 60 + 46 / 3600
NYC_LONGITUDE = -(73 + 59 / 60)


def build_exif(
    gps: bool = True,
    make: Optional[str] = "TestCamera",
    model: Optional[str] = "TestModel",
    date_time_original: Optional[str] = "2024:01:15 14:30:00",
    create_date: Optional[str] = None,
    orientation: Optional[int] = None,
) -> bytes:
    """Build a raw EXIF block the way a camera would embed it."""
    zeroth: Dict[int, Any] = {}
    exif_ifd: Dict[int, Any] = {}
    gps_ifd: Dict[int, Any] = {}

    if make:
        zeroth[piexif.ImageIFD.Make] = make
    if model:
        zeroth[piexif.ImageIFD.Model] = model
    if orientation:
        zeroth[piexif.ImageIFD.Orientation] = orientation
    if date_time_original:
        exif_ifd[piexif.ExifIFD.DateTimeOriginal] = date_time_original
    if create_date:
        exif_ifd[piexif.ExifIFD.DateTimeDigitized] = create_date
    if gps:
        gps_ifd = {
            piexif.GPSIFD.GPSLatitudeRef: "N",
            piexif.GPSIFD.GPSLatitude: ((40, 1), (26, 1), (46, 1)),
            piexif.GPSIFD.GPSLongitudeRef: "W",
            piexif.GPSIFD.GPSLongitude: ((73, 1), (59, 1), (0, 1)),
        }

    return piexif.dump({
        "0th": zeroth,
        "Exif": exif_ifd,
        "GPS": gps_ifd,
        "1st": {},
        "thumbnail": None,
    })


@pytest.fixture
def make_jpeg() -> Callable[..., bytes]:
    """
    Factory for JPEG bytes.

    Keyword arguments go to ``build_exif``; ``exif=False`` produces a
    photo with no EXIF block at all.
    """
    def _make(
        size: Tuple[int, int] = (100, 100),
        color: str = "red",
        exif: bool = True,
        **exif_kwargs: Any,
    ) -> bytes:
        image = Image.new("RGB", size, color=color)
        buffer = io.BytesIO()
        if exif:
            image.save(buffer, format="JPEG", exif=build_exif(**exif_kwargs))
        else:
            image.save(buffer, format="JPEG")
        return buffer.getvalue()

    return _make


@pytest.fixture
def rgba_png() -> bytes:
    """A half-transparent PNG (needs flattening before JPEG encoding)."""
    image = Image.new("RGBA", (64, 32), color=(0, 128, 255, 128))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def corrupted_file() -> bytes:
    """Bytes that are not an image, whatever the filename claims."""
    return b"This is not an image, but someone renamed it .jpg"


@pytest.fixture
def write_file(tmp_path) -> Callable[[bytes, str], Any]:
    """Write bytes to a file under tmp_path and return its path."""
    def _write(data: bytes, name: str = "photo.jpg"):
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def fake_extractor() -> MagicMock:
    """
    Metadata extractor double.

    Set ``fake_extractor.extract.return_value`` to the tag mapping the
    "tool" should report, or ``side_effect`` to simulate a failure.
    """
    extractor = MagicMock()
    extractor.extract.return_value = {}
    return extractor


@pytest.fixture
def log_messages(test_settings) -> Iterator[List[str]]:
    """Messages that reach loguru, including intercepted stdlib records."""
    setup_logging(test_settings)
    messages: List[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)


# =============================================================================
# API FIXTURES
# =============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        APP_ENV="testing",
        METADATA_BACKEND="pillow",
        MAX_UPLOAD_BYTES=5 * 1024 * 1024,
        STORAGE_PATH=tmp_path / "bucket",
        PUBLIC_BASE_URL="https://cdn.example.com/media",
    )


@pytest.fixture
def make_client(test_settings) -> Callable[..., TestClient]:
    """Build a TestClient around an app with the given analyzer."""
    def _make(analyzer: PhotoAnalyzer, settings: Optional[Settings] = None) -> TestClient:
        app = create_application(settings=settings or test_settings, analyzer=analyzer)
        return TestClient(app)

    return _make

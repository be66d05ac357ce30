"""
Metadata Extraction
===================

Reads the handful of tags the service reports from an uploaded photo:

- ``GPSLatitude`` / ``GPSLongitude``
- ``DateTimeOriginal`` / ``CreateDate``
- ``Make`` / ``Model``

Two backends share the same ``extract(path) -> Dict[str, Any]`` interface:

1. **ExifToolMetadataExtractor** (default): one long-lived ``exiftool``
   process driven through PyExifTool. Handles every container exiftool
   knows about (JPEG, HEIC, PNG, RAW, video). GPS values come back as
   DMS text such as ``40 deg 26' 46.000000" N``.
2. **PillowMetadataExtractor**: in-process fallback for hosts without the
   exiftool binary. GPS values come back already converted to signed
   decimal degrees.

Why group prefixes?
------------------
The same tag name can live in several metadata groups. For example
``EXIF:GPSLatitude`` holds the unsigned magnitude while
``Composite:GPSLatitude`` combines it with ``GPSLatitudeRef``. We ask
exiftool for group-qualified names and pick by group priority.
"""

import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol, Union

from exiftool import ExifToolHelper
from exiftool.exceptions import ExifToolException, ExifToolExecuteError
from PIL import ExifTags, Image, UnidentifiedImageError

from photo_analyzer.core.exceptions import MetadataExtractionException

logger = logging.getLogger(__name__)

REQUESTED_TAGS = (
    "GPSLatitude",
    "GPSLongitude",
    "DateTimeOriginal",
    "CreateDate",
    "Make",
    "Model",
)

# Earlier groups win when a tag name appears in several of them
GROUP_PRIORITY = ("Composite", "EXIF", "XMP", "QuickTime", "MakerNotes")

# High-precision DMS text, e.g. 40 deg 26' 46.000000" N
COORDINATE_FORMAT = "%d deg %d' %.6f\""

EXIF_DATETIME_PATTERN = re.compile(
    r"^(\d{4}):(\d{2}):(\d{2})[ T](\d{2}:\d{2}:\d{2}(?:\.\d+)?)(Z|[+-]\d{2}:?\d{2})?$"
)


class MetadataExtractor(Protocol):
    """Reads tag name -> value pairs from an image on disk."""

    def extract(self, path: Union[str, Path]) -> Dict[str, Any]:
        ...

    def close(self) -> None:
        ...


def flatten_tags(
    grouped: Dict[str, Any],
    group_priority: Iterable[str] = GROUP_PRIORITY,
) -> Dict[str, Any]:
    """
    Collapse ``Group:Tag`` keys into plain tag names.

    Args:
        grouped: exiftool JSON record with group-qualified keys.
        group_priority: Groups in descending priority.

    Returns:
        Mapping of tag name to the value from the highest-priority group.
        Groups not listed rank below all listed ones.

    Example:
        >>> flatten_tags({
        ...     "EXIF:GPSLatitude": "40 deg 26' 46.00\\"",
        ...     "Composite:GPSLatitude": "40 deg 26' 46.00\\" N",
        ... })
        {'GPSLatitude': '40 deg 26\\' 46.00" N'}
    """
    ranks = {group: rank for rank, group in enumerate(group_priority)}
    unranked = len(ranks)

    best: Dict[str, Any] = {}
    best_rank: Dict[str, int] = {}
    for key, value in grouped.items():
        if key == "SourceFile":
            continue
        group, _, name = key.rpartition(":")
        rank = ranks.get(group, unranked)
        if name not in best or rank < best_rank[name]:
            best[name] = value
            best_rank[name] = rank
    return best


class ExifToolMetadataExtractor:
    """
    Metadata extractor backed by a persistent exiftool process.

    Starting exiftool costs ~100ms of Perl startup, so a single process
    is kept in ``-stay_open`` mode for the lifetime of the application.
    The process handles one command at a time; calls are serialized
    with a lock so concurrent requests can share it.

    Attributes:
        executable: Path to the exiftool binary (None = search PATH).
    """

    def __init__(self, executable: Optional[str] = None) -> None:
        self.executable = executable
        self._helper = ExifToolHelper(executable=executable, common_args=["-G"])
        self._lock = threading.Lock()

    def start(self) -> None:
        """Launch the exiftool process."""
        with self._lock:
            if not self._helper.running:
                self._helper.run()
                logger.info(f"exiftool {self._helper.version} started")

    def close(self) -> None:
        """Terminate the exiftool process if it is running."""
        with self._lock:
            if self._helper.running:
                self._helper.terminate()
                logger.info("exiftool stopped")

    def extract(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Read the reported tags from a file.

        Args:
            path: Image on local disk.

        Returns:
            Tag name -> value mapping (missing tags are simply absent).

        Raises:
            MetadataExtractionException: exiftool failed. The details carry
                its return code and stderr.
        """
        try:
            with self._lock:
                records = self._helper.get_tags(
                    str(path),
                    tags=list(REQUESTED_TAGS),
                    params=["-c", COORDINATE_FORMAT],
                )
        except ExifToolExecuteError as e:
            raise MetadataExtractionException(
                details={
                    "tool": "exiftool",
                    "returncode": e.returncode,
                    "stderr": (e.stderr or "").strip(),
                },
            ) from e
        except ExifToolException as e:
            raise MetadataExtractionException(
                details={"tool": "exiftool", "error": str(e)},
            ) from e

        if not records:
            return {}
        return flatten_tags(records[0])


class PillowMetadataExtractor:
    """
    In-process metadata extractor using Pillow.

    EXIF stores each GPS coordinate as three rationals plus a reference
    letter:
    ```
    GPSLatitudeRef: 'N'
    GPSLatitude: (40/1, 26/1, 46/1)   # 40° 26' 46"
    ```
    They are converted to signed decimal degrees here, so the values in
    the returned mapping are already numeric.
    """

    def extract(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Read the reported tags from a file.

        Raises:
            MetadataExtractionException: Pillow could not decode the file.
        """
        try:
            with Image.open(path) as image:
                exif = image.getexif()
        except (UnidentifiedImageError, OSError) as e:
            raise MetadataExtractionException(
                details={"tool": "pillow", "error": str(e)},
            ) from e

        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

        tags: Dict[str, Any] = {}
        for name, value in (
            ("Make", exif.get(ExifTags.Base.Make)),
            ("Model", exif.get(ExifTags.Base.Model)),
            ("DateTimeOriginal", exif_ifd.get(ExifTags.Base.DateTimeOriginal)),
            ("CreateDate", exif_ifd.get(ExifTags.Base.DateTimeDigitized)),
        ):
            text = _clean_text(value)
            if text:
                tags[name] = text

        latitude = _gps_decimal(
            gps_ifd.get(ExifTags.GPS.GPSLatitude),
            gps_ifd.get(ExifTags.GPS.GPSLatitudeRef),
        )
        if latitude is not None:
            tags["GPSLatitude"] = latitude

        longitude = _gps_decimal(
            gps_ifd.get(ExifTags.GPS.GPSLongitude),
            gps_ifd.get(ExifTags.GPS.GPSLongitudeRef),
        )
        if longitude is not None:
            tags["GPSLongitude"] = longitude

        return tags

    def close(self) -> None:
        pass


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    return str(value).strip("\x00 ").strip() or None


def _gps_decimal(value: Any, ref: Any) -> Optional[float]:
    """Convert an EXIF (degrees, minutes, seconds) triple to decimal degrees."""
    if value is None:
        return None
    try:
        if isinstance(value, (tuple, list)):
            parts = [float(part) for part in value] + [0.0, 0.0]
            decimal = parts[0] + parts[1] / 60 + parts[2] / 3600
        else:
            decimal = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None

    ref_text = _clean_text(ref)
    if ref_text and ref_text.upper() in ("S", "W"):
        decimal = -decimal
    return decimal


@dataclass(frozen=True)
class PhotoTags:
    """Typed view over the tags the service reports."""

    gps_latitude: Any = None
    gps_longitude: Any = None
    date_time_original: Optional[str] = None
    create_date: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None

    @classmethod
    def from_mapping(cls, tags: Dict[str, Any]) -> "PhotoTags":
        return cls(
            gps_latitude=tags.get("GPSLatitude"),
            gps_longitude=tags.get("GPSLongitude"),
            date_time_original=_clean_text(tags.get("DateTimeOriginal")),
            create_date=_clean_text(tags.get("CreateDate")),
            make=_clean_text(tags.get("Make")),
            model=_clean_text(tags.get("Model")),
        )


def normalize_exif_datetime(value: Optional[str]) -> Optional[str]:
    """
    Convert EXIF ``YYYY:MM:DD HH:MM:SS`` to ISO 8601.

    Sub-seconds and a trailing UTC offset are kept. Unset camera clocks
    (``0000:00:00 00:00:00``) count as missing. Strings in any other
    format are returned unchanged.

    Example:
        >>> normalize_exif_datetime("2024:01:15 14:30:00+02:00")
        '2024-01-15T14:30:00+02:00'
    """
    if not value:
        return None
    text = value.strip()
    match = EXIF_DATETIME_PATTERN.match(text)
    if not match:
        return text or None

    year, month, day, clock, offset = match.groups()
    if year == "0000" or month == "00" or day == "00":
        return None
    if offset and offset != "Z" and ":" not in offset:
        offset = f"{offset[:3]}:{offset[3:]}"
    return f"{year}-{month}-{day}T{clock}{offset or ''}"


def capture_time(tags: PhotoTags) -> Optional[str]:
    """When the photo was taken: DateTimeOriginal, else CreateDate."""
    for candidate in (tags.date_time_original, tags.create_date):
        normalized = normalize_exif_datetime(candidate)
        if normalized:
            return normalized
    return None


def create_extractor(backend: str, executable: Optional[str] = None) -> MetadataExtractor:
    """
    Build the configured metadata extractor.

    Args:
        backend: ``exiftool`` or ``pillow``.
        executable: exiftool binary path (exiftool backend only).

    Raises:
        ValueError: Unknown backend name.
    """
    if backend == "exiftool":
        extractor = ExifToolMetadataExtractor(executable=executable)
        extractor.start()
        return extractor
    if backend == "pillow":
        return PillowMetadataExtractor()
    raise ValueError(f"Unknown metadata backend: {backend}")

"""
Photo Analysis Pipeline
=======================

Sequences the collaborators for one upload:

```
Upload → Temp file → Extract tags → Resolve GPS → Build record
                                                     ↓
                          (optional) Convert to JPEG → Store → image_url
```

Failure policy:
--------------
- Metadata extraction fails: the request fails (nothing useful to return).
- Conversion or storage fails: the metadata already extracted is still
  returned, just without ``image_url``.
- Temp-file cleanup fails: logged and ignored.
"""

import contextlib
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, Optional

from photo_analyzer.core.exceptions import (
    ImageConversionException,
    StorageException,
)
from photo_analyzer.schemas.metadata import ImageUrl, PhotoMetadata
from photo_analyzer.services.coordinates import has_location, resolve_coordinate
from photo_analyzer.services.image_converter import ImageConverter
from photo_analyzer.services.metadata_extractor import (
    MetadataExtractor,
    PhotoTags,
    capture_time,
)
from photo_analyzer.services.object_store import ObjectStore

logger = logging.getLogger(__name__)


def _safe_suffix(filename: Optional[str]) -> str:
    """Keep the extension (exiftool and Pillow sniff by it) but nothing else."""
    suffix = Path(filename or "").suffix.lower()
    if not suffix or len(suffix) > 10 or not suffix[1:].isalnum():
        return ""
    return suffix


@contextlib.contextmanager
def scoped_upload(contents: bytes, filename: Optional[str] = None) -> Iterator[Path]:
    """
    Materialize an upload in a private temporary directory.

    Each call gets its own ``mkdtemp`` directory (mode 0700), so concurrent
    requests never see each other's files. The directory is removed on
    every exit path; removal errors are logged and swallowed.

    Args:
        contents: Raw upload bytes.
        filename: Client-supplied name; only its extension is used.

    Yields:
        Path of the written file.
    """
    directory = Path(tempfile.mkdtemp(prefix="photo-analyzer-"))
    try:
        path = directory / f"upload{_safe_suffix(filename)}"
        path.write_bytes(contents)
        yield path
    finally:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.debug(f"Could not remove temp dir {directory}: {e}")


class PhotoAnalyzer:
    """
    Turns an uploaded photo into a ``PhotoMetadata`` record.

    Attributes:
        extractor: Reads tags from the upload.
        converter: Produces the normalized JPEG.
        store: Persists the JPEG (None = skip conversion and persistence).
            Requires a converter, since only normalized JPEGs are stored.
    """

    def __init__(
        self,
        extractor: MetadataExtractor,
        converter: Optional[ImageConverter] = None,
        store: Optional[ObjectStore] = None,
    ) -> None:
        if store is not None and converter is None:
            raise ValueError("Persisting images requires a converter")
        self.extractor = extractor
        self.converter = converter
        self.store = store

    def analyze(self, path: Path) -> PhotoMetadata:
        """
        Analyze the photo at ``path``.

        Raises:
            MetadataExtractionException: Tags could not be read.
        """
        tags = PhotoTags.from_mapping(self.extractor.extract(path))
        metadata = self.build_metadata(tags)

        if self.store is not None:
            image_url = self._publish(path)
            if image_url is not None:
                metadata.image_url = ImageUrl(url=image_url)

        return metadata

    @staticmethod
    def build_metadata(tags: PhotoTags) -> PhotoMetadata:
        latitude = resolve_coordinate(tags.gps_latitude)
        longitude = resolve_coordinate(tags.gps_longitude)

        if tags.gps_latitude is not None and latitude is None:
            logger.info(f"Unparseable GPSLatitude: {tags.gps_latitude!r}")
        if tags.gps_longitude is not None and longitude is None:
            logger.info(f"Unparseable GPSLongitude: {tags.gps_longitude!r}")

        return PhotoMetadata(
            has_location_data=has_location(latitude, longitude),
            latitude=latitude,
            longitude=longitude,
            date_time=capture_time(tags),
            make=tags.make,
            model=tags.model,
        )

    def _publish(self, path: Path) -> Optional[str]:
        """Convert and store; None if either stage failed."""
        try:
            jpeg = self.converter.to_bytes(path)
            return self.store.put(jpeg, self.store.build_key("jpg"))
        except (ImageConversionException, StorageException) as e:
            logger.warning(
                f"{e.message} (details={e.details}); "
                f"returning metadata without image_url"
            )
            return None

"""
JPEG Normalization
==================

Turns whatever the client uploaded (JPEG, PNG, HEIC, WebP, TIFF...) into a
plain baseline-compatible JPEG suitable for publishing:

1. Apply the EXIF orientation so the pixels are upright
2. Flatten transparency onto white (JPEG has no alpha channel)
3. Convert palette/grayscale/CMYK modes to RGB
4. Optionally downsize so neither side exceeds ``max_dimension``
5. Save as progressive, optimized JPEG without metadata

Why strip metadata from the published copy?
------------------------------------------
The JPEG may end up behind a public URL. GPS tags in it would reveal
exactly where the photo was taken. The coordinates are reported to the
uploader in the JSON response instead.
"""

import io
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from photo_analyzer.core.exceptions import ImageConversionException

logger = logging.getLogger(__name__)


class ImageConverter(Protocol):
    """Produces a normalized JPEG from a source image."""

    def convert(self, source: Union[str, Path], destination: Union[str, Path]) -> Path:
        ...

    def to_bytes(self, source: Union[str, Path]) -> bytes:
        ...


class JpegImageConverter:
    """
    Pillow-based JPEG normalizer.

    Attributes:
        quality: JPEG quality (1-100).
        max_dimension: Largest allowed width/height, or None to keep size.
        strip_metadata: Drop EXIF metadata from the output.
    """

    def __init__(
        self,
        quality: int = 90,
        max_dimension: Optional[int] = None,
        strip_metadata: bool = True,
    ) -> None:
        if not 1 <= quality <= 100:
            raise ValueError(f"JPEG quality must be between 1 and 100, got {quality}")
        if max_dimension is not None and max_dimension < 1:
            raise ValueError(f"max_dimension must be positive, got {max_dimension}")
        self.quality = quality
        self.max_dimension = max_dimension
        self.strip_metadata = strip_metadata

    def convert(self, source: Union[str, Path], destination: Union[str, Path]) -> Path:
        """
        Write a normalized JPEG of ``source`` to ``destination``.

        Returns:
            The destination path.

        Raises:
            ImageConversionException: The source could not be decoded or
                the JPEG could not be written.
        """
        destination = Path(destination)
        data = self.to_bytes(source)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as e:
            raise ImageConversionException(
                details={"destination": str(destination), "error": str(e)},
            ) from e
        logger.debug(f"Wrote JPEG {destination} ({len(data)} bytes)")
        return destination

    def to_bytes(self, source: Union[str, Path]) -> bytes:
        """
        Encode a normalized JPEG of ``source`` in memory.

        Raises:
            ImageConversionException: The source could not be decoded.
        """
        save_kwargs = {
            "format": "JPEG",
            "quality": self.quality,
            "optimize": True,
            "progressive": True,
        }
        buffer = io.BytesIO()
        try:
            with Image.open(source) as image:
                exif = image.getexif()
                rgb = self._normalize(image)
                if not self.strip_metadata and exif:
                    # Orientation was applied to the pixels already
                    exif.pop(ExifTags.Base.Orientation, None)
                    save_kwargs["exif"] = exif.tobytes()
                rgb.save(buffer, **save_kwargs)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ImageConversionException(
                details={"source": str(source), "error": str(e)},
            ) from e
        return buffer.getvalue()

    def _normalize(self, image: Image.Image) -> Image.Image:
        image = ImageOps.exif_transpose(image) or image

        if image.mode in ("RGBA", "LA") or (
            image.mode == "P" and "transparency" in image.info
        ):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            image = background
        elif image.mode != "RGB":
            image = image.convert("RGB")

        if self.max_dimension is not None:
            width, height = image.size
            if max(width, height) > self.max_dimension:
                image.thumbnail(
                    (self.max_dimension, self.max_dimension),
                    Image.Resampling.LANCZOS,
                )
                logger.debug(f"Downsized {width}x{height} -> {image.size}")

        return image

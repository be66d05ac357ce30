"""Response schemas for the metadata endpoint."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageUrl(BaseModel):
    """Where the normalized JPEG was published."""

    url: str


class PhotoMetadata(BaseModel):
    """Metadata reported for an uploaded photo.

    Attributes:
        has_location_data: Both coordinates resolved to non-zero values.
        latitude: Signed decimal degrees, or None.
        longitude: Signed decimal degrees, or None.
        date_time: Capture time (ISO 8601 when it came from EXIF).
        make: Camera manufacturer.
        model: Camera model.
        image_url: Public location of the stored JPEG, when persisted.
    """

    model_config = ConfigDict(populate_by_name=True)

    has_location_data: bool = Field(default=False, alias="hasLocationData")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    date_time: Optional[str] = Field(default=None, alias="dateTime")
    make: Optional[str] = None
    model: Optional[str] = None
    image_url: Optional[ImageUrl] = None

    def to_response(self) -> Dict[str, Any]:
        """Serialize with camelCase keys; ``image_url`` only when set."""
        exclude = {"image_url"} if self.image_url is None else set()
        return self.model_dump(by_alias=True, exclude=exclude)

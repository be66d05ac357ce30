"""Photo metadata extraction endpoint."""

import logging
from typing import Optional

from fastapi import APIRouter, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from photo_analyzer.api.deps import Analyzer, AppSettings
from photo_analyzer.core.exceptions import (
    AppException,
    BadRequestException,
    MetadataExtractionException,
    PayloadTooLargeException,
)
from photo_analyzer.schemas.metadata import PhotoMetadata
from photo_analyzer.services.photo_analysis import PhotoAnalyzer, scoped_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Metadata"])


def _analyze_upload(
    analyzer: PhotoAnalyzer,
    contents: bytes,
    filename: Optional[str],
) -> PhotoMetadata:
    with scoped_upload(contents, filename) as path:
        return analyzer.analyze(path)


@router.post(
    "/extract-metadata",
    response_model=None,
    summary="Extract Photo Metadata",
    description=(
        "Upload a photo as multipart field `photo`. Returns GPS position, "
        "capture time and camera make/model, plus the public URL of the "
        "normalized JPEG when persistence is enabled."
    ),
    responses={
        200: {"model": PhotoMetadata},
        400: {"description": "No photo uploaded"},
        413: {"description": "Photo exceeds the upload size limit"},
        500: {"description": "Metadata could not be extracted"},
    },
)
async def extract_metadata(
    analyzer: Analyzer,
    settings: AppSettings,
    photo: Optional[UploadFile] = File(None, description="Photo to analyze"),
) -> JSONResponse:
    """Extract metadata from an uploaded photo.

    Args:
        analyzer: Pipeline built at startup.
        settings: Application settings (upload size limit).
        photo: Uploaded image file.

    Returns:
        JSON metadata record.

    Raises:
        BadRequestException: No ``photo`` field in the form.
        PayloadTooLargeException: Upload larger than ``MAX_UPLOAD_BYTES``.
        MetadataExtractionException: The upload could not be read.
    """
    if photo is None:
        raise BadRequestException("No photo uploaded")

    contents = await photo.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(contents) > settings.MAX_UPLOAD_BYTES:
        raise PayloadTooLargeException(
            details={"limit_bytes": settings.MAX_UPLOAD_BYTES},
        )

    logger.info(f"Analyzing upload {photo.filename!r} ({len(contents)} bytes)")

    try:
        metadata = await run_in_threadpool(
            _analyze_upload, analyzer, contents, photo.filename
        )
    except AppException:
        raise
    except Exception as e:
        logger.exception("Error processing image")
        raise MetadataExtractionException(details={"error": str(e)}) from e

    return JSONResponse(content=metadata.to_response())

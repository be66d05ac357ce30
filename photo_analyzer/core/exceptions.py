"""Custom exception classes for the application.

This module defines application-specific exceptions that map
to appropriate HTTP status codes and error responses.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Additional error context (logged, never returned).
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            details: Additional error context.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BadRequestException(AppException):
    """Raised when the request is missing required input."""

    def __init__(
        self,
        message: str = "Bad request",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=400, details=details)


class PayloadTooLargeException(AppException):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(
        self,
        message: str = "Uploaded file is too large",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=413, details=details)


class MetadataExtractionException(AppException):
    """Raised when the metadata tool cannot read an upload.

    The tool's diagnostic output (stderr, return code) travels in
    ``details`` so it reaches the logs without leaking to clients.
    """

    def __init__(
        self,
        message: str = "Failed to extract metadata",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=500, details=details)


class ImageConversionException(AppException):
    """Raised when an image cannot be converted to JPEG."""

    def __init__(
        self,
        message: str = "Failed to convert image",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=500, details=details)


class StorageException(AppException):
    """Raised when a converted image cannot be persisted."""

    def __init__(
        self,
        message: str = "Failed to store image",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, status_code=500, details=details)

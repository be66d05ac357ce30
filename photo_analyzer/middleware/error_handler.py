"""Global error handling middleware.

This module provides centralized exception handling with
JSON error bodies and request tracking. Error details are
logged server-side only; clients receive ``{"error": message}``.
"""

import logging
import traceback
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from photo_analyzer.core.exceptions import AppException

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers={"X-Request-ID": request_id},
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for catching and formatting all exceptions.

    Tags every response with an ``X-Request-ID`` header for
    correlating client reports with server logs.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """Process request and handle any exceptions.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler in chain.

        Returns:
            Response from handler or error response.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        except AppException as exc:
            logger.warning(
                f"Application error: {exc.message} "
                f"(request_id={request_id}, details={exc.details})"
            )
            return _error_response(exc.status_code, exc.message, request_id)

        except Exception as exc:
            logger.error(
                f"Unhandled exception: {str(exc)} (request_id={request_id})\n"
                f"{traceback.format_exc()}"
            )
            return _error_response(500, "Internal server error", request_id)


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure global exception handlers for the FastAPI app.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request,
        exc: AppException,
    ) -> JSONResponse:
        """Handle AppException with a generic JSON body.

        Args:
            request: Incoming HTTP request.
            exc: Application exception instance.

        Returns:
            JSON response with the error message.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"Application error: {exc.message} "
            f"(request_id={request_id}, details={exc.details})"
        )
        return _error_response(exc.status_code, exc.message, request_id)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Reject malformed upload forms with the service's error shape.

        The only request parameter is the ``photo`` file, so any
        validation failure means no usable photo was uploaded.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.warning(
            f"Invalid upload form: {exc.errors()} (request_id={request_id})"
        )
        return _error_response(400, "No photo uploaded", request_id)

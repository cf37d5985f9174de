# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware.

Every failure leaves the API as an RFC 7807 problem document with HAL links:
moderation exceptions map onto their own problem types, werkzeug HTTP errors
onto generic ones, and anything unexpected onto a 500 whose detail is hidden
in production.
"""

from flask import Flask, Response, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Any, Dict, Tuple
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from ..domain.errors import (
    CustomException,
    ValidationException,
    InvalidStateException,
    RateLimitedException,
    SchemaMissingException
)
from ..services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


# Problem type slugs for errors raised by Flask or werkzeug themselves
HTTP_ERROR_TITLES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    429: ("rate-limit-exceeded", "Rate Limit Exceeded"),
}


def _problem_extensions(error: CustomException) -> Dict[str, Any]:
    if isinstance(error, InvalidStateException):
        return {"current_state": error.current_state}
    if isinstance(error, RateLimitedException):
        return {"hours_remaining": error.hours_remaining}
    if isinstance(error, SchemaMissingException):
        return {"missing": error.missing}
    return {}


def _request_attributes() -> Dict[str, str]:
    return {"http.method": request.method, "http.path": request.path}


def build_custom_error_response(error: CustomException, hal_formatter: HalFormatter) -> Dict[str, Any]:
    """Map an application exception onto its HAL problem document."""
    validation_errors = error.validation_errors if isinstance(error, ValidationException) else None
    return hal_formatter.format_problem(
        error.error_type,
        error.message,
        request.path,
        status=error.status_code,
        validation_errors=validation_errors,
        **_problem_extensions(error)
    )


class ErrorHandlerMiddleware:
    """Registers handlers for werkzeug HTTP errors and unexpected exceptions."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    @property
    def hide_details(self) -> bool:
        return self.app.config.get('ENV') == 'production'

    def register_error_handlers(self):
        self.app.register_error_handler(HTTPException, self.handle_http_exception)
        self.app.register_error_handler(Exception, self.handle_unexpected_error)

    def handle_http_exception(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """Render an HTTP error raised outside the moderation services, e.g. an unknown route."""
        status = error.code or 500
        if status >= 500:
            logger.error(
                f"Server error: {error.name}",
                extra={"status_code": status, "path": request.path, "method": request.method}
            )
            detail = "An internal server error occurred" if self.hide_details else str(error.description)
            problem = self.hal_formatter.format_server_error(detail, request.path)
            problem['status'] = status
            return problem, status

        error_type, title = HTTP_ERROR_TITLES.get(status, ("client-error", error.name))
        detail = str(error.description) if error.description else title
        logger.warning(
            f"Client error: {title}",
            extra={"error_type": error_type, "status_code": status, "path": request.path, "method": request.method}
        )
        return self.hal_formatter.builder.build_error_response(error_type, title, status, detail, request.path), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """Log the full traceback and answer 500."""
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({**_request_attributes(), "error.class": error.__class__.__name__})
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, str(error)))

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=error
            )

            detail = "An unexpected error occurred"
            if not self.hide_details:
                detail = f"{error.__class__.__name__}: {error}"
            return self.hal_formatter.format_server_error(detail, request.path), 500


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """
    Register the handler for moderation exceptions.

    Args:
        app: Flask application
        hal_formatter: HAL formatter instance
    """

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException) -> Response:
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                **_request_attributes(),
                "error.type": error.error_type,
                "error.status": error.status_code
            })

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Custom exception: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "error_message": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            response = jsonify(build_custom_error_response(error, hal_formatter))
            response.status_code = error.status_code
            if isinstance(error, RateLimitedException):
                response.headers['Retry-After'] = str(error.retry_after_seconds)
            return response

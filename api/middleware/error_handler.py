# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, List, Tuple
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.errors import SatcomError
from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ERROR_TITLES = {
    "resource-not-found": "Resource Not Found",
    "no-coverage": "No Satellite Coverage",
    "no-ground-station": "No Ground Station Available",
    "not-connected": "Terminal Not Connected",
    "sos-not-supported": "SOS Not Supported",
    "invalid-transition": "Invalid State Transition",
}

HTTP_ERROR_TYPES = {
    400: ("bad-request", "Bad Request"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    422: ("validation-error", "Validation Error"),
    500: ("internal-server-error", "Internal Server Error"),
    503: ("service-unavailable", "Service Unavailable"),
}


def _validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in detail["loc"]),
            "message": detail["msg"],
            "type": detail["type"]
        }
        for detail in error.errors()
    ]


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(SatcomError)
        def handle_satcom_error(error: SatcomError):
            return self.handle_domain_error(error)

        @self.app.errorhandler(ValidationError)
        def handle_validation_error(error: ValidationError):
            return self.handle_request_validation_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            if error.code is not None and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: SatcomError) -> Tuple[Dict[str, Any], int]:
        """
        Render a satellite communications error as a problem document.

        Client errors are logged at warning; 5xx kinds such as missing
        coverage are logged at error since they describe network state.
        """
        with tracer.start_as_current_span("error_handler.satcom_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })
            trace.get_current_span().set_status(Status(StatusCode.ERROR, error.message))

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Satellite error: {error.error_type}",
                extra={
                    "extra_fields": {
                        "error_type": error.error_type,
                        "status_code": error.status_code,
                        "detail": error.message,
                        "path": request.path,
                        "method": request.method
                    }
                }
            )

            title = ERROR_TITLES.get(error.error_type, "Satellite Communications Error")
            error_response = self.hal_formatter.format_problem(
                error.error_type, title, error.status_code, error.message, request.path
            )
            return jsonify(error_response), error.status_code

    def handle_request_validation_error(self, error: ValidationError) -> Tuple[Dict[str, Any], int]:
        with tracer.start_as_current_span("error_handler.validation_error") as span:
            errors = _validation_errors(error)
            span.set_attributes({
                "error.type": "validation-error",
                "error.count": len(errors),
                "http.path": request.path
            })

            logger.warning(
                "Request validation failed",
                extra={"extra_fields": {"path": request.path, "errors": errors}}
            )

            error_response = self.hal_formatter.format_validation_error(
                "Request validation failed", request.path, errors
            )
            return jsonify(error_response), 400

    def handle_client_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """
        Handle client errors (4xx status codes).

        Args:
            error: HTTP exception

        Returns:
            Tuple of (error response dict, status code)
        """
        error_type, title = HTTP_ERROR_TYPES.get(error.code, ("client-error", error.name))
        detail = str(error.description) if error.description else title

        logger.warning(
            f"Client error: {title}",
            extra={
                "extra_fields": {
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                }
            }
        )

        error_response = self.hal_formatter.format_problem(error_type, title, error.code, detail, request.path)
        return jsonify(error_response), error.code

    def handle_server_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """Handle server errors (5xx status codes)."""
        error_type, title = HTTP_ERROR_TYPES.get(error.code, ("server-error", error.name))

        logger.error(
            f"Server error: {title}",
            extra={
                "extra_fields": {
                    "error_type": error_type,
                    "status_code": error.code,
                    "path": request.path,
                    "method": request.method
                }
            },
            exc_info=True
        )

        detail = str(error.description) if error.description else title
        # Don't expose internal error details in production
        if self.app.config.get('ENVIRONMENT') == 'production':
            detail = "An internal server error occurred"

        error_response = self.hal_formatter.format_problem(error_type, title, error.code, detail, request.path)
        return jsonify(error_response), error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "extra_fields": {
                        "error_class": error.__class__.__name__,
                        "error_message": str(error),
                        "path": request.path,
                        "method": request.method
                    }
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            error_response = self.hal_formatter.format_server_error(detail, request.path)
            return jsonify(error_response), 500

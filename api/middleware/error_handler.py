# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from domain.errors import PQRSError
from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def format_validation_errors(error: ValidationError) -> list:
    """Flatten pydantic errors into ``field: message`` strings."""
    return [
        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
        for err in error.errors()
    ]


def register_error_handlers(app: Flask, base_url: str) -> HalFormatter:
    """
    Register handlers rendering every error as a problem document.

    Args:
        app: Flask application
        base_url: Base URL for help links

    Returns:
        The formatter used by the handlers
    """
    hal_formatter = HalFormatter(base_url)

    def _request_fields(**fields) -> Dict[str, Any]:
        fields.update(path=request.path, method=request.method)
        return {"extra_fields": fields}

    def _record_on_span(error: Exception, status: int) -> None:
        span = trace.get_current_span()
        span.set_attribute("error.status", status)
        if status >= 500:
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, str(error)))

    @app.errorhandler(PQRSError)
    def handle_pqrs_error(error: PQRSError) -> Tuple[Dict[str, Any], int]:
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            f"Request failed: {error.error_type}",
            extra=_request_fields(
                error_type=error.error_type,
                status_code=error.status_code,
                detail=error.message
            )
        )
        _record_on_span(error, error.status_code)

        return hal_formatter.build_error_response(
            error.error_type,
            error.title,
            error.status_code,
            error.message,
            request.path,
            error.errors
        ), error.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError) -> Tuple[Dict[str, Any], int]:
        errors = format_validation_errors(error)
        logger.warning(
            "Request validation failed",
            extra=_request_fields(error_type="invalid-input", status_code=400, errors=errors)
        )
        return hal_formatter.build_error_response(
            "invalid-input",
            "Invalid Input",
            400,
            "Request validation failed",
            request.path,
            errors
        ), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException) -> Tuple[Dict[str, Any], int]:
        status = error.code or 500
        title = error.name or "HTTP Error"
        error_type = title.lower().replace(" ", "-")
        logger.warning(
            f"HTTP error: {title}",
            extra=_request_fields(error_type=error_type, status_code=status)
        )
        return hal_formatter.build_error_response(
            error_type,
            title,
            status,
            str(error.description) if error.description else title,
            request.path
        ), status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception) -> Tuple[Dict[str, Any], int]:
        logger.error(
            f"Unexpected error: {error.__class__.__name__}",
            extra=_request_fields(
                error_type="unexpected-error",
                error_class=error.__class__.__name__,
                error_message=str(error)
            ),
            exc_info=True
        )
        _record_on_span(error, 500)

        # Internal details stay hidden in production
        detail = "An unexpected error occurred"
        if app.config.get('ENVIRONMENT') != 'production':
            detail = f"{error.__class__.__name__}: {str(error)}"

        return hal_formatter.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            request.path
        ), 500

    return hal_formatter

"""JSON error handlers for the application."""

from __future__ import annotations

from flask import Flask, Response, current_app, jsonify
from werkzeug.exceptions import HTTPException

from expense_ocr.services.exceptions import OCRError


def init_app(app: Flask) -> None:
    """Initialize error handlers with the Flask application."""
    app.register_error_handler(OCRError, handle_ocr_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_exception)


def _create_error_response(message: str, status_code: int, code: str | int | None = None) -> tuple[Response, int]:
    """Create a standardized error response.

    Args:
        message: The error message
        status_code: The HTTP status code
        code: Machine-readable error code, defaults to the status code

    Returns:
        JSON response and status code
    """
    response = jsonify({"status": "error", "message": message, "code": code if code is not None else status_code})
    return response, status_code


def handle_ocr_error(error: OCRError) -> tuple[Response, int]:
    """Render extraction failures with their own status code."""
    current_app.logger.warning(f"OCR extraction failed ({error.code}): {error.message}")
    return jsonify(error.to_dict()), error.http_status


def handle_http_exception(error: HTTPException) -> tuple[Response, int]:
    """Handle HTTP exceptions."""
    status_code = error.code if error.code is not None else 500
    return _create_error_response(error.description or "HTTP error occurred", status_code)


def handle_exception(error: Exception) -> tuple[Response, int]:
    """Handle all unhandled exceptions."""
    current_app.logger.error(f"Unhandled exception: {str(error)}", exc_info=True)
    return _create_error_response("An unexpected error occurred", 500)

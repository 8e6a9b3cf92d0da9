from __future__ import annotations

import hmac
from typing import Any, Tuple

from flask import Response, current_app, jsonify, request

from expense_ocr.services.exceptions import EmptyRecognitionResult, RemoteEngineError
from expense_ocr.services.ocr_models import UserPlan
from expense_ocr.services.ocr_service import get_ocr_service
from expense_ocr.services.vision_client import VisionClient

from . import bp
from .schemas import ParsedExpenseSchema, ProviderInfoSchema

# Schema instances
parsed_expense_schema = ParsedExpenseSchema()
provider_info_schema = ProviderInfoSchema()


def _create_api_response(
    data: Any = None, message: str = "Success", status: str = "success", code: int = 200
) -> Tuple[Response, int]:
    """Create a standardized API response."""
    response_data = {"status": status, "message": message}
    if data is not None:
        response_data["data"] = data
    return jsonify(response_data), code


def _service_unavailable() -> Tuple[Response, int]:
    response = jsonify({"status": "error", "message": "OCR service is not available", "code": "OCR_DISABLED"})
    return response, 503


def _get_plan() -> UserPlan:
    return UserPlan.coerce(request.values.get("plan"))


def _is_authorized_client() -> bool:
    """Check the X-API-Key header against OCR_REMOTE_API_KEY when one is configured."""
    expected = current_app.config.get("OCR_REMOTE_API_KEY")
    if not expected:
        return True
    provided = request.headers.get("X-API-Key", "")
    return hmac.compare_digest(provided.encode(), expected.encode())


@bp.route("/health")
def health() -> Response:
    """Liveness probe."""
    return jsonify({"status": "healthy"})


@bp.route("/expenses/ocr", methods=["POST"])
def extract_expense() -> Tuple[Response, int]:
    """Extract expense fields from an uploaded receipt image or PDF.

    Form fields:
        file: The receipt (JPG, PNG, WebP or PDF)
        plan: Subscription tier (free, pro, business), defaults to free

    OCR failures are rendered by the ``OCRError`` handler in ``expense_ocr.errors``.
    """
    ocr_service = get_ocr_service()
    if ocr_service is None:
        return _service_unavailable()

    plan = _get_plan()
    try:
        parsed = ocr_service.extract(request.files.get("file"), plan)
    except ValueError as e:
        return _create_api_response(message=str(e), status="error", code=400)

    current_app.logger.info(
        f"Receipt extracted via {parsed.provider} (plan: {plan.value}, confidence: {parsed.confidence}%)"
    )
    return _create_api_response(
        data=parsed_expense_schema.dump(parsed), message="Receipt data extracted successfully"
    )


@bp.route("/ocr/process", methods=["POST"])
def process_remote_ocr() -> Response | Tuple[Response, int]:
    """Server side of the hosted OCR engine.

    Forwards the image to Google Cloud Vision for paid plans so the API key
    never leaves the server. Free plans are told to use local recognition.
    When OCR_REMOTE_API_KEY is set, callers must send it as X-API-Key.
    """
    plan = _get_plan()
    if not plan.is_paid:
        return jsonify({"provider": "local", "message": "Free plan uses local recognition"})

    if not _is_authorized_client():
        current_app.logger.warning("Rejected remote OCR request with a missing or invalid API key")
        return jsonify({"error": "Invalid API key", "provider": "local", "fallback": True}), 401

    file = request.files.get("file")
    if file is None or not (file.mimetype or "").startswith("image/"):
        return jsonify({"error": "The file must be an image"}), 400

    client = VisionClient.from_config(current_app.config)
    try:
        text = client.detect_text(file.read())
    except EmptyRecognitionResult as e:
        return jsonify({"error": e.message}), 400
    except RemoteEngineError as e:
        current_app.logger.error(f"Remote OCR error: {e}")
        status_code = 503 if e.fallback_requested else 500
        return jsonify({"error": e.message, "provider": "local", "fallback": True}), status_code

    return jsonify({"provider": "remote", "text": text, "success": True})


@bp.route("/ocr/provider")
def get_provider() -> Response | Tuple[Response, int]:
    """Report which engine a plan would use."""
    ocr_service = get_ocr_service()
    if ocr_service is None:
        return _service_unavailable()

    plan = _get_plan()
    router = ocr_service.router
    info = {
        "provider": router.select_provider(plan).value,
        "name": router.provider_display_name(plan),
        "advanced": router.has_advanced_ocr(plan),
    }
    return jsonify(provider_info_schema.dump(info))

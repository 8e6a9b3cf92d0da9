"""Google Cloud Vision client backing the hosted OCR endpoint.

Keeps the Vision API key on the server: uploads reach Vision only through
``POST /api/v1/ocr/process``.
"""

import base64
from collections.abc import Mapping
import logging
import os
from typing import Any

import requests

from .exceptions import EmptyRecognitionResult, RemoteEngineError

logger = logging.getLogger(__name__)

VISION_API_URL = "https://vision.googleapis.com/v1/images:annotate"
LANGUAGE_HINTS = ["fr", "en"]


class VisionClient:
    """Minimal DOCUMENT_TEXT_DETECTION client for the Vision REST API."""

    def __init__(self, api_key: str | None, timeout: float = 30.0, api_url: str = VISION_API_URL) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.api_url = api_url
        if not self.api_key:
            logger.warning("Google Cloud Vision API key not configured - remote OCR will fall back to Tesseract")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "VisionClient":
        api_key = config.get("GOOGLE_CLOUD_VISION_API_KEY") or os.getenv("GOOGLE_CLOUD_VISION_API_KEY")
        return cls(api_key=api_key, timeout=float(config.get("GOOGLE_VISION_TIMEOUT", 30)))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_payload(self, image_bytes: bytes) -> dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"content": base64.b64encode(image_bytes).decode("ascii")},
                    "features": [{"type": "DOCUMENT_TEXT_DETECTION", "maxResults": 1}],
                    "imageContext": {"languageHints": LANGUAGE_HINTS},
                }
            ]
        }

    def detect_text(self, image_bytes: bytes) -> str:
        """Return the full text Vision detects in an image.

        Raises:
            RemoteEngineError: If the key is missing or the API call fails
            EmptyRecognitionResult: If Vision found no text
        """
        if not self.api_key:
            raise RemoteEngineError("Google Cloud Vision API key not configured", fallback_requested=True)

        try:
            response = requests.post(
                self.api_url,
                params={"key": self.api_key},
                json=self._build_payload(image_bytes),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteEngineError(f"Google Vision request failed: {e}") from e

        if not response.ok:
            logger.error(f"Google Vision API error: {response.status_code} - {response.text}")
            raise RemoteEngineError("Google Vision API error")

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteEngineError("Google Vision returned a non-JSON response") from e

        responses = data.get("responses") or [{}]
        first = responses[0] or {}

        if first.get("error"):
            logger.error(f"Google Vision response error: {first['error']}")
            raise RemoteEngineError(first["error"].get("message") or "Google Vision response error")

        full_text = (first.get("fullTextAnnotation") or {}).get("text") or ""
        if not full_text:
            annotations = first.get("textAnnotations") or []
            full_text = annotations[0].get("description", "") if annotations else ""

        if not full_text.strip():
            raise EmptyRecognitionResult("No text detected in the image")

        logger.debug(f"Google Vision text: {full_text[:100]}")
        return full_text

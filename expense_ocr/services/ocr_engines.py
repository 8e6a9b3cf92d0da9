"""Text recognition engines: local Tesseract and the hosted OCR endpoint."""

from collections.abc import Callable, Sequence
import logging
from typing import Any, cast

from PIL import Image
import pytesseract
import requests

from .exceptions import LocalEngineError, RemoteEngineError

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES = "fra+eng"
# PSM 6 = assume a uniform block of text (good for receipts)
DEFAULT_TESSERACT_CONFIGS = ("--oem 3 --psm 6",)
DEFAULT_REMOTE_TIMEOUT = 30.0

# Providers the remote endpoint may name when it wants the client to run OCR locally
LOCAL_PROVIDER_NAMES = {"local", "tesseract"}

EngineProgress = Callable[[float], None]


class LocalOCREngine:
    """Tesseract OCR wrapper (free, lower accuracy)."""

    def __init__(
        self,
        languages: str = DEFAULT_LANGUAGES,
        configs: Sequence[str] = DEFAULT_TESSERACT_CONFIGS,
        tesseract_cmd: str | None = None,
        timeout: float = 0,
    ) -> None:
        if not configs:
            raise ValueError("At least one Tesseract configuration is required")
        self.languages = languages
        self.configs = tuple(configs)
        self.timeout = timeout

        # Set Tesseract command path if provided
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def is_available(self) -> bool:
        """Check whether the Tesseract binary can be found."""
        try:
            pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError:
            logger.error(
                "Tesseract OCR binary not found. Please install it:\n"
                "  Linux: sudo apt-get install tesseract-ocr tesseract-ocr-fra\n"
                "  macOS: brew install tesseract tesseract-lang"
            )
            return False
        return True

    def recognize(self, image: Image.Image, on_progress: EngineProgress | None = None) -> str:
        """Extract text from an image.

        Each configured Tesseract mode is tried in turn and the longest text is
        kept. ``on_progress`` receives the completed fraction (0.0-1.0) after
        each attempt.

        The engine takes ownership of ``image`` and closes it before returning.

        Args:
            image: Preprocessed Pillow image
            on_progress: Optional fractional progress callback

        Returns:
            Recognized text, possibly empty

        Raises:
            LocalEngineError: If Tesseract is missing or fails for every configuration
        """
        best_text = ""
        failures: list[str] = []

        try:
            for index, config in enumerate(self.configs, start=1):
                try:
                    text = cast(
                        str,
                        pytesseract.image_to_string(image, lang=self.languages, config=config, timeout=self.timeout),
                    )
                except pytesseract.TesseractNotFoundError as e:
                    raise LocalEngineError("Tesseract OCR is not installed") from e
                except (pytesseract.TesseractError, RuntimeError) as e:
                    # RuntimeError is how pytesseract reports a timeout
                    logger.debug(f"Tesseract OCR config {config} failed: {e}")
                    failures.append(f"{config}: {e}")
                    continue
                finally:
                    if on_progress:
                        on_progress(index / len(self.configs))

                # Prefer longer text (more complete extraction)
                if len(text) > len(best_text):
                    best_text = text
        finally:
            image.close()

        if len(failures) == len(self.configs):
            raise LocalEngineError(f"Tesseract OCR failed with all configurations ({'; '.join(failures)})")

        logger.debug(f"Extracted {len(best_text)} characters using Tesseract")
        return best_text


class RemoteOCREngine:
    """Client for the hosted OCR endpoint (paid, higher accuracy).

    The endpoint receives the raw file and answers with ``{"text": ...}`` on
    success, or ``{"error": ..., "fallback": true}`` / ``{"provider": "local"}``
    when the caller should use the local engine instead.
    """

    def __init__(self, url: str | None, api_key: str | None = None, timeout: float = DEFAULT_REMOTE_TIMEOUT) -> None:
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def _get_headers(self) -> dict[str, str]:
        headers = {"User-Agent": "Expense-OCR/1.0", "Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def recognize(
        self,
        file_bytes: bytes,
        filename: str = "receipt",
        content_type: str | None = None,
        plan: str | None = None,
    ) -> str:
        """Send the file to the hosted engine and return the recognized text.

        Raises:
            RemoteEngineError: On any failure, including an explicit fallback request
        """
        if not self.url:
            raise RemoteEngineError("Remote OCR endpoint is not configured", fallback_requested=True)

        files = {"file": (filename, file_bytes, content_type or "application/octet-stream")}
        data = {"plan": plan} if plan else None

        try:
            logger.debug(f"Making POST request to {self.url} ({len(file_bytes)} bytes)")
            response = requests.post(self.url, files=files, data=data, headers=self._get_headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteEngineError(f"Remote OCR request failed: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise RemoteEngineError(f"Remote OCR returned a non-JSON response (HTTP {response.status_code})") from e

        if not isinstance(payload, dict):
            raise RemoteEngineError("Remote OCR returned an unexpected response shape")

        if payload.get("fallback") or payload.get("provider") in LOCAL_PROVIDER_NAMES:
            raise RemoteEngineError(
                payload.get("error") or payload.get("message") or "Remote OCR requested local fallback",
                fallback_requested=True,
            )

        if not response.ok:
            raise RemoteEngineError(payload.get("error") or f"Remote OCR failed with HTTP {response.status_code}")

        text = payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise RemoteEngineError("Remote OCR returned no text")

        logger.debug(f"Remote OCR text: {text[:200]}")
        return text

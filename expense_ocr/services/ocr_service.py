"""OCR service: single entry point for extracting expense data from an upload."""

from collections.abc import Mapping
import logging
import os
from typing import Any

import fitz  # PyMuPDF
from flask import current_app
from werkzeug.datastructures import FileStorage

from .exceptions import DecodeError, EmptyRecognitionResult, FileTooLargeError, UnsupportedFileType
from .image_preprocessor import ImagePreprocessor
from .ocr_engines import DEFAULT_LANGUAGES, DEFAULT_TESSERACT_CONFIGS, LocalOCREngine, RemoteOCREngine
from .ocr_models import OCRProvider, ParsedExpenseData, UserPlan
from .ocr_router import OCRRouter, ProgressCallback

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tif", ".tiff"}


def _noop_progress(percent: int) -> None:
    pass


class OCRService:
    """Validates uploads, routes them to PDF text extraction or OCR, and returns parsed data."""

    def __init__(self, router: OCRRouter, max_file_size: int = MAX_FILE_SIZE) -> None:
        self.router = router
        self.max_file_size = max_file_size

    def extract(
        self,
        file_storage: FileStorage,
        plan: UserPlan | str = UserPlan.FREE,
        progress_callback: ProgressCallback | None = None,
    ) -> ParsedExpenseData:
        """Extract structured expense data from a receipt image or PDF.

        Args:
            file_storage: The uploaded receipt file
            plan: Subscription tier of the uploader
            progress_callback: Optional callback receiving coarse percentages (0-100)

        Returns:
            ParsedExpenseData with extracted fields and confidence

        Raises:
            ValueError: If no file is provided
            FileTooLargeError: If the file exceeds the size limit
            UnsupportedFileType: If the file is neither an image nor a PDF
            DecodeError: If the image or PDF cannot be parsed
            EmptyRecognitionResult: If no text could be read
            LocalEngineError: If Tesseract fails
        """
        if not file_storage or not file_storage.filename:
            raise ValueError("No file provided")

        progress = progress_callback or _noop_progress
        plan = UserPlan.coerce(plan)

        # Read file content
        file_storage.seek(0)
        file_bytes = file_storage.read()
        file_storage.seek(0)  # Reset for potential reuse

        filename = file_storage.filename
        content_type = (file_storage.mimetype or "").lower()
        logger.debug(f"File: {filename} ({content_type or 'unknown type'}, {len(file_bytes)} bytes)")

        if len(file_bytes) > self.max_file_size:
            raise FileTooLargeError(len(file_bytes), self.max_file_size)

        if self._is_pdf(filename, content_type, file_bytes):
            return self._extract_from_pdf(file_bytes, progress)

        if not self._is_image(filename, content_type):
            raise UnsupportedFileType(filename, content_type)

        return self.router.process(file_bytes, plan, progress, filename=filename, content_type=content_type)

    @staticmethod
    def _is_pdf(filename: str, content_type: str, file_bytes: bytes) -> bool:
        return filename.lower().endswith(".pdf") or content_type == "application/pdf" or file_bytes[:4] == b"%PDF"

    @staticmethod
    def _is_image(filename: str, content_type: str) -> bool:
        return content_type.startswith("image/") or os.path.splitext(filename.lower())[1] in IMAGE_EXTENSIONS

    def _extract_from_pdf(self, pdf_bytes: bytes, progress: ProgressCallback) -> ParsedExpenseData:
        """Parse the embedded text of every page; no rendering or OCR."""
        progress(10)
        text = self.extract_text_from_pdf(pdf_bytes)

        progress(80)
        if not text.strip():
            raise EmptyRecognitionResult()

        progress(85)
        parsed = self.router.parser.parse(text, provider=OCRProvider.LOCAL.value)

        progress(100)
        return parsed

    @staticmethod
    def extract_text_from_pdf(pdf_bytes: bytes) -> str:
        """Concatenate the text layer of all pages.

        Raises:
            DecodeError: If the PDF cannot be opened, is password protected or its pages cannot be read
        """
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except (RuntimeError, ValueError) as e:  # FileDataError subclasses RuntimeError
            logger.error(f"Failed to open PDF: {e}")
            raise DecodeError(f"Unsupported or corrupt PDF: {e}") from e

        try:
            if doc.needs_pass:
                raise DecodeError("Password-protected PDFs are not supported")
            text_parts = [page.get_text().strip() for page in doc]
        except (RuntimeError, ValueError) as e:
            logger.error(f"Failed to read PDF pages: {e}")
            raise DecodeError(f"Unsupported or corrupt PDF: {e}") from e
        finally:
            doc.close()

        result = "\n".join(part for part in text_parts if part)
        logger.debug(f"Extracted {len(result)} characters directly from PDF")
        return result


def _parse_configs(value: Any) -> tuple[str, ...]:
    if not value:
        return DEFAULT_TESSERACT_CONFIGS
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(";") if part.strip())
    return tuple(value)


def build_ocr_service(config: Mapping[str, Any]) -> OCRService:
    """Wire the OCR pipeline from a configuration mapping."""
    local_engine = LocalOCREngine(
        languages=config.get("OCR_LANGUAGES") or DEFAULT_LANGUAGES,
        configs=_parse_configs(config.get("OCR_TESSERACT_CONFIGS")),
        tesseract_cmd=config.get("TESSERACT_CMD"),
        timeout=float(config.get("OCR_TESSERACT_TIMEOUT", 0)),
    )
    remote_engine = RemoteOCREngine(
        url=config.get("OCR_REMOTE_URL"),
        api_key=config.get("OCR_REMOTE_API_KEY"),
        timeout=float(config.get("OCR_REMOTE_TIMEOUT", 30)),
    )
    preprocessor = ImagePreprocessor(
        max_dimension=int(config.get("OCR_MAX_IMAGE_DIMENSION", 2000)),
        contrast_factor=float(config.get("OCR_CONTRAST_FACTOR", 1.5)),
    )
    router = OCRRouter(
        local_engine,
        remote_engine,
        preprocessor=preprocessor,
        provider_override=OCRProvider.from_config(config.get("OCR_PROVIDER")),
    )
    return OCRService(router, max_file_size=int(config.get("OCR_MAX_FILE_SIZE", MAX_FILE_SIZE)))


def get_ocr_service() -> OCRService | None:
    """Get OCR service instance.

    Returns:
        OCRService instance or None if OCR is disabled or misconfigured
    """
    if not current_app.config.get("OCR_ENABLED", True):
        return None
    try:
        return build_ocr_service(current_app.config)
    except ValueError as e:
        current_app.logger.error(f"Failed to initialize OCR service: {e}")
        return None

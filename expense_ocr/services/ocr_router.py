"""Plan-aware routing between the local and remote OCR engines.

FREE: Tesseract (free, lower accuracy)
PRO/BUSINESS: hosted engine (paid, higher accuracy), falling back to Tesseract
"""

from collections.abc import Callable
import logging

import requests

from .exceptions import EmptyRecognitionResult, RemoteEngineError
from .expense_parser import ExpenseParser, RemoteTextParser
from .image_preprocessor import ImagePreprocessor
from .ocr_engines import LocalOCREngine, RemoteOCREngine
from .ocr_models import OCRProvider, ParsedExpenseData, PreprocessOptions, UserPlan
from .result_merger import merge_results

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# Window of the overall progress covered by Tesseract recognition
RECOGNITION_PROGRESS_START = 20
RECOGNITION_PROGRESS_END = 80

PROVIDER_DISPLAY_NAMES = {
    OCRProvider.REMOTE: "Advanced OCR",
    OCRProvider.LOCAL: "Basic OCR",
}


def _noop_progress(percent: int) -> None:
    pass


class OCRRouter:
    """Selects an engine per call and runs the matching extraction path.

    The provider is resolved once per call. A remote failure triggers exactly
    one full extraction on the local path; local failures are never retried.
    """

    def __init__(
        self,
        local_engine: LocalOCREngine,
        remote_engine: RemoteOCREngine,
        preprocessor: ImagePreprocessor | None = None,
        parser: ExpenseParser | None = None,
        remote_parser: RemoteTextParser | None = None,
        provider_override: OCRProvider | None = None,
        preprocess_options: PreprocessOptions | None = None,
    ) -> None:
        self.local_engine = local_engine
        self.remote_engine = remote_engine
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.parser = parser or ExpenseParser()
        self.remote_parser = remote_parser or RemoteTextParser()
        self.provider_override = provider_override
        self.preprocess_options = preprocess_options or PreprocessOptions()

    def select_provider(self, plan: UserPlan | str) -> OCRProvider:
        """Return the engine for a plan; a configured override always wins."""
        if self.provider_override is not None:
            return self.provider_override
        return OCRProvider.REMOTE if UserPlan.coerce(plan).is_paid else OCRProvider.LOCAL

    def provider_display_name(self, plan: UserPlan | str) -> str:
        return PROVIDER_DISPLAY_NAMES[self.select_provider(plan)]

    def has_advanced_ocr(self, plan: UserPlan | str) -> bool:
        return self.select_provider(plan) is OCRProvider.REMOTE

    def process(
        self,
        file_bytes: bytes,
        plan: UserPlan | str,
        on_progress: ProgressCallback | None = None,
        filename: str = "receipt",
        content_type: str | None = None,
    ) -> ParsedExpenseData:
        """Recognize and parse an image with the engine the plan allows.

        Raises:
            DecodeError: If the image cannot be decoded (local path)
            LocalEngineError: If Tesseract fails
            EmptyRecognitionResult: If Tesseract finds no text
        """
        plan = UserPlan.coerce(plan)
        progress = on_progress or _noop_progress
        provider = self.select_provider(plan)
        logger.info(f"OCR provider selected: {provider.value.upper()} (plan: {plan.value})")

        if provider is OCRProvider.REMOTE:
            return self._process_remote(file_bytes, plan, progress, filename, content_type)
        return self._process_local(file_bytes, progress)

    def _process_local(self, file_bytes: bytes, progress: ProgressCallback) -> ParsedExpenseData:
        progress(5)

        progress(10)
        image = self.preprocessor.preprocess_image_for_ocr(file_bytes, self.preprocess_options)

        progress(RECOGNITION_PROGRESS_START)
        span = RECOGNITION_PROGRESS_END - RECOGNITION_PROGRESS_START

        def on_engine_progress(fraction: float) -> None:
            progress(round(RECOGNITION_PROGRESS_START + fraction * span))

        text = self.local_engine.recognize(image, on_engine_progress)
        logger.debug(f"Extracted text (Tesseract): {text[:200]!r}")
        if not text.strip():
            raise EmptyRecognitionResult()

        progress(85)
        parsed = self.parser.parse(text, provider=OCRProvider.LOCAL.value)

        progress(100)
        logger.info(f"Tesseract OCR finished - confidence: {parsed.confidence}%")
        return parsed

    def _process_remote(
        self,
        file_bytes: bytes,
        plan: UserPlan,
        progress: ProgressCallback,
        filename: str,
        content_type: str | None,
    ) -> ParsedExpenseData:
        progress(10)
        try:
            progress(30)
            text = self.remote_engine.recognize(file_bytes, filename, content_type, plan=plan.value)
        except (RemoteEngineError, requests.RequestException) as e:
            logger.warning(f"Remote OCR failed, falling back to Tesseract: {e}")
            return self._process_local(file_bytes, progress)

        progress(70)
        partial = self.remote_parser.parse_partial(text)
        full = self.parser.parse(text, provider=OCRProvider.REMOTE.value)
        merged = merge_results(partial, full)

        progress(100)
        logger.info(f"Remote OCR finished - confidence: {merged.confidence}%")
        return merged

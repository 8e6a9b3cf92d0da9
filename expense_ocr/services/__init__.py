"""Receipt OCR services: preprocessing, recognition engines, parsing and routing."""

from .exceptions import (
    DecodeError,
    EmptyRecognitionResult,
    FileTooLargeError,
    LocalEngineError,
    OCRError,
    RemoteEngineError,
    UnsupportedFileType,
)
from .ocr_models import OCRProvider, ParsedExpenseData, PreprocessOptions, UserPlan
from .ocr_service import OCRService, build_ocr_service, get_ocr_service

__all__ = [
    "DecodeError",
    "EmptyRecognitionResult",
    "FileTooLargeError",
    "LocalEngineError",
    "OCRError",
    "OCRProvider",
    "OCRService",
    "ParsedExpenseData",
    "PreprocessOptions",
    "RemoteEngineError",
    "UnsupportedFileType",
    "UserPlan",
    "build_ocr_service",
    "get_ocr_service",
]

"""Custom exceptions for OCR extraction."""


class OCRError(Exception):
    """Base exception for OCR extraction failures."""

    code = "OCR_ERROR"
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
        }


class DecodeError(OCRError):
    """Raised when an uploaded image or PDF cannot be parsed."""

    code = "DECODE_ERROR"
    http_status = 422


class UnsupportedFileType(OCRError):
    """Raised when the upload is neither an image nor a PDF."""

    code = "UNSUPPORTED_FILE_TYPE"
    http_status = 415

    def __init__(self, filename: str | None = None, content_type: str | None = None):
        self.filename = filename
        self.content_type = content_type
        super().__init__("The file must be an image (JPG, PNG, WebP) or a PDF")


class FileTooLargeError(OCRError):
    """Raised when the upload exceeds the configured size limit."""

    code = "FILE_TOO_LARGE"
    http_status = 413

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"The file must not exceed {max_size // (1024 * 1024)}MB")


class RemoteEngineError(OCRError):
    """Raised when the hosted recognition engine fails or asks for a local fallback."""

    code = "REMOTE_ENGINE_ERROR"
    http_status = 502

    def __init__(self, message: str, fallback_requested: bool = False):
        self.fallback_requested = fallback_requested
        super().__init__(message)


class LocalEngineError(OCRError):
    """Raised when Tesseract cannot run. There is no further fallback."""

    code = "LOCAL_ENGINE_ERROR"
    http_status = 500


class EmptyRecognitionResult(OCRError):
    """Raised when recognition produced no usable text."""

    code = "EMPTY_RECOGNITION_RESULT"
    http_status = 422

    def __init__(self, message: str = "Could not read this document"):
        super().__init__(message)

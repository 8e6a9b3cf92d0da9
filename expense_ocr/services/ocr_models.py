"""Shared types for the expense OCR pipeline."""

from dataclasses import asdict, dataclass
import datetime
from enum import Enum
import logging
from typing import Any

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "Unknown vendor"


class UserPlan(str, Enum):
    """Subscription tier of the user uploading the document."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"

    @property
    def is_paid(self) -> bool:
        return self in (UserPlan.PRO, UserPlan.BUSINESS)

    @classmethod
    def coerce(cls, value: "UserPlan | str | None") -> "UserPlan":
        """Return the plan for a raw value, defaulting to FREE for unknown tiers."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            logger.debug(f"Unknown plan {value!r}, using free tier")
            return cls.FREE


class OCRProvider(str, Enum):
    """Recognition engine used for one extraction call."""

    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def from_config(cls, value: str | None) -> "OCRProvider | None":
        """Parse the OCR_PROVIDER setting.

        ``hybrid`` (or an empty value) means no override: the provider is chosen
        from the user's plan. ``tesseract`` and ``google`` are accepted as aliases.

        Raises:
            ValueError: If the value is not a known provider mode
        """
        mode = (value or "hybrid").strip().lower()
        if mode == "hybrid":
            return None
        aliases = {
            "local": cls.LOCAL,
            "tesseract": cls.LOCAL,
            "remote": cls.REMOTE,
            "google": cls.REMOTE,
        }
        if mode not in aliases:
            raise ValueError(f"Invalid OCR_PROVIDER value: {value!r}")
        return aliases[mode]


@dataclass
class PreprocessOptions:
    """Per-stage toggles for image preprocessing.

    ``deskew`` is accepted for compatibility but not implemented.
    """

    denoise: bool = True
    sharpen: bool = True
    contrast: bool = True
    binarize: bool = True
    deskew: bool = False


@dataclass(frozen=True)
class ParsedExpenseData:
    """Structured expense fields recovered from a receipt or invoice."""

    vendor: str
    amount: float
    tax_amount: float
    date: datetime.date | None
    invoice_number: str
    confidence: int
    provider: str = OCRProvider.LOCAL.value

    def __post_init__(self) -> None:
        if self.amount < 0 or self.tax_amount < 0:
            raise ValueError("Amounts must not be negative")
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence out of range: {self.confidence}")

    @property
    def has_vendor(self) -> bool:
        return bool(self.vendor) and self.vendor != UNKNOWN_VENDOR

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["date"] = self.date.isoformat() if self.date else None
        return data

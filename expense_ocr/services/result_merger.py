"""Combine remote-optimized and general extraction results."""

from collections.abc import Mapping
from typing import Any

from .ocr_models import OCRProvider, ParsedExpenseData

# Fixed baseline for the hosted engine rather than a measured score
REMOTE_CONFIDENCE = 90

MERGED_FIELDS = ("vendor", "amount", "tax_amount", "date", "invoice_number")


def merge_results(
    partial: Mapping[str, Any], full: ParsedExpenseData, confidence: int = REMOTE_CONFIDENCE
) -> ParsedExpenseData:
    """Fill gaps in a remote-optimized extraction with the general parser's values.

    A remote value wins when it is present and truthy (non-empty string,
    non-zero amount, a date); otherwise the general value is kept.

    Args:
        partial: Fields found by RemoteTextParser
        full: Complete result from ExpenseParser over the same text
        confidence: Confidence assigned to the merged record

    Returns:
        New ParsedExpenseData attributed to the remote provider
    """
    merged = {field: partial.get(field) or getattr(full, field) for field in MERGED_FIELDS}
    return ParsedExpenseData(**merged, confidence=confidence, provider=OCRProvider.REMOTE.value)

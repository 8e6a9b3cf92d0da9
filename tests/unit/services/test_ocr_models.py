"""Tests for the shared OCR types."""

from datetime import date

import pytest

from expense_ocr.services.ocr_models import UNKNOWN_VENDOR, OCRProvider, ParsedExpenseData, UserPlan


class TestUserPlan:
    """Test plan parsing."""

    @pytest.mark.parametrize("value,expected", [("pro", UserPlan.PRO), (" Business ", UserPlan.BUSINESS)])
    def test_coerce_known(self, value: str, expected: UserPlan) -> None:
        """Known tiers are parsed case-insensitively."""
        assert UserPlan.coerce(value) is expected

    @pytest.mark.parametrize("value", [None, "", "enterprise"])
    def test_coerce_unknown_defaults_to_free(self, value) -> None:
        """Missing or unknown tiers fall back to the free plan."""
        assert UserPlan.coerce(value) is UserPlan.FREE

    def test_is_paid(self) -> None:
        """Only pro and business are paid plans."""
        assert not UserPlan.FREE.is_paid
        assert UserPlan.PRO.is_paid
        assert UserPlan.BUSINESS.is_paid


class TestOCRProvider:
    """Test the OCR_PROVIDER setting."""

    @pytest.mark.parametrize("value", [None, "", "hybrid", "HYBRID"])
    def test_hybrid_means_no_override(self, value) -> None:
        """Hybrid mode leaves the choice to the plan."""
        assert OCRProvider.from_config(value) is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("local", OCRProvider.LOCAL),
            ("tesseract", OCRProvider.LOCAL),
            ("remote", OCRProvider.REMOTE),
            ("google", OCRProvider.REMOTE),
        ],
    )
    def test_forced_provider(self, value: str, expected: OCRProvider) -> None:
        """Names and aliases force one engine."""
        assert OCRProvider.from_config(value) is expected

    def test_invalid_value(self) -> None:
        """An unknown mode is a configuration error."""
        with pytest.raises(ValueError):
            OCRProvider.from_config("azure")


class TestParsedExpenseData:
    """Test the result record."""

    def test_rejects_negative_amount(self) -> None:
        """Amounts must be non-negative."""
        with pytest.raises(ValueError):
            ParsedExpenseData(vendor="X", amount=-1.0, tax_amount=0.0, date=None, invoice_number="", confidence=0)

    def test_rejects_out_of_range_confidence(self) -> None:
        """Confidence stays within 0-100."""
        with pytest.raises(ValueError):
            ParsedExpenseData(vendor="X", amount=1.0, tax_amount=0.0, date=None, invoice_number="", confidence=101)

    def test_to_dict_serializes_date(self) -> None:
        """Dates are rendered as ISO strings."""
        data = ParsedExpenseData(
            vendor=UNKNOWN_VENDOR, amount=1.0, tax_amount=0.0, date=date(2024, 3, 12), invoice_number="", confidence=30
        ).to_dict()

        assert data["date"] == "2024-03-12"
        assert data["provider"] == "local"

    def test_has_vendor(self) -> None:
        """The placeholder vendor does not count as a vendor."""
        unknown = ParsedExpenseData(
            vendor=UNKNOWN_VENDOR, amount=0.0, tax_amount=0.0, date=None, invoice_number="", confidence=0
        )

        assert not unknown.has_vendor

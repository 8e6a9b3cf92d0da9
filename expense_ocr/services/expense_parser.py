"""Expense parser for extracting structured fields from OCR text.

Turns noisy recognized text from a French or English receipt/invoice into a
ParsedExpenseData record. Each field is found by a cascade of patterns tried
in priority order; the first match that passes its range check wins. The
parser has no Flask or engine dependencies and is fully deterministic.
"""

from datetime import date
import logging
import re
from typing import Any

from .ocr_models import UNKNOWN_VENDOR, OCRProvider, ParsedExpenseData

logger = logging.getLogger(__name__)

# Numeric token with an optional comma or dot decimal separator: 45,90 / 45.90 / 45
# Matches only at the start of a digit run, with a single optional decimal split
NUMBER = r"(?<![0-9])([0-9]+(?:[,.][0-9]*)?)"

MIN_AMOUNT = 0.01
MAX_AMOUNT = 1_000_000

# Matched against lower-cased text, strongest context first
AMOUNT_PATTERNS = [
    re.compile(rf"(?<![\w-])total[\s:]+(?:ttc|à payer)?[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"net\s+à\s+payer[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"montant\s+(?:total|ttc)[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"(?<![\w-])total\s+ttc[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"à\s+payer[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"(?<![\w-])total\s+amount[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"amount\s+due[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"(?<![\w-])total\s*:\s*{NUMBER}"),
    re.compile(rf"montant\s*:\s*{NUMBER}"),
    re.compile(rf"(?<![\w-])total\s*\n\s*{NUMBER}\s*€?"),
]
LABELLED_AMOUNT_PATTERN = re.compile(rf"([a-zà-ÿ][a-zà-ÿ \t]*)[ \t:]*{NUMBER}\s*€")
BARE_AMOUNT_PATTERN = re.compile(rf"{NUMBER}\s*€")

TAX_PATTERNS = [
    re.compile(rf"\b(?:tva|vat)\s+[0-9]+(?:[,.][0-9]+)?\s*%[\s:]*{NUMBER}\s*€?"),  # "TVA 20% 6.16 €"
    re.compile(rf"\bdont\s+tva[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"montant\s+tva[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"t\.v\.a\.?[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"\btva\b[\s:]*{NUMBER}\s*€?"),
    re.compile(rf"\bvat\b[\s:]*{NUMBER}\s*€?"),
]

DATE_PATTERNS = [
    re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})(?!\d)"),  # DD/MM/YYYY
    re.compile(r"(?<!\d)(\d{2,4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?!\d)"),  # YYYY/MM/DD
]

LEGAL_ENTITY_PATTERN = re.compile(
    r"\b(?:société|entreprise|sarl|sas|sa|eurl)\b[ \t:]*([a-zà-ÿ0-9][a-zà-ÿ0-9 \t&'-]*)", re.IGNORECASE
)
UPPERCASE_NAME_PATTERN = re.compile(r"^([A-ZÀ-Ý][A-ZÀ-Ý &'-]{2,30})(?:[ \t]+(?:SA|SAS|SARL|EURL))?$", re.MULTILINE)
SUPPLIER_LABEL_PATTERN = re.compile(r"(?:fournisseur|supplier)[ \t:]*([a-zà-ÿ0-9][a-zà-ÿ0-9 \t&'-]*)", re.IGNORECASE)
METADATA_PATTERN = re.compile(
    r"facture|ticket|reçu|receipt|invoice|siège|capital|r\.c\.s|tva|siret|date|n°|number|page|total|^[0-9]",
    re.IGNORECASE,
)
ADDRESS_PATTERN = re.compile(
    r"^(?:[0-9]+[\s,]*(?:bis|ter)?\s*)?(?:rue|avenue|av\.|boulevard|bd|chemin|allée|impasse|place|street|road)\s",
    re.IGNORECASE,
)
LEGAL_FORM_SUFFIX_PATTERN = re.compile(r"\s+(?:SA|SAS|SARL|EURL|SCI|SASU|SELARL)$", re.IGNORECASE)

INVOICE_NUMBER_PATTERNS = [
    re.compile(r"facture[\s#:n°]*([a-z0-9][a-z0-9\-]*)", re.IGNORECASE),
    re.compile(r"n°\s*([a-z0-9][a-z0-9\-]*)", re.IGNORECASE),
    re.compile(r"invoice\s*(?:no\.?|number|#)?[\s#:]*([a-z0-9][a-z0-9\-]*)", re.IGNORECASE),
]

VENDOR_MAX_LENGTH = 100

# Confidence weights per recovered field (sum = 100)
CONFIDENCE_WEIGHTS = {
    "vendor": 20,
    "amount": 30,
    "tax_amount": 20,
    "date": 20,
    "invoice_number": 10,
}


def to_amount(token: str) -> float:
    """Convert a numeric token using a comma or dot decimal separator."""
    return float(token.replace(",", ".", 1))


def is_plausible_amount(value: float) -> bool:
    return MIN_AMOUNT < value < MAX_AMOUNT


def clean_vendor_name(name: str) -> str:
    """Strip legal-form suffixes and parenthetical notes, normalize spaces."""
    cleaned = LEGAL_FORM_SUFFIX_PATTERN.sub("", name.strip())
    cleaned = re.sub(r"\s*\([^)]*\)", "", cleaned)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()
    return cleaned[:VENDOR_MAX_LENGTH]


def build_date(first: str, second: str, third: str) -> date | None:
    """Build a date from three positional groups.

    The group with four digits is the year. Without one, the order is
    day-month-year with a two-digit year in the 2000s.
    """
    if len(third) == 4:
        day, month, year = int(first), int(second), int(third)
    elif len(first) == 4:
        year, month, day = int(first), int(second), int(third)
    elif len(third) == 2:
        day, month, year = int(first), int(second), 2000 + int(third)
    else:
        return None

    try:
        return date(year, month, day)
    except ValueError:
        return None


def calculate_confidence(
    vendor: str, amount: float, tax_amount: float, parsed_date: date | None, invoice_number: str
) -> int:
    """Aggregate quality score: the sum of weights of the fields that were recovered."""
    confidence = 0
    if vendor and vendor != UNKNOWN_VENDOR:
        confidence += CONFIDENCE_WEIGHTS["vendor"]
    if amount > 0:
        confidence += CONFIDENCE_WEIGHTS["amount"]
    if tax_amount > 0:
        confidence += CONFIDENCE_WEIGHTS["tax_amount"]
    if parsed_date is not None:
        confidence += CONFIDENCE_WEIGHTS["date"]
    if invoice_number:
        confidence += CONFIDENCE_WEIGHTS["invoice_number"]
    return confidence


def _split_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


class ExpenseParser:
    """General-purpose extractor used for Tesseract output and to fill gaps in remote results."""

    def parse(self, raw_text: str, provider: str = OCRProvider.LOCAL.value) -> ParsedExpenseData:
        """Parse OCR text into a confidence-scored expense record.

        Args:
            raw_text: Raw text extracted by OCR or read from a PDF
            provider: Name of the engine that produced the text

        Returns:
            ParsedExpenseData; missing fields keep their zero/empty/None default
        """
        text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
        logger.debug(f"Parsing OCR text (first 200 chars): {text[:200]!r}")

        amount = self.extract_amount(text)
        logger.debug(f"Amount: {amount}")

        tax_amount = self.extract_tax_amount(text)
        logger.debug(f"Tax: {tax_amount}")

        parsed_date = self.extract_date(text)
        logger.debug(f"Date: {parsed_date}")

        vendor = self.extract_vendor(text)
        logger.debug(f"Vendor: {vendor}")

        invoice_number = self.extract_invoice_number(text)
        logger.debug(f"Invoice number: {invoice_number}")

        confidence = calculate_confidence(vendor, amount, tax_amount, parsed_date, invoice_number)
        logger.debug(f"Confidence: {confidence}%")

        return ParsedExpenseData(
            vendor=vendor,
            amount=amount,
            tax_amount=tax_amount,
            date=parsed_date,
            invoice_number=invoice_number,
            confidence=confidence,
            provider=provider,
        )

    def extract_amount(self, text: str) -> float:
        """Extract the total amount.

        Strategy:
        1. Contextual labels (total TTC, net à payer, montant total, amount due, ...)
        2. Every "label number €" occurrence ranked by TTC > total > other, then value
        3. The largest bare "number €" occurrence

        Returns:
            Amount in (0.01, 1 000 000), or 0.0 when nothing qualifies
        """
        lowered = text.lower()

        for pattern in AMOUNT_PATTERNS:
            match = pattern.search(lowered)
            if match:
                amount = to_amount(match.group(1))
                if is_plausible_amount(amount):
                    return amount

        candidates: list[tuple[int, float]] = []
        for match in LABELLED_AMOUNT_PATTERN.finditer(lowered):
            label = match.group(1)
            amount = to_amount(match.group(2))
            if not is_plausible_amount(amount):
                continue
            priority = 3 if "ttc" in label else 2 if "total" in label else 1
            candidates.append((priority, amount))
        if candidates:
            return max(candidates)[1]

        amounts = [to_amount(m.group(1)) for m in BARE_AMOUNT_PATTERN.finditer(lowered)]
        amounts = [a for a in amounts if is_plausible_amount(a)]
        if amounts:
            return max(amounts)

        return 0.0

    def extract_tax_amount(self, text: str) -> float:
        lowered = text.lower()
        for pattern in TAX_PATTERNS:
            match = pattern.search(lowered)
            if match:
                return to_amount(match.group(1))
        return 0.0

    def extract_date(self, text: str) -> date | None:
        for pattern in DATE_PATTERNS:
            for match in pattern.finditer(text):
                parsed = build_date(*match.groups())
                if parsed is not None:
                    return parsed
        return None

    def extract_vendor(self, text: str) -> str:
        """Extract the vendor name.

        Tiers: legal-entity prefix or all-caps line, then the first five
        meaningful lines, then a "fournisseur:"/"supplier:" label. Falls back
        to the first line, then to UNKNOWN_VENDOR.
        """
        lines = _split_lines(text)

        # Tier 1: known commercial patterns
        for pattern in (LEGAL_ENTITY_PATTERN, UPPERCASE_NAME_PATTERN):
            for match in pattern.finditer(text):
                candidate = match.group(1).strip()
                if 2 < len(candidate) < 50 and not METADATA_PATTERN.search(candidate):
                    vendor = clean_vendor_name(candidate)
                    if vendor:
                        return vendor

        # Tier 2: leading lines that are neither metadata nor an address
        for line in lines[:5]:
            if METADATA_PATTERN.search(line) or ADDRESS_PATTERN.search(line):
                continue
            if 3 <= len(line) <= 40:
                vendor = clean_vendor_name(line)
                if vendor:
                    return vendor

        # Tier 3: explicit supplier label
        match = SUPPLIER_LABEL_PATTERN.search(text)
        if match:
            vendor = clean_vendor_name(re.split(r"[;,]", match.group(1))[0])
            if vendor:
                return vendor

        if lines and 3 <= len(lines[0]) <= 50:
            vendor = clean_vendor_name(lines[0])
            if vendor:
                return vendor

        return UNKNOWN_VENDOR

    def extract_invoice_number(self, text: str) -> str:
        """Extract the invoice number; tokens without a digit are ignored."""
        for pattern in INVOICE_NUMBER_PATTERNS:
            for match in pattern.finditer(text):
                token = match.group(1).strip("-")
                if any(ch.isdigit() for ch in token):
                    return token
        return ""


REMOTE_AMOUNT_PATTERNS = [
    re.compile(rf"(?<![\w-])total[\s:]*(?:ttc|à payer)?[\s:]*{NUMBER}\s*€"),
    re.compile(rf"net\s+à\s+payer[\s:]*{NUMBER}\s*€"),
    re.compile(rf"montant\s+total[\s:]*{NUMBER}\s*€"),
    re.compile(rf"(?<![\w-])total\s+ttc[\s:]*{NUMBER}"),
]
REMOTE_TAX_PATTERNS = [
    re.compile(rf"montant\s+tva[\s:]*{NUMBER}\s*€"),
    re.compile(rf"\btva\b[\s:]*{NUMBER}\s*€"),
]
REMOTE_DATE_PATTERNS = [
    re.compile(r"date[\s:]*(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})(?!\d)", re.IGNORECASE),
    re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})(?!\d)"),
]
REMOTE_VENDOR_SKIP_PATTERN = re.compile(r"facture|date|total|tva|n°|siret", re.IGNORECASE)


class RemoteTextParser:
    """Stricter patterns for the cleaner text returned by the hosted engine.

    Amounts must carry a currency sign, so a match is more reliable than the
    general parser's. Only fields that were found appear in the result.
    """

    def parse_partial(self, raw_text: str) -> dict[str, Any]:
        text = raw_text.replace("\r\n", "\n")
        lowered = text.lower()
        result: dict[str, Any] = {}

        for pattern in REMOTE_AMOUNT_PATTERNS:
            match = pattern.search(lowered)
            if match:
                amount = to_amount(match.group(1))
                if is_plausible_amount(amount):
                    result["amount"] = amount
                    break

        for pattern in REMOTE_TAX_PATTERNS:
            match = pattern.search(lowered)
            if match:
                result["tax_amount"] = to_amount(match.group(1))
                break

        for pattern in INVOICE_NUMBER_PATTERNS:
            match = pattern.search(text)
            if match and any(ch.isdigit() for ch in match.group(1)):
                result["invoice_number"] = match.group(1).strip("-")
                break

        for pattern in REMOTE_DATE_PATTERNS:
            match = pattern.search(text)
            if match:
                parsed = build_date(*match.groups())
                if parsed is not None:
                    result["date"] = parsed
                    break

        for line in [line for line in _split_lines(text) if len(line) > 2][:5]:
            if not REMOTE_VENDOR_SKIP_PATTERN.search(line) and 3 <= len(line) <= 50:
                vendor = clean_vendor_name(line)
                if vendor:
                    result["vendor"] = vendor
                    break

        logger.debug(f"Remote-optimized fields: {sorted(result)}")
        return result

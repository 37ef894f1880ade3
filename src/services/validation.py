"""
Row validation rules.

Validation never raises: every problem becomes a FieldError and the caller
decides whether the row is skipped, errored or processed.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional
from ..models.documents import DOC_NUMBER_MAX_LENGTH
from ..models.rows import FieldError, ProcessingSettings, Row

CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")

BILL_NUMBER_REQUIRED = "Bill number is required"
BILL_NUMBER_TOO_LONG = f"Bill number must be at most {DOC_NUMBER_MAX_LENGTH} characters"

# Fields that make a row "non-empty". AttachmentFiles, Location and Currency
# alone do not describe a bill line.
TRACKED_FIELDS = (
    "bill_number",
    "project_name",
    "customer_name",
    "vendor_name",
    "bill_date",
    "bill_line_description",
    "bill_line_amount",
    "category",
    "invoice_date",
    "po_number",
    "point_of_contact",
)

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_LOOSE_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def is_empty_row(row: Row) -> bool:
    return not any(getattr(row, name).strip() for name in TRACKED_FIELDS)


def _make_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: str, strict: bool = False) -> Optional[date]:
    """
    Parse a bill/invoice date.

    ISO ``YYYY-MM-DD`` (optionally followed by a time) is always accepted.
    In lenient mode ``MM/DD/YYYY`` is tried next, then ``DD/MM/YYYY`` when
    the month/day reading is impossible, and finally unpadded ``YYYY-M-D``.

    Returns:
        The parsed date, or None when the value cannot be read
    """
    text = (value or "").strip()
    if not text:
        return None

    match = _ISO_DATE.match(text)
    if match:
        parsed = _make_date(*(int(part) for part in match.groups()))
        if parsed is not None:
            return parsed

    if strict:
        return None

    match = _SLASH_DATE.match(text)
    if match:
        first, second, year = (int(part) for part in match.groups())
        return _make_date(year, first, second) or _make_date(year, second, first)

    match = _LOOSE_ISO_DATE.match(text)
    if match:
        return _make_date(*(int(part) for part in match.groups()))

    return None


def parse_amount(value: str) -> Optional[Decimal]:
    """Parse a non-negative line amount after stripping ``$`` and thousands separators."""
    cleaned = (value or "").replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def resolve_currency(row: Row, settings: ProcessingSettings) -> str:
    """Row currency if given, otherwise the batch default."""
    return row.currency.strip() or settings.default_currency


def validate_row(row: Row, row_index: int, settings: ProcessingSettings) -> list[FieldError]:
    errors: list[FieldError] = []

    if is_empty_row(row):
        return errors

    def add(field: str, message: str) -> None:
        errors.append(FieldError(row=row_index, field=field, message=message))

    bill_number = row.bill_number.strip()
    if not bill_number:
        add("BillNumber", BILL_NUMBER_REQUIRED)
    elif len(bill_number) > DOC_NUMBER_MAX_LENGTH:
        add("BillNumber", BILL_NUMBER_TOO_LONG)
    if not row.project_name.strip():
        add("ProjectName", "Project name is required")
    if not row.customer_name.strip():
        add("CustomerName", "Customer name is required")
    if not row.vendor_name.strip():
        add("VendorName", "Vendor name is required")

    if parse_date(row.bill_date, settings.strict_date_parsing) is None:
        add("BillDate", "Invalid bill date format")
    if parse_date(row.invoice_date, settings.strict_date_parsing) is None:
        add("InvoiceDate", "Invalid invoice date format")

    if parse_amount(row.bill_line_amount) is None:
        add("BillLineAmount", "Invalid amount format")

    if not CURRENCY_PATTERN.fullmatch(resolve_currency(row, settings)):
        add("Currency", "Invalid currency code (must be 3-letter ISO code)")

    return errors


def format_field_errors(errors: list[FieldError]) -> str:
    return "; ".join(str(e) for e in errors)

from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from ..core.config import settings as app_settings


class Row(BaseModel):
    """One mapped input record. Every field is a raw, untrusted string."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    bill_number: str = Field("", alias="BillNumber")
    location: str = Field("", alias="Location")
    project_name: str = Field("", alias="ProjectName")
    customer_name: str = Field("", alias="CustomerName")
    vendor_name: str = Field("", alias="VendorName")
    bill_date: str = Field("", alias="BillDate")
    bill_line_description: str = Field("", alias="BillLineDescription")
    bill_line_amount: str = Field("", alias="BillLineAmount")
    currency: str = Field("", alias="Currency")
    invoice_date: str = Field("", alias="InvoiceDate")
    po_number: str = Field("", alias="PONumber")
    point_of_contact: str = Field("", alias="PointOfContact")
    attachment_files: str = Field("", alias="AttachmentFiles")  # semicolon-separated filenames
    category: str = Field("", alias="Category")  # class name for the bill line

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_str(cls, value: Any) -> str:
        # Spreadsheet exports hand us None/numbers for blank or numeric cells
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class ProcessingSettings(BaseModel):
    """Per-batch settings; frozen for the duration of one run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    auto_create: bool = Field(True, alias="autoCreate")
    also_attach_to_invoice: bool = Field(False, alias="alsoAttachToInvoice")
    from_billable_expenses: bool = Field(True, alias="fromBillableExpenses")
    default_currency: str = Field(default_factory=lambda: app_settings.default_currency, alias="defaultCurrency")
    strict_date_parsing: bool = Field(False, alias="strictDateParsing")
    environment: Literal["sandbox", "production"] = Field(
        default_factory=lambda: app_settings.qbo_environment, alias="environment"
    )


class FieldError(BaseModel):
    """A single field-level validation problem for one row."""

    row: int
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

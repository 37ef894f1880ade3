from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProcessingStatus(str, Enum):
    """Terminal status of one input row."""

    SUCCESS = "success"
    ERROR = "error"
    NEEDS_REVIEW = "needs_review"  # missing Customer/Vendor with auto-create off
    SKIPPED = "skipped"  # empty row or bill already processed


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AttachmentResult(CamelModel):
    filename: str
    status: Literal["success", "error"]
    attachable_id: Optional[str] = None
    error: Optional[str] = None


class ProcessingResult(CamelModel):
    row_index: int
    status: ProcessingStatus
    customer_id: Optional[str] = None
    sub_customer_id: Optional[str] = None
    vendor_id: Optional[str] = None
    bill_id: Optional[str] = None
    invoice_id: Optional[str] = None
    attachment_results: Optional[list[AttachmentResult]] = None
    error: Optional[str] = None
    message: Optional[str] = None
    idempotency_key: Optional[str] = None


class DryRunResult(CamelModel):
    row_index: int
    actions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class RowValidationSummary(CamelModel):
    """Validation errors of one row, as returned by the validate pass."""

    row_index: int
    errors: list[str]


@dataclass(frozen=True)
class UploadedFile:
    """An attachment payload handed in by the upload layer."""

    name: str
    data: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

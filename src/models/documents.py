"""
QuickBooks Online document shapes.

Each document is a closed pydantic model validated when it is built, so a
malformed Bill or Invoice fails inside the pipeline instead of at the API
call. ``to_qbo()`` renders the JSON body the QBO REST API expects
(PascalCase keys, absent optionals omitted).
"""

from datetime import date
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# QBO rejects longer DocNumber values
DOC_NUMBER_MAX_LENGTH = 21


class QBOModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    def to_qbo(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Ref(QBOModel):
    value: str = Field(min_length=1)
    name: Optional[str] = None


class AccountBasedExpenseLineDetail(QBOModel):
    account_ref: Ref = Field(alias="AccountRef")
    customer_ref: Optional[Ref] = Field(default=None, alias="CustomerRef")
    billable_status: Optional[Literal["Billable", "NotBillable", "HasBeenBilled"]] = Field(
        default=None, alias="BillableStatus"
    )
    class_ref: Optional[Ref] = Field(default=None, alias="ClassRef")


class BillLine(QBOModel):
    detail_type: Literal["AccountBasedExpenseLineDetail"] = Field(
        default="AccountBasedExpenseLineDetail", alias="DetailType"
    )
    amount: Decimal = Field(ge=0, alias="Amount")
    description: Optional[str] = Field(default=None, alias="Description")
    detail: AccountBasedExpenseLineDetail = Field(alias="AccountBasedExpenseLineDetail")

    @field_serializer("amount")
    def _amount_as_number(self, amount: Decimal) -> float:
        return float(amount)


class Bill(QBOModel):
    doc_number: Optional[str] = Field(default=None, alias="DocNumber", max_length=DOC_NUMBER_MAX_LENGTH)
    vendor_ref: Ref = Field(alias="VendorRef")
    txn_date: date = Field(alias="TxnDate")
    lines: list[BillLine] = Field(alias="Line", min_length=1)
    department_ref: Optional[Ref] = Field(default=None, alias="DepartmentRef")
    currency_ref: Optional[Ref] = Field(default=None, alias="CurrencyRef")

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))


class SalesItemLineDetail(QBOModel):
    item_ref: Ref = Field(alias="ItemRef")


class InvoiceLine(QBOModel):
    detail_type: Literal["SalesItemLineDetail"] = Field(default="SalesItemLineDetail", alias="DetailType")
    amount: Decimal = Field(default=Decimal("0"), ge=0, alias="Amount")
    detail: SalesItemLineDetail = Field(alias="SalesItemLineDetail")

    @field_serializer("amount")
    def _amount_as_number(self, amount: Decimal) -> float:
        return float(amount)


class CustomField(QBOModel):
    definition_id: str = Field(alias="DefinitionId")
    name: str = Field(alias="Name")
    type: Literal["StringType"] = Field(default="StringType", alias="Type")
    string_value: Optional[str] = Field(default=None, alias="StringValue")


class Invoice(QBOModel):
    customer_ref: Ref = Field(alias="CustomerRef")
    txn_date: date = Field(alias="TxnDate")
    lines: list[InvoiceLine] = Field(alias="Line", min_length=1)
    custom_fields: Optional[list[CustomField]] = Field(default=None, alias="CustomField")
    po_number: Optional[str] = Field(default=None, alias="PONumber")
    currency_ref: Optional[Ref] = Field(default=None, alias="CurrencyRef")


class InvoiceRequest(BaseModel):
    """Arguments for creating an invoice from a customer's billable expenses."""

    model_config = ConfigDict(frozen=True)

    customer_id: str = Field(min_length=1)
    invoice_date: date
    po_number: Optional[str] = None
    point_of_contact: Optional[str] = None
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Z]{3}$")

    @field_validator("po_number", "point_of_contact", "currency", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

from datetime import date
from typing import Optional
from ..core.config import settings as app_settings
from ..models.accounting import ResolvedEntity
from ..models.documents import (
    AccountBasedExpenseLineDetail,
    Bill,
    BillLine,
    CustomField,
    Invoice,
    InvoiceLine,
    InvoiceRequest,
    Ref,
    SalesItemLineDetail,
)
from ..models.rows import ProcessingSettings, Row
from .grouping import BillGroup
from .validation import parse_amount, parse_date, resolve_currency

POINT_OF_CONTACT_FIELD = "Point of Contact"


class DocumentBuildError(ValueError):
    """Row data that passed validation could not be turned into a document."""


class DocumentBuilder:
    """Assembles a multi-line Bill and its companion invoice request for one bill group."""

    def __init__(self, settings: ProcessingSettings):
        self.settings = settings

    def _date(self, value: str, field: str) -> date:
        parsed = parse_date(value, self.settings.strict_date_parsing)
        if parsed is None:
            raise DocumentBuildError(f"Invalid {field}: {value!r}")
        return parsed

    def build_line(
        self,
        row: Row,
        account_id: str,
        sub_customer: ResolvedEntity,
        class_entity: Optional[ResolvedEntity] = None,
    ) -> BillLine:
        amount = parse_amount(row.bill_line_amount)
        if amount is None:
            raise DocumentBuildError(f"Invalid amount: {row.bill_line_amount!r}")

        detail = AccountBasedExpenseLineDetail(
            account_ref=Ref(value=account_id),
            customer_ref=Ref(value=sub_customer.id),
            billable_status="Billable",
            class_ref=Ref(value=class_entity.id) if class_entity else None,
        )
        return BillLine(
            amount=amount,
            description=row.bill_line_description or None,
            detail=detail,
        )

    def build_bill(
        self,
        group: BillGroup,
        vendor: ResolvedEntity,
        lines: list[BillLine],
        department: Optional[ResolvedEntity] = None,
    ) -> Bill:
        first = group.first_row
        return Bill(
            doc_number=group.bill_number,
            vendor_ref=Ref(value=vendor.id),
            txn_date=self._date(first.bill_date, "bill date"),
            lines=lines,
            department_ref=Ref(value=department.id) if department else None,
            currency_ref=Ref(value=resolve_currency(first, self.settings)),
        )

    def build_invoice_request(self, group: BillGroup, sub_customer: ResolvedEntity) -> InvoiceRequest:
        """Invoice for the first row's project, dated by the first row's invoice date."""
        first = group.first_row
        return InvoiceRequest(
            customer_id=sub_customer.id,
            invoice_date=self._date(first.invoice_date, "invoice date"),
            po_number=first.po_number,
            point_of_contact=first.point_of_contact,
            currency=resolve_currency(first, self.settings),
        )


def invoice_from_billable_expenses(
    customer_id: str,
    invoice_date: date,
    po_number: Optional[str] = None,
    point_of_contact: Optional[str] = None,
    currency: Optional[str] = None,
    item_id: Optional[str] = None,
    contact_field_id: Optional[str] = None,
) -> Invoice:
    """
    Render the Invoice document sent to QuickBooks.

    QBO fills billable expense lines in when the invoice is opened, so the
    document carries a single zero-amount service line.
    """
    request = InvoiceRequest(
        customer_id=customer_id,
        invoice_date=invoice_date,
        po_number=po_number,
        point_of_contact=point_of_contact,
        currency=currency,
    )

    custom_fields = None
    if request.point_of_contact:
        custom_fields = [
            CustomField(
                definition_id=contact_field_id or app_settings.qbo_point_of_contact_field_id,
                name=POINT_OF_CONTACT_FIELD,
                string_value=request.point_of_contact,
            )
        ]

    return Invoice(
        customer_ref=Ref(value=request.customer_id),
        txn_date=request.invoice_date,
        lines=[InvoiceLine(detail=SalesItemLineDetail(item_ref=Ref(value=item_id or app_settings.qbo_invoice_item_id)))],
        custom_fields=custom_fields,
        po_number=request.po_number,
        currency_ref=Ref(value=request.currency) if request.currency else None,
    )

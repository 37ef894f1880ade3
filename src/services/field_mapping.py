"""
CSV header to row field mapping.

Spreadsheets exported from different tools name the same column in many
ways ("Bill No", "bill_number", "DocNumber"). Headers are matched
case-insensitively against known variations; a user-supplied mapping is
then applied to raw records to produce Rows.
"""

from dataclasses import dataclass
from typing import Mapping
from ..models.rows import Row


@dataclass(frozen=True)
class FieldDefinition:
    key: str
    label: str
    required: bool


FIELD_DEFINITIONS = [
    FieldDefinition("BillNumber", "Bill Number", True),
    FieldDefinition("Location", "Location/Department", False),
    FieldDefinition("ProjectName", "Project Name", True),
    FieldDefinition("CustomerName", "Customer Name", True),
    FieldDefinition("VendorName", "Vendor Name", True),
    FieldDefinition("BillDate", "Bill Date", True),
    FieldDefinition("BillLineDescription", "Bill Line Description", True),
    FieldDefinition("BillLineAmount", "Bill Line Amount", True),
    FieldDefinition("Currency", "Currency", False),
    FieldDefinition("InvoiceDate", "Invoice Date", True),
    FieldDefinition("PONumber", "PO Number", False),
    FieldDefinition("PointOfContact", "Point of Contact", False),
    FieldDefinition("AttachmentFiles", "Attachment Files (semicolon-separated)", False),
    FieldDefinition("Category", "Category/Class", False),
]

# Lower-cased header variations accepted for each field
MAPPING_RULES: dict[str, tuple[str, ...]] = {
    "BillNumber": (
        "billnumber", "bill_number", "bill number", "bill_no", "billno", "bill no",
        "invoice_number", "invoicenumber", "docnumber", "doc_number",
    ),
    "Location": ("location", "department", "dept", "location/department", "location_department"),
    "ProjectName": (
        "projectname", "project_name", "project name", "project_number", "project number",
        "project_number:customer",
    ),
    "CustomerName": ("customername", "customer_name", "customer name", "customer"),
    "VendorName": ("vendorname", "vendor_name", "vendor name", "vendor"),
    "BillDate": ("billdate", "bill_date", "bill date"),
    "BillLineDescription": (
        "billlinedescription", "bill_line_description", "bill_description", "bill description",
        "description", "item_description_for invoice", "item description for invoice",
        "item_description", "item description",
    ),
    "BillLineAmount": ("billlineamount", "bill_line_amount", "bill_amount", "bill amount", "line_amount", "amount"),
    "Currency": ("currency",),
    "InvoiceDate": ("invoicedate", "invoice_date", "invoice date"),
    "PONumber": ("ponumber", "po_number", "po number", "po"),
    "PointOfContact": ("pointofcontact", "point_of_contact", "point of contact", "contact"),
    "AttachmentFiles": ("attachmentfiles", "attachment_files", "attachment files", "attachment_url", "attachments"),
    "Category": ("category", "class", "category/class"),
}


def suggest_mapping(headers: list[str]) -> dict[str, str]:
    """
    Auto-map CSV headers to row fields.

    Returns:
        ``{field_key: header}`` for every field with a matching header. The
        first matching header wins.
    """
    mapping: dict[str, str] = {}
    for definition in FIELD_DEFINITIONS:
        variations = MAPPING_RULES.get(definition.key, ())
        for header in headers:
            if header.strip().lower() in variations:
                mapping[definition.key] = header
                break
    return mapping


def missing_required(mapping: Mapping[str, str]) -> list[str]:
    """Keys of required fields that have no column assigned."""
    return [d.key for d in FIELD_DEFINITIONS if d.required and not mapping.get(d.key)]


def apply_mapping(record: Mapping[str, object], mapping: Mapping[str, str]) -> Row:
    """Build a Row from one raw CSV record using ``{field_key: header}``."""
    values = {key: record.get(header) for key, header in mapping.items() if header}
    return Row.model_validate(values)

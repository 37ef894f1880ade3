"""
In-memory accounting gateway (for demo mode and tests).
In production, use the QuickBooks Online gateway.
"""
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional
from ...models.accounting import ResolvedEntity
from ...models.documents import Bill, Invoice
from ...models.results import UploadedFile
from ..document_builder import invoice_from_billable_expenses
from .gateway_base import AccountingGateway, AttachableEntityType


class InMemoryAccountingGateway(AccountingGateway):
    def __init__(self, expense_account_id: str = "1"):
        self.expense_account_id = expense_account_id
        self.customers: Dict[str, dict] = {}
        self.vendors: Dict[str, dict] = {}
        self.departments: Dict[str, dict] = {}
        self.classes: Dict[str, dict] = {}
        self.bills: Dict[str, Bill] = {}
        self.invoices: Dict[str, Invoice] = {}
        self.attachments: List[dict] = []
        self.calls: List[str] = []
        self._failures: Dict[str, List[Exception]] = defaultdict(list)
        self._next_id = 100

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def _record(self, operation: str) -> None:
        """Log the call and raise the next queued failure for it, if any."""
        self.calls.append(operation)
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    def fail_next(self, operation: str, *errors: Exception) -> None:
        """Queue errors to be raised by the next calls to an operation."""
        self._failures[operation].extend(errors)

    def call_count(self, operation: str) -> int:
        return self.calls.count(operation)

    def add_customer(self, display_name: str, parent_id: Optional[str] = None) -> ResolvedEntity:
        customer_id = self._new_id()
        self.customers[display_name] = {"Id": customer_id, "DisplayName": display_name, "ParentId": parent_id, "Job": parent_id is not None}
        return ResolvedEntity(id=customer_id, name=display_name)

    def add_vendor(self, display_name: str) -> ResolvedEntity:
        vendor_id = self._new_id()
        self.vendors[display_name] = {"Id": vendor_id, "DisplayName": display_name}
        return ResolvedEntity(id=vendor_id, name=display_name)

    def add_department(self, name: str) -> ResolvedEntity:
        department_id = self._new_id()
        self.departments[name] = {"Id": department_id, "Name": name}
        return ResolvedEntity(id=department_id, name=name)

    def add_class(self, name: str) -> ResolvedEntity:
        class_id = self._new_id()
        self.classes[name] = {"Id": class_id, "Name": name}
        return ResolvedEntity(id=class_id, name=name)

    @staticmethod
    def _lookup(store: Dict[str, dict], name: str, name_key: str) -> Optional[ResolvedEntity]:
        item = store.get(name)
        if item is None:
            return None
        return ResolvedEntity(id=item["Id"], name=item[name_key])

    async def find_customer_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        self._record("find_customer_by_name")
        return self._lookup(self.customers, display_name, "DisplayName")

    async def create_customer(self, display_name: str, parent_id: Optional[str] = None) -> ResolvedEntity:
        self._record("create_customer")
        return self.add_customer(display_name, parent_id)

    async def find_vendor_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        self._record("find_vendor_by_name")
        return self._lookup(self.vendors, display_name, "DisplayName")

    async def create_vendor(self, display_name: str) -> ResolvedEntity:
        self._record("create_vendor")
        return self.add_vendor(display_name)

    async def find_department_by_name(self, name: str) -> Optional[ResolvedEntity]:
        self._record("find_department_by_name")
        return self._lookup(self.departments, name, "Name")

    async def find_class_by_name(self, name: str) -> Optional[ResolvedEntity]:
        self._record("find_class_by_name")
        return self._lookup(self.classes, name, "Name")

    async def get_default_expense_account(self) -> str:
        self._record("get_default_expense_account")
        return self.expense_account_id

    async def create_bill(self, bill: Bill) -> ResolvedEntity:
        self._record("create_bill")
        bill_id = self._new_id()
        self.bills[bill_id] = bill
        return ResolvedEntity(id=bill_id, name=bill.doc_number or "")

    async def create_invoice_from_billable_expenses(
        self,
        customer_id: str,
        invoice_date: date,
        po_number: Optional[str] = None,
        point_of_contact: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> ResolvedEntity:
        self._record("create_invoice_from_billable_expenses")
        invoice = invoice_from_billable_expenses(customer_id, invoice_date, po_number, point_of_contact, currency)
        invoice_id = self._new_id()
        self.invoices[invoice_id] = invoice
        return ResolvedEntity(id=invoice_id, name=invoice_id)

    async def upload_attachment(
        self, file: UploadedFile, entity_type: AttachableEntityType, entity_id: str
    ) -> ResolvedEntity:
        self._record("upload_attachment")
        attachable_id = self._new_id()
        self.attachments.append({
            "id": attachable_id,
            "filename": file.name,
            "size": file.size,
            "entity_type": entity_type,
            "entity_id": entity_id,
        })
        return ResolvedEntity(id=attachable_id, name=file.name)

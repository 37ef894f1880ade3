"""
Abstract base class for accounting system gateways.

Defines the operations the batch pipeline needs from the external
double-entry system, enabling dependency injection and easy swapping of
backends (QuickBooks Online REST, in-memory for demo/tests).
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Literal, Optional
from ...models.accounting import ResolvedEntity
from ...models.documents import Bill
from ...models.results import UploadedFile

AttachableEntityType = Literal["Bill", "Invoice"]


class AccountingGateway(ABC):
    """
    Async adapter interface for the accounting system.

    Every method may raise ExternalAPIError (or its RateLimitError subtype).
    Lookups are exact, case-sensitive name matches.
    """

    @abstractmethod
    async def find_customer_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        """
        Find a customer (top-level or sub-customer) by display name.

        Returns:
            The customer, or None if no customer has that exact name
        """
        pass

    @abstractmethod
    async def create_customer(self, display_name: str, parent_id: Optional[str] = None) -> ResolvedEntity:
        """
        Create a customer.

        Args:
            display_name: Customer display name
            parent_id: Parent customer id; when given, the new customer is a
                sub-customer flagged as a job/project

        Returns:
            The created customer
        """
        pass

    @abstractmethod
    async def find_vendor_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        pass

    @abstractmethod
    async def create_vendor(self, display_name: str) -> ResolvedEntity:
        pass

    @abstractmethod
    async def find_department_by_name(self, name: str) -> Optional[ResolvedEntity]:
        pass

    @abstractmethod
    async def find_class_by_name(self, name: str) -> Optional[ResolvedEntity]:
        pass

    @abstractmethod
    async def get_default_expense_account(self) -> str:
        """Return the id of the account used for bill expense lines."""
        pass

    @abstractmethod
    async def create_bill(self, bill: Bill) -> ResolvedEntity:
        """
        Submit a bill.

        Returns:
            The created bill (name is its document number)
        """
        pass

    @abstractmethod
    async def create_invoice_from_billable_expenses(
        self,
        customer_id: str,
        invoice_date: date,
        po_number: Optional[str] = None,
        point_of_contact: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> ResolvedEntity:
        """
        Create an invoice that re-bills the customer's billable expenses.

        Args:
            customer_id: Customer (usually a project sub-customer) to invoice
            invoice_date: Transaction date of the invoice
            po_number: Optional purchase order number
            point_of_contact: Optional value for the "Point of Contact" custom field
            currency: Optional 3-letter currency code

        Returns:
            The created invoice
        """
        pass

    @abstractmethod
    async def upload_attachment(
        self, file: UploadedFile, entity_type: AttachableEntityType, entity_id: str
    ) -> ResolvedEntity:
        """
        Upload a file and link it to a bill or invoice.

        Returns:
            The created attachable (name is the file name)
        """
        pass

    async def aclose(self) -> None:
        """Release any network resources held by the gateway."""
        return None

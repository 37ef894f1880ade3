"""
QuickBooks Online gateway over the v3 REST API.

Uses an httpx AsyncClient with an already-refreshed OAuth2 bearer token.
Token issuance and refresh happen upstream and are out of scope here.
"""

import json
from datetime import date
from typing import Optional
import httpx
from loguru import logger
from ...core.config import settings
from ...core.errors import NOT_FOUND_CODE, RATE_LIMIT_CODE, ExternalAPIError, RateLimitError, fault_errors
from ...models.accounting import QBOCredentials, ResolvedEntity
from ...models.documents import Bill
from ...models.results import UploadedFile
from ..document_builder import invoice_from_billable_expenses
from .gateway_base import AccountingGateway, AttachableEntityType


def escape_query_value(value: str) -> str:
    """Escape a literal for a QBO query ``where`` clause."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _fault_message(fault: dict, status_code: int) -> str:
    errors = fault_errors(fault)
    if errors:
        first = errors[0]
        message = first.get("Message") or first.get("message") or ""
        detail = first.get("Detail") or first.get("detail") or ""
        if message and detail and detail != message:
            return f"{message}: {detail}"
        if message or detail:
            return message or detail
    return f"QuickBooks API error (HTTP {status_code})"


class QuickBooksGateway(AccountingGateway):
    def __init__(
        self,
        credentials: QBOCredentials,
        client: Optional[httpx.AsyncClient] = None,
        minor_version: Optional[str] = None,
    ):
        base_url = (
            settings.qbo_sandbox_base_url
            if credentials.environment == "sandbox"
            else settings.qbo_production_base_url
        )
        self.company_url = f"{base_url.rstrip('/')}/v3/company/{credentials.realm_id}"
        self.minor_version = minor_version or settings.qbo_minor_version
        self._headers = {
            "Authorization": f"Bearer {credentials.access_token}",
            "Accept": "application/json",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.qbo_request_timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        params = {"minorversion": self.minor_version, **kwargs.pop("params", {})}
        url = f"{self.company_url}{path}"
        try:
            response = await self._client.request(method, url, params=params, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("QuickBooks request failed", method=method, path=path, error=str(e))
            raise ExternalAPIError(f"QuickBooks request failed: {e}") from e
        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> dict:
        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        fault = payload.get("Fault") or payload.get("fault")
        status = response.status_code

        if status == 429:
            raise RateLimitError(_fault_message(fault or {}, status), status_code=status)

        if status >= 400 or fault:
            fault = fault or {}
            message = _fault_message(fault, status)
            errors = fault_errors(fault)
            code = str(errors[0].get("code")) if errors and errors[0].get("code") is not None else None
            if code == RATE_LIMIT_CODE:
                raise RateLimitError(message, fault=fault, status_code=status)
            logger.warning("QuickBooks fault", status=status, code=code, detail=message)
            raise ExternalAPIError(message, fault=fault, status_code=status)

        return payload

    async def _query(self, statement: str) -> dict:
        payload = await self._request("GET", "/query", params={"query": statement})
        return payload.get("QueryResponse") or {}

    async def _find_one(self, entity: str, field: str, value: str) -> Optional[dict]:
        statement = f"select * from {entity} where {field} = '{escape_query_value(value)}'"
        try:
            response = await self._query(statement)
        except ExternalAPIError as e:
            if e.code == NOT_FOUND_CODE:
                return None
            raise
        items = response.get(entity) or []
        return items[0] if items else None

    async def find_customer_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        item = await self._find_one("Customer", "DisplayName", display_name)
        return ResolvedEntity(id=str(item["Id"]), name=item.get("DisplayName", display_name)) if item else None

    async def create_customer(self, display_name: str, parent_id: Optional[str] = None) -> ResolvedEntity:
        body: dict = {"DisplayName": display_name, "Job": parent_id is not None}
        if parent_id:
            body["ParentRef"] = {"value": parent_id}
        payload = await self._request("POST", "/customer", json=body)
        customer = payload["Customer"]
        logger.info("Created QuickBooks customer", customer_id=customer["Id"], job=body["Job"])
        return ResolvedEntity(id=str(customer["Id"]), name=customer.get("DisplayName", display_name))

    async def find_vendor_by_name(self, display_name: str) -> Optional[ResolvedEntity]:
        item = await self._find_one("Vendor", "DisplayName", display_name)
        return ResolvedEntity(id=str(item["Id"]), name=item.get("DisplayName", display_name)) if item else None

    async def create_vendor(self, display_name: str) -> ResolvedEntity:
        payload = await self._request("POST", "/vendor", json={"DisplayName": display_name})
        vendor = payload["Vendor"]
        logger.info("Created QuickBooks vendor", vendor_id=vendor["Id"])
        return ResolvedEntity(id=str(vendor["Id"]), name=vendor.get("DisplayName", display_name))

    async def find_department_by_name(self, name: str) -> Optional[ResolvedEntity]:
        item = await self._find_one("Department", "Name", name)
        return ResolvedEntity(id=str(item["Id"]), name=item.get("Name", name)) if item else None

    async def find_class_by_name(self, name: str) -> Optional[ResolvedEntity]:
        item = await self._find_one("Class", "Name", name)
        return ResolvedEntity(id=str(item["Id"]), name=item.get("Name", name)) if item else None

    async def get_default_expense_account(self) -> str:
        response = await self._query("select * from Account where AccountType = 'Expense'")
        accounts = response.get("Account") or []
        if not accounts:
            logger.warning(
                "No expense account found, using fallback",
                account_id=settings.qbo_fallback_expense_account_id,
            )
            return settings.qbo_fallback_expense_account_id
        return str(accounts[0]["Id"])

    async def create_bill(self, bill: Bill) -> ResolvedEntity:
        payload = await self._request("POST", "/bill", json=bill.to_qbo())
        created = payload["Bill"]
        return ResolvedEntity(id=str(created["Id"]), name=created.get("DocNumber") or bill.doc_number or "")

    async def create_invoice_from_billable_expenses(
        self,
        customer_id: str,
        invoice_date: date,
        po_number: Optional[str] = None,
        point_of_contact: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> ResolvedEntity:
        invoice = invoice_from_billable_expenses(customer_id, invoice_date, po_number, point_of_contact, currency)
        payload = await self._request("POST", "/invoice", json=invoice.to_qbo())
        created = payload["Invoice"]
        return ResolvedEntity(id=str(created["Id"]), name=created.get("DocNumber") or "")

    async def upload_attachment(
        self, file: UploadedFile, entity_type: AttachableEntityType, entity_id: str
    ) -> ResolvedEntity:
        metadata = {
            "FileName": file.name,
            "ContentType": file.content_type,
            "AttachableRef": [{"EntityRef": {"type": entity_type, "value": entity_id}}],
        }
        files = {
            "file_metadata_01": ("attachment.json", json.dumps(metadata), "application/json"),
            "file_content_01": (file.name, file.data, file.content_type),
        }
        payload = await self._request("POST", "/upload", files=files)

        responses = payload.get("AttachableResponse") or []
        if not responses:
            raise ExternalAPIError(f"Upload of {file.name} returned no attachable")
        first = responses[0]
        if first.get("Fault"):
            fault = first["Fault"]
            raise ExternalAPIError(_fault_message(fault, 400), fault=fault, status_code=400)
        attachable = first["Attachable"]
        return ResolvedEntity(id=str(attachable["Id"]), name=attachable.get("FileName", file.name))

"""
Tests for the QuickBooks Online REST gateway.

All HTTP traffic is mocked with respx; no QuickBooks company is needed.
"""

import asyncio
import json
import pytest
import respx
import httpx
from datetime import date
from src.core.errors import ExternalAPIError, RateLimitError
from src.models.accounting import QBOCredentials
from src.models.documents import AccountBasedExpenseLineDetail, Bill, BillLine, Ref
from src.models.results import UploadedFile
from src.services.accounting.qbo import QuickBooksGateway, escape_query_value

REALM = "4620816365"
COMPANY_PATH = f"/v3/company/{REALM}"
CREDENTIALS = QBOCredentials(accessToken="token-abc", realmId=REALM, environment="sandbox")


def _run(operation):
    """Run one gateway coroutine against a fresh gateway"""

    async def runner():
        gateway = QuickBooksGateway(CREDENTIALS)
        try:
            return await operation(gateway)
        finally:
            await gateway.aclose()

    return asyncio.run(runner())


def _fault(code, message="Error", detail=None):
    error = {"Message": message, "code": code}
    if detail:
        error["Detail"] = detail
    return {"Fault": {"Error": [error], "type": "ValidationFault"}}


@respx.mock
def test_find_customer_sends_query_with_auth_and_minor_version():
    route = respx.get(path=f"{COMPANY_PATH}/query").mock(
        return_value=httpx.Response(200, json={"QueryResponse": {"Customer": [{"Id": "58", "DisplayName": "Acme"}]}})
    )

    customer = _run(lambda g: g.find_customer_by_name("Acme"))

    assert customer.id == "58"
    assert customer.name == "Acme"
    request = route.calls.last.request
    assert request.url.host == "sandbox-quickbooks.api.intuit.com"
    assert request.url.params["query"] == "select * from Customer where DisplayName = 'Acme'"
    assert request.url.params["minorversion"] == "70"
    assert request.headers["Authorization"] == "Bearer token-abc"


@respx.mock
def test_find_returns_none_for_empty_query_response():
    respx.get(path=f"{COMPANY_PATH}/query").mock(return_value=httpx.Response(200, json={"QueryResponse": {}}))
    assert _run(lambda g: g.find_vendor_by_name("Nobody")) is None


@respx.mock
def test_find_treats_not_found_fault_as_none():
    respx.get(path=f"{COMPANY_PATH}/query").mock(return_value=httpx.Response(400, json=_fault("500")))
    assert _run(lambda g: g.find_department_by_name("NYC")) is None


@respx.mock
def test_query_values_are_escaped():
    route = respx.get(path=f"{COMPANY_PATH}/query").mock(
        return_value=httpx.Response(200, json={"QueryResponse": {}})
    )

    _run(lambda g: g.find_class_by_name("O'Brien"))

    assert route.calls.last.request.url.params["query"] == "select * from Class where Name = 'O\\'Brien'"
    assert escape_query_value("a\\b") == "a\\\\b"


@respx.mock
def test_http_429_raises_rate_limit_error():
    respx.get(path=f"{COMPANY_PATH}/query").mock(return_value=httpx.Response(429, text="Too Many Requests"))

    with pytest.raises(RateLimitError) as exc_info:
        _run(lambda g: g.find_customer_by_name("Acme"))

    assert exc_info.value.code == "3200"


@respx.mock
def test_throttle_fault_code_raises_rate_limit_error():
    respx.post(path=f"{COMPANY_PATH}/vendor").mock(
        return_value=httpx.Response(400, json=_fault("3200", "message=ThrottleExceeded"))
    )

    with pytest.raises(RateLimitError):
        _run(lambda g: g.create_vendor("V"))


@respx.mock
def test_other_faults_raise_external_api_error_with_detail():
    respx.post(path=f"{COMPANY_PATH}/customer").mock(
        return_value=httpx.Response(
            400, json=_fault("6240", "Duplicate Name Exists Error", "The name supplied already exists.")
        )
    )

    with pytest.raises(ExternalAPIError) as exc_info:
        _run(lambda g: g.create_customer("Acme"))

    error = exc_info.value
    assert not isinstance(error, RateLimitError)
    assert error.code == "6240"
    assert error.status_code == 400
    assert error.message == "Duplicate Name Exists Error: The name supplied already exists."


@respx.mock
def test_create_sub_customer_sets_job_and_parent():
    route = respx.post(path=f"{COMPANY_PATH}/customer").mock(
        return_value=httpx.Response(200, json={"Customer": {"Id": "61", "DisplayName": "Project X"}})
    )

    project = _run(lambda g: g.create_customer("Project X", "58"))

    assert project.id == "61"
    assert json.loads(route.calls.last.request.content) == {
        "DisplayName": "Project X",
        "Job": True,
        "ParentRef": {"value": "58"},
    }


@respx.mock
def test_create_bill_posts_document_body():
    route = respx.post(path=f"{COMPANY_PATH}/bill").mock(
        return_value=httpx.Response(200, json={"Bill": {"Id": "145", "DocNumber": "B1"}})
    )
    bill = Bill(
        doc_number="B1",
        vendor_ref=Ref(value="56"),
        txn_date=date(2024, 1, 15),
        lines=[BillLine(amount=100, detail=AccountBasedExpenseLineDetail(account_ref=Ref(value="7")))],
    )

    created = _run(lambda g: g.create_bill(bill))

    assert created.id == "145"
    body = json.loads(route.calls.last.request.content)
    assert body["DocNumber"] == "B1"
    assert body["Line"][0]["Amount"] == 100.0


@respx.mock
def test_create_invoice_from_billable_expenses():
    route = respx.post(path=f"{COMPANY_PATH}/invoice").mock(
        return_value=httpx.Response(200, json={"Invoice": {"Id": "230"}})
    )

    invoice = _run(lambda g: g.create_invoice_from_billable_expenses("61", date(2024, 1, 20), "PO-1", None, "USD"))

    assert invoice.id == "230"
    body = json.loads(route.calls.last.request.content)
    assert body["CustomerRef"] == {"value": "61"}
    assert body["TxnDate"] == "2024-01-20"
    assert body["PONumber"] == "PO-1"
    assert "CustomField" not in body


@respx.mock
def test_expense_account_falls_back_when_none_found():
    respx.get(path=f"{COMPANY_PATH}/query").mock(return_value=httpx.Response(200, json={"QueryResponse": {}}))
    assert _run(lambda g: g.get_default_expense_account()) == "1"


@respx.mock
def test_expense_account_uses_first_match():
    respx.get(path=f"{COMPANY_PATH}/query").mock(
        return_value=httpx.Response(200, json={"QueryResponse": {"Account": [{"Id": "80"}, {"Id": "81"}]}})
    )
    assert _run(lambda g: g.get_default_expense_account()) == "80"


@respx.mock
def test_upload_attachment_sends_multipart_and_parses_attachable():
    route = respx.post(path=f"{COMPANY_PATH}/upload").mock(
        return_value=httpx.Response(
            200, json={"AttachableResponse": [{"Attachable": {"Id": "5000000000000012345", "FileName": "r.pdf"}}]}
        )
    )
    file = UploadedFile(name="r.pdf", data=b"%PDF-1.4", content_type="application/pdf")

    attachable = _run(lambda g: g.upload_attachment(file, "Bill", "145"))

    assert attachable.id == "5000000000000012345"
    request = route.calls.last.request
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'"EntityRef": {"type": "Bill", "value": "145"}' in request.content
    assert b"%PDF-1.4" in request.content


@respx.mock
def test_upload_attachment_fault_in_response():
    respx.post(path=f"{COMPANY_PATH}/upload").mock(
        return_value=httpx.Response(200, json={"AttachableResponse": [_fault("2010", "Unsupported file type")]})
    )
    file = UploadedFile(name="x.exe", data=b"MZ")

    with pytest.raises(ExternalAPIError) as exc_info:
        _run(lambda g: g.upload_attachment(file, "Bill", "145"))

    assert exc_info.value.message == "Unsupported file type"


@respx.mock
def test_production_environment_uses_production_host():
    route = respx.get(path=f"{COMPANY_PATH}/query").mock(
        return_value=httpx.Response(200, json={"QueryResponse": {}})
    )
    credentials = QBOCredentials(accessToken="t", realmId=REALM, environment="production")

    async def run():
        gateway = QuickBooksGateway(credentials)
        try:
            await gateway.find_vendor_by_name("V")
        finally:
            await gateway.aclose()

    asyncio.run(run())

    assert route.calls.last.request.url.host == "quickbooks.api.intuit.com"

from typing import Optional
from fastapi import Header, HTTPException, status
from pydantic import BaseModel, Field
from ..core.config import settings
from ..models.accounting import QBOCredentials
from ..models.results import CamelModel, DryRunResult, ProcessingResult, RowValidationSummary
from ..models.rows import ProcessingSettings, Row
from ..services.accounting.gateway_base import AccountingGateway
from ..services.accounting.in_memory import InMemoryAccountingGateway
from ..services.accounting.qbo import QuickBooksGateway

NOT_AUTHENTICATED = "Not authenticated"


class BatchRequest(BaseModel):
    """JSON body of /process/validate and /process/dry-run"""
    rows: list[Row]
    settings: ProcessingSettings = Field(default_factory=ProcessingSettings)


class ValidateResponse(CamelModel):
    valid: bool
    errors: list[RowValidationSummary]


class DryRunResponse(CamelModel):
    results: list[DryRunResult]


class ExecuteResponse(CamelModel):
    results: list[ProcessingResult]


class FieldMappingRequest(BaseModel):
    headers: list[str]


class FieldMappingResponse(CamelModel):
    mapping: dict[str, str]
    missing_required: list[str]


class AccessToken(BaseModel):
    """Bearer token and realm taken from request headers"""
    access_token: str
    realm_id: str


def get_access_token(
    authorization: Optional[str] = Header(None),
    x_qbo_realm_id: Optional[str] = Header(None),
) -> AccessToken:
    """
    Read the QuickBooks credential handed in by the caller.

    Token issuance and refresh happen upstream; the API only accepts an
    already-valid ``Authorization: Bearer`` token plus the company realm id.
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or not (x_qbo_realm_id or "").strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NOT_AUTHENTICATED)
    return AccessToken(access_token=token.strip(), realm_id=x_qbo_realm_id.strip())


# Demo mode keeps one in-memory company for the lifetime of the process
_in_memory_gateway: Optional[InMemoryAccountingGateway] = None


def get_in_memory_gateway() -> InMemoryAccountingGateway:
    global _in_memory_gateway
    if _in_memory_gateway is None:
        _in_memory_gateway = InMemoryAccountingGateway(expense_account_id=settings.qbo_fallback_expense_account_id)
    return _in_memory_gateway


def build_gateway(token: AccessToken, processing_settings: ProcessingSettings) -> AccountingGateway:
    """Gateway for one request: the in-memory company in demo mode, QuickBooks otherwise."""
    if settings.qbo_use_in_memory:
        return get_in_memory_gateway()
    credentials = QBOCredentials(
        access_token=token.access_token,
        realm_id=token.realm_id,
        environment=processing_settings.environment,
    )
    return QuickBooksGateway(credentials)

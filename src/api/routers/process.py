import json
from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from ..deps import (
    AccessToken,
    BatchRequest,
    DryRunResponse,
    ExecuteResponse,
    FieldMappingRequest,
    FieldMappingResponse,
    ValidateResponse,
    build_gateway,
    get_access_token,
)
from ...models.results import UploadedFile
from ...models.rows import ProcessingSettings, Row
from ...services.events.event_publisher import get_event_publisher
from ...services.field_mapping import missing_required, suggest_mapping
from ...services.orchestrator import ProcessingOrchestrator
from ...services.storage import create_idempotency_store

router = APIRouter(prefix="/process", tags=["process"])


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=400, detail=detail)


async def _read_batch(request: Request) -> BatchRequest:
    try:
        payload = await request.json()
    except ValueError:
        raise _bad_request("Request body must be JSON")
    try:
        return BatchRequest.model_validate(payload)
    except ValidationError as e:
        raise _bad_request(f"Invalid batch payload: {e.error_count()} error(s)")


def _parse_json_field(value, name: str):
    if not isinstance(value, str) or not value:
        raise _bad_request(f"Missing form field: {name}")
    try:
        return json.loads(value)
    except ValueError:
        raise _bad_request(f"Form field {name} is not valid JSON")


def _orchestrator(token: AccessToken, processing_settings: ProcessingSettings):
    gateway = build_gateway(token, processing_settings)
    orchestrator = ProcessingOrchestrator(
        gateway,
        processing_settings,
        idempotency_store=create_idempotency_store(),
        event_publisher=get_event_publisher(),
    )
    return gateway, orchestrator


@router.post("/validate", response_model=ValidateResponse)
async def validate(request: Request, token: AccessToken = Depends(get_access_token)):
    """
    Validate mapped rows without contacting QuickBooks.

    Returns only the rows that have errors, each as ``Field: message``.
    """
    batch = await _read_batch(request)
    gateway, orchestrator = _orchestrator(token, batch.settings)
    try:
        errors = orchestrator.validate(batch.rows)
    finally:
        await gateway.aclose()
    logger.info("Validation request processed", rows=len(batch.rows), invalid_rows=len(errors))
    return ValidateResponse(valid=not errors, errors=errors)


@router.post("/dry-run", response_model=DryRunResponse)
async def dry_run(request: Request, token: AccessToken = Depends(get_access_token)):
    """Describe, per row, what execute would create. No external calls are made."""
    batch = await _read_batch(request)
    gateway, orchestrator = _orchestrator(token, batch.settings)
    try:
        results = await orchestrator.dry_run(batch.rows)
    finally:
        await gateway.aclose()
    logger.info("Dry run processed", rows=len(batch.rows))
    return DryRunResponse(results=results)


@router.post("/execute", response_model=ExecuteResponse)
async def execute(request: Request, token: AccessToken = Depends(get_access_token)):
    """
    Create Bills, Invoices and attachments in QuickBooks.

    Accepts multipart/form-data with:
    - rows: JSON array of mapped rows
    - settings: JSON processing settings (optional)
    - file_*: any number of attachment uploads, matched by filename
    """
    form = await request.form()
    try:
        rows = [Row.model_validate(r) for r in _parse_json_field(form.get("rows"), "rows")]
        raw_settings = form.get("settings")
        processing_settings = (
            ProcessingSettings.model_validate(_parse_json_field(raw_settings, "settings"))
            if raw_settings
            else ProcessingSettings()
        )
    except (ValidationError, TypeError) as e:
        raise _bad_request(f"Invalid batch payload: {e}")

    files: dict[str, UploadedFile] = {}
    for key, value in form.multi_items():
        if key.startswith("file_") and isinstance(value, UploadFile) and value.filename:
            files[value.filename] = UploadedFile(
                name=value.filename,
                data=await value.read(),
                content_type=value.content_type or "application/octet-stream",
            )

    logger.info("Execute request received", rows=len(rows), files=len(files))
    gateway, orchestrator = _orchestrator(token, processing_settings)
    try:
        results = await orchestrator.execute(rows, files)
    except Exception as e:
        logger.exception("Processing failed")
        raise HTTPException(status_code=500, detail=str(e) or "Processing failed")
    finally:
        await gateway.aclose()
    return ExecuteResponse(results=results)


@router.post("/field-mapping", response_model=FieldMappingResponse)
async def field_mapping(req: FieldMappingRequest):
    """Suggest a column mapping for uploaded CSV headers."""
    mapping = suggest_mapping(req.headers)
    return FieldMappingResponse(mapping=mapping, missing_required=missing_required(mapping))

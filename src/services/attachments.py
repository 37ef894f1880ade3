from typing import Iterable, Mapping
from loguru import logger
from ..core.errors import AttachmentError, extract_error_message
from ..models.results import AttachmentResult, UploadedFile
from ..models.rows import ProcessingSettings, Row
from .accounting.gateway_base import AccountingGateway

FILE_NOT_FOUND = "File not found in uploads"


def collect_filenames(rows: Iterable[Row]) -> list[str]:
    """Unique attachment filenames across rows, in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        for name in row.attachment_files.split(";"):
            name = name.strip()
            if name:
                seen.setdefault(name, None)
    return list(seen)


class AttachmentLinker:
    """
    Uploads a bill group's attachments.

    Every file is handled on its own: a missing or failed file is recorded
    in its AttachmentResult and never affects the bill or the other files.
    """

    def __init__(self, gateway: AccountingGateway, settings: ProcessingSettings):
        self.gateway = gateway
        self.settings = settings

    async def _upload(self, filename: str, files: Mapping[str, UploadedFile], entity_type, entity_id: str):
        file = files.get(filename)
        if file is None:
            raise AttachmentError(filename, FILE_NOT_FOUND)
        try:
            return await self.gateway.upload_attachment(file, entity_type, entity_id)
        except Exception as e:
            raise AttachmentError(filename, extract_error_message(e)) from e

    async def attach_to_bill(
        self, filenames: list[str], files: Mapping[str, UploadedFile], bill_id: str
    ) -> list[AttachmentResult]:
        results: list[AttachmentResult] = []
        for filename in filenames:
            try:
                attachable = await self._upload(filename, files, "Bill", bill_id)
            except AttachmentError as e:
                logger.warning("Attachment failed", filename=filename, bill_id=bill_id, error=e.message)
                results.append(AttachmentResult(filename=filename, status="error", error=e.message))
                continue
            results.append(AttachmentResult(filename=filename, status="success", attachable_id=attachable.id))
        return results

    async def attach_to_invoice(
        self, filenames: list[str], files: Mapping[str, UploadedFile], invoice_id: str
    ) -> int:
        """
        Best-effort copy of the bill's attachments onto the invoice.

        Returns:
            Number of files attached; failures are only logged
        """
        attached = 0
        for filename in filenames:
            if filename not in files:
                continue
            try:
                await self._upload(filename, files, "Invoice", invoice_id)
                attached += 1
            except AttachmentError as e:
                logger.warning("Failed to attach file to invoice", filename=filename, invoice_id=invoice_id, error=e.message)
        return attached

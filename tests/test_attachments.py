"""
Tests for attachment collection and upload.
"""

import asyncio
from src.core.errors import ExternalAPIError
from src.models.results import UploadedFile
from src.services.attachments import FILE_NOT_FOUND, AttachmentLinker, collect_filenames
from .factories import make_row


def _file(name):
    return UploadedFile(name=name, data=b"%PDF-1.4", content_type="application/pdf")


def test_collect_filenames_splits_trims_and_dedupes():
    rows = [
        make_row(AttachmentFiles="a.pdf; b.pdf;;"),
        make_row(AttachmentFiles=" b.pdf ;c.png"),
        make_row(AttachmentFiles=""),
    ]
    assert collect_filenames(rows) == ["a.pdf", "b.pdf", "c.png"]


def test_attach_to_bill_uploads_present_files(gateway, settings):
    linker = AttachmentLinker(gateway, settings)

    results = asyncio.run(linker.attach_to_bill(["a.pdf"], {"a.pdf": _file("a.pdf")}, "200"))

    assert len(results) == 1
    assert results[0].status == "success"
    assert results[0].attachable_id == gateway.attachments[0]["id"]
    assert gateway.attachments[0]["entity_type"] == "Bill"
    assert gateway.attachments[0]["entity_id"] == "200"


def test_missing_file_reported_without_upload(gateway, settings):
    linker = AttachmentLinker(gateway, settings)

    results = asyncio.run(linker.attach_to_bill(["missing.pdf"], {}, "200"))

    assert results[0].status == "error"
    assert results[0].error == FILE_NOT_FOUND == "File not found in uploads"
    assert gateway.call_count("upload_attachment") == 0


def test_failed_upload_does_not_stop_other_files(gateway, settings):
    gateway.fail_next("upload_attachment", ExternalAPIError("File too large"))
    linker = AttachmentLinker(gateway, settings)
    files = {"a.pdf": _file("a.pdf"), "b.pdf": _file("b.pdf")}

    results = asyncio.run(linker.attach_to_bill(["a.pdf", "b.pdf"], files, "200"))

    assert [r.status for r in results] == ["error", "success"]
    assert results[0].error == "File too large"


def test_attach_to_invoice_is_best_effort(gateway, settings):
    gateway.fail_next("upload_attachment", ExternalAPIError("boom"))
    linker = AttachmentLinker(gateway, settings)
    files = {"a.pdf": _file("a.pdf"), "b.pdf": _file("b.pdf")}

    attached = asyncio.run(linker.attach_to_invoice(["a.pdf", "b.pdf", "missing.pdf"], files, "300"))

    assert attached == 1
    assert gateway.attachments[0]["entity_type"] == "Invoice"

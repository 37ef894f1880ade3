"""
Dry-run and execute passes over a batch of mapped rows.

Both passes share one grouping + validation step, so a group that dry-run
reports as valid is exactly a group that execute will submit. Groups are
processed strictly one after another; a failing group never aborts the
batch and its outcome is copied to every row it contains.
"""

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional
from loguru import logger
from ..core.errors import EntityNotFoundError, extract_error_message
from ..models.results import (
    AttachmentResult,
    DryRunResult,
    ProcessingResult,
    ProcessingStatus,
    RowValidationSummary,
    UploadedFile,
)
from ..models.rows import FieldError, ProcessingSettings, Row
from .accounting.gateway_base import AccountingGateway
from .attachments import AttachmentLinker, collect_filenames
from .document_builder import DocumentBuilder
from .entity_resolver import EntityResolver
from .events.event_publisher import BillGroupProcessedEvent, EventPublisher
from .grouping import BillGroup, group_rows
from .retry import RetryExecutor, RetryingGateway
from .storage import IdempotencyStore, IdempotencyStoreBase
from .validation import format_field_errors, resolve_currency, validate_row

EMPTY_ROW_MESSAGE = "Empty row"
EMPTY_ROW_WARNING = "Empty row - will be skipped"

ProgressCallback = Callable[[int, int], None]


@dataclass
class PreparedGroup:
    group: BillGroup
    errors: dict[int, list[FieldError]] = field(default_factory=dict)  # row index -> errors

    @property
    def valid(self) -> bool:
        return not self.errors

    def error_lines(self) -> list[str]:
        """Every error of every row, as ``Row N: Field: message``."""
        return [f"Row {index + 1}: {e}" for index, errors in self.errors.items() for e in errors]

    def first_failure(self) -> str:
        """Errors of the first failing row, joined into one message."""
        index, errors = next(iter(self.errors.items()))
        return f"Row {index + 1}: {format_field_errors(errors)}"


@dataclass
class PreparedBatch:
    groups: list[PreparedGroup]
    skipped: list[int]


class ProcessingOrchestrator:
    def __init__(
        self,
        gateway: AccountingGateway,
        settings: ProcessingSettings,
        idempotency_store: Optional[IdempotencyStoreBase] = None,
        retry_executor: Optional[RetryExecutor] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        self.settings = settings
        self.gateway = RetryingGateway(gateway, retry_executor)
        self.idempotency_store = idempotency_store if idempotency_store is not None else IdempotencyStore()
        self.event_publisher = event_publisher
        self.resolver = EntityResolver(self.gateway, settings)
        self.builder = DocumentBuilder(settings)
        self.attachments = AttachmentLinker(self.gateway, settings)

    def _prepare(self, rows: list[Row]) -> PreparedBatch:
        grouping = group_rows(rows)
        grouping_errors: dict[int, list[FieldError]] = {}
        for error in grouping.errors:
            grouping_errors.setdefault(error.row, []).append(error)

        prepared = []
        for group in grouping.groups:
            errors = {}
            for row, index in group:
                # Fields already rejected while grouping are not reported twice
                row_errors = list(grouping_errors.get(index, []))
                reported = {e.field for e in row_errors}
                row_errors.extend(e for e in validate_row(row, index, self.settings) if e.field not in reported)
                if row_errors:
                    errors[index] = row_errors
            prepared.append(PreparedGroup(group=group, errors=errors))
        return PreparedBatch(groups=prepared, skipped=grouping.skipped)

    def validate(self, rows: list[Row]) -> list[RowValidationSummary]:
        """Field errors per row; rows without errors are left out."""
        summaries = []
        for index, row in enumerate(rows):
            errors = validate_row(row, index, self.settings)
            if errors:
                summaries.append(RowValidationSummary(row_index=index, errors=[str(e) for e in errors]))
        return summaries

    async def dry_run(self, rows: list[Row]) -> list[DryRunResult]:
        """Describe what execute would do, without any external calls."""
        batch = self._prepare(rows)
        results = [DryRunResult(row_index=index, warnings=[EMPTY_ROW_WARNING]) for index in batch.skipped]

        for prepared in batch.groups:
            group = prepared.group
            if not prepared.valid:
                errors = prepared.error_lines()
                results.extend(DryRunResult(row_index=index, errors=list(errors)) for index in group.indices)
                continue

            actions = self._narrate(group)
            warnings = []
            if self.idempotency_store.contains(group.idempotency_key):
                warnings.append(f"Bill {group.bill_number} already processed - will be skipped")
            results.extend(
                DryRunResult(row_index=index, actions=list(actions), warnings=list(warnings))
                for index in group.indices
            )

        results.sort(key=lambda r: r.row_index)
        return results

    def _narrate(self, group: BillGroup) -> list[str]:
        first = group.first_row
        actions = [
            f"Create Bill #{group.bill_number} with {len(group)} line item(s)",
            f'Find or create Customer: "{first.customer_name}"',
            f'Find or create Vendor: "{first.vendor_name}"',
        ]
        if first.location.strip():
            actions.append(f'Find Department/Location: "{first.location}"')

        for number, row in enumerate(group.rows, start=1):
            currency = resolve_currency(row, self.settings)
            actions.append(
                f'  Line {number}: Project "{row.project_name}" - {row.bill_line_amount} {currency} - {row.bill_line_description}'
            )

        filenames = collect_filenames(group.rows)
        if filenames:
            actions.append(f"Attach {len(filenames)} file(s) to Bill: {', '.join(filenames)}")
            if self.settings.also_attach_to_invoice:
                actions.append("Also attach files to Invoice")

        if self.settings.from_billable_expenses:
            actions.append("Create Invoice from billable expenses")
            if first.po_number.strip():
                actions.append(f"Set PO Number: {first.po_number}")
            if first.point_of_contact.strip():
                actions.append(f'Set Point of Contact: "{first.point_of_contact}"')
        return actions

    async def execute(
        self,
        rows: list[Row],
        files: Optional[Mapping[str, UploadedFile]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[ProcessingResult]:
        """
        Submit every valid bill group.

        Args:
            rows: Mapped input rows, in file order
            files: Uploaded attachments keyed by filename
            on_progress: Called as ``(rows_done, rows_total)`` after each group;
                empty rows count as done from the start

        Returns:
            One ProcessingResult per input row, sorted by row index
        """
        files = files or {}
        batch = self._prepare(rows)
        self.resolver.reset()

        results = [
            ProcessingResult(row_index=index, status=ProcessingStatus.SKIPPED, message=EMPTY_ROW_MESSAGE)
            for index in batch.skipped
        ]

        total = len(rows)
        done = len(batch.skipped)
        logger.info("Batch started", rows=total, groups=len(batch.groups), empty_rows=done)

        for prepared in batch.groups:
            outcome = await self._process_group(prepared, files)
            for index in prepared.group.indices:
                results.append(outcome.model_copy(update={"row_index": index}, deep=True))

            self._publish(prepared.group, outcome)
            done += len(prepared.group)
            if on_progress is not None:
                on_progress(done, total)

        results.sort(key=lambda r: r.row_index)
        logger.info(
            "Batch finished",
            succeeded=sum(1 for r in results if r.status == ProcessingStatus.SUCCESS),
            failed=sum(1 for r in results if r.status == ProcessingStatus.ERROR),
            needs_review=sum(1 for r in results if r.status == ProcessingStatus.NEEDS_REVIEW),
            skipped=sum(1 for r in results if r.status == ProcessingStatus.SKIPPED),
        )
        return results

    async def _process_group(self, prepared: PreparedGroup, files: Mapping[str, UploadedFile]) -> ProcessingResult:
        group = prepared.group
        first_index = group.indices[0]
        log = logger.bind(bill_number=group.bill_number, rows=group.indices)

        if not prepared.valid:
            log.info("Group rejected by validation")
            return ProcessingResult(row_index=first_index, status=ProcessingStatus.ERROR, error=prepared.first_failure())

        key = group.idempotency_key
        if self.idempotency_store.contains(key):
            log.info("Group already processed, skipping")
            return ProcessingResult(
                row_index=first_index,
                status=ProcessingStatus.SKIPPED,
                message=f"Bill {group.bill_number} already processed",
                idempotency_key=key,
            )

        try:
            log.debug("Group state", state="validated")
            first = group.first_row
            customer = await self.resolver.resolve_customer(first.customer_name)
            vendor = await self.resolver.resolve_vendor(first.vendor_name)
            department = await self.resolver.resolve_department(first.location)
            account_id = await self.resolver.expense_account_id()

            lines = []
            sub_customers = []
            for row in group.rows:
                sub_customer = await self.resolver.resolve_sub_customer(row.project_name, customer)
                class_entity = await self.resolver.resolve_class(row.category)
                sub_customers.append(sub_customer)
                lines.append(self.builder.build_line(row, account_id, sub_customer, class_entity))
            log.debug("Group state", state="resolved")

            bill = self.builder.build_bill(group, vendor, lines, department)
            log.debug("Group state", state="built", total=str(bill.total))

            created_bill = await self.gateway.create_bill(bill)
            log.info("Bill created", bill_id=created_bill.id, lines=len(lines))

            filenames = collect_filenames(group.rows)
            attachment_results: list[AttachmentResult] = await self.attachments.attach_to_bill(
                filenames, files, created_bill.id
            )

            invoice_id = None
            if self.settings.from_billable_expenses:
                request = self.builder.build_invoice_request(group, sub_customers[0])
                invoice = await self.gateway.create_invoice_from_billable_expenses(
                    request.customer_id,
                    request.invoice_date,
                    request.po_number,
                    request.point_of_contact,
                    request.currency,
                )
                invoice_id = invoice.id
                log.info("Invoice created", invoice_id=invoice_id)
                if self.settings.also_attach_to_invoice and filenames:
                    await self.attachments.attach_to_invoice(filenames, files, invoice_id)
            log.debug("Group state", state="attachments-processed")

        except EntityNotFoundError as e:
            log.warning("Group needs review", reason=e.message)
            return ProcessingResult(row_index=first_index, status=ProcessingStatus.NEEDS_REVIEW, error=e.message)
        except Exception as e:
            message = extract_error_message(e)
            log.opt(exception=e).error("Group failed", error=message)
            return ProcessingResult(row_index=first_index, status=ProcessingStatus.ERROR, error=message)

        self.idempotency_store.add(key, {"bill_id": created_bill.id, "invoice_id": invoice_id})
        return ProcessingResult(
            row_index=first_index,
            status=ProcessingStatus.SUCCESS,
            customer_id=customer.id,
            sub_customer_id=sub_customers[0].id,
            vendor_id=vendor.id,
            bill_id=created_bill.id,
            invoice_id=invoice_id,
            attachment_results=attachment_results,
            idempotency_key=key,
            message=f"Bill {group.bill_number} created with {len(lines)} line items",
        )

    def _publish(self, group: BillGroup, outcome: ProcessingResult) -> None:
        if self.event_publisher is None or outcome.status == ProcessingStatus.SKIPPED:
            return
        event = BillGroupProcessedEvent(
            bill_number=group.bill_number,
            status=outcome.status.value,
            row_indices=group.indices,
            bill_id=outcome.bill_id,
            invoice_id=outcome.invoice_id,
            message=outcome.message or outcome.error,
        )
        try:
            self.event_publisher.publish_bill_group_processed(event)
        except Exception as e:
            logger.warning("Failed to publish bill group event", bill_number=group.bill_number, error=str(e))

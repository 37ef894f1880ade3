"""
Partition rows into bill groups.

One group becomes at most one Bill. Bill-level fields (vendor, customer,
location, dates, PO number, point of contact, currency) are read from the
group's first row; line-level fields come from every row.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional
from ..models.rows import FieldError, Row
from .validation import BILL_NUMBER_REQUIRED, is_empty_row


@dataclass
class BillGroup:
    """Rows sharing one trimmed bill number, with their original indices."""

    bill_number: str
    members: list[tuple[Row, int]] = field(default_factory=list)
    implicit: bool = False  # single row without a bill number

    @property
    def rows(self) -> list[Row]:
        return [row for row, _ in self.members]

    @property
    def indices(self) -> list[int]:
        return [index for _, index in self.members]

    @property
    def first_row(self) -> Row:
        return self.members[0][0]

    @property
    def idempotency_key(self) -> Optional[str]:
        if self.implicit:
            return None
        return bill_idempotency_key(self.bill_number)

    def __iter__(self) -> Iterator[tuple[Row, int]]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


@dataclass
class GroupingResult:
    groups: list[BillGroup] = field(default_factory=list)
    errors: list[FieldError] = field(default_factory=list)  # rows that could not be keyed
    skipped: list[int] = field(default_factory=list)  # empty rows


def bill_idempotency_key(bill_number: str) -> str:
    return f"bill_{bill_number}"


def group_rows(rows: list[Row]) -> GroupingResult:
    """
    Group non-empty rows by trimmed bill number.

    Group order follows the first appearance of each bill number and rows
    keep their input order inside a group. A row without a bill number is
    never merged with other rows: it forms its own implicit group (which
    validation then rejects) and is reported in ``errors``.
    """
    result = GroupingResult()
    by_key: dict[str, BillGroup] = {}

    for index, row in enumerate(rows):
        if is_empty_row(row):
            result.skipped.append(index)
            continue

        bill_number = row.bill_number.strip()
        if not bill_number:
            result.errors.append(FieldError(row=index, field="BillNumber", message=BILL_NUMBER_REQUIRED))
            result.groups.append(BillGroup(bill_number="", members=[(row, index)], implicit=True))
            continue

        group = by_key.get(bill_number)
        if group is None:
            group = BillGroup(bill_number=bill_number)
            by_key[bill_number] = group
            result.groups.append(group)
        group.members.append((row, index))

    return result

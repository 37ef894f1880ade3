"""
Tests for bill grouping.
"""

from src.models.rows import Row
from src.services.grouping import BILL_NUMBER_REQUIRED, bill_idempotency_key, group_rows
from .factories import make_row


def test_rows_grouped_by_trimmed_bill_number():
    rows = [
        make_row(BillNumber="B1", ProjectName="P1"),
        make_row(BillNumber="B2"),
        make_row(BillNumber=" B1 ", ProjectName="P2"),
    ]

    result = group_rows(rows)

    assert [g.bill_number for g in result.groups] == ["B1", "B2"]
    assert result.groups[0].indices == [0, 2]
    assert [r.project_name for r in result.groups[0].rows] == ["P1", "P2"]
    assert result.groups[1].indices == [1]
    assert result.errors == []


def test_group_order_follows_first_appearance():
    rows = [make_row(BillNumber=b) for b in ["Z", "A", "Z", "M", "A"]]
    result = group_rows(rows)
    assert [g.bill_number for g in result.groups] == ["Z", "A", "M"]


def test_empty_rows_are_skipped_and_not_grouped():
    rows = [Row(), make_row(), Row(AttachmentFiles="x.pdf")]
    result = group_rows(rows)

    assert result.skipped == [0, 2]
    assert len(result.groups) == 1
    assert result.groups[0].indices == [1]


def test_blank_bill_number_forms_implicit_single_row_group():
    rows = [make_row(BillNumber=""), make_row(BillNumber="  "), make_row()]
    result = group_rows(rows)

    implicit = [g for g in result.groups if g.implicit]
    assert [g.indices for g in implicit] == [[0], [1]]
    assert all(g.idempotency_key is None for g in implicit)
    assert [(e.row, e.field, e.message) for e in result.errors] == [
        (0, "BillNumber", BILL_NUMBER_REQUIRED),
        (1, "BillNumber", BILL_NUMBER_REQUIRED),
    ]


def test_group_exposes_first_row_and_key():
    result = group_rows([make_row(BillNumber="B7", VendorName="First"), make_row(BillNumber="B7", VendorName="Second")])
    group = result.groups[0]

    assert group.first_row.vendor_name == "First"
    assert len(group) == 2
    assert group.idempotency_key == "bill_B7"
    assert bill_idempotency_key("B7") == "bill_B7"

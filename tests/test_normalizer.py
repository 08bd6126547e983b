from datetime import date
from decimal import Decimal

import pytest

from bankfeed_recon.matching.normalizer import (
    build_record_pool,
    eligible_expense,
    eligible_receipt,
    expense_to_system_record,
    receipt_to_system_record,
    to_system_record,
)
from bankfeed_recon.models.bank_feed import SystemRecordType
from bankfeed_recon.utils.exceptions import RecordNormalizationError
from tests.conftest import make_record


RECEIPT_ROW = {
    "id": "rec-1",
    "receipt_number": "REC-2024-0001",
    "receipt_date": "2024-03-02T10:15:00",
    "total_received": "2,400.00",
    "client_name": "Acme Trading Co",
    "reference": "INV-2024-0100",
    "project_ids": "p-1; p-1",
}

EXPENSE_ROW = {
    "id": "exp-1",
    "expense_number": "EXP-2024-0009",
    "expense_date": date(2024, 3, 1),
    "total_amount": "1605.00",
    "net_payable": "1500.00",
    "vendor_name": "Office Supplies Ltd",
    "supplier_invoice_number": "SUP-77",
    "currency": "usd",
}


class TestReceipts:
    def test_projects_receipt_fields(self):
        record = receipt_to_system_record(RECEIPT_ROW)
        assert record.type == SystemRecordType.RECEIPT
        assert record.amount == Decimal("2400.00")
        assert record.date == date(2024, 3, 2)
        assert record.currency == "THB"
        assert record.reference == "REC-2024-0001"
        assert record.counterparty == "Acme Trading Co"
        assert record.description == "Payment for INV-2024-0100"
        assert record.project_id == "p-1"

    def test_several_projects_leave_project_unset(self):
        record = receipt_to_system_record({**RECEIPT_ROW, "project_ids": "p-1,p-2"})
        assert record.project_id is None
        assert record.project_ids == ("p-1", "p-2")

    def test_missing_amount(self):
        row = {k: v for k, v in RECEIPT_ROW.items() if k != "total_received"}
        with pytest.raises(RecordNormalizationError, match="total_received"):
            receipt_to_system_record(row)

    def test_invalid_date(self):
        with pytest.raises(RecordNormalizationError, match="receipt_date"):
            receipt_to_system_record({**RECEIPT_ROW, "receipt_date": "yesterday"})

    def test_nan_cells_are_missing(self):
        record = receipt_to_system_record({**RECEIPT_ROW, "client_name": float("nan")})
        assert record.counterparty is None


class TestExpenses:
    def test_net_payable_preferred(self):
        record = expense_to_system_record(EXPENSE_ROW)
        assert record.type == SystemRecordType.EXPENSE
        assert record.amount == Decimal("1500.00")
        assert record.currency == "USD"
        assert record.description == "Invoice SUP-77"
        assert record.reference == "EXP-2024-0009"
        assert record.counterparty == "Office Supplies Ltd"

    def test_total_amount_fallback(self):
        row = {**EXPENSE_ROW, "net_payable": None}
        assert expense_to_system_record(row).amount == Decimal("1605.00")

    def test_negative_amounts_stored_unsigned(self):
        row = {**EXPENSE_ROW, "net_payable": "-1500"}
        assert expense_to_system_record(row).amount == Decimal("1500")

    def test_notes_used_without_supplier_invoice(self):
        row = {**EXPENSE_ROW, "supplier_invoice_number": "", "notes": "Printer paper"}
        assert expense_to_system_record(row).description == "Printer paper"

    def test_missing_both_amounts(self):
        row = {**EXPENSE_ROW, "net_payable": None, "total_amount": None}
        with pytest.raises(RecordNormalizationError):
            expense_to_system_record(row)


class TestDispatch:
    def test_dispatch_by_type_tag(self):
        assert to_system_record("receipt", RECEIPT_ROW).type == SystemRecordType.RECEIPT
        assert to_system_record(SystemRecordType.EXPENSE, EXPENSE_ROW).id == "exp-1"

    def test_unknown_type_tag(self):
        with pytest.raises(RecordNormalizationError, match="Unknown system record type"):
            to_system_record("invoice", RECEIPT_ROW)


class TestEligibility:
    @pytest.mark.parametrize("status,expected", [("paid", True), ("PAID", True), ("draft", False)])
    def test_receipts(self, status, expected):
        assert eligible_receipt({"status": status}) is expected

    def test_expenses_need_approval_and_payment(self):
        assert eligible_expense({"status": "approved", "payment_status": "paid"})
        assert not eligible_expense({"status": "approved", "payment_status": "unpaid"})
        assert not eligible_expense({"status": "pending", "payment_status": "paid"})


class TestRecordPool:
    def test_filters_consumed_and_scope(self):
        records = [
            make_record(id="a", company_id="co-1", project_id="p-1"),
            make_record(id="b", company_id="co-1", project_id="p-2"),
            make_record(id="c", company_id="co-2", project_id="p-1"),
        ]
        assert [r.id for r in build_record_pool(records, exclude_ids={"a"})] == ["b", "c"]
        assert [r.id for r in build_record_pool(records, company_id="co-1")] == ["a", "b"]
        assert [r.id for r in build_record_pool(records, project_id="p-1")] == ["a", "c"]

    def test_project_scope_keeps_records_spanning_several_projects(self):
        spanning = receipt_to_system_record({**RECEIPT_ROW, "project_ids": "p-2;p-1"})
        other = make_record(id="b", project_id="p-3", project_ids=("p-3",))

        pool = build_record_pool([spanning, other], project_id="p-1")

        assert spanning.project_id is None
        assert [r.id for r in pool] == ["rec-1"]

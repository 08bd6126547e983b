"""Shared fixtures and helpers for the bank feed reconciliation test suite."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from bankfeed_recon.config import ReconConfig
from bankfeed_recon.matching.engine import ReconciliationEngine
from bankfeed_recon.models.bank_feed import BankFeedLine, SystemRecord, SystemRecordType
from bankfeed_recon.persistence.datastore import InMemoryDataStore
from bankfeed_recon.service import ReconciliationService


def make_line(**kwargs) -> BankFeedLine:
    """Helper to create a BankFeedLine with defaults."""
    defaults = {
        "id": "line-1",
        "bank_account_id": "acct-1",
        "currency": "THB",
        "transaction_date": date(2024, 3, 1),
        "description": "INV-2048 Client Payment",
        "amount": Decimal("-1500.00"),
    }
    defaults.update(kwargs)
    return BankFeedLine(**defaults)


def make_record(**kwargs) -> SystemRecord:
    """Helper to create an expense SystemRecord with defaults."""
    defaults = {
        "id": "exp-1",
        "type": SystemRecordType.EXPENSE,
        "amount": Decimal("1500.00"),
        "date": date(2024, 3, 1),
        "currency": "THB",
        "reference": "INV-2048",
    }
    defaults.update(kwargs)
    return SystemRecord(**defaults)


def write_csv(path: Path, content: str) -> Path:
    """Write dedented CSV text and return the path."""
    lines = [line.strip() for line in content.strip().splitlines()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def config() -> ReconConfig:
    return ReconConfig()


@pytest.fixture
def engine(config) -> ReconciliationEngine:
    return ReconciliationEngine(config)


@pytest.fixture
def line() -> BankFeedLine:
    return make_line()


@pytest.fixture
def record() -> SystemRecord:
    return make_record()


@pytest.fixture
def store() -> InMemoryDataStore:
    """Store holding three unmatched lines."""
    return InMemoryDataStore(
        [
            make_line(id="line-1"),
            make_line(
                id="line-2",
                description="ACME TRADING deposit",
                amount=Decimal("2400.00"),
                transaction_date=date(2024, 3, 2),
            ),
            make_line(
                id="line-3",
                description="ATM withdrawal",
                amount=Decimal("-300.00"),
                transaction_date=date(2024, 3, 5),
            ),
        ]
    )


@pytest.fixture
def records() -> list[SystemRecord]:
    return [
        make_record(id="exp-1"),
        make_record(
            id="rec-1",
            type=SystemRecordType.RECEIPT,
            amount=Decimal("2400.00"),
            date=date(2024, 3, 2),
            reference="REC-2024-0001",
            counterparty="Acme Trading Co",
        ),
    ]


@pytest.fixture
def service(store, engine) -> ReconciliationService:
    return ReconciliationService(store, engine, user="alice")


@pytest.fixture
def bank_csv(tmp_path) -> Path:
    return write_csv(
        tmp_path / "statement.csv",
        """
        Date,Description,Reference,Debit,Credit,Balance
        01/03/2024,INV-2048 Client Payment,,"1,500.00",,10000.00
        02/03/2024,ACME TRADING deposit,TRF001,,"2,400.00",12400.00
        15/03/2024,ATM withdrawal,,300.00,,12100.00
        """,
    )


@pytest.fixture
def receipts_csv(tmp_path) -> Path:
    return write_csv(
        tmp_path / "receipts.csv",
        """
        id,receipt_number,receipt_date,total_received,client_name,status,currency
        rec-1,REC-2024-0001,2024-03-02,2400.00,Acme Trading Co,paid,THB
        rec-2,REC-2024-0002,2024-03-04,999.00,Other Client,draft,THB
        """,
    )


@pytest.fixture
def expenses_csv(tmp_path) -> Path:
    return write_csv(
        tmp_path / "expenses.csv",
        """
        id,expense_number,expense_date,total_amount,net_payable,vendor_name,status,payment_status,supplier_invoice_number
        exp-1,INV-2048,2024-03-01,1605.00,1500.00,Office Supplies Ltd,approved,paid,SUP-77
        exp-2,EXP-2024-0009,2024-03-03,800.00,,Cleaning Co,approved,unpaid,
        """,
    )

"""
Record normalization.

Projects receipts and expenses, which arrive as loosely typed mappings
(CSV rows, API payloads), into the common SystemRecord shape the matcher
compares against.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from ..models.bank_feed import SystemRecord, SystemRecordType
from ..utils.exceptions import RecordNormalizationError
from ..utils.money import to_decimal

DEFAULT_CURRENCY = "THB"


def _text(row: Mapping[str, Any], key: str) -> Optional[str]:
    """Return a stripped string value, or None for missing/blank/NaN cells."""
    value = row.get(key)
    if value is None:
        return None
    # NaN is the only value not equal to itself
    if isinstance(value, float) and value != value:
        return None
    text = str(value).strip()
    return text or None


def _required_text(row: Mapping[str, Any], key: str, kind: str) -> str:
    value = _text(row, key)
    if value is None:
        raise RecordNormalizationError(f"{kind} is missing required field '{key}'")
    return value


def _amount(row: Mapping[str, Any], key: str) -> Optional[Decimal]:
    value = _text(row, key)
    if value is None:
        return None
    try:
        return to_decimal(value.replace(",", ""))
    except ValueError as e:
        raise RecordNormalizationError(f"Invalid amount in '{key}': {value}") from e


def _date(row: Mapping[str, Any], key: str, kind: str) -> date:
    value = row.get(key)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = _required_text(row, key, kind)
    try:
        # Tolerate timestamps such as 2024-03-01T10:00:00 or "2024-03-01 10:00"
        return date.fromisoformat(text[:10])
    except ValueError as e:
        raise RecordNormalizationError(f"Invalid date in '{key}': {text}") from e


def _project_ids(row: Mapping[str, Any]) -> tuple[str, ...]:
    """
    Distinct project ids of the record, sorted.

    Accepts either a ``project_id`` cell or a ``project_ids`` cell holding a
    comma/semicolon separated list (one entry per line item).
    """
    ids = set()
    single = _text(row, "project_id")
    if single:
        ids.add(single)

    many = _text(row, "project_ids")
    if many:
        ids.update(p.strip() for p in many.replace(";", ",").split(",") if p.strip())
    return tuple(sorted(ids))


def _single_project(project_ids: tuple[str, ...]) -> Optional[str]:
    """Project id when the record belongs to exactly one project."""
    return project_ids[0] if len(project_ids) == 1 else None


def _currency(row: Mapping[str, Any], default_currency: str) -> str:
    return (_text(row, "currency") or default_currency).upper()


def receipt_to_system_record(
    row: Mapping[str, Any], default_currency: str = DEFAULT_CURRENCY
) -> SystemRecord:
    """
    Convert a receipt row into a SystemRecord.

    Expected keys: id, receipt_number, receipt_date, total_received and
    optionally client_name, reference, currency, company_id, project_id(s),
    project_name.
    """
    amount = _amount(row, "total_received")
    if amount is None:
        raise RecordNormalizationError("Receipt is missing required field 'total_received'")

    reference = _text(row, "reference")
    project_ids = _project_ids(row)
    return SystemRecord(
        id=_required_text(row, "id", "Receipt"),
        type=SystemRecordType.RECEIPT,
        amount=abs(amount),
        date=_date(row, "receipt_date", "Receipt"),
        currency=_currency(row, default_currency),
        description=f"Payment for {reference}" if reference else "",
        reference=_text(row, "receipt_number"),
        counterparty=_text(row, "client_name"),
        project_id=_single_project(project_ids),
        project_name=_text(row, "project_name"),
        company_id=_text(row, "company_id"),
        project_ids=project_ids,
    )


def expense_to_system_record(
    row: Mapping[str, Any], default_currency: str = DEFAULT_CURRENCY
) -> SystemRecord:
    """
    Convert an expense row into a SystemRecord.

    The matched amount is what was actually paid: ``net_payable`` when
    present, otherwise ``total_amount``. Expense amounts are stored unsigned.
    """
    amount = _amount(row, "net_payable")
    if amount is None:
        amount = _amount(row, "total_amount")
    if amount is None:
        raise RecordNormalizationError(
            "Expense has neither 'net_payable' nor 'total_amount'"
        )

    supplier_invoice = _text(row, "supplier_invoice_number")
    description = f"Invoice {supplier_invoice}" if supplier_invoice else _text(row, "notes")
    project_ids = _project_ids(row)

    return SystemRecord(
        id=_required_text(row, "id", "Expense"),
        type=SystemRecordType.EXPENSE,
        amount=abs(amount),
        date=_date(row, "expense_date", "Expense"),
        currency=_currency(row, default_currency),
        description=description or "",
        reference=_text(row, "expense_number"),
        counterparty=_text(row, "vendor_name"),
        project_id=_single_project(project_ids),
        project_name=_text(row, "project_name"),
        company_id=_text(row, "company_id"),
        project_ids=project_ids,
    )


_NORMALIZERS: dict[SystemRecordType, Callable[..., SystemRecord]] = {
    SystemRecordType.RECEIPT: receipt_to_system_record,
    SystemRecordType.EXPENSE: expense_to_system_record,
}


def to_system_record(
    record_type: Union[SystemRecordType, str],
    row: Mapping[str, Any],
    default_currency: str = DEFAULT_CURRENCY,
) -> SystemRecord:
    """
    Normalize a row according to its explicit type tag.

    Raises:
        RecordNormalizationError: For unknown type tags or invalid rows
    """
    try:
        tag = SystemRecordType(record_type)
    except ValueError as e:
        raise RecordNormalizationError(f"Unknown system record type: {record_type!r}") from e
    return _NORMALIZERS[tag](row, default_currency)


def eligible_receipt(row: Mapping[str, Any]) -> bool:
    """Only paid receipts can appear on a bank statement."""
    return (_text(row, "status") or "").lower() == "paid"


def eligible_expense(row: Mapping[str, Any]) -> bool:
    """Only approved expenses that have been paid can appear on a bank statement."""
    return (_text(row, "status") or "").lower() == "approved" and (
        _text(row, "payment_status") or ""
    ).lower() == "paid"


def build_record_pool(
    records: Iterable[SystemRecord],
    exclude_ids: Optional[Iterable[str]] = None,
    company_id: Optional[str] = None,
    project_id: Optional[str] = None,
) -> list[SystemRecord]:
    """
    Build the candidate pool for matching.

    Removes records already consumed by an active match and applies the
    optional company/project scope.
    """
    excluded = set(exclude_ids or ())
    pool: list[SystemRecord] = []
    for record in records:
        if record.id in excluded:
            continue
        if company_id and record.company_id != company_id:
            continue
        if project_id and not record.in_project(project_id):
            continue
        pool.append(record)
    return pool

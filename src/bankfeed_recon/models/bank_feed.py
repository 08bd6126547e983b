"""Data models for bank feed lines, matches and the system records they link to."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class BankFeedStatus(Enum):
    """Reconciliation lifecycle of an imported bank line."""

    UNMATCHED = "unmatched"  # Default state after import
    MATCHED = "matched"
    PARTIALLY_MATCHED = "partially_matched"
    NEEDS_REVIEW = "needs_review"  # Matched but has issues
    MISSING_RECORD = "missing_record"  # No system record exists yet
    IGNORED = "ignored"  # Marked as non-business
    DELETED = "deleted"  # Soft-deleted, never hard-removed


class MatchMethod(Enum):
    """How a match was produced."""

    MANUAL = "manual"
    RULE = "rule"
    SUGGESTED = "suggested"


class SystemRecordType(Enum):
    """Kind of internal financial document a bank line can be matched to."""

    RECEIPT = "receipt"  # Customer payment, money in
    EXPENSE = "expense"  # Vendor payment, money out


AUTO_MATCH_STATUSES = frozenset({BankFeedStatus.UNMATCHED, BankFeedStatus.MISSING_RECORD})


@dataclass
class BankMatch:
    """A persisted link between one bank feed line and one system record."""

    id: str
    bank_feed_line_id: str
    system_record_type: SystemRecordType
    system_record_id: str

    matched_amount: Decimal
    # abs(line amount) - record amount, kept signed for audit
    amount_difference: Decimal = Decimal("0")

    match_method: MatchMethod = MatchMethod.MANUAL
    match_score: int = 100
    rule_id: Optional[str] = None

    adjustment_required: bool = False
    adjustment_reason: Optional[str] = None

    project_id: Optional[str] = None
    matched_by: str = "system"
    matched_at: Optional[datetime] = None


@dataclass
class BankFeedLine:
    """
    One imported bank statement transaction awaiting reconciliation.

    Amounts are signed from the bank's perspective: positive for credits
    (money in), negative for debits (money out).
    """

    id: str
    bank_account_id: str
    currency: str
    transaction_date: date
    description: str
    amount: Decimal

    value_date: Optional[date] = None
    reference: Optional[str] = None
    running_balance: Optional[Decimal] = None

    company_id: Optional[str] = None
    project_id: Optional[str] = None

    status: BankFeedStatus = BankFeedStatus.UNMATCHED
    matched_amount: Decimal = Decimal("0")
    matches: list[BankMatch] = field(default_factory=list)

    import_source: str = "csv"
    notes: Optional[str] = None

    # Audit trail
    matched_by: Optional[str] = None
    ignored_by: Optional[str] = None
    ignored_reason: Optional[str] = None

    def __post_init__(self) -> None:
        """Default the value date to the transaction date."""
        if self.value_date is None:
            self.value_date = self.transaction_date

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    @property
    def is_credit(self) -> bool:
        return self.amount > 0

    @property
    def active_matches(self) -> list[BankMatch]:
        """Matches that currently count towards the line. Deleted lines have none."""
        if self.status == BankFeedStatus.DELETED:
            return []
        return list(self.matches)

    @property
    def has_active_match(self) -> bool:
        return len(self.active_matches) > 0

    @property
    def is_eligible_for_auto_match(self) -> bool:
        """Unmatched or missing-record lines with no active match."""
        return self.status in AUTO_MATCH_STATUSES and not self.has_active_match


@dataclass(frozen=True)
class SystemRecord:
    """
    Normalized, read-only view over a receipt or an expense.

    The matcher compares bank lines against this shape only; amounts are
    always unsigned here, direction is implied by ``type``.
    """

    id: str
    type: SystemRecordType
    amount: Decimal
    date: date
    currency: str

    description: str = ""
    reference: Optional[str] = None
    counterparty: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    company_id: Optional[str] = None
    # Every project the record has a line item in; project_id is set only when there is one
    project_ids: tuple[str, ...] = ()

    def in_project(self, project_id: str) -> bool:
        return project_id == self.project_id or project_id in self.project_ids

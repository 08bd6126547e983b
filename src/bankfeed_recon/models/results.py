"""Derived values produced by the matcher: scores, suggestions and batch results."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .bank_feed import BankMatch, SystemRecord, SystemRecordType


class MatchClassification(Enum):
    """Outcome of ranking one bank line's candidates."""

    AUTO_MATCH = "auto_match"
    SUGGEST_ONLY = "suggest_only"
    NO_CANDIDATE = "no_candidate"


@dataclass
class ScoreBreakdown:
    """Score of one (line, record) pair and the signals that produced it."""

    score: int
    base_score: int
    signals: list[str] = field(default_factory=list)
    rule_id: Optional[str] = None
    rule_delta: int = 0
    # Set when the pair is excluded outright (currency or company mismatch)
    disqualified_reason: Optional[str] = None

    @property
    def is_disqualified(self) -> bool:
        return self.disqualified_reason is not None

    @property
    def exact_amount(self) -> bool:
        return "amount_exact" in self.signals


@dataclass(frozen=True)
class SuggestedMatch:
    """
    Unpersisted candidate pairing a bank line with a system record.

    Safe to discard and recompute at any time.
    """

    bank_feed_line_id: str
    system_record_type: SystemRecordType
    system_record_id: str

    amount: Decimal
    date: date
    match_score: int
    match_reasons: tuple[str, ...] = ()
    exact_amount: bool = False

    rule_id: Optional[str] = None
    auto_match_threshold: int = 85

    counterparty: Optional[str] = None
    reference: Optional[str] = None
    description: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None

    @classmethod
    def from_record(
        cls,
        line_id: str,
        record: SystemRecord,
        breakdown: ScoreBreakdown,
        auto_match_threshold: int,
    ) -> "SuggestedMatch":
        """Build a suggestion from a scored record."""
        reasons = list(breakdown.signals)
        if breakdown.rule_id:
            reasons.append("rule_match")
        return cls(
            bank_feed_line_id=line_id,
            system_record_type=record.type,
            system_record_id=record.id,
            amount=abs(record.amount),
            date=record.date,
            match_score=breakdown.score,
            match_reasons=tuple(reasons),
            exact_amount=breakdown.exact_amount,
            rule_id=breakdown.rule_id,
            auto_match_threshold=auto_match_threshold,
            counterparty=record.counterparty,
            reference=record.reference,
            description=record.description or None,
            project_id=record.project_id,
            project_name=record.project_name,
        )

    @property
    def is_auto_matchable(self) -> bool:
        return self.match_score >= self.auto_match_threshold


@dataclass
class RankedCandidates:
    """Ordered suggestions for one line plus its classification."""

    bank_feed_line_id: str
    suggestions: list[SuggestedMatch]
    classification: MatchClassification

    @property
    def top(self) -> Optional[SuggestedMatch]:
        return self.suggestions[0] if self.suggestions else None


@dataclass
class BatchResult:
    """
    Output of one batch auto-match pass.

    ``matches`` holds one match per auto-matched line; ``suggestions`` maps
    every other processed line id to its ranked suggestion list.
    """

    matches: list[BankMatch] = field(default_factory=list)
    suggestions: dict[str, list[SuggestedMatch]] = field(default_factory=dict)
    skipped_line_ids: list[str] = field(default_factory=list)

    @property
    def matched_line_ids(self) -> list[str]:
        return [m.bank_feed_line_id for m in self.matches]


@dataclass
class ReconciliationStats:
    """Status counts and money totals for a set of bank lines."""

    total_bank_lines: int
    matched_lines: int
    unmatched_lines: int
    missing_record_lines: int
    needs_review_lines: int
    ignored_lines: int

    total_bank_movement: Decimal
    total_system_movement: Decimal

    @property
    def net_difference(self) -> Decimal:
        return self.total_bank_movement - self.total_system_movement

    @property
    def match_rate(self) -> float:
        """Percentage of lines that are matched."""
        if self.total_bank_lines == 0:
            return 0.0
        return (self.matched_lines / self.total_bank_lines) * 100


@dataclass
class RunSummary:
    """Metadata and totals for one reconciliation run, used by reports."""

    bank_filename: str
    stats: ReconciliationStats
    receipts_filename: Optional[str] = None
    expenses_filename: Optional[str] = None
    bank_account_id: Optional[str] = None
    currency: Optional[str] = None
    reconciliation_date: datetime = field(default_factory=datetime.now)
    statement_period_start: Optional[date] = None
    statement_period_end: Optional[date] = None
    record_count: int = 0
    auto_match_count: int = 0
    suggestion_count: int = 0
    failed_writes: int = 0
    auto_match_threshold: int = 85
    processing_time_seconds: float = 0.0
    config_file_used: Optional[str] = None

"""Data models for bank feed reconciliation."""

from .bank_feed import (
    BankFeedLine,
    BankFeedStatus,
    BankMatch,
    MatchMethod,
    SystemRecord,
    SystemRecordType,
)
from .results import (
    BatchResult,
    MatchClassification,
    RankedCandidates,
    ReconciliationStats,
    RunSummary,
    ScoreBreakdown,
    SuggestedMatch,
)

__all__ = [
    "BankFeedLine",
    "BankFeedStatus",
    "BankMatch",
    "MatchMethod",
    "SystemRecord",
    "SystemRecordType",
    "BatchResult",
    "MatchClassification",
    "RankedCandidates",
    "ReconciliationStats",
    "RunSummary",
    "ScoreBreakdown",
    "SuggestedMatch",
]

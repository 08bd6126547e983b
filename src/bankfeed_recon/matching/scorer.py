"""
Candidate scoring for bank line / system record pairs.
Each signal implements one independent, weighted piece of evidence.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..config import ScoringConfig
from ..models.bank_feed import BankFeedLine, SystemRecord
from ..models.results import ScoreBreakdown
from ..utils.money import amounts_close, amounts_equal
from ..utils.text import (
    extract_references,
    normalize_reference,
    significant_tokens,
    tokenize,
)

MAX_SCORE = 100

# Shorter references (bank sequence numbers, single digits) only count on exact equality
MIN_REFERENCE_LENGTH = 4


class MatchSignal(ABC):
    """Abstract base class for scoring signals."""

    #: Reason recorded when the signal fires
    name: str = ""

    def __init__(self, weight: int):
        self.weight = weight

    @abstractmethod
    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        """
        Decide whether this signal applies to the pair.

        Args:
            line: Bank feed line
            record: Candidate system record

        Returns:
            True if the signal's points should be awarded
        """
        pass


class ExactAmountSignal(MatchSignal):
    """Absolute line amount equals the record amount within the tolerance."""

    name = "amount_exact"

    def __init__(self, weight: int, config: ScoringConfig):
        super().__init__(weight)
        self.tolerance = config.amount_tolerance

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        return amounts_equal(line.amount, record.amount, line.currency, self.tolerance)


class CloseAmountSignal(MatchSignal):
    """Amounts within a percentage of each other, but not already exact."""

    name = "amount_close"

    def __init__(self, weight: int, config: ScoringConfig, exact: ExactAmountSignal):
        super().__init__(weight)
        self.percent = config.close_amount_percent
        self.exact = exact

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        if self.exact.fires(line, record):
            return False
        return amounts_close(line.amount, record.amount, self.percent)


class SameDateSignal(MatchSignal):
    """Transaction date equals the record date."""

    name = "date_exact"

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        return line.transaction_date == record.date


class CloseDateSignal(MatchSignal):
    """Dates within a few calendar days, not the same day."""

    name = "date_close"

    def __init__(self, weight: int, config: ScoringConfig):
        super().__init__(weight)
        self.days = config.close_date_days

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        diff = abs((line.transaction_date - record.date).days)
        return 0 < diff <= self.days


class ReferenceSignal(MatchSignal):
    """
    Document reference appears on the bank line.

    Compares normalized references (letters and digits, upper case) so
    "INV-2048" on the record matches "inv 2048" or "INV2048" on the line.
    """

    name = "reference_match"

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        record_ref = normalize_reference(record.reference)
        if not record_ref:
            return False

        line_ref = normalize_reference(line.reference)
        description = normalize_reference(line.description)

        if line_ref == record_ref:
            return True
        if len(record_ref) >= MIN_REFERENCE_LENGTH and (
            record_ref in description or record_ref in line_ref
        ):
            return True
        if len(line_ref) >= MIN_REFERENCE_LENGTH and line_ref in record_ref:
            return True
        return record_ref in extract_references(line.description)


class CounterpartySignal(MatchSignal):
    """Customer or vendor name appears in the bank description."""

    name = "counterparty_match"

    def __init__(self, weight: int, config: ScoringConfig):
        super().__init__(weight)
        self.stop_words = {w.lower() for w in config.stop_words}

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        if not record.counterparty or not line.description:
            return False

        description = line.description.lower()
        if record.counterparty.strip().lower() in description:
            return True

        words = [
            w
            for w in tokenize(record.counterparty)
            if len(w) > 2 and w not in self.stop_words
        ]
        return any(w in description for w in words)


class DescriptionKeywordSignal(MatchSignal):
    """At least one significant token shared between the two descriptions."""

    name = "description_match"

    def __init__(self, weight: int, config: ScoringConfig):
        super().__init__(weight)
        self.min_length = config.min_keyword_length
        self.stop_words = config.stop_words

    def fires(self, line: BankFeedLine, record: SystemRecord) -> bool:
        if not record.description:
            return False
        line_tokens = significant_tokens(line.description, self.min_length, self.stop_words)
        record_tokens = significant_tokens(
            record.description, self.min_length, self.stop_words
        )
        return bool(line_tokens & record_tokens)


class CandidateScorer:
    """
    Scores one bank line against one system record.

    Signals are evaluated independently and their weights summed, capped
    at 100. Pairs in different currencies, or in different companies when
    both sides name one, are disqualified with a score of 0.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        """
        Initialize the scorer.

        Args:
            config: Scoring policy (weights, tolerances, stop-words)
        """
        self.config = config or ScoringConfig()
        self.signals = self._build_signals()

    def _build_signals(self) -> list[MatchSignal]:
        weights = self.config.weights
        exact = ExactAmountSignal(weights.amount_exact, self.config)
        return [
            exact,
            CloseAmountSignal(weights.amount_close, self.config, exact),
            ReferenceSignal(weights.reference_match),
            SameDateSignal(weights.date_exact),
            CloseDateSignal(weights.date_close, self.config),
            CounterpartySignal(weights.counterparty_match, self.config),
            DescriptionKeywordSignal(weights.description_match, self.config),
        ]

    @staticmethod
    def disqualification(line: BankFeedLine, record: SystemRecord) -> Optional[str]:
        """Return why a pair can never match, or None if it is a viable candidate."""
        if line.currency.upper() != record.currency.upper():
            return "currency_mismatch"
        if line.company_id and record.company_id and line.company_id != record.company_id:
            return "company_mismatch"
        return None

    def score(self, line: BankFeedLine, record: SystemRecord) -> ScoreBreakdown:
        """
        Compute the heuristic score for a pair.

        Args:
            line: Bank feed line
            record: Candidate system record

        Returns:
            Score breakdown with the signals that fired
        """
        reason = self.disqualification(line, record)
        if reason:
            return ScoreBreakdown(score=0, base_score=0, disqualified_reason=reason)

        total = 0
        fired: list[str] = []
        for signal in self.signals:
            if signal.fires(line, record):
                total += signal.weight
                fired.append(signal.name)

        capped = max(0, min(MAX_SCORE, total))
        return ScoreBreakdown(score=capped, base_score=capped, signals=fired)

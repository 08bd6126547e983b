"""
Bank feed matching engine.
Runs the scorer, rule evaluator and ranker over bank lines and builds the
matches a caller should persist. Performs no I/O.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
import logging
import uuid

from ..config import MatchingRule, ReconConfig
from ..models.bank_feed import (
    BankFeedLine,
    BankFeedStatus,
    BankMatch,
    MatchMethod,
    SystemRecord,
)
from ..models.results import (
    BatchResult,
    MatchClassification,
    RankedCandidates,
    ReconciliationStats,
    ScoreBreakdown,
    SuggestedMatch,
)
from ..utils.money import quantize
from .ranker import CandidateRanker
from .rules import RuleEvaluator
from .scorer import CandidateScorer

logger = logging.getLogger(__name__)

# Stable namespace so the same (line, record) pair always yields the same match id
_MATCH_NAMESPACE = uuid.UUID("5b0c1f3e-8a51-4f4c-9d7e-2f6a4c1d9e20")

ADJUSTMENT_REASON = "Amount difference detected"
MANUAL_MATCH_SCORE = 100


def match_id_for(line_id: str, record_id: str) -> str:
    """Deterministic match id for a (line, record) pair."""
    return str(uuid.uuid5(_MATCH_NAMESPACE, f"{line_id}:{record_id}"))


class ReconciliationEngine:
    """
    Main engine that orchestrates bank feed matching.

    Every public method is a pure function of its arguments and the
    configuration: running it twice on the same input gives equal output.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the matching engine.

        Args:
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.scorer = CandidateScorer(self.config.scoring)

    def _ranker(self, rules: Optional[Iterable[MatchingRule]]) -> CandidateRanker:
        rule_set = self.config.rules if rules is None else rules
        return CandidateRanker(self.scorer, RuleEvaluator(rule_set), self.config.scoring)

    def score(
        self,
        line: BankFeedLine,
        record: SystemRecord,
        rules: Optional[Iterable[MatchingRule]] = None,
    ) -> ScoreBreakdown:
        """
        Score one pair, including rule deltas.

        Args:
            line: Bank feed line
            record: System record
            rules: Rules to apply (defaults to the configured rules)

        Returns:
            Score breakdown for audit
        """
        breakdown, _ = self._ranker(rules).score_pair(line, record)
        return breakdown

    def suggest_for_line(
        self,
        line: BankFeedLine,
        records: Iterable[SystemRecord],
        rules: Optional[Iterable[MatchingRule]] = None,
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> RankedCandidates:
        """
        Rank candidates for a single line (quick match and suggestion panel).

        Args:
            line: Bank feed line
            records: Candidate system records
            rules: Rules to apply (defaults to the configured rules)
            exclude_ids: Record ids consumed by other active matches

        Returns:
            Ranked candidates with classification
        """
        return self._ranker(rules).rank(line, records, exclude_ids)

    def run_batch(
        self,
        lines: Iterable[BankFeedLine],
        records: Iterable[SystemRecord],
        rules: Optional[Iterable[MatchingRule]] = None,
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> BatchResult:
        """
        Auto-match all eligible lines in one pass.

        Lines are processed in input order. A record taken by an auto-match
        is not offered to later lines in the same batch.

        Args:
            lines: Bank feed lines (ineligible ones are skipped)
            records: System record pool
            rules: Rules to apply (defaults to the configured rules)
            exclude_ids: Record ids already matched elsewhere

        Returns:
            Matches to persist and suggestions for lines left unmatched
        """
        start_time = datetime.now()
        lines = list(lines)
        records = list(records)
        ranker = self._ranker(rules)

        logger.info(
            f"Starting auto-match: {len(lines)} bank lines, {len(records)} system records"
        )

        used_ids = set(exclude_ids or ())
        result = BatchResult()

        for line in lines:
            if not line.is_eligible_for_auto_match:
                result.skipped_line_ids.append(line.id)
                continue

            ranked = ranker.rank(line, records, used_ids)

            if ranked.classification == MatchClassification.AUTO_MATCH and ranked.top:
                top = ranked.top
                method = MatchMethod.RULE if top.rule_id else MatchMethod.SUGGESTED
                result.matches.append(self.build_match(line, top, method=method))
                used_ids.add(top.system_record_id)
                logger.debug(
                    f"Auto-matched line {line.id} to {top.system_record_type.value} "
                    f"{top.system_record_id} (score {top.match_score})"
                )
            else:
                result.suggestions[line.id] = ranked.suggestions
                logger.debug(
                    f"Line {line.id}: {ranked.classification.value}, "
                    f"{len(ranked.suggestions)} suggestion(s)"
                )

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Auto-match complete in {elapsed:.2f}s: {len(result.matches)} matches, "
            f"{len(result.suggestions)} lines with suggestions, "
            f"{len(result.skipped_line_ids)} skipped"
        )

        return result

    def _match_amounts(
        self, line: BankFeedLine, record_amount: Decimal
    ) -> tuple[Decimal, Decimal, bool]:
        """
        Matched amount, signed difference and whether an adjustment is needed.

        The matched amount never exceeds the line's absolute amount.
        """
        line_amount = quantize(line.absolute_amount, line.currency)
        record_amount = quantize(abs(record_amount), line.currency)
        difference = line_amount - record_amount
        adjustment = abs(difference) > self.config.scoring.amount_tolerance
        return min(line_amount, record_amount), difference, adjustment

    def build_match(
        self,
        line: BankFeedLine,
        suggestion: SuggestedMatch,
        method: MatchMethod = MatchMethod.SUGGESTED,
        matched_by: str = "system",
        matched_at: Optional[datetime] = None,
    ) -> BankMatch:
        """
        Create a match from a suggestion.

        Args:
            line: Bank feed line being matched
            suggestion: Accepted suggestion
            method: How the match was produced
            matched_by: User or process committing the match
            matched_at: Timestamp to stamp on the match

        Returns:
            Match ready to persist
        """
        matched_amount, difference, adjustment = self._match_amounts(line, suggestion.amount)
        return BankMatch(
            id=match_id_for(line.id, suggestion.system_record_id),
            bank_feed_line_id=line.id,
            system_record_type=suggestion.system_record_type,
            system_record_id=suggestion.system_record_id,
            matched_amount=matched_amount,
            amount_difference=difference,
            match_method=method,
            match_score=suggestion.match_score,
            rule_id=suggestion.rule_id if method == MatchMethod.RULE else None,
            adjustment_required=adjustment,
            adjustment_reason=ADJUSTMENT_REASON if adjustment else None,
            project_id=suggestion.project_id,
            matched_by=matched_by,
            matched_at=matched_at,
        )

    def build_manual_match(
        self,
        line: BankFeedLine,
        record: SystemRecord,
        matched_by: str,
        matched_at: Optional[datetime] = None,
    ) -> BankMatch:
        """Create a user-chosen match with full confidence."""
        matched_amount, difference, adjustment = self._match_amounts(line, record.amount)
        return BankMatch(
            id=match_id_for(line.id, record.id),
            bank_feed_line_id=line.id,
            system_record_type=record.type,
            system_record_id=record.id,
            matched_amount=matched_amount,
            amount_difference=difference,
            match_method=MatchMethod.MANUAL,
            match_score=MANUAL_MATCH_SCORE,
            adjustment_required=adjustment,
            adjustment_reason=ADJUSTMENT_REASON if adjustment else None,
            project_id=record.project_id,
            matched_by=matched_by,
            matched_at=matched_at,
        )


def get_reconciliation_stats(lines: Iterable[BankFeedLine]) -> ReconciliationStats:
    """
    Summarize a set of bank lines.

    Deleted lines are left out. System movement signs each line's matched
    amount with the line's direction so it is comparable to bank movement.
    """
    visible = [line for line in lines if line.status != BankFeedStatus.DELETED]

    def count(status: BankFeedStatus) -> int:
        return sum(1 for line in visible if line.status == status)

    bank_movement = sum((line.amount for line in visible), Decimal("0"))
    system_movement = sum(
        (
            line.matched_amount if line.amount >= 0 else -line.matched_amount
            for line in visible
        ),
        Decimal("0"),
    )

    return ReconciliationStats(
        total_bank_lines=len(visible),
        matched_lines=count(BankFeedStatus.MATCHED),
        unmatched_lines=count(BankFeedStatus.UNMATCHED),
        missing_record_lines=count(BankFeedStatus.MISSING_RECORD),
        needs_review_lines=count(BankFeedStatus.NEEDS_REVIEW),
        ignored_lines=count(BankFeedStatus.IGNORED),
        total_bank_movement=bank_movement,
        total_system_movement=system_movement,
    )

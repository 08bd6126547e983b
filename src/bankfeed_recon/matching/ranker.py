"""Ranking of candidate records for a single bank line."""

from typing import Iterable, Optional
import logging

from ..config import ScoringConfig
from ..models.bank_feed import BankFeedLine, SystemRecord
from ..models.results import (
    MatchClassification,
    RankedCandidates,
    ScoreBreakdown,
    SuggestedMatch,
)
from .rules import RuleEvaluator
from .scorer import MAX_SCORE, CandidateScorer

logger = logging.getLogger(__name__)


def _sort_key(suggestion: SuggestedMatch) -> tuple:
    # Higher score, then exact amount, then earlier record date, then id
    return (
        -suggestion.match_score,
        not suggestion.exact_amount,
        suggestion.date,
        suggestion.system_record_id,
    )


class CandidateRanker:
    """
    Scores, orders and classifies the candidates for one bank line.

    Candidates are excluded when they are in the caller's exclusion set
    (consumed by another active match) or disqualified by the scorer.
    """

    def __init__(
        self,
        scorer: CandidateScorer,
        evaluator: RuleEvaluator,
        config: Optional[ScoringConfig] = None,
    ):
        self.scorer = scorer
        self.evaluator = evaluator
        self.config = config or scorer.config

    def score_pair(self, line: BankFeedLine, record: SystemRecord) -> tuple[ScoreBreakdown, int]:
        """
        Score a pair including any rule delta.

        Returns:
            Tuple of (breakdown, auto-match threshold that applies to the pair)
        """
        breakdown = self.scorer.score(line, record)
        threshold = self.config.auto_match_threshold
        if breakdown.is_disqualified:
            return breakdown, threshold

        outcome = self.evaluator.evaluate(line, record)
        if outcome.matched:
            breakdown.rule_id = outcome.rule_id
            breakdown.rule_delta = outcome.delta
            breakdown.score = max(0, min(MAX_SCORE, breakdown.base_score + outcome.delta))
            if outcome.auto_match_threshold is not None:
                threshold = outcome.auto_match_threshold
        return breakdown, threshold

    def rank(
        self,
        line: BankFeedLine,
        records: Iterable[SystemRecord],
        exclude_ids: Optional[Iterable[str]] = None,
    ) -> RankedCandidates:
        """
        Rank candidate records for a bank line.

        Args:
            line: Bank feed line
            records: Candidate system records
            exclude_ids: Ids of records already consumed elsewhere

        Returns:
            Ordered, capped suggestions with the line's classification
        """
        excluded = set(exclude_ids or ())
        suggestions: list[SuggestedMatch] = []

        for record in records:
            if record.id in excluded:
                continue

            breakdown, threshold = self.score_pair(line, record)
            if breakdown.is_disqualified:
                logger.debug(
                    f"Record {record.id} disqualified for line {line.id}: "
                    f"{breakdown.disqualified_reason}"
                )
                continue
            if breakdown.score <= self.config.min_suggestion_score:
                continue

            suggestions.append(
                SuggestedMatch.from_record(line.id, record, breakdown, threshold)
            )

        suggestions.sort(key=_sort_key)
        suggestions = suggestions[: self.config.max_suggestions]

        return RankedCandidates(
            bank_feed_line_id=line.id,
            suggestions=suggestions,
            classification=classify(suggestions),
        )


def classify(suggestions: list[SuggestedMatch]) -> MatchClassification:
    """Classify a ranked list by its top suggestion."""
    if not suggestions:
        return MatchClassification.NO_CANDIDATE
    if suggestions[0].is_auto_matchable:
        return MatchClassification.AUTO_MATCH
    return MatchClassification.SUGGEST_ONLY

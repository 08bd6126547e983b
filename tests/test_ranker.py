from datetime import date
from decimal import Decimal

from bankfeed_recon.config import MatchingRule, ScoringConfig
from bankfeed_recon.matching.ranker import CandidateRanker, classify
from bankfeed_recon.matching.rules import RuleEvaluator
from bankfeed_recon.matching.scorer import CandidateScorer
from bankfeed_recon.models.results import MatchClassification
from tests.conftest import make_line, make_record


def _ranker(rules=(), **scoring) -> CandidateRanker:
    config = ScoringConfig(**scoring)
    return CandidateRanker(CandidateScorer(config), RuleEvaluator(rules), config)


class TestRanking:
    """Ordering, exclusion and capping of candidates."""

    def test_highest_score_first(self):
        records = [
            make_record(id="weak", reference=None, date=date(2024, 3, 20)),
            make_record(id="strong"),
        ]
        ranked = _ranker().rank(make_line(), records)
        assert [s.system_record_id for s in ranked.suggestions] == ["strong", "weak"]

    def test_excluded_records_never_suggested(self):
        records = [make_record(id="exp-1"), make_record(id="exp-2", reference=None)]
        ranked = _ranker().rank(make_line(), records, exclude_ids={"exp-1"})
        assert "exp-1" not in [s.system_record_id for s in ranked.suggestions]
        assert ranked.top.system_record_id == "exp-2"

    def test_disqualified_records_dropped(self):
        ranked = _ranker().rank(make_line(currency="EUR"), [make_record(currency="THB")])
        assert ranked.suggestions == []
        assert ranked.classification == MatchClassification.NO_CANDIDATE

    def test_zero_scores_dropped(self):
        record = make_record(amount=Decimal("99"), date=date(2023, 1, 1), reference=None)
        ranked = _ranker().rank(make_line(), [record])
        assert ranked.suggestions == []

    def test_capped_at_max_suggestions(self):
        records = [make_record(id=f"exp-{i}", reference=None) for i in range(8)]
        ranked = _ranker(max_suggestions=3).rank(make_line(), records)
        assert len(ranked.suggestions) == 3

    def test_equal_scores_ordered_by_record_id(self):
        records = [
            make_record(id="b", reference=None),
            make_record(id="a", reference=None),
        ]
        ranked = _ranker().rank(make_line(), records)
        assert [s.system_record_id for s in ranked.suggestions] == ["a", "b"]

    def test_equal_scores_prefer_earlier_record_date(self):
        records = [
            make_record(id="a-late", reference=None, date=date(2024, 3, 2)),
            make_record(id="z-early", reference=None, date=date(2024, 2, 29)),
        ]
        ranked = _ranker().rank(make_line(), records)
        assert [s.match_score for s in ranked.suggestions] == [50, 50]
        assert ranked.top.system_record_id == "z-early"

    def test_exact_amount_wins_tie(self):
        exact = make_record(id="z-exact", reference=None, date=date(2024, 3, 1))
        close = make_record(
            id="a-close", amount=Decimal("1510"), date=date(2024, 3, 1), reference=None,
            description="client",
        )
        # exact: 40 + 20; close: 20 + 20 + 20 for the shared "client" keyword
        ranker = _ranker(weights={"description_match": 20})
        ranked = ranker.rank(make_line(), [close, exact])
        assert [s.match_score for s in ranked.suggestions] == [60, 60]
        assert ranked.top.system_record_id == "z-exact"

    def test_reasons_recorded(self):
        ranked = _ranker().rank(make_line(), [make_record()])
        assert set(ranked.top.match_reasons) == {"amount_exact", "date_exact", "reference_match"}
        assert ranked.top.exact_amount


class TestClassification:
    """Auto-match is exactly score >= threshold."""

    def test_ninety_is_auto_match(self):
        ranked = _ranker().rank(make_line(), [make_record()])
        assert ranked.top.match_score == 90
        assert ranked.classification == MatchClassification.AUTO_MATCH

    def test_forty_is_suggest_only(self):
        record = make_record(date=date(2024, 3, 10), reference=None)
        ranked = _ranker().rank(make_line(), [record])
        assert ranked.top.match_score == 40
        assert ranked.classification == MatchClassification.SUGGEST_ONLY

    def test_ten_days_away_drops_below_threshold(self):
        same_day = _ranker().rank(make_line(), [make_record()])
        far = _ranker().rank(make_line(), [make_record(date=date(2024, 3, 11))])
        assert same_day.classification == MatchClassification.AUTO_MATCH
        assert far.classification == MatchClassification.SUGGEST_ONLY

    def test_threshold_boundary_is_inclusive(self):
        ranked = _ranker(auto_match_threshold=90).rank(make_line(), [make_record()])
        assert ranked.classification == MatchClassification.AUTO_MATCH
        ranked = _ranker(auto_match_threshold=91).rank(make_line(), [make_record()])
        assert ranked.classification == MatchClassification.SUGGEST_ONLY

    def test_classify_empty(self):
        assert classify([]) == MatchClassification.NO_CANDIDATE


class TestRuleAdjustment:
    """Rule points are added after the heuristic score and clamped."""

    def _rule(self, **kwargs) -> MatchingRule:
        return MatchingRule(
            id="client",
            name="Client payments",
            conditions=[
                {"field": "line_description", "comparator": "contains", "value": "client"}
            ],
            **kwargs,
        )

    def test_rule_points_lift_score_to_auto_match(self):
        record = make_record(date=date(2024, 3, 10), reference=None)
        ranked = _ranker([self._rule(points=50)]).rank(make_line(), [record])
        assert ranked.top.match_score == 90
        assert ranked.top.rule_id == "client"
        assert "rule_match" in ranked.top.match_reasons
        assert ranked.classification == MatchClassification.AUTO_MATCH

    def test_rule_score_clamped(self):
        ranked = _ranker([self._rule(points=50)]).rank(make_line(), [make_record()])
        assert ranked.top.match_score == 100

    def test_negative_points_clamped_to_zero_and_dropped(self):
        record = make_record(date=date(2024, 3, 10), reference=None)
        ranked = _ranker([self._rule(points=-60)]).rank(make_line(), [record])
        assert ranked.suggestions == []

    def test_rule_threshold_override(self):
        record = make_record(date=date(2024, 3, 10), reference=None)
        ranked = _ranker([self._rule(points=0, auto_match_threshold=40)]).rank(
            make_line(), [record]
        )
        assert ranked.top.match_score == 40
        assert ranked.classification == MatchClassification.AUTO_MATCH

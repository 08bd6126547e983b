from datetime import date, timedelta
from decimal import Decimal

import pytest

from bankfeed_recon.config import ScoringConfig, SignalWeights
from bankfeed_recon.matching.scorer import CandidateScorer
from bankfeed_recon.models.bank_feed import SystemRecordType
from tests.conftest import make_line, make_record


@pytest.fixture
def scorer() -> CandidateScorer:
    return CandidateScorer(ScoringConfig())


class TestDisqualification:
    """Pairs that can never match score exactly 0."""

    def test_currency_mismatch_scores_zero(self, scorer):
        breakdown = scorer.score(make_line(currency="EUR"), make_record(currency="THB"))
        assert breakdown.score == 0
        assert breakdown.disqualified_reason == "currency_mismatch"
        assert breakdown.signals == []

    def test_currency_compare_ignores_case(self, scorer):
        breakdown = scorer.score(make_line(currency="thb"), make_record(currency="THB"))
        assert not breakdown.is_disqualified

    def test_company_mismatch_scores_zero(self, scorer):
        breakdown = scorer.score(
            make_line(company_id="co-1"), make_record(company_id="co-2")
        )
        assert breakdown.score == 0
        assert breakdown.disqualified_reason == "company_mismatch"

    def test_missing_company_on_one_side_is_allowed(self, scorer):
        breakdown = scorer.score(make_line(company_id="co-1"), make_record(company_id=None))
        assert not breakdown.is_disqualified
        assert breakdown.score > 0


class TestSignals:
    """Each signal fires on its own evidence."""

    def test_reference_on_description_scores_ninety(self, scorer):
        breakdown = scorer.score(make_line(), make_record())
        assert breakdown.score == 90
        assert set(breakdown.signals) == {"amount_exact", "date_exact", "reference_match"}

    def test_far_date_without_reference_scores_forty(self, scorer):
        breakdown = scorer.score(
            make_line(), make_record(date=date(2024, 3, 10), reference=None)
        )
        assert breakdown.score == 40
        assert breakdown.signals == ["amount_exact"]

    def test_same_amount_and_date_scores_at_least_sixty(self, scorer):
        breakdown = scorer.score(
            make_line(description="Transfer out"), make_record(reference=None)
        )
        assert breakdown.score >= 60

    def test_amount_within_one_cent_is_exact(self, scorer):
        breakdown = scorer.score(make_line(amount=Decimal("-1500.01")), make_record())
        assert "amount_exact" in breakdown.signals

    def test_close_amount_only_when_not_exact(self, scorer):
        breakdown = scorer.score(make_line(amount=Decimal("-1510.00")), make_record())
        assert "amount_close" in breakdown.signals
        assert "amount_exact" not in breakdown.signals

        exact = scorer.score(make_line(), make_record())
        assert "amount_close" not in exact.signals

    def test_amount_outside_one_percent_earns_nothing(self, scorer):
        breakdown = scorer.score(
            make_line(amount=Decimal("-1600.00")), make_record(reference=None)
        )
        assert "amount_close" not in breakdown.signals
        assert "amount_exact" not in breakdown.signals

    @pytest.mark.parametrize("days,expected", [(1, True), (3, True), (4, False), (0, False)])
    def test_close_date_window(self, scorer, days, expected):
        record = make_record(date=date(2024, 3, 1) + timedelta(days=days))
        breakdown = scorer.score(make_line(), record)
        assert ("date_close" in breakdown.signals) is expected

    def test_reference_match_ignores_punctuation(self, scorer):
        line = make_line(description="Payment inv 2048")
        breakdown = scorer.score(line, make_record(reference="INV-2048"))
        assert "reference_match" in breakdown.signals

    def test_reference_on_line_reference_field(self, scorer):
        line = make_line(description="Outgoing transfer", reference="INV2048")
        breakdown = scorer.score(line, make_record(reference="INV-2048"))
        assert "reference_match" in breakdown.signals

    @pytest.mark.parametrize("line_ref", ["1", "001", "20"])
    def test_short_line_reference_is_not_a_partial_match(self, scorer, line_ref):
        line = make_line(description="Outgoing transfer", reference=line_ref)
        breakdown = scorer.score(line, make_record(reference="INV-2024-0001"))
        assert "reference_match" not in breakdown.signals

    def test_long_line_reference_inside_record_reference(self, scorer):
        line = make_line(description="Outgoing transfer", reference="2024-0001")
        breakdown = scorer.score(line, make_record(reference="INV-2024-0001"))
        assert "reference_match" in breakdown.signals

    def test_short_reference_matches_on_equality(self, scorer):
        line = make_line(description="Outgoing transfer", reference="A7")
        breakdown = scorer.score(line, make_record(reference="a-7"))
        assert "reference_match" in breakdown.signals

    def test_counterparty_word_in_description(self, scorer):
        line = make_line(description="TRF ACME TRADING", amount=Decimal("2400"))
        record = make_record(
            type=SystemRecordType.RECEIPT,
            amount=Decimal("2400"),
            reference=None,
            counterparty="Acme Trading Co",
        )
        breakdown = scorer.score(line, record)
        assert "counterparty_match" in breakdown.signals

    def test_counterparty_stop_words_do_not_match(self, scorer):
        line = make_line(description="Bank company charge")
        record = make_record(reference=None, counterparty="The Company Ltd")
        breakdown = scorer.score(line, record)
        assert "counterparty_match" not in breakdown.signals

    def test_description_keyword_overlap(self, scorer):
        line = make_line(description="Office supplies March")
        record = make_record(reference=None, description="Supplies for office")
        breakdown = scorer.score(line, record)
        assert "description_match" in breakdown.signals

    def test_short_words_are_not_keywords(self, scorer):
        line = make_line(description="Tax fee")
        record = make_record(reference=None, description="tax fee")
        breakdown = scorer.score(line, record)
        assert "description_match" not in breakdown.signals


class TestScoreRange:
    """Scores stay within [0, 100]."""

    def test_score_is_capped_at_one_hundred(self):
        scorer = CandidateScorer(
            ScoringConfig(weights=SignalWeights(amount_exact=80, date_exact=80))
        )
        breakdown = scorer.score(make_line(), make_record())
        assert breakdown.score == 100

    @pytest.mark.parametrize(
        "line_kwargs,record_kwargs",
        [
            ({}, {}),
            ({"amount": Decimal("-1")}, {"date": date(2023, 1, 1)}),
            ({"description": "Acme supplies INV-2048"}, {"counterparty": "Acme", "description": "supplies"}),
            ({"currency": "USD"}, {}),
            ({"amount": Decimal("0")}, {"amount": Decimal("0"), "reference": None}),
        ],
    )
    def test_score_within_bounds(self, scorer, line_kwargs, record_kwargs):
        breakdown = scorer.score(make_line(**line_kwargs), make_record(**record_kwargs))
        assert 0 <= breakdown.score <= 100

    def test_weights_are_configurable(self):
        scorer = CandidateScorer(ScoringConfig(weights=SignalWeights(amount_exact=10)))
        breakdown = scorer.score(make_line(), make_record(date=date(2024, 5, 1), reference=None))
        assert breakdown.score == 10

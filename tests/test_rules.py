from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from bankfeed_recon.config import Comparator, MatchingRule, RuleCondition, RuleField
from bankfeed_recon.matching.rules import RuleEvaluator, evaluate_condition, order_rules
from bankfeed_recon.models.bank_feed import SystemRecordType
from tests.conftest import make_line, make_record


def _rule(rule_id="r1", priority=0, points=20, enabled=True, conditions=None, **kwargs):
    """Shorthand for a rule with a single description condition."""
    if conditions is None:
        conditions = [
            {"field": "line_description", "comparator": "contains", "value": "client"}
        ]
    return MatchingRule(
        id=rule_id,
        name=rule_id,
        priority=priority,
        points=points,
        enabled=enabled,
        conditions=conditions,
        **kwargs,
    )


class TestEvaluateCondition:
    """Conditions are interpreted by field kind."""

    def test_text_contains_is_case_insensitive(self):
        condition = RuleCondition(
            field=RuleField.LINE_DESCRIPTION, comparator=Comparator.CONTAINS, value="CLIENT"
        )
        assert evaluate_condition(condition, make_line(), make_record())

    def test_text_equals(self):
        condition = RuleCondition(field=RuleField.RECORD_TYPE, value="expense")
        assert evaluate_condition(condition, make_line(), make_record())
        record = make_record(type=SystemRecordType.RECEIPT)
        assert not evaluate_condition(condition, make_line(), record)

    def test_missing_text_value_never_matches(self):
        condition = RuleCondition(
            field=RuleField.RECORD_COUNTERPARTY, comparator=Comparator.CONTAINS, value="acme"
        )
        assert not evaluate_condition(condition, make_line(), make_record(counterparty=None))

    def test_direction(self):
        condition = RuleCondition(field=RuleField.LINE_DIRECTION, value="debit")
        assert evaluate_condition(condition, make_line(amount=Decimal("-5")), make_record())
        assert not evaluate_condition(condition, make_line(amount=Decimal("5")), make_record())

    def test_number_comparisons(self):
        line = make_line(amount=Decimal("-1500.00"))
        greater = RuleCondition(
            field=RuleField.LINE_ABSOLUTE_AMOUNT, comparator=Comparator.GREATER_THAN, value=1000
        )
        less = RuleCondition(
            field=RuleField.LINE_AMOUNT, comparator=Comparator.LESS_THAN, value="0"
        )
        equals = RuleCondition(field=RuleField.RECORD_AMOUNT, value=1500)
        assert evaluate_condition(greater, line, make_record())
        assert evaluate_condition(less, line, make_record())
        assert evaluate_condition(equals, line, make_record())

    def test_date_comparisons(self):
        before = RuleCondition(
            field=RuleField.LINE_DATE, comparator=Comparator.LESS_THAN, value="2024-04-01"
        )
        after = RuleCondition(
            field=RuleField.RECORD_DATE, comparator=Comparator.GREATER_THAN, value="2024-04-01"
        )
        assert evaluate_condition(before, make_line(), make_record())
        assert not evaluate_condition(after, make_line(), make_record(date=date(2024, 3, 1)))


class TestConditionValidation:
    """Comparators that make no sense for a field kind are rejected up front."""

    def test_ordering_on_text_field_rejected(self):
        with pytest.raises(ValidationError):
            RuleCondition(
                field=RuleField.LINE_DESCRIPTION, comparator=Comparator.GREATER_THAN, value="a"
            )

    def test_contains_on_number_field_rejected(self):
        with pytest.raises(ValidationError):
            RuleCondition(field=RuleField.LINE_AMOUNT, comparator=Comparator.CONTAINS, value="1")

    def test_non_numeric_value_rejected(self):
        with pytest.raises(ValidationError):
            RuleCondition(field=RuleField.RECORD_AMOUNT, value="lots")

    def test_bad_date_rejected(self):
        with pytest.raises(ValidationError):
            RuleCondition(field=RuleField.LINE_DATE, value="01/03/2024")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            RuleCondition(field="line_colour", value="red")

    def test_rule_needs_a_condition(self):
        with pytest.raises(ValidationError):
            _rule(conditions=[])


class TestRuleEvaluator:
    """Priority order, first full match wins."""

    def test_order_rules_by_priority_then_input_order(self):
        rules = [
            _rule("low", priority=1),
            _rule("high-a", priority=5),
            _rule("off", priority=9, enabled=False),
            _rule("high-b", priority=5),
        ]
        assert [r.id for r in order_rules(rules)] == ["high-a", "high-b", "low"]

    def test_first_matching_rule_wins(self):
        evaluator = RuleEvaluator(
            [
                _rule("small", priority=1, points=5),
                _rule("big", priority=10, points=25),
            ]
        )
        outcome = evaluator.evaluate(make_line(), make_record())
        assert outcome.rule_id == "big"
        assert outcome.delta == 25

    def test_all_conditions_must_hold(self):
        rule = _rule(
            conditions=[
                {"field": "line_description", "comparator": "contains", "value": "client"},
                {"field": "record_type", "value": "receipt"},
            ]
        )
        outcome = RuleEvaluator([rule]).evaluate(make_line(), make_record())
        assert not outcome.matched
        assert outcome.delta == 0

    def test_disabled_rules_are_ignored(self):
        outcome = RuleEvaluator([_rule(enabled=False)]).evaluate(make_line(), make_record())
        assert not outcome.matched

    def test_threshold_override_is_reported(self):
        rule = _rule(auto_match_threshold=70)
        outcome = RuleEvaluator([rule]).evaluate(make_line(), make_record())
        assert outcome.auto_match_threshold == 70

"""
Evaluation of user-configured matching rules.

Conditions are interpreted against a fixed table of field readers; there is
no dynamic attribute lookup on lines or records.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional
import logging

from ..config import Comparator, FieldKind, MatchingRule, RuleCondition, RuleField
from ..models.bank_feed import BankFeedLine, SystemRecord
from ..utils.money import to_decimal

logger = logging.getLogger(__name__)

FieldReader = Callable[[BankFeedLine, SystemRecord], Any]

_FIELD_READERS: dict[RuleField, FieldReader] = {
    RuleField.LINE_DESCRIPTION: lambda line, record: line.description,
    RuleField.LINE_REFERENCE: lambda line, record: line.reference,
    RuleField.LINE_AMOUNT: lambda line, record: line.amount,
    RuleField.LINE_ABSOLUTE_AMOUNT: lambda line, record: line.absolute_amount,
    RuleField.LINE_DIRECTION: lambda line, record: "credit" if line.is_credit else "debit",
    RuleField.LINE_BANK_ACCOUNT_ID: lambda line, record: line.bank_account_id,
    RuleField.LINE_CURRENCY: lambda line, record: line.currency,
    RuleField.LINE_COMPANY_ID: lambda line, record: line.company_id,
    RuleField.LINE_DATE: lambda line, record: line.transaction_date,
    RuleField.RECORD_TYPE: lambda line, record: record.type.value,
    RuleField.RECORD_AMOUNT: lambda line, record: record.amount,
    RuleField.RECORD_REFERENCE: lambda line, record: record.reference,
    RuleField.RECORD_COUNTERPARTY: lambda line, record: record.counterparty,
    RuleField.RECORD_DESCRIPTION: lambda line, record: record.description,
    RuleField.RECORD_PROJECT_ID: lambda line, record: record.project_id,
    RuleField.RECORD_DATE: lambda line, record: record.date,
}


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating the rule set for one pair."""

    delta: int = 0
    rule_id: Optional[str] = None
    auto_match_threshold: Optional[int] = None

    @property
    def matched(self) -> bool:
        return self.rule_id is not None


NO_RULE = RuleOutcome()


def read_field(field: RuleField, line: BankFeedLine, record: SystemRecord) -> Any:
    """Read a normalized field value from the pair."""
    return _FIELD_READERS[field](line, record)


def _compare_text(actual: Optional[str], comparator: Comparator, expected: Any) -> bool:
    if actual is None:
        return False
    actual_text = str(actual).strip().lower()
    expected_text = str(expected).strip().lower()
    if comparator == Comparator.EQUALS:
        return actual_text == expected_text
    if comparator == Comparator.CONTAINS:
        return expected_text in actual_text
    return False


def _compare_ordered(actual: Any, comparator: Comparator, expected: Any) -> bool:
    if comparator == Comparator.EQUALS:
        return actual == expected
    if comparator == Comparator.GREATER_THAN:
        return actual > expected
    if comparator == Comparator.LESS_THAN:
        return actual < expected
    return False


def evaluate_condition(
    condition: RuleCondition, line: BankFeedLine, record: SystemRecord
) -> bool:
    """
    Interpret one condition against a line and a record.

    Text fields compare case-insensitively; number fields compare as
    Decimal; date fields compare as calendar dates.
    """
    actual = read_field(condition.field, line, record)
    kind = condition.field.kind

    if kind == FieldKind.TEXT:
        return _compare_text(actual, condition.comparator, condition.value)

    if actual is None:
        return False
    if kind == FieldKind.NUMBER:
        expected: Any = to_decimal(condition.value)
        return _compare_ordered(Decimal(actual), condition.comparator, expected)

    expected = date.fromisoformat(str(condition.value))
    return _compare_ordered(actual, condition.comparator, expected)


def rule_applies(rule: MatchingRule, line: BankFeedLine, record: SystemRecord) -> bool:
    """All conditions must hold."""
    return all(evaluate_condition(c, line, record) for c in rule.conditions)


def order_rules(rules: Iterable[MatchingRule]) -> list[MatchingRule]:
    """Enabled rules, highest priority first; equal priorities keep their order."""
    return sorted((r for r in rules if r.enabled), key=lambda r: -r.priority)


class RuleEvaluator:
    """Finds the first enabled rule whose conditions all hold for a pair."""

    def __init__(self, rules: Iterable[MatchingRule]):
        """
        Initialize with the configured rules.

        Args:
            rules: Matching rules; disabled ones are dropped
        """
        self.rules = order_rules(rules)

    def evaluate(self, line: BankFeedLine, record: SystemRecord) -> RuleOutcome:
        """
        Evaluate rules in order; the first full match wins.

        Returns:
            The winning rule's point delta and id, or an empty outcome
        """
        for rule in self.rules:
            if rule_applies(rule, line, record):
                logger.debug(
                    f"Rule {rule.id} matched line {line.id} / record {record.id} "
                    f"({rule.points:+d} points)"
                )
                return RuleOutcome(
                    delta=rule.points,
                    rule_id=rule.id,
                    auto_match_threshold=rule.auto_match_threshold,
                )
        return NO_RULE

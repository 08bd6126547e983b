"""Matching engine, scorer, rule evaluator and ranker."""

from .engine import ReconciliationEngine, get_reconciliation_stats, match_id_for
from .normalizer import (
    build_record_pool,
    expense_to_system_record,
    receipt_to_system_record,
    to_system_record,
)
from .ranker import CandidateRanker, classify
from .rules import RuleEvaluator, RuleOutcome, evaluate_condition
from .scorer import CandidateScorer, MatchSignal

__all__ = [
    "ReconciliationEngine",
    "get_reconciliation_stats",
    "match_id_for",
    "build_record_pool",
    "expense_to_system_record",
    "receipt_to_system_record",
    "to_system_record",
    "CandidateRanker",
    "classify",
    "RuleEvaluator",
    "RuleOutcome",
    "evaluate_condition",
    "CandidateScorer",
    "MatchSignal",
]

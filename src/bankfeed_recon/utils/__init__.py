"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ConfigurationError,
    BankStatementParseError,
    RecordParseError,
    RecordNormalizationError,
    DataStoreError,
    DuplicateMatchError,
    LineNotFoundError,
    MatchNotFoundError,
    RecordAlreadyMatchedError,
    LineAlreadyMatchedError,
    ReportGenerationError,
)
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "ConfigurationError",
    "BankStatementParseError",
    "RecordParseError",
    "RecordNormalizationError",
    "DataStoreError",
    "DuplicateMatchError",
    "LineNotFoundError",
    "MatchNotFoundError",
    "RecordAlreadyMatchedError",
    "LineAlreadyMatchedError",
    "ReportGenerationError",
    "setup_logging",
]

"""Parsers for bank statement and system record CSV files."""

from .bank_statement_parser import (
    BankStatementParser,
    ColumnMapping,
    DateFormat,
    detect_column_mapping,
    detect_date_format,
    parse_statement_amount,
    parse_statement_date,
)
from .record_parser import RecordParser

__all__ = [
    "BankStatementParser",
    "ColumnMapping",
    "DateFormat",
    "detect_column_mapping",
    "detect_date_format",
    "parse_statement_amount",
    "parse_statement_date",
    "RecordParser",
]

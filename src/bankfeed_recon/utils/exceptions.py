"""Custom exceptions for the bank feed reconciliation application."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class BankStatementParseError(ReconciliationError):
    """Error parsing a bank statement CSV file."""

    pass


class RecordParseError(ReconciliationError):
    """Error parsing a receipts or expenses CSV file."""

    pass


class RecordNormalizationError(ReconciliationError):
    """A source row could not be projected into a system record."""

    pass


class DataStoreError(ReconciliationError):
    """Error raised by the persistence boundary."""

    pass


class DuplicateMatchError(DataStoreError):
    """A match for the same bank line and system record already exists."""

    def __init__(self, line_id: str, record_id: str):
        self.line_id = line_id
        self.record_id = record_id
        super().__init__(f"Line {line_id} is already matched to record {record_id}")


class LineNotFoundError(DataStoreError):
    """Bank feed line does not exist in the store."""

    pass


class MatchNotFoundError(DataStoreError):
    """Bank match does not exist in the store."""

    pass


class RecordAlreadyMatchedError(DataStoreError):
    """The system record is already consumed by another line's active match."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"System record {record_id} is already matched to another bank line")


class LineAlreadyMatchedError(ReconciliationError):
    """The bank line has an active match; it must be removed before re-matching."""

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(
            f"Bank line {line_id} already has a match. Remove the existing match first."
        )


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass

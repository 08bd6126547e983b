"""
Persistence boundary for bank lines and matches.

The matcher never writes anything itself; callers persist its output
through a DataStore. ``InMemoryDataStore`` backs the CLI and the tests.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Iterable, Optional
import logging

from ..models.bank_feed import BankFeedLine, BankFeedStatus, BankMatch
from ..utils.exceptions import DuplicateMatchError, LineNotFoundError, MatchNotFoundError

logger = logging.getLogger(__name__)


class DataStore(ABC):
    """Abstract CRUD boundary used by the reconciliation service."""

    @abstractmethod
    def get_line(self, line_id: str) -> BankFeedLine:
        """
        Fetch a bank line with its matches.

        Raises:
            LineNotFoundError: If no such line exists
        """
        pass

    @abstractmethod
    def list_lines(self, include_deleted: bool = False) -> list[BankFeedLine]:
        """Return stored lines, soft-deleted ones only when asked."""
        pass

    @abstractmethod
    def add_lines(self, lines: Iterable[BankFeedLine]) -> tuple[int, int]:
        """
        Import bank lines, skipping duplicates.

        Returns:
            Tuple of (inserted, duplicates)
        """
        pass

    @abstractmethod
    def create_match(self, match: BankMatch) -> BankMatch:
        """
        Persist a match.

        Raises:
            DuplicateMatchError: If the (line, record) pair is already matched
            LineNotFoundError: If the line does not exist
        """
        pass

    @abstractmethod
    def delete_match(self, match_id: str) -> None:
        """
        Remove a match.

        Raises:
            MatchNotFoundError: If no such match exists
        """
        pass

    @abstractmethod
    def update_line_status(
        self,
        line_id: str,
        status: BankFeedStatus,
        matched_amount: Optional[Decimal] = None,
        matched_by: Optional[str] = None,
    ) -> None:
        """Set a line's status and, optionally, its matched amount."""
        pass

    @abstractmethod
    def mark_ignored(self, line_id: str, ignored_by: str, reason: Optional[str] = None) -> None:
        """Flag a line as a non-business transaction."""
        pass

    @abstractmethod
    def unignore(self, line_id: str) -> None:
        """Return an ignored line to the unmatched state."""
        pass

    def matched_record_ids(self) -> set[str]:
        """Ids of system records consumed by any active match."""
        return {
            match.system_record_id
            for line in self.list_lines()
            for match in line.active_matches
        }


def duplicate_key(line: BankFeedLine) -> tuple:
    """Import de-duplication key: account, date, amount and description prefix."""
    return (
        line.bank_account_id,
        line.transaction_date,
        line.amount,
        line.description[:50],
    )


class InMemoryDataStore(DataStore):
    """Dictionary-backed store enforcing the same constraints as the database."""

    def __init__(self, lines: Optional[Iterable[BankFeedLine]] = None):
        self._lines: dict[str, BankFeedLine] = {}
        self._match_index: dict[str, str] = {}  # match id -> line id
        if lines:
            self.add_lines(lines)

    def get_line(self, line_id: str) -> BankFeedLine:
        try:
            return self._lines[line_id]
        except KeyError:
            raise LineNotFoundError(f"Bank feed line not found: {line_id}") from None

    def list_lines(self, include_deleted: bool = False) -> list[BankFeedLine]:
        return [
            line
            for line in self._lines.values()
            if include_deleted or line.status != BankFeedStatus.DELETED
        ]

    def add_lines(self, lines: Iterable[BankFeedLine]) -> tuple[int, int]:
        existing = {duplicate_key(line) for line in self._lines.values()}
        inserted = 0
        duplicates = 0

        for line in lines:
            key = duplicate_key(line)
            if line.id in self._lines or key in existing:
                duplicates += 1
                continue
            self._lines[line.id] = line
            existing.add(key)
            for match in line.matches:
                self._match_index[match.id] = line.id
            inserted += 1

        if duplicates:
            logger.warning(f"Skipped {duplicates} duplicate bank line(s) on import")
        return inserted, duplicates

    def create_match(self, match: BankMatch) -> BankMatch:
        line = self.get_line(match.bank_feed_line_id)
        for existing in line.matches:
            if existing.system_record_id == match.system_record_id:
                raise DuplicateMatchError(line.id, match.system_record_id)

        line.matches.append(match)
        self._match_index[match.id] = line.id
        return match

    def delete_match(self, match_id: str) -> None:
        line_id = self._match_index.pop(match_id, None)
        if line_id is None:
            raise MatchNotFoundError(f"Bank match not found: {match_id}")
        line = self._lines[line_id]
        line.matches = [m for m in line.matches if m.id != match_id]

    def update_line_status(
        self,
        line_id: str,
        status: BankFeedStatus,
        matched_amount: Optional[Decimal] = None,
        matched_by: Optional[str] = None,
    ) -> None:
        line = self.get_line(line_id)
        line.status = status
        if matched_amount is not None:
            line.matched_amount = matched_amount
        if matched_by is not None:
            line.matched_by = matched_by

    def mark_ignored(self, line_id: str, ignored_by: str, reason: Optional[str] = None) -> None:
        line = self.get_line(line_id)
        line.status = BankFeedStatus.IGNORED
        line.ignored_by = ignored_by
        line.ignored_reason = reason

    def unignore(self, line_id: str) -> None:
        line = self.get_line(line_id)
        line.status = BankFeedStatus.UNMATCHED
        line.ignored_by = None
        line.ignored_reason = None

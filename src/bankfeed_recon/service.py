"""
Reconciliation workflows over a DataStore.

Wraps the pure matching engine with the persistence calls behind each user
action: run auto-match, quick match, accept a suggestion, manual match,
remove a match, ignore/unignore and soft delete/restore.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional
import logging

from .config import MatchingRule
from .matching.engine import ReconciliationEngine
from .models.bank_feed import (
    BankFeedLine,
    BankFeedStatus,
    BankMatch,
    MatchMethod,
    SystemRecord,
)
from .models.results import SuggestedMatch
from .persistence.datastore import DataStore
from .utils.exceptions import (
    DataStoreError,
    DuplicateMatchError,
    LineAlreadyMatchedError,
    MatchNotFoundError,
    RecordAlreadyMatchedError,
)

logger = logging.getLogger(__name__)

IGNORE_REASON = "Marked as non-business transaction"


@dataclass
class MatchFailure:
    """A match the engine produced but the store refused."""

    bank_feed_line_id: str
    system_record_id: str
    error: str


@dataclass
class AutoMatchReport:
    """What happened when auto-match results were persisted."""

    applied: list[BankMatch] = field(default_factory=list)
    failures: list[MatchFailure] = field(default_factory=list)
    suggestions: dict[str, list[SuggestedMatch]] = field(default_factory=dict)
    skipped_line_ids: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def applied_count(self) -> int:
        return len(self.applied)


class ReconciliationService:
    """User-facing reconciliation actions backed by a DataStore."""

    def __init__(
        self,
        store: DataStore,
        engine: Optional[ReconciliationEngine] = None,
        user: str = "system",
    ):
        """
        Initialize the service.

        Args:
            store: Persistence boundary
            engine: Matching engine (a default-configured one if omitted)
            user: Name recorded on matches and audit fields
        """
        self.store = store
        self.engine = engine or ReconciliationEngine()
        self.user = user

    def run_auto_match(
        self,
        records: Iterable[SystemRecord],
        lines: Optional[Iterable[BankFeedLine]] = None,
        rules: Optional[Iterable[MatchingRule]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> AutoMatchReport:
        """
        Auto-match lines and persist every confident match.

        A failing write is logged and reported; the remaining matches are
        still attempted. ``should_cancel`` is checked before each write and
        stops further writes once it returns True.

        Args:
            records: System record pool
            lines: Lines in scope (defaults to every stored line)
            rules: Rules to apply (defaults to the configured rules)
            should_cancel: Optional cancellation probe

        Returns:
            Report of applied matches, failures and suggestions
        """
        scope = self.store.list_lines() if lines is None else list(lines)
        consumed = self.store.matched_record_ids()

        batch = self.engine.run_batch(scope, records, rules, exclude_ids=consumed)
        report = AutoMatchReport(
            suggestions=batch.suggestions,
            skipped_line_ids=batch.skipped_line_ids,
        )

        for match in batch.matches:
            if should_cancel is not None and should_cancel():
                logger.warning(
                    f"Auto-match cancelled after {report.applied_count} of "
                    f"{len(batch.matches)} matches"
                )
                report.cancelled = True
                break

            stamped = replace(match, matched_at=datetime.now())
            try:
                self._persist(stamped)
            except DataStoreError as e:
                logger.error(f"Failed to apply auto-match for line {match.bank_feed_line_id}: {e}")
                report.failures.append(
                    MatchFailure(match.bank_feed_line_id, match.system_record_id, str(e))
                )
                continue
            report.applied.append(stamped)

        logger.info(
            f"Auto-match applied {report.applied_count} match(es), "
            f"{len(report.failures)} failure(s), "
            f"{len(report.suggestions)} line(s) with suggestions"
        )
        return report

    def quick_match(
        self,
        line_id: str,
        records: Iterable[SystemRecord],
        rules: Optional[Iterable[MatchingRule]] = None,
        cached_suggestions: Optional[list[SuggestedMatch]] = None,
    ) -> Optional[BankMatch]:
        """
        Match a line to its top suggestion.

        Uses previously computed suggestions when available, dropping any
        whose record has since been consumed; otherwise ranks on the fly.

        Returns:
            The committed match, or None when there is no candidate
        """
        line = self.store.get_line(line_id)
        self._ensure_unmatched(line)
        consumed = self.store.matched_record_ids()

        suggestions = [
            s for s in (cached_suggestions or []) if s.system_record_id not in consumed
        ]
        if not suggestions:
            ranked = self.engine.suggest_for_line(line, records, rules, exclude_ids=consumed)
            suggestions = ranked.suggestions

        if not suggestions:
            logger.info(f"No suggestions for line {line_id}")
            return None

        match = self.engine.build_match(
            line,
            suggestions[0],
            method=MatchMethod.SUGGESTED,
            matched_by=self.user,
            matched_at=datetime.now(),
        )
        return self._persist(match)

    def accept_suggestion(self, suggestion: SuggestedMatch) -> BankMatch:
        """Commit a specific suggestion from a previously computed list."""
        line = self.store.get_line(suggestion.bank_feed_line_id)
        self._ensure_unmatched(line)
        self._ensure_record_available(suggestion.system_record_id)
        match = self.engine.build_match(
            line,
            suggestion,
            method=MatchMethod.SUGGESTED,
            matched_by=self.user,
            matched_at=datetime.now(),
        )
        return self._persist(match)

    def manual_match(self, line_id: str, record: SystemRecord) -> BankMatch:
        """Match a line to a record the user picked."""
        line = self.store.get_line(line_id)
        self._ensure_unmatched(line)
        self._ensure_record_available(record.id)
        match = self.engine.build_manual_match(
            line, record, matched_by=self.user, matched_at=datetime.now()
        )
        return self._persist(match)

    def remove_match(self, line_id: str, match_id: str) -> None:
        """
        Delete one of a line's matches and recompute the line.

        The line stays matched while it holds other matches, otherwise it
        returns to unmatched with a zero matched amount.

        Raises:
            MatchNotFoundError: If the match does not belong to the line
        """
        line = self.store.get_line(line_id)
        if not any(m.id == match_id for m in line.matches):
            raise MatchNotFoundError(f"Bank match {match_id} not found on line {line_id}")

        remaining = [m for m in line.matches if m.id != match_id]
        self.store.delete_match(match_id)

        if remaining:
            matched_amount = sum((m.matched_amount for m in remaining), Decimal("0"))
            self.store.update_line_status(line_id, BankFeedStatus.MATCHED, matched_amount)
        else:
            self.store.update_line_status(line_id, BankFeedStatus.UNMATCHED, Decimal("0"))
        logger.info(f"Removed match {match_id} from line {line_id}")

    def ignore_line(self, line_id: str, reason: str = IGNORE_REASON) -> None:
        self.store.mark_ignored(line_id, self.user, reason)

    def unignore_line(self, line_id: str) -> None:
        self.store.unignore(line_id)

    def delete_line(self, line_id: str) -> None:
        """Soft-delete a line; it is kept with status deleted."""
        self.store.update_line_status(line_id, BankFeedStatus.DELETED)

    def restore_line(self, line_id: str) -> None:
        """Bring a soft-deleted line back."""
        line = self.store.get_line(line_id)
        status = BankFeedStatus.MATCHED if line.matches else BankFeedStatus.UNMATCHED
        self.store.update_line_status(line_id, status)

    def _ensure_unmatched(self, line: BankFeedLine) -> None:
        if line.has_active_match:
            raise LineAlreadyMatchedError(line.id)

    def _ensure_record_available(self, record_id: str) -> None:
        if record_id in self.store.matched_record_ids():
            raise RecordAlreadyMatchedError(record_id)

    def _persist(self, match: BankMatch) -> BankMatch:
        """
        Write a match and mark its line matched.

        Writing the same (line, record) pair twice is a no-op.
        """
        try:
            self.store.create_match(match)
        except DuplicateMatchError:
            logger.info(
                f"Match for line {match.bank_feed_line_id} and record "
                f"{match.system_record_id} already exists"
            )

        line = self.store.get_line(match.bank_feed_line_id)
        matched_amount = sum((m.matched_amount for m in line.active_matches), Decimal("0"))
        self.store.update_line_status(
            match.bank_feed_line_id,
            BankFeedStatus.MATCHED,
            matched_amount,
            matched_by=match.matched_by,
        )
        return match

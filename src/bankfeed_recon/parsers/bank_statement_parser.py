"""
Bank statement CSV parser.
Parses bank statement exports and converts them to BankFeedLine records.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional
import logging
import re

import pandas as pd

from ..config import ReconConfig
from ..models.bank_feed import BankFeedLine
from ..persistence.datastore import duplicate_key
from ..utils.exceptions import BankStatementParseError
from ..utils.money import to_decimal

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")
_DAY_MONTH_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")

DATE_KEYWORDS = ("date", "transaction date", "value date", "posting date")
DESCRIPTION_KEYWORDS = ("description", "details", "narrative", "memo", "particulars")


class DateFormat(str, Enum):
    """Day/month ordering of statement dates."""

    ISO = "ISO"
    DMY = "DMY"
    MDY = "MDY"


@dataclass
class ColumnMapping:
    """Which CSV headers hold which bank line fields."""

    date: str
    description: str
    amount: Optional[str] = None
    debit: Optional[str] = None
    credit: Optional[str] = None
    reference: Optional[str] = None
    balance: Optional[str] = None

    def missing(self, headers: list[str]) -> list[str]:
        """Return problems with this mapping against the file's headers."""
        problems = []
        if not self.date or self.date not in headers:
            problems.append("Date column not found or not mapped")
        if not self.description or self.description not in headers:
            problems.append("Description column not found or not mapped")

        has_amount = bool(self.amount) and self.amount in headers
        has_debit_credit = (
            bool(self.debit)
            and self.debit in headers
            and bool(self.credit)
            and self.credit in headers
        )
        if not has_amount and not has_debit_credit:
            problems.append(
                "Amount column(s) not found. Need either Amount column or Debit/Credit columns"
            )
        return problems


def detect_column_mapping(headers: list[str]) -> ColumnMapping:
    """
    Guess the column mapping from header names.

    Falls back to the first two columns for date and description.
    """
    lower = [h.lower().strip() for h in headers]

    def first(predicate) -> Optional[str]:
        for header, name in zip(headers, lower):
            if predicate(name):
                return header
        return None

    date_col = first(lambda h: any(kw in h for kw in DATE_KEYWORDS))
    desc_col = first(lambda h: any(kw in h for kw in DESCRIPTION_KEYWORDS))

    mapping = ColumnMapping(
        date=date_col or (headers[0] if headers else ""),
        description=desc_col or (headers[1] if len(headers) > 1 else ""),
    )

    amount_col = first(lambda h: h in ("amount", "value"))
    debit_col = first(lambda h: "debit" in h or h == "dr")
    credit_col = first(lambda h: "credit" in h or h == "cr")
    if amount_col:
        mapping.amount = amount_col
    elif debit_col and credit_col:
        mapping.debit = debit_col
        mapping.credit = credit_col

    mapping.reference = first(
        lambda h: "reference" in h or "ref" in h or h in ("cheque no", "transaction id")
    )
    mapping.balance = first(lambda h: "balance" in h)
    return mapping


def _date_part(value: str) -> str:
    """Strip a time portion: '31/12/2025 16:19:53' -> '31/12/2025'."""
    return re.split(r"[\sT]", value.strip())[0] if value else ""


def detect_date_format(values: Iterable[str]) -> DateFormat:
    """
    Decide the date ordering from every value in the column.

    A year-first value means ISO. Otherwise a first component above 12 means
    day-first and a second component above 12 means month-first. Ambiguous
    columns default to day-first.
    """
    first_over_12 = False
    second_over_12 = False

    for value in values:
        part = _date_part(value)
        if not part:
            continue
        if _ISO_DATE.match(part):
            return DateFormat.ISO
        match = _DAY_MONTH_DATE.match(part)
        if match:
            if int(match.group(1)) > 12:
                first_over_12 = True
            if int(match.group(2)) > 12:
                second_over_12 = True

    if first_over_12:
        return DateFormat.DMY
    if second_over_12:
        return DateFormat.MDY
    return DateFormat.DMY


def parse_statement_date(value: str, date_format: DateFormat = DateFormat.DMY) -> Optional[date]:
    """Parse one statement date, or None when it does not fit the format."""
    part = _date_part(value)
    if not part:
        return None

    try:
        iso = _ISO_DATE.match(part)
        if iso:
            year, month, day = iso.groups()
            return date(int(year), int(month), int(day))

        match = _DAY_MONTH_DATE.match(part)
        if match:
            first, second, year = match.groups()
            if date_format == DateFormat.MDY:
                return date(int(year), int(first), int(second))
            return date(int(year), int(second), int(first))
    except ValueError:
        return None

    return None


def parse_statement_amount(value: Optional[str]) -> Decimal:
    """
    Parse an amount cell.

    Tolerates currency symbols, thousands separators and comma decimals.
    Blank cells are zero.

    Raises:
        ValueError: If the cleaned text is not a number
    """
    if value is None:
        return Decimal("0")
    cleaned = re.sub(r"[^\d.,-]", "", str(value))
    if not cleaned:
        return Decimal("0")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        # Exactly three digits after the comma means a thousands separator
        if re.search(r",\d{3}$", cleaned):
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = cleaned.replace(",", ".")

    return to_decimal(cleaned)


class BankStatementParser:
    """
    Parser for bank statement CSV exports.

    Handles differently laid out exports by auto-detecting the column
    mapping and date format unless the configuration pins them.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config
        statement_config = config.input.bank_statement
        self.encoding = statement_config.get("encoding", "utf-8")
        self.delimiter = statement_config.get("delimiter", ",")
        self.default_currency = statement_config.get("default_currency", "THB")
        self.column_mappings = statement_config.get("column_mappings") or {}

    def parse_file(
        self,
        file_path: Path,
        bank_account_id: str,
        currency: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> list[BankFeedLine]:
        """
        Parse a bank statement CSV file into bank feed lines.

        Args:
            file_path: Path to the CSV file
            bank_account_id: Account the statement belongs to
            currency: Statement currency (defaults to the configured one)
            company_id: Owning company, if known

        Returns:
            List of bank feed lines in file order

        Raises:
            BankStatementParseError: If the file cannot be read, has no
                usable columns or yields no valid rows
        """
        logger.info(f"Parsing bank statement CSV file: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.encoding,
                delimiter=self.delimiter,
                dtype=str,
                skipinitialspace=True,
            )
        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise BankStatementParseError(f"Failed to read CSV file: {e}") from e

        if df.empty:
            raise BankStatementParseError("CSV file is empty or contains only headers")

        df.columns = [str(c).strip() for c in df.columns]
        headers = list(df.columns)

        mapping = self._resolve_mapping(headers)
        problems = mapping.missing(headers)
        if problems:
            raise BankStatementParseError("; ".join(problems))

        date_format = detect_date_format(df[mapping.date].dropna().tolist())
        logger.debug(f"Detected date format {date_format.value} for column '{mapping.date}'")

        lines = self._process_dataframe(
            df, mapping, date_format, bank_account_id, currency or self.default_currency, company_id
        )
        if not lines:
            raise BankStatementParseError("No valid transactions found in CSV")

        duplicates = self.find_duplicates(lines)
        if duplicates:
            logger.warning(f"Found {duplicates} potential duplicate transactions")

        logger.info(f"Extracted {len(lines)} bank lines from statement")
        return lines

    def _resolve_mapping(self, headers: list[str]) -> ColumnMapping:
        """Configured mapping if one is set, else auto-detection."""
        if self.column_mappings:
            return ColumnMapping(
                date=self.column_mappings.get("date", ""),
                description=self.column_mappings.get("description", ""),
                amount=self.column_mappings.get("amount"),
                debit=self.column_mappings.get("debit"),
                credit=self.column_mappings.get("credit"),
                reference=self.column_mappings.get("reference"),
                balance=self.column_mappings.get("balance"),
            )
        mapping = detect_column_mapping(headers)
        logger.debug(f"Auto-detected column mapping: {mapping}")
        return mapping

    def _process_dataframe(
        self,
        df: pd.DataFrame,
        mapping: ColumnMapping,
        date_format: DateFormat,
        bank_account_id: str,
        currency: str,
        company_id: Optional[str],
    ) -> list[BankFeedLine]:
        lines: list[BankFeedLine] = []

        for idx, row in df.iterrows():
            # Header is row 1 in the file
            row_num = int(idx) + 2
            if all(pd.isna(v) or not str(v).strip() for v in row.values):
                continue
            try:
                line = self._normalize_row(
                    row, row_num, mapping, date_format, bank_account_id, currency, company_id
                )
            except ValueError as e:
                logger.warning(f"Row {row_num}: {e}, skipping")
                continue
            lines.append(line)

        return lines

    def _normalize_row(
        self,
        row: pd.Series,
        row_num: int,
        mapping: ColumnMapping,
        date_format: DateFormat,
        bank_account_id: str,
        currency: str,
        company_id: Optional[str],
    ) -> BankFeedLine:
        """
        Convert a DataFrame row to a BankFeedLine.

        Raises:
            ValueError: If the row has no valid date, description or amount
        """

        def cell(column: Optional[str]) -> Optional[str]:
            if not column:
                return None
            value = row.get(column)
            if pd.isna(value):
                return None
            text = str(value).strip()
            return text or None

        raw_date = cell(mapping.date) or ""
        txn_date = parse_statement_date(raw_date, date_format)
        if txn_date is None:
            raise ValueError(f"Invalid date format: {raw_date}")

        description = cell(mapping.description)
        if not description:
            raise ValueError("Description is required")

        if mapping.amount:
            amount = parse_statement_amount(cell(mapping.amount))
        else:
            # Credit is money in, debit is money out
            amount = parse_statement_amount(cell(mapping.credit)) - parse_statement_amount(
                cell(mapping.debit)
            )

        balance_text = cell(mapping.balance)
        running_balance = parse_statement_amount(balance_text) if balance_text else None

        return BankFeedLine(
            id=f"{bank_account_id}-L{row_num:05d}",
            bank_account_id=bank_account_id,
            currency=currency.upper(),
            transaction_date=txn_date,
            description=description,
            amount=amount,
            reference=cell(mapping.reference),
            running_balance=running_balance,
            company_id=company_id,
        )

    @staticmethod
    def find_duplicates(lines: Iterable[BankFeedLine]) -> int:
        """Count lines whose date, amount and description prefix repeat an earlier line."""
        seen = set()
        duplicates = 0
        for line in lines:
            key = duplicate_key(line)
            if key in seen:
                duplicates += 1
            else:
                seen.add(key)
        return duplicates

    @staticmethod
    def filter_existing(
        new_lines: Iterable[BankFeedLine], existing_lines: Iterable[BankFeedLine]
    ) -> list[BankFeedLine]:
        """Return the new lines that were already imported."""
        existing = {duplicate_key(line) for line in existing_lines}
        return [line for line in new_lines if duplicate_key(line) in existing]

    def get_file_summary(self, lines: list[BankFeedLine]) -> dict:
        """
        Summarize parsed statement lines.

        Args:
            lines: Lines returned by ``parse_file``

        Returns:
            Dictionary with counts, date range and totals
        """
        credits = [line.amount for line in lines if line.amount > 0]
        debits = [line.amount for line in lines if line.amount < 0]
        dates = [line.transaction_date for line in lines]

        return {
            "line_count": len(lines),
            "date_range": {
                "start": min(dates).isoformat() if dates else None,
                "end": max(dates).isoformat() if dates else None,
            },
            "totals": {
                "credit_count": len(credits),
                "debit_count": len(debits),
                "total_credits": sum(credits, Decimal("0")),
                "total_debits": sum(debits, Decimal("0")),
            },
            "duplicates": self.find_duplicates(lines),
        }

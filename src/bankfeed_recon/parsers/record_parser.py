"""
Receipts and expenses CSV parser.
Reads exported system records and normalizes the eligible ones into
SystemRecord objects for matching.
"""

from pathlib import Path
from typing import Any, Callable, Mapping
import logging

import pandas as pd

from ..config import ReconConfig
from ..matching.normalizer import eligible_expense, eligible_receipt, to_system_record
from ..models.bank_feed import SystemRecord, SystemRecordType
from ..utils.exceptions import RecordNormalizationError, RecordParseError

logger = logging.getLogger(__name__)


class RecordParser:
    """Parser for receipt and expense CSV exports."""

    def __init__(self, config: ReconConfig):
        self.config = config
        records_config = config.input.records
        self.encoding = records_config.get("encoding", "utf-8")
        self.delimiter = records_config.get("delimiter", ",")
        self.default_currency = records_config.get("default_currency", "THB")

    def parse_receipts(self, file_path: Path) -> list[SystemRecord]:
        """
        Parse paid receipts from a CSV file.

        Raises:
            RecordParseError: If the file cannot be read
        """
        return self._parse(file_path, SystemRecordType.RECEIPT, eligible_receipt)

    def parse_expenses(self, file_path: Path) -> list[SystemRecord]:
        """
        Parse approved, paid expenses from a CSV file.

        Raises:
            RecordParseError: If the file cannot be read
        """
        return self._parse(file_path, SystemRecordType.EXPENSE, eligible_expense)

    def _parse(
        self,
        file_path: Path,
        record_type: SystemRecordType,
        is_eligible: Callable[[Mapping[str, Any]], bool],
    ) -> list[SystemRecord]:
        logger.info(f"Parsing {record_type.value} CSV file: {file_path}")

        try:
            df = pd.read_csv(
                file_path,
                encoding=self.encoding,
                delimiter=self.delimiter,
                dtype=str,
            )
        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read CSV file: {e}")
            raise RecordParseError(f"Failed to read {record_type.value} CSV file: {e}") from e

        df.columns = [str(c).strip() for c in df.columns]
        if "id" not in df.columns:
            raise RecordParseError(f"{record_type.value} CSV file has no 'id' column")

        records: list[SystemRecord] = []
        ineligible = 0

        for idx, row in df.iterrows():
            data = row.to_dict()
            if not is_eligible(data):
                ineligible += 1
                continue
            try:
                records.append(to_system_record(record_type, data, self.default_currency))
            except RecordNormalizationError as e:
                logger.warning(f"Row {int(idx) + 2}: {e}, skipping")

        logger.info(
            f"Extracted {len(records)} {record_type.value} record(s), "
            f"{ineligible} not eligible for matching"
        )
        return records

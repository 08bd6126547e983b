"""
Excel report generator for bank feed reconciliation results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig, SheetConfig
from ..models.bank_feed import BankFeedLine, BankFeedStatus, BankMatch
from ..models.results import RunSummary, SuggestedMatch
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
ADJUSTMENT_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

_OPEN_STATUSES = {
    BankFeedStatus.UNMATCHED,
    BankFeedStatus.MISSING_RECORD,
    BankFeedStatus.NEEDS_REVIEW,
    BankFeedStatus.PARTIALLY_MATCHED,
}


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.sheet_config = config.output.sheets

    def generate_report(
        self,
        summary: RunSummary,
        lines: list[BankFeedLine],
        matches: list[BankMatch],
        suggestions: dict[str, list[SuggestedMatch]],
        output_path: Path,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            summary: Run metadata and totals
            lines: Every bank line in scope, after matching
            matches: Matches applied in this run
            suggestions: Ranked suggestions keyed by line id
            output_path: Path for output file

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        lines_by_id = {line.id: line for line in lines}
        wb = Workbook()

        # Remove default sheet
        if wb.active:
            wb.remove(wb.active)

        sheets = self.sheet_config
        if sheets.summary.enabled:
            self._create_summary_sheet(wb, sheets.summary, summary)

        if sheets.auto_matches.enabled:
            self._create_matches_sheet(wb, sheets.auto_matches, matches, lines_by_id)

        if sheets.suggestions.enabled:
            self._create_suggestions_sheet(wb, sheets.suggestions, suggestions, lines_by_id)

        if sheets.unmatched.enabled:
            unmatched = [
                line
                for line in lines
                if line.status in _OPEN_STATUSES and not line.has_active_match
            ]
            self._create_unmatched_sheet(wb, sheets.unmatched, unmatched, suggestions)

        if sheets.adjustments.enabled:
            adjustments = [m for m in matches if m.adjustment_required]
            self._create_adjustments_sheet(wb, sheets.adjustments, adjustments, lines_by_id)

        if sheets.audit_trail.enabled:
            self._create_audit_trail_sheet(wb, sheets.audit_trail, summary, matches)

        if not wb.sheetnames:
            # openpyxl cannot save a workbook without sheets
            wb.create_sheet(sheets.summary.name)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _write_header(self, ws: Worksheet, headers: list[str], row: int = 1) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=row, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _write_row(
        self,
        ws: Worksheet,
        row_num: int,
        values: list[Any],
        fill: Optional[PatternFill] = None,
    ) -> None:
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = THIN_BORDER
            if fill is not None:
                cell.fill = fill

    def _create_summary_sheet(
        self, wb: Workbook, sheet: SheetConfig, summary: RunSummary
    ) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(sheet.name)
        stats = summary.stats

        ws["A1"] = "Bank Feed Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        ws["A3"] = "File Information"
        ws["A3"].font = Font(bold=True)

        period = ""
        if summary.statement_period_start:
            period = f"{summary.statement_period_start} to {summary.statement_period_end}"

        file_info = [
            ("Bank Statement:", summary.bank_filename),
            ("Receipts File:", summary.receipts_filename or "-"),
            ("Expenses File:", summary.expenses_filename or "-"),
            ("Bank Account:", summary.bank_account_id or "-"),
            ("Currency:", summary.currency or "-"),
            (
                "Reconciliation Date:",
                summary.reconciliation_date.strftime("%Y-%m-%d %H:%M:%S"),
            ),
            ("Statement Period:", period),
        ]

        row = 4
        for label, value in file_info:
            ws[f"A{row}"] = label
            ws[f"B{row}"] = str(value)
            row += 1

        row += 1
        ws[f"A{row}"] = "Line Counts"
        ws[f"A{row}"].font = Font(bold=True)
        row += 1

        count_data = [
            ("Total Bank Lines:", stats.total_bank_lines),
            ("System Records:", summary.record_count),
            ("Matched Lines:", stats.matched_lines),
            ("Auto-Matched This Run:", summary.auto_match_count),
            ("Lines With Suggestions:", summary.suggestion_count),
            ("Unmatched Lines:", stats.unmatched_lines),
            ("Missing Record:", stats.missing_record_lines),
            ("Needs Review:", stats.needs_review_lines),
            ("Ignored:", stats.ignored_lines),
            ("Match Rate:", f"{stats.match_rate:.1f}%"),
        ]
        for label, value in count_data:
            ws[f"A{row}"] = label
            ws[f"B{row}"] = value
            row += 1

        row += 1
        ws[f"A{row}"] = "Movement Totals"
        ws[f"A{row}"].font = Font(bold=True)
        row += 1

        amount_data = [
            ("Bank Movement:", float(stats.total_bank_movement)),
            ("Matched System Movement:", float(stats.total_system_movement)),
            ("Net Difference:", float(stats.net_difference)),
        ]
        for label, value in amount_data:
            ws[f"A{row}"] = label
            ws[f"B{row}"] = value
            ws[f"B{row}"].number_format = "#,##0.00"
            row += 1

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _create_matches_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        matches: list[BankMatch],
        lines_by_id: dict[str, BankFeedLine],
    ) -> None:
        """Create the auto-matched lines sheet."""
        ws = wb.create_sheet(sheet.name)

        self._write_header(
            ws,
            [
                "Bank Date",
                "Bank Description",
                "Bank Reference",
                "Bank Amount",
                "Record Type",
                "Record ID",
                "Matched Amount",
                "Difference",
                "Score",
                "Method",
                "Rule",
                "Project",
            ],
        )

        for row_num, match in enumerate(matches, start=2):
            line = lines_by_id.get(match.bank_feed_line_id)
            self._write_row(
                ws,
                row_num,
                [
                    line.transaction_date if line else "",
                    line.description if line else "",
                    (line.reference or "") if line else "",
                    float(line.amount) if line else "",
                    match.system_record_type.value,
                    match.system_record_id,
                    float(match.matched_amount),
                    float(match.amount_difference),
                    match.match_score,
                    match.match_method.value,
                    match.rule_id or "",
                    match.project_id or "",
                ],
                fill=ADJUSTMENT_FILL if match.adjustment_required else MATCH_FILL,
            )

        self._auto_fit_columns(ws)

    def _create_suggestions_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        suggestions: dict[str, list[SuggestedMatch]],
        lines_by_id: dict[str, BankFeedLine],
    ) -> None:
        """Create the sheet listing every ranked suggestion per line."""
        ws = wb.create_sheet(sheet.name)

        self._write_header(
            ws,
            [
                "Bank Line",
                "Bank Description",
                "Bank Amount",
                "Rank",
                "Record Type",
                "Record ID",
                "Record Reference",
                "Counterparty",
                "Record Amount",
                "Record Date",
                "Score",
                "Reasons",
            ],
        )

        row_num = 2
        for line_id, ranked in suggestions.items():
            line = lines_by_id.get(line_id)
            for rank, suggestion in enumerate(ranked, start=1):
                self._write_row(
                    ws,
                    row_num,
                    [
                        line_id,
                        line.description if line else "",
                        float(line.amount) if line else "",
                        rank,
                        suggestion.system_record_type.value,
                        suggestion.system_record_id,
                        suggestion.reference or "",
                        suggestion.counterparty or "",
                        float(suggestion.amount),
                        suggestion.date,
                        suggestion.match_score,
                        ", ".join(suggestion.match_reasons),
                    ],
                )
                row_num += 1

        self._auto_fit_columns(ws)

    def _create_unmatched_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        unmatched: list[BankFeedLine],
        suggestions: dict[str, list[SuggestedMatch]],
    ) -> None:
        """Create the sheet of lines still awaiting a match."""
        ws = wb.create_sheet(sheet.name)

        self._write_header(
            ws,
            [
                "Line ID",
                "Date",
                "Description",
                "Reference",
                "Amount",
                "Status",
                "Suggestions",
                "Best Score",
            ],
        )

        for row_num, line in enumerate(unmatched, start=2):
            ranked = suggestions.get(line.id, [])
            self._write_row(
                ws,
                row_num,
                [
                    line.id,
                    line.transaction_date,
                    line.description,
                    line.reference or "",
                    float(line.amount),
                    line.status.value,
                    len(ranked),
                    ranked[0].match_score if ranked else "",
                ],
                fill=UNMATCHED_FILL,
            )

        self._auto_fit_columns(ws)

    def _create_adjustments_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        adjustments: list[BankMatch],
        lines_by_id: dict[str, BankFeedLine],
    ) -> None:
        """Create the sheet of matches whose amounts differ beyond tolerance."""
        ws = wb.create_sheet(sheet.name)

        self._write_header(
            ws,
            [
                "Line ID",
                "Bank Date",
                "Bank Amount",
                "Record ID",
                "Matched Amount",
                "Difference",
                "Difference %",
                "Reason",
            ],
        )

        for row_num, match in enumerate(adjustments, start=2):
            line = lines_by_id.get(match.bank_feed_line_id)
            difference_pct = ""
            if line and line.amount:
                difference_pct = f"{(match.amount_difference / line.absolute_amount) * 100:.2f}%"

            self._write_row(
                ws,
                row_num,
                [
                    match.bank_feed_line_id,
                    line.transaction_date if line else "",
                    float(line.amount) if line else "",
                    match.system_record_id,
                    float(match.matched_amount),
                    float(match.amount_difference),
                    difference_pct,
                    match.adjustment_reason or "",
                ],
                fill=ADJUSTMENT_FILL,
            )

        self._auto_fit_columns(ws)

    def _create_audit_trail_sheet(
        self,
        wb: Workbook,
        sheet: SheetConfig,
        summary: RunSummary,
        matches: list[BankMatch],
    ) -> None:
        """Create the audit trail sheet."""
        ws = wb.create_sheet(sheet.name)

        ws["A1"] = "Reconciliation Audit Trail"
        ws["A1"].font = Font(size=14, bold=True)

        audit_info = [
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ("Config File:", summary.config_file_used or "Default"),
            ("Auto-Match Threshold:", summary.auto_match_threshold),
            ("Processing Time:", f"{summary.processing_time_seconds:.2f} seconds"),
            ("Failed Writes:", summary.failed_writes),
        ]

        row = 3
        for label, value in audit_info:
            ws[f"A{row}"] = label
            ws[f"B{row}"] = value
            row += 1

        row += 1
        ws[f"A{row}"] = "Match Log"
        ws[f"A{row}"].font = Font(bold=True)
        row += 1

        self._write_header(
            ws,
            ["Timestamp", "Match ID", "Bank Line", "Record", "Method", "Score", "Rule", "Matched By"],
            row=row,
        )
        row += 1

        for match in matches:
            timestamp = match.matched_at.strftime("%Y-%m-%d %H:%M:%S") if match.matched_at else ""
            self._write_row(
                ws,
                row,
                [
                    timestamp,
                    match.id,
                    match.bank_feed_line_id,
                    f"{match.system_record_type.value}:{match.system_record_id}",
                    match.match_method.value,
                    match.match_score,
                    match.rule_id or "",
                    match.matched_by,
                ],
            )
            row += 1

        self._auto_fit_columns(ws)

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells:
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, 50)

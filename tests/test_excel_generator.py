from decimal import Decimal

from openpyxl import load_workbook

from bankfeed_recon.config import ReconConfig
from bankfeed_recon.matching.engine import get_reconciliation_stats
from bankfeed_recon.models.results import RunSummary
from bankfeed_recon.reports.excel_generator import ExcelReportGenerator


def _run(service, store, records):
    report = service.run_auto_match(records)
    lines = store.list_lines()
    summary = RunSummary(
        bank_filename="statement.csv",
        stats=get_reconciliation_stats(lines),
        record_count=len(records),
        auto_match_count=report.applied_count,
    )
    return summary, lines, report


class TestExcelReportGenerator:
    def test_writes_all_sheets(self, tmp_path, service, store, records):
        summary, lines, report = _run(service, store, records)
        path = ExcelReportGenerator(ReconConfig()).generate_report(
            summary, lines, report.applied, report.suggestions, tmp_path / "out" / "report.xlsx"
        )

        wb = load_workbook(path)
        assert wb.sheetnames == [
            "Summary",
            "Auto Matches",
            "Suggestions",
            "Unmatched Lines",
            "Adjustments",
            "Audit Trail",
        ]

        matches = wb["Auto Matches"]
        assert matches.cell(row=1, column=1).value == "Bank Date"
        assert matches.cell(row=2, column=6).value == "exp-1"
        assert matches.max_row == 2

        unmatched = wb["Unmatched Lines"]
        assert [unmatched.cell(row=r, column=1).value for r in (2, 3)] == ["line-2", "line-3"]
        assert unmatched.cell(row=2, column=8).value == 75

        suggestions = wb["Suggestions"]
        assert suggestions.cell(row=2, column=6).value == "rec-1"

    def test_adjustments_sheet_lists_differences(self, tmp_path, service, store, records):
        service.manual_match("line-3", records[1])
        match = store.get_line("line-3").matches[0]
        summary, lines, _ = _run(service, store, [])

        path = ExcelReportGenerator(ReconConfig()).generate_report(
            summary, lines, [match], {}, tmp_path / "report.xlsx"
        )

        ws = load_workbook(path)["Adjustments"]
        assert ws.cell(row=2, column=1).value == "line-3"
        assert ws.cell(row=2, column=6).value == float(Decimal("-2100.00"))
        assert ws.cell(row=2, column=8).value == "Amount difference detected"

    def test_disabled_and_renamed_sheets(self, tmp_path, service, store, records):
        config = ReconConfig(
            output={
                "sheets": {
                    "suggestions": {"enabled": False, "name": "Suggestions"},
                    "audit_trail": {"enabled": True, "name": "Log"},
                }
            }
        )
        summary, lines, report = _run(service, store, records)
        path = ExcelReportGenerator(config).generate_report(
            summary, lines, report.applied, report.suggestions, tmp_path / "report.xlsx"
        )
        names = load_workbook(path).sheetnames
        assert "Suggestions" not in names
        assert names[-1] == "Log"

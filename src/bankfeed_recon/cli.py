"""
Command-line interface for the bank feed reconciliation tool.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import ReconConfig, generate_default_config, load_config
from .matching.engine import ReconciliationEngine, get_reconciliation_stats
from .models.bank_feed import BankFeedLine, SystemRecord
from .models.results import RunSummary
from .parsers.bank_statement_parser import BankStatementParser
from .parsers.record_parser import RecordParser
from .persistence.datastore import InMemoryDataStore
from .reports.excel_generator import ExcelReportGenerator
from .service import ReconciliationService
from .utils.logging_config import level_from_name, setup_logging

console = Console()

DEFAULT_ACCOUNT = "bank-account"


@click.group()
@click.version_option(version=__version__)
def main():
    """Bank Feed Reconciliation Tool."""
    pass


@main.command()
@click.argument("bank_csv", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--receipts",
    type=click.Path(exists=True, path_type=Path),
    help="Receipts CSV export",
)
@click.option(
    "--expenses",
    type=click.Path(exists=True, path_type=Path),
    help="Expenses CSV export",
)
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option("--account", default=DEFAULT_ACCOUNT, show_default=True, help="Bank account ID")
@click.option("--currency", default=None, help="Statement currency (defaults to config)")
@click.option("--company", default=None, help="Company ID owning the statement")
@click.option(
    "--threshold",
    type=click.IntRange(1, 100),
    default=None,
    help="Override the auto-match threshold",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Match and show summary without generating report"
)
def reconcile(
    bank_csv: Path,
    receipts: Optional[Path],
    expenses: Optional[Path],
    config: Optional[Path],
    output: Optional[Path],
    account: str,
    currency: Optional[str],
    company: Optional[str],
    threshold: Optional[int],
    verbose: bool,
    dry_run: bool,
):
    """
    Auto-match a bank statement against receipts and expenses.

    BANK_CSV: Path to the bank statement CSV export
    """
    try:
        recon_config = load_config(config)
        _setup_logging(recon_config, verbose)

        if threshold is not None:
            recon_config.scoring.auto_match_threshold = threshold

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Parsing bank statement...", total=None)
            lines = BankStatementParser(recon_config).parse_file(
                bank_csv, account, currency, company
            )
            progress.update(task, completed=True)

            task = progress.add_task("Parsing system records...", total=None)
            records = _load_records(recon_config, receipts, expenses)
            progress.update(task, completed=True)

            task = progress.add_task("Running auto-match...", total=None)
            start_time = datetime.now()

            store = InMemoryDataStore(lines)
            service = ReconciliationService(store, ReconciliationEngine(recon_config))
            report = service.run_auto_match(records)

            processing_time = (datetime.now() - start_time).total_seconds()
            progress.update(task, completed=True)

        final_lines = store.list_lines()
        dates = [line.transaction_date for line in final_lines]
        summary = RunSummary(
            bank_filename=bank_csv.name,
            stats=get_reconciliation_stats(final_lines),
            receipts_filename=receipts.name if receipts else None,
            expenses_filename=expenses.name if expenses else None,
            bank_account_id=account,
            currency=final_lines[0].currency if final_lines else currency,
            statement_period_start=min(dates) if dates else None,
            statement_period_end=max(dates) if dates else None,
            record_count=len(records),
            auto_match_count=report.applied_count,
            suggestion_count=sum(1 for s in report.suggestions.values() if s),
            failed_writes=len(report.failures),
            auto_match_threshold=recon_config.scoring.auto_match_threshold,
            processing_time_seconds=processing_time,
            config_file_used=recon_config.config_file_path,
        )

        _display_summary(summary)

        for failure in report.failures:
            console.print(
                f"[yellow]Could not apply match for line {failure.bank_feed_line_id}: "
                f"{failure.error}[/yellow]"
            )

        if dry_run:
            console.print("\n[yellow]Dry run - no report generated[/yellow]")
            return

        if output is None:
            output = _default_output_path(recon_config)

        report_path = ExcelReportGenerator(recon_config).generate_report(
            summary=summary,
            lines=final_lines,
            matches=report.applied,
            suggestions=report.suggestions,
            output_path=output,
        )

        console.print(f"\n[green]Report generated: {report_path}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command()
@click.argument("bank_csv", type=click.Path(exists=True, path_type=Path))
@click.argument("line_number", type=click.IntRange(min=1))
@click.option("--receipts", type=click.Path(exists=True, path_type=Path))
@click.option("--expenses", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("--account", default=DEFAULT_ACCOUNT, show_default=True)
@click.option("--currency", default=None)
@click.option("--company", default=None)
def suggest(
    bank_csv: Path,
    line_number: int,
    receipts: Optional[Path],
    expenses: Optional[Path],
    config: Optional[Path],
    account: str,
    currency: Optional[str],
    company: Optional[str],
):
    """
    Show ranked match suggestions for one bank line.

    BANK_CSV: Path to the bank statement CSV export
    LINE_NUMBER: 1-based position of the line among parsed lines
    """
    try:
        recon_config = load_config(config)
        lines = BankStatementParser(recon_config).parse_file(bank_csv, account, currency, company)
        if line_number > len(lines):
            raise click.BadParameter(
                f"statement has only {len(lines)} line(s)", param_hint="LINE_NUMBER"
            )

        line = lines[line_number - 1]
        records = _load_records(recon_config, receipts, expenses)
        ranked = ReconciliationEngine(recon_config).suggest_for_line(line, records)

        console.print(
            f"[bold]{line.transaction_date}[/bold] {line.description} "
            f"[cyan]{line.amount:,.2f} {line.currency}[/cyan]"
        )

        if not ranked.suggestions:
            console.print("[yellow]No candidates found[/yellow]")
            return

        table = Table(title=f"Suggestions ({ranked.classification.value})")
        table.add_column("#", justify="right")
        table.add_column("Type")
        table.add_column("Record")
        table.add_column("Reference")
        table.add_column("Counterparty")
        table.add_column("Date")
        table.add_column("Amount", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Reasons")

        for rank, suggestion in enumerate(ranked.suggestions, start=1):
            table.add_row(
                str(rank),
                suggestion.system_record_type.value,
                suggestion.system_record_id,
                suggestion.reference or "-",
                suggestion.counterparty or "-",
                str(suggestion.date),
                f"{suggestion.amount:,.2f}",
                str(suggestion.match_score),
                ", ".join(suggestion.match_reasons),
            )

        console.print(table)

    except click.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@main.command("parse-bank")
@click.argument("bank_csv", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("--account", default=DEFAULT_ACCOUNT, show_default=True)
@click.option("--currency", default=None)
def parse_bank(bank_csv: Path, config: Optional[Path], account: str, currency: Optional[str]):
    """
    Parse a bank statement CSV and display its lines.

    BANK_CSV: Path to the bank statement CSV export
    """
    try:
        recon_config = load_config(config)
        parser = BankStatementParser(recon_config)
        lines = parser.parse_file(bank_csv, account, currency)

        table = Table(title=f"Bank Lines: {bank_csv.name}")
        table.add_column("#", justify="right")
        table.add_column("Date")
        table.add_column("Reference")
        table.add_column("Amount", justify="right")
        table.add_column("Description")

        for number, line in enumerate(lines[:20], start=1):  # Show first 20
            table.add_row(
                str(number),
                str(line.transaction_date),
                line.reference or "-",
                f"{line.amount:,.2f}",
                _truncate(line.description),
            )

        console.print(table)

        if len(lines) > 20:
            console.print(f"\n... and {len(lines) - 20} more lines")

        file_summary = parser.get_file_summary(lines)
        console.print(f"\nTotal lines: {file_summary['line_count']}")
        if file_summary["duplicates"]:
            console.print(
                f"[yellow]Potential duplicates: {file_summary['duplicates']}[/yellow]"
            )

    except Exception as e:
        console.print(f"[red]Error parsing file: {e}[/red]")
        sys.exit(1)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _setup_logging(config: ReconConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else level_from_name(config.logging.level)
    setup_logging(level, log_format=config.logging.format)


def _load_records(
    config: ReconConfig, receipts: Optional[Path], expenses: Optional[Path]
) -> list[SystemRecord]:
    parser = RecordParser(config)
    records: list[SystemRecord] = []
    if receipts:
        records.extend(parser.parse_receipts(receipts))
    if expenses:
        records.extend(parser.parse_expenses(expenses))
    return records


def _default_output_path(config: ReconConfig) -> Path:
    now = datetime.now()
    filename = config.output.excel.filename_template.format(
        date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S")
    )
    return Path(filename)


def _truncate(text: str, width: int = 40) -> str:
    return text[:width] + "..." if len(text) > width else text


def _display_summary(summary: RunSummary) -> None:
    """Display reconciliation summary in console."""
    stats = summary.stats
    table = Table(title="Reconciliation Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Bank Lines", str(stats.total_bank_lines))
    table.add_row("System Records", str(summary.record_count))
    table.add_row("Auto-Matched", str(summary.auto_match_count))
    table.add_row("Lines With Suggestions", str(summary.suggestion_count))
    table.add_row("Unmatched", str(stats.unmatched_lines))
    table.add_row("Match Rate", f"{stats.match_rate:.1f}%")
    table.add_row("Bank Movement", f"{stats.total_bank_movement:,.2f}")
    table.add_row("Matched System Movement", f"{stats.total_system_movement:,.2f}")
    table.add_row("Net Difference", f"{stats.net_difference:,.2f}")
    table.add_row("Processing Time", f"{summary.processing_time_seconds:.2f}s")

    console.print(table)


if __name__ == "__main__":
    main()

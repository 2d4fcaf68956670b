"""
Command-line interface for bank statement reconciliation.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import load_config, generate_default_config, ReconConfig
from .ledger import CsvLedgerSource, InMemoryLedger
from .models.reconciliation import ImportSummary, ReconciliationStatus, StatusCounts
from .parsers.ofx_parser import OFXStatementParser
from .reconciliation.service import ReconciliationService
from .reports.excel_generator import ExcelReportGenerator
from .storage.database import Database
from .utils.exceptions import ConfigurationError, ReconciliationError
from .utils.logging_config import setup_logging

console = Console()

STATUS_CHOICES = [s.value for s in ReconciliationStatus]


def _config_option(f):
    return click.option(
        "-c",
        "--config",
        type=click.Path(exists=True, path_type=Path),
        help="Path to configuration file (YAML)",
    )(f)


def _db_option(f):
    return click.option("--db", "database_url", help="Database URL (overrides configuration)")(f)


def _load(ctx: click.Context, config_path: Optional[Path]) -> ReconConfig:
    """Load configuration and apply its logging settings."""
    recon_config = load_config(config_path)
    log = recon_config.logging
    level = logging.DEBUG if ctx.obj["verbose"] else log.level
    try:
        setup_logging(level, Path(log.file) if log.file else None, log.format)
    except ValueError as e:
        raise ConfigurationError(f"Invalid logging configuration: {e}") from e
    return recon_config


def _open_service(
    recon_config: ReconConfig,
    database_url: Optional[str],
    ledger_file: Optional[Path] = None,
) -> ReconciliationService:
    database = Database.from_config(recon_config, database_url)
    database.create_tables()
    if ledger_file is not None:
        ledger = CsvLedgerSource(recon_config).load(ledger_file)
    else:
        ledger = InMemoryLedger()
    return ReconciliationService(database, ledger, recon_config)


def _fail(e: Exception, verbose: bool = False) -> None:
    kind = getattr(e, "kind", None)
    prefix = f"{kind.value}: " if kind is not None else ""
    console.print(f"[red]Error: {prefix}{escape(str(e))}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """Bank statement import and reconciliation tool."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


@main.command()
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@_config_option
@click.pass_context
def parse(ctx: click.Context, statement_file: Path, config: Optional[Path]):
    """
    Parse a statement file and display its transactions.

    STATEMENT_FILE: Path to the OFX statement export
    """
    try:
        recon_config = _load(ctx, config)
        statement = OFXStatementParser(recon_config).parse_file(statement_file)
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])

    console.print(
        f"{statement.bank_name} - account {statement.account_id} | "
        f"{statement.period_start} to {statement.period_end} | "
        f"closing balance {statement.closing_balance:,.2f}"
    )
    if statement.is_empty:
        console.print("[yellow]EMPTY_STATEMENT: no transactions found[/yellow]")
        return

    table = Table(title=f"Statement Transactions: {statement_file.name}")
    table.add_column("Date")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Memo")

    for txn in statement.transactions[:20]:  # Show first 20
        table.add_row(
            str(txn.posted_on),
            txn.external_id,
            txn.type.value,
            f"{txn.amount:,.2f}",
            txn.memo[:40] + "..." if len(txn.memo) > 40 else txn.memo,
        )
    console.print(table)

    if len(statement.transactions) > 20:
        console.print(f"\n... and {len(statement.transactions) - 20} more transactions")
    console.print(f"\nTotal transactions: {len(statement.transactions)}")


@main.command("import")
@click.argument("statement_file", type=click.Path(exists=True, path_type=Path))
@click.argument("ledger_file", type=click.Path(exists=True, path_type=Path))
@click.option("-a", "--account", help="Target account (defaults to the statement's account)")
@_config_option
@_db_option
@click.pass_context
def import_command(
    ctx: click.Context,
    statement_file: Path,
    ledger_file: Path,
    account: Optional[str],
    config: Optional[Path],
    database_url: Optional[str],
):
    """
    Import a statement and auto-match it against ledger entries.

    STATEMENT_FILE: Path to the OFX statement export
    LEDGER_FILE: Path to the ledger entries CSV export
    """
    try:
        recon_config = _load(ctx, config)
        statement = OFXStatementParser(recon_config).parse_file(statement_file)
        service = _open_service(recon_config, database_url, ledger_file)
        account_id = account or statement.account_id
        summary = service.import_statement(account_id, statement)
        counts = service.statistics(account_id)
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])

    _display_import_summary(summary)
    _display_counts(account_id, counts)


@main.command("list")
@click.option("-a", "--account", required=True)
@click.option("-s", "--status", type=click.Choice(STATUS_CHOICES, case_sensitive=False))
@click.option("--search", help="Text to search in memo and transaction ID")
@_config_option
@_db_option
@click.pass_context
def list_command(
    ctx: click.Context,
    account: str,
    status: Optional[str],
    search: Optional[str],
    config: Optional[Path],
    database_url: Optional[str],
):
    """List reconciliation records of an account."""
    try:
        service = _open_service(_load(ctx, config), database_url)
        records = service.list_records(
            account,
            status=ReconciliationStatus(status.upper()) if status else None,
            text=search,
        )
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])

    table = Table(title=f"Reconciliation Records: {account}")
    table.add_column("Record", justify="right")
    table.add_column("Date")
    table.add_column("ID")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    table.add_column("Entry")
    table.add_column("Memo")

    for record in records:
        txn = record.transaction
        table.add_row(
            str(record.id),
            str(txn.posted_on),
            txn.external_id,
            f"{txn.amount:,.2f}",
            record.status.value,
            record.entry_id or "-",
            txn.memo[:40],
        )
    console.print(table)


@main.command()
@click.argument("record_id", type=int)
@click.argument("entry_id")
@click.option("-l", "--ledger", "ledger_file", required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--note")
@_config_option
@_db_option
@click.pass_context
def link(
    ctx: click.Context,
    record_id: int,
    entry_id: str,
    ledger_file: Path,
    note: Optional[str],
    config: Optional[Path],
    database_url: Optional[str],
):
    """Link a record to a ledger entry by hand."""
    try:
        service = _open_service(_load(ctx, config), database_url, ledger_file)
        service.link_manually(record_id, entry_id, note=note)
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"[green]Record {record_id} linked to entry {entry_id}[/green]")


@main.command()
@click.argument("record_id", type=int)
@click.option("--note")
@_config_option
@_db_option
@click.pass_context
def ignore(
    ctx: click.Context,
    record_id: int,
    note: Optional[str],
    config: Optional[Path],
    database_url: Optional[str],
):
    """Mark a record as out of scope for reconciliation."""
    try:
        service = _open_service(_load(ctx, config), database_url)
        service.ignore(record_id, note=note)
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"[green]Record {record_id} ignored[/green]")


@main.command()
@click.argument("record_id", type=int, required=False)
@click.option("--all", "undo_all_account", help="Undo every matched record of this account")
@click.option("--note")
@_config_option
@_db_option
@click.pass_context
def undo(
    ctx: click.Context,
    record_id: Optional[int],
    undo_all_account: Optional[str],
    note: Optional[str],
    config: Optional[Path],
    database_url: Optional[str],
):
    """Return a record (or every matched record of an account) to UNRESOLVED."""
    if record_id is None and not undo_all_account:
        raise click.UsageError("Give a RECORD_ID or --all ACCOUNT")
    try:
        service = _open_service(_load(ctx, config), database_url)
        if undo_all_account:
            count = service.undo_all(undo_all_account)
            console.print(f"[green]{count} record(s) returned to UNRESOLVED[/green]")
            return
        service.undo(record_id, note=note)
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"[green]Record {record_id} returned to UNRESOLVED[/green]")


@main.command()
@click.option("-a", "--account", required=True)
@click.option("-l", "--ledger", "ledger_file", required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--rematch", is_flag=True, help="Also auto-match pending records")
@_config_option
@_db_option
@click.pass_context
def check(
    ctx: click.Context,
    account: str,
    ledger_file: Path,
    rematch: bool,
    config: Optional[Path],
    database_url: Optional[str],
):
    """Re-validate matched records against the current ledger."""
    try:
        service = _open_service(_load(ctx, config), database_url, ledger_file)
        flagged = service.check_consistency(account)
        matched = service.auto_match_pending(account) if rematch else 0
        counts = service.statistics(account)
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])

    for record in flagged:
        console.print(f"[yellow]Record {record.id} is DIVERGENT: {record.note}[/yellow]")
    if rematch:
        console.print(f"{matched} pending record(s) auto-matched")
    _display_counts(account, counts)


@main.command()
@click.option("-a", "--account", required=True)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@_config_option
@_db_option
@click.pass_context
def export(
    ctx: click.Context,
    account: str,
    output: Optional[Path],
    config: Optional[Path],
    database_url: Optional[str],
):
    """Export the reconciliation records of an account to Excel."""
    try:
        recon_config = _load(ctx, config)
        service = _open_service(recon_config, database_url)
        generator = ExcelReportGenerator(recon_config)
        if output is None:
            output = Path(generator.default_filename(account))
        report_path = generator.generate_report(
            account,
            service.list_records(account),
            service.statistics(account),
            output,
        )
    except ReconciliationError as e:
        _fail(e, ctx.obj["verbose"])
    console.print(f"[green]Report generated: {report_path}[/green]")


def _display_import_summary(summary: ImportSummary) -> None:
    """Display import results in console."""
    if summary.empty_statement:
        console.print("[yellow]EMPTY_STATEMENT: no transactions to import[/yellow]")
        return

    table = Table(title="Import Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Imported", str(summary.imported))
    table.add_row("Auto-matched", str(summary.auto_matched))
    table.add_row("Unresolved", str(summary.unresolved))
    table.add_row("Skipped (duplicates)", str(summary.skipped_duplicates))
    table.add_row("Failed to persist", str(summary.failed_count))
    console.print(table)

    for failure in summary.failed + summary.match_failures:
        console.print(f"[red]{failure.external_id}: {failure.reason}[/red]")


def _display_counts(account_id: str, counts: StatusCounts) -> None:
    table = Table(title=f"Account {account_id}")
    table.add_column("Status", style="cyan")
    table.add_column("Records", justify="right")

    table.add_row("Matched", str(counts.matched))
    table.add_row("Unresolved", str(counts.unresolved))
    table.add_row("Ignored", str(counts.ignored))
    table.add_row("Divergent", str(counts.divergent))
    table.add_row("Total", str(counts.total))
    table.add_row("Match Rate", f"{counts.match_rate:.1f}%")
    console.print(table)


if __name__ == "__main__":
    main()

"""Tests for the command-line interface."""

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from statement_recon.cli import main

from conftest import ACCOUNT, build_ofx

LEDGER_CSV = """id,account_id,direction,net_amount,due_date,settlement_date,status
1,12345-6,entrada,1500.00,2024-03-05,2024-03-10,pago_recebido
2,12345-6,saida,250.00,2024-03-10,,pago_recebido
3,12345-6,entrada,42.00,2024-01-01,,pago_recebido
"""


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # The CLI binds handlers to the runner's streams
    logger = logging.getLogger("statement_recon")
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def files(tmp_path):
    statement = tmp_path / "extrato.ofx"
    statement.write_bytes(
        build_ofx(
            [
                ("EXACT", "1500.00", "20240310"),
                ("WINDOW", "-250.00", "20240312"),
                {"fitid": "FEE", "amount": "-9.90", "posted": "20240313", "memo": "TARIFA"},
            ]
        )
    )
    ledger = tmp_path / "ledger.csv"
    ledger.write_text(LEDGER_CSV)
    db = f"sqlite:///{tmp_path / 'recon.db'}"
    return statement, ledger, db


def run(runner, *args):
    return runner.invoke(main, [str(a) for a in args], catch_exceptions=False)


def test_init_config(runner, tmp_path):
    output = tmp_path / "config.yaml"

    result = run(runner, "init-config", "-o", output)

    assert result.exit_code == 0
    assert output.exists()


def test_parse_shows_transactions(runner, files):
    statement, _, _ = files

    result = run(runner, "parse", statement)

    assert result.exit_code == 0
    assert "Total transactions: 3" in result.output
    assert ACCOUNT in result.output


def test_parse_malformed_file_exits_with_error(runner, tmp_path):
    bad = tmp_path / "bad.ofx"
    bad.write_bytes(b"not a statement")

    result = runner.invoke(main, ["parse", str(bad)])

    assert result.exit_code == 1
    assert "MALFORMED_INPUT" in result.output


def test_import_then_manual_workflow(runner, files):
    statement, ledger, db = files

    result = run(runner, "import", statement, ledger, "--db", db)
    assert result.exit_code == 0
    assert "Auto-matched" in result.output

    again = run(runner, "import", statement, ledger, "--db", db)
    assert again.exit_code == 0
    assert "Skipped (duplicates)" in again.output

    listed = run(runner, "list", "-a", ACCOUNT, "--status", "unresolved", "--db", db)
    assert listed.exit_code == 0
    assert "FEE" in listed.output
    assert "EXACT" not in listed.output

    # Record ids follow statement order: the fee is record 3
    ignored = run(runner, "ignore", "3", "--db", db)
    assert ignored.exit_code == 0

    undone = run(runner, "undo", "3", "--db", db)
    assert undone.exit_code == 0

    linked = run(runner, "link", "3", "3", "-l", ledger, "--db", db)
    assert linked.exit_code == 0

    taken = runner.invoke(main, ["link", "3", "1", "-l", str(ledger), "--db", db])
    assert taken.exit_code == 1
    assert "INVALID_STATE" in taken.output


def test_link_consumed_entry_reports_error_kind(runner, files):
    statement, ledger, db = files
    run(runner, "import", statement, ledger, "--db", db)

    result = runner.invoke(main, ["link", "3", "1", "-l", str(ledger), "--db", db])

    assert result.exit_code == 1
    assert "ENTRY_ALREADY_RECONCILED" in result.output


def test_undo_all_and_check(runner, files):
    statement, ledger, db = files
    run(runner, "import", statement, ledger, "--db", db)

    result = run(runner, "undo", "--all", ACCOUNT, "--db", db)
    assert result.exit_code == 0
    assert "2 record(s)" in result.output

    checked = run(runner, "check", "-a", ACCOUNT, "-l", ledger, "--rematch", "--db", db)
    assert checked.exit_code == 0
    assert "2 pending record(s) auto-matched" in checked.output


def test_undo_requires_target(runner, files):
    _, _, db = files

    result = runner.invoke(main, ["undo", "--db", db])

    assert result.exit_code == 2


def test_export(runner, files, tmp_path):
    statement, ledger, db = files
    run(runner, "import", statement, ledger, "--db", db)
    output = tmp_path / "report.xlsx"

    result = run(runner, "export", "-a", ACCOUNT, "-o", output, "--db", db)

    assert result.exit_code == 0
    assert Path(output).exists()


def test_logging_settings_come_from_config(runner, files, tmp_path):
    statement, _, _ = files
    log_file = tmp_path / "logs" / "recon.log"
    config = tmp_path / "config.yaml"
    config.write_text(f"logging:\n  level: warning\n  file: {log_file}\n")

    result = run(runner, "parse", statement, "-c", config)

    assert result.exit_code == 0
    assert "Extracted 3 transactions" in log_file.read_text()


def test_unknown_log_level_is_a_configuration_error(runner, files, tmp_path):
    statement, _, _ = files
    config = tmp_path / "config.yaml"
    config.write_text("logging:\n  level: loud\n")

    result = runner.invoke(main, ["parse", str(statement), "-c", str(config)])

    assert result.exit_code == 1
    assert "CONFIGURATION" in result.output

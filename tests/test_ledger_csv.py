"""Tests for the ledger entry CSV loader."""

from datetime import date
from decimal import Decimal

import pytest

from statement_recon.config import ReconConfig
from statement_recon.ledger import CsvLedgerSource, InMemoryLedger, LedgerQuery
from statement_recon.models import Direction, SettlementStatus
from statement_recon.utils.exceptions import LedgerSourceError

HEADER = "id,account_id,direction,net_amount,due_date,settlement_date,status,counterparty,document_number\n"


def write_csv(tmp_path, rows, header=HEADER):
    path = tmp_path / "ledger.csv"
    path.write_text(header + "".join(row + "\n" for row in rows), encoding="utf-8")
    return path


def test_loads_entries_into_ledger_query(tmp_path):
    path = write_csv(
        tmp_path,
        [
            "1,acc,Entrada,1500.00,2024-03-05,2024-03-10,pago_recebido,ACME,NF-1",
            "2,acc,saida,-250.00,2024-03-10,,settled,Fornecedor,",
        ],
    )

    ledger = CsvLedgerSource().load(path)

    assert isinstance(ledger, InMemoryLedger)
    assert isinstance(ledger, LedgerQuery)
    first, second = ledger.settled_entries("acc")
    assert first.direction is Direction.INBOUND
    assert first.net_amount == Decimal("1500.00")
    assert first.settlement_date == date(2024, 3, 10)
    assert first.document_number == "NF-1"
    assert second.direction is Direction.OUTBOUND
    assert second.net_amount == Decimal("250.00")
    assert second.settlement_date is None
    assert second.effective_date == date(2024, 3, 10)
    assert second.document_number is None


def test_unsettled_rows_are_loaded_but_not_offered(tmp_path):
    path = write_csv(
        tmp_path,
        [
            "1,acc,inbound,10.00,2024-03-05,,em_aberto,,",
            "2,acc,inbound,10.00,2024-03-05,,cancelado,,",
            "3,acc,inbound,10.00,2024-03-05,,weird,,",
            "4,acc,inbound,10.00,2024-03-05,,,,",
        ],
    )

    ledger = CsvLedgerSource().load(path)

    assert len(ledger) == 4
    assert [e.id for e in ledger.settled_entries("acc")] == ["4"]


def test_settled_entries_date_window(tmp_path):
    path = write_csv(
        tmp_path,
        [
            "1,acc,inbound,10.00,2024-03-01,,,,",
            "2,acc,inbound,10.00,2024-03-15,,,,",
            "3,acc,inbound,10.00,2024-02-01,2024-03-20,,,",
        ],
    )

    ledger = CsvLedgerSource().load(path)

    assert [e.id for e in ledger.settled_entries("acc", start=date(2024, 3, 10))] == ["2", "3"]
    assert [e.id for e in ledger.settled_entries("acc", end=date(2024, 3, 15))] == ["1", "2"]
    assert ledger.settled_entries("other") == []


def test_custom_column_mappings(tmp_path):
    config = ReconConfig()
    config.input.ledger_csv.delimiter = ";"
    config.input.ledger_csv.date_format = "%d/%m/%Y"
    config.input.ledger_csv.column_mappings = {
        "entry_id": "codigo",
        "account_id": "conta",
        "direction": "tipo",
        "net_amount": "valor",
        "due_date": "vencimento",
    }
    path = write_csv(
        tmp_path,
        ["77;acc;Saída;R$ 1.234,56;10/03/2024"],
        header="codigo;conta;tipo;valor;vencimento\n",
    )

    entry = CsvLedgerSource(config).load(path).settled_entries("acc")[0]

    assert entry.id == "77"
    assert entry.direction is Direction.OUTBOUND
    assert entry.due_date == date(2024, 3, 10)
    assert entry.net_amount == Decimal("1234.56")
    assert entry.status is SettlementStatus.SETTLED


@pytest.mark.parametrize(
    "row, message",
    [
        (",acc,inbound,10.00,2024-03-05,,,,", "missing entry id"),
        ("1,acc,sideways,10.00,2024-03-05,,,,", "unknown direction"),
        ("1,acc,inbound,10.00,not-a-date,,,,", "invalid due date"),
        ("1,acc,inbound,abc,2024-03-05,,,,", "invalid amount"),
    ],
)
def test_invalid_rows(tmp_path, row, message):
    with pytest.raises(LedgerSourceError, match=message):
        CsvLedgerSource().load(write_csv(tmp_path, [row]))


def test_missing_columns(tmp_path):
    path = write_csv(tmp_path, ["1,acc"], header="id,account_id\n")

    with pytest.raises(LedgerSourceError, match="missing columns"):
        CsvLedgerSource().load(path)


def test_missing_file(tmp_path):
    with pytest.raises(LedgerSourceError):
        CsvLedgerSource().load(tmp_path / "absent.csv")


@pytest.mark.parametrize(
    "amount, expected",
    [
        ('"1.234,56"', "1234.56"),
        ('"1,234.56"', "1234.56"),
        ('"R$ 1.234.567,89"', "1234567.89"),
        ('"1,234,567.89"', "1234567.89"),
        ('"1.234.567"', "1234567"),
        ('"99,90"', "99.90"),
        ("-42.5", "42.5"),
    ],
)
def test_amount_separators_follow_the_last_mark(tmp_path, amount, expected):
    path = write_csv(tmp_path, [f"1,acc,inbound,{amount},2024-03-05,,,,"])

    entry = CsvLedgerSource().load(path).settled_entries("acc")[0]

    assert entry.net_amount == Decimal(expected)


@pytest.mark.parametrize("amount", ['"1,234"', '"1.234"', '"1.234,56,78"'])
def test_ambiguous_amounts_are_rejected(tmp_path, amount):
    path = write_csv(tmp_path, [f"1,acc,inbound,{amount},2024-03-05,,,,"])

    with pytest.raises(LedgerSourceError, match="ambiguous amount"):
        CsvLedgerSource().load(path)


def test_unparseable_settlement_date_is_rejected(tmp_path):
    path = write_csv(tmp_path, ["1,acc,inbound,10.00,2024-03-05,2024-13-45,,,"])

    with pytest.raises(LedgerSourceError, match="invalid settlement date"):
        CsvLedgerSource().load(path)

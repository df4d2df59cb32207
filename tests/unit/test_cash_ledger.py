"""Unit tests for cash ledger bookkeeping"""

import io
import pytest
from datetime import date, datetime
from rt_finance.domain.exceptions import BackdatedEntry, InsufficientBalance, ValidationError
from rt_finance.domain.models import Bucket, EntryType
from rt_finance.services.cash_ledger import CashLedgerAccountant, parse_csv_amount


def test_empty_ledger_balance_is_zero(db):
    assert CashLedgerAccountant(db).latest_balance() == 0


def test_running_balance(db):
    """Test each CASH entry stores the balance after it"""
    ledger = CashLedgerAccountant(db)
    first = ledger.post_entry(EntryType.IN, 1000, entry_date=date(2025, 5, 1), description="Iuran")
    second = ledger.post_entry(EntryType.OUT, 400, entry_date=date(2025, 5, 1), description="Beli sapu")

    assert first.balance == 1000
    assert second.balance == 600
    assert ledger.latest_balance() == 600


def test_overdraw_rejected_and_nothing_persisted(db):
    ledger = CashLedgerAccountant(db)
    ledger.post_entry(EntryType.IN, 500, entry_date=date(2025, 5, 1), description="Iuran")

    with pytest.raises(InsufficientBalance):
        ledger.post_entry(EntryType.OUT, 501, entry_date=date(2025, 5, 2), description="Perbaikan pos")

    assert len(ledger.list_entries()) == 1
    assert ledger.latest_balance() == 500


def test_backdated_entry_rejected(db):
    ledger = CashLedgerAccountant(db)
    ledger.post_entry(EntryType.IN, 1000, entry_date=date(2025, 5, 10), description="Iuran")

    with pytest.raises(BackdatedEntry):
        ledger.post_entry(EntryType.IN, 1000, entry_date=date(2025, 5, 1), description="Iuran susulan")

    assert len(ledger.list_entries()) == 1


def test_same_day_entry_allowed(db):
    ledger = CashLedgerAccountant(db)
    ledger.post_entry(EntryType.IN, 1000, entry_date=date(2025, 5, 10), description="Iuran")
    entry = ledger.post_entry(EntryType.IN, 2000, entry_date=date(2025, 5, 10), description="Iuran")
    assert entry.balance == 3000


def test_deferred_entry_has_no_balance(db):
    """Test DEFERRED postings neither carry nor move the CASH balance"""
    ledger = CashLedgerAccountant(db)
    ledger.post_entry(EntryType.IN, 1000, entry_date=date(2025, 5, 10), description="Iuran")
    entry = ledger.post_entry(
        EntryType.OUT, 210000, bucket=Bucket.DEFERRED, entry_date=date(2025, 5, 1), description="Iuran Mei 2025",
    )

    assert entry.balance is None
    assert ledger.latest_balance() == 1000
    assert len(ledger.list_entries(Bucket.DEFERRED)) == 1


@pytest.mark.parametrize("amount", [0, -100])
def test_non_positive_amount_rejected(db, amount):
    with pytest.raises(ValidationError):
        CashLedgerAccountant(db).post_entry(EntryType.IN, amount, description="Iuran")


def test_missing_description_rejected(db):
    with pytest.raises(ValidationError):
        CashLedgerAccountant(db).post_entry(EntryType.IN, 1000, description="")


def test_parse_csv_amount():
    assert parse_csv_amount("1,250,000") == 1250000
    assert parse_csv_amount("") == 0
    assert parse_csv_amount(None) == 0
    with pytest.raises(ValidationError):
        parse_csv_amount("seribu")


@pytest.mark.parametrize("value,expected", [("2.5", 3), ("0.5", 1), ("3.5", 4), ("2.4", 2), ("1,000.50", 1001)])
def test_parse_csv_amount_rounds_half_up(value, expected):
    assert parse_csv_amount(value) == expected


@pytest.mark.parametrize("value", ["1e400", "inf", "-Infinity", "NaN"])
def test_parse_csv_amount_rejects_out_of_range(value):
    """Test huge or non-finite cells are a validation error, not a crash"""
    with pytest.raises(ValidationError) as exc:
        parse_csv_amount(value)
    assert exc.value.message == f"Invalid amount in CSV: {value!r}"


def test_import_csv_replays_rows(db):
    """Test rows without description or amount are skipped"""
    sheet = (
        "Keterangan,Pengeluaran,Pendapatan\n"
        'Saldo awal,,"1,000,000"\n'
        'Beli sapu,"50,000",\n'
        ",,\n"
        "Kosong,0,0\n"
    )
    ledger = CashLedgerAccountant(db)
    inserted = ledger.import_csv(io.StringIO(sheet), entry_date=date(2025, 6, 1))

    assert len(inserted) == 2
    assert [e.balance for e in inserted] == [1000000, 950000]
    assert ledger.latest_balance() == 950000


def test_import_csv_is_all_or_nothing(db):
    """Test a row that would overdraw aborts the whole import"""
    sheet = "Keterangan,Pengeluaran,Pendapatan\nIuran,,100\nBayar satpam,500,\n"
    ledger = CashLedgerAccountant(db)

    with pytest.raises(InsufficientBalance) as exc:
        ledger.import_csv(io.StringIO(sheet), entry_date=date(2025, 6, 1))

    assert exc.value.message == "Negative balance at: Bayar satpam"
    assert ledger.list_entries() == []


def test_import_csv_bytes_strips_bom(db):
    content = "\ufeffKeterangan,Pengeluaran,Pendapatan\nIuran,,210000\n".encode("utf-8")
    inserted = CashLedgerAccountant(db).import_csv_bytes(content, entry_date=date(2025, 6, 1))
    assert inserted[0].description == "Iuran"
    assert inserted[0].balance == 210000


def test_latest_entry_follows_insert_order_not_timestamp(db):
    """Test balance chaining ignores created_at skew between transactions"""
    ledger = CashLedgerAccountant(db)
    first = ledger.post_entry(EntryType.IN, 1000, entry_date=date(2025, 5, 10), description="Iuran")
    second = ledger.post_entry(EntryType.IN, 500, entry_date=date(2025, 5, 10), description="Iuran")

    # A transaction that started later can still insert first
    first.created_at = datetime(2030, 1, 1)
    db.commit()

    assert ledger.latest_balance() == 1500
    third = ledger.post_entry(EntryType.OUT, 200, entry_date=date(2025, 5, 10), description="Beli lampu")
    assert third.balance == 1300
    assert [e.id for e in ledger.list_entries()] == [third.id, second.id, first.id]


def test_import_csv_rejects_overflowing_amount(db):
    sheet = "Keterangan,Pengeluaran,Pendapatan\nIuran,,1e400\n"
    ledger = CashLedgerAccountant(db)

    with pytest.raises(ValidationError):
        ledger.import_csv(io.StringIO(sheet), entry_date=date(2025, 6, 1))

    assert ledger.list_entries() == []

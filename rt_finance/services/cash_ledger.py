"""Cash ledger bookkeeping: running CASH balance plus DEFERRED event log"""

import csv
import io
import logging
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, TextIO, Tuple

from sqlalchemy.orm import Session

from rt_finance.domain.exceptions import ValidationError, BackdatedEntry, InsufficientBalance
from rt_finance.domain.models import Bucket, EntryType, LedgerSource
from rt_finance.infrastructure.database.models import CashLedger
from rt_finance.infrastructure.database.repositories import CashLedgerRepository
from rt_finance.infrastructure.database.session import run_serializable
from rt_finance.infrastructure.observability.logging import log_ledger_posting
from rt_finance.infrastructure.observability.metrics import record_ledger_entry, ledger_rejection_counter

logger = logging.getLogger(__name__)

CSV_DESCRIPTION = "Keterangan"
CSV_EXPENSE = "Pengeluaran"
CSV_INCOME = "Pendapatan"


def parse_csv_amount(value: Optional[str]) -> int:
    """'1,250,000' -> 1250000; empty cells count as zero; halves round up"""
    if value is None or not str(value).strip():
        return 0
    try:
        amount = Decimal(str(value).replace(",", "").strip())
        if not amount.is_finite():
            raise InvalidOperation
        return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount in CSV: {value!r}") from None


def _signed(entry_type: EntryType, amount: int) -> int:
    return amount if entry_type == EntryType.IN else -amount


class CashLedgerAccountant:
    """Posts ledger entries while keeping the CASH balance ordered and non-negative"""

    def __init__(self, db: Session):
        self.db = db
        self.entries = CashLedgerRepository(db)

    def latest_balance(self, bucket: Bucket = Bucket.CASH) -> int:
        """Balance of the most recent entry in the bucket, 0 for an empty ledger"""
        latest = self.entries.get_latest(bucket)
        return latest.balance if latest and latest.balance is not None else 0

    def list_entries(self, bucket: Optional[Bucket] = None) -> List[CashLedger]:
        return self.entries.list_entries(bucket)

    def post_entry(
        self,
        entry_type: EntryType,
        amount: int,
        bucket: Bucket = Bucket.CASH,
        entry_date: Optional[date] = None,
        description: str = "",
        source: LedgerSource = LedgerSource.MANUAL,
        source_ref: Optional[str] = None,
        created_by: str = "system",
    ) -> CashLedger:
        """
        Post one entry in its own SERIALIZABLE transaction.

        Raises:
            ValidationError: amount not positive or description missing
            BackdatedEntry: CASH entry dated before the latest CASH entry
            InsufficientBalance: CASH balance would go negative
            ConcurrentUpdate: concurrent postings kept conflicting
        """
        entry_date = entry_date or date.today()
        return run_serializable(
            self.db,
            lambda: self.stage_entry(
                entry_type, amount, bucket, entry_date,
                description, source, source_ref, created_by,
            ),
        )

    def stage_entry(
        self,
        entry_type: EntryType,
        amount: int,
        bucket: Bucket,
        entry_date: date,
        description: str,
        source: LedgerSource,
        source_ref: Optional[str],
        created_by: str,
    ) -> CashLedger:
        """
        Post inside the caller's transaction; nothing is committed here.

        CASH postings read the latest balance before writing, so the caller's
        transaction must be SERIALIZABLE (see ``run_serializable``).
        """
        if not amount or amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        if not description:
            raise ValidationError("Description is required")

        balance = None
        if bucket == Bucket.CASH:
            latest = self.entries.get_latest(Bucket.CASH, for_update=True)
            prior = latest.balance if latest and latest.balance is not None else 0

            if latest and entry_date < latest.date:
                ledger_rejection_counter.labels(reason="backdated").inc()
                raise BackdatedEntry(
                    f"Backdated transaction is not allowed (latest cash entry is {latest.date.isoformat()})"
                )

            balance = prior + _signed(entry_type, amount)
            if balance < 0:
                ledger_rejection_counter.labels(reason="insufficient_balance").inc()
                raise InsufficientBalance(f"Insufficient cash balance: {prior} available, {amount} requested")

        entry = self.entries.create_entry(
            type=entry_type.value,
            amount=amount,
            bucket=bucket.value,
            balance=balance,
            date=entry_date,
            description=description,
            source=source.value,
            source_ref=source_ref,
            created_by=created_by,
        )
        record_ledger_entry(bucket.value, entry_type.value)
        log_ledger_posting(entry.id, bucket.value, entry_type.value, amount, balance)
        return entry

    @staticmethod
    def _parse_rows(stream: TextIO) -> List[Tuple[str, EntryType, int]]:
        """(description, type, amount) for every row that carries a movement"""
        rows = []
        for row in csv.DictReader(stream):
            description = (row.get(CSV_DESCRIPTION) or "").strip()
            if not description:
                continue

            income = parse_csv_amount(row.get(CSV_INCOME))
            expense = parse_csv_amount(row.get(CSV_EXPENSE))

            if income > 0:
                rows.append((description, EntryType.IN, income))
            elif expense > 0:
                rows.append((description, EntryType.OUT, expense))
        return rows

    def import_csv(self, stream: TextIO, created_by: str = "system", entry_date: Optional[date] = None) -> List[CashLedger]:
        """
        Replay a Keterangan/Pengeluaran/Pendapatan sheet onto the CASH bucket.

        All rows commit together in one SERIALIZABLE transaction; a row that
        would overdraw the balance aborts the whole import.
        """
        entry_date = entry_date or date.today()
        rows = self._parse_rows(stream)

        def replay() -> List[CashLedger]:
            inserted = []
            for description, entry_type, amount in rows:
                try:
                    entry = self.stage_entry(
                        entry_type, amount, Bucket.CASH, entry_date,
                        description, LedgerSource.MANUAL, None, created_by,
                    )
                except InsufficientBalance:
                    raise InsufficientBalance(f"Negative balance at: {description}") from None
                inserted.append(entry)
            return inserted

        inserted = run_serializable(self.db, replay)
        logger.info("CSV import committed", extra={"rows": len(inserted)})
        return inserted

    def import_csv_bytes(self, content: bytes, **kwargs) -> List[CashLedger]:
        """Decode an uploaded file (UTF-8, optional BOM) and import it"""
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV file must be UTF-8 encoded") from None
        return self.import_csv(io.StringIO(text), **kwargs)

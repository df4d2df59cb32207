"""Cash ledger endpoints - postings, balance and CSV import"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy.orm import Session

from rt_finance.api.dependencies import get_request_id
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import BalanceResponse, CashLedgerRequest, CashLedgerSchema, CsvImportResponse
from rt_finance.domain.exceptions import DomainException
from rt_finance.domain.models import Bucket
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.cash_ledger import CashLedgerAccountant

router = APIRouter()


@router.post("/cash-ledger", response_model=CashLedgerSchema, status_code=201)
def create_entry(body: CashLedgerRequest, request: Request, db: Session = Depends(get_db)):
    """
    Post an IN/OUT entry.

    CASH entries get the new running balance; backdated or overdrawing
    postings are rejected with 409. DEFERRED entries carry no balance.
    """
    try:
        return CashLedgerAccountant(db).post_entry(
            entry_type=body.type,
            amount=body.amount,
            bucket=body.bucket,
            entry_date=body.date,
            description=body.description,
            source=body.source,
            source_ref=body.source_ref,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.get("/cash-ledger", response_model=List[CashLedgerSchema])
def list_entries(bucket: Optional[Bucket] = Query(None), db: Session = Depends(get_db)):
    """All entries, latest first"""
    return CashLedgerAccountant(db).list_entries(bucket)


@router.get("/cash-ledger/balance", response_model=BalanceResponse)
def get_balance(db: Session = Depends(get_db)):
    return BalanceResponse(balance=CashLedgerAccountant(db).latest_balance(Bucket.CASH))


@router.post("/cash-ledger/import-csv", response_model=CsvImportResponse)
def import_csv(request: Request, file: UploadFile = File(...), db: Session = Depends(get_db)):
    """Import a Keterangan/Pengeluaran/Pendapatan sheet; all rows or none"""
    try:
        inserted = CashLedgerAccountant(db).import_csv_bytes(file.file.read())
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return CsvImportResponse(total=len(inserted))

"""Monthly fee intake, approval and breakdown endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from rt_finance.api.dependencies import get_reconciler, get_request_id
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import (
    BreakdownResponse, ManualAmountRequest, MonthlyFeeManualRequest, MonthlyFeeProofResponse,
    MonthlyFeeSchema, MonthlyFeeValidateRequest,
)
from rt_finance.domain.exceptions import DomainException
from rt_finance.services.reconciler import MonthlyFeeReconciler
from rt_finance.utils.date_utils import format_period

router = APIRouter()


@router.post("/monthly-fee", response_model=MonthlyFeeProofResponse)
def submit_monthly_fee(
    request: Request,
    block: str = Form(...),
    house_number: str = Form(...),
    date: str = Form(..., description="YYYY-MM or YYYY-MM-DD"),
    image: UploadFile = File(...),
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
):
    """
    Upload a transfer receipt, read its amount and record the payment.

    Flow:
    1. Reject if the month is already paid or covered by a subscription
    2. Upload the photo to storage
    3. OCR + amount extraction
    4. Persist with the extracted amount (null when unreadable)
    5. Notify the treasurer and invalidate the cached breakdown (background)
    """
    try:
        fee = reconciler.submit_with_proof(
            block=block,
            house_number=house_number,
            period=date,
            image_bytes=image.file.read(),
            filename=image.filename or "receipt.jpg",
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return MonthlyFeeProofResponse(
        data=MonthlyFeeSchema.model_validate(fee),
        raw_text=fee.raw_text,
        amount=fee.amount,
        image_url=fee.image_url,
    )


@router.post("/monthly-fee/validate", status_code=201)
def validate_monthly_fee(
    body: MonthlyFeeValidateRequest,
    request: Request,
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
):
    """409 with a machine-readable code when the month cannot take a new payment"""
    try:
        reconciler.validate_eligibility(body.block, body.house_number, body.date)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return {"message": "Monthly fee able to submit"}


@router.post("/monthly-fee/manual", status_code=201)
def submit_monthly_fee_manual(
    body: MonthlyFeeManualRequest,
    request: Request,
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
):
    """Queue an already-uploaded receipt for the OCR cron"""
    try:
        fee = reconciler.submit_manual(
            block=body.block,
            house_number=body.house_number,
            period=body.date,
            name=body.name,
            image_url=body.image_url,
            notes=body.notes,
        )
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return {"message": "Monthly fee submitted", "data": MonthlyFeeSchema.model_validate(fee)}


@router.post("/monthly-fee/{fee_id}/approve", response_model=MonthlyFeeSchema)
def approve_monthly_fee(fee_id: int, request: Request, reconciler: MonthlyFeeReconciler = Depends(get_reconciler)):
    try:
        return reconciler.approve(fee_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.post("/monthly-fee/{fee_id}/reject", response_model=MonthlyFeeSchema)
def reject_monthly_fee(fee_id: int, request: Request, reconciler: MonthlyFeeReconciler = Depends(get_reconciler)):
    try:
        return reconciler.reject(fee_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.post("/monthly-fee/{fee_id}/manual-amount", response_model=MonthlyFeeSchema)
def input_manual_amount(
    fee_id: int,
    body: ManualAmountRequest,
    request: Request,
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
):
    try:
        return reconciler.input_manual_amount(fee_id, body.amount, body.actor)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))


@router.get("/monthly-fee/breakdown/{year}/{month}", response_model=BreakdownResponse)
def get_breakdown(
    year: int,
    month: int,
    request: Request,
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
):
    """
    Allocation of every resident's contribution for the month.

    Residents without a payment or subscription appear with null amounts.
    """
    try:
        period = format_period(year, month)
        rows = reconciler.build_period_breakdown(period)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))
    return BreakdownResponse(period=period, total=len(rows), data=rows)


@router.get("/monthly-fee/history")
def get_payment_history(
    request: Request,
    start: str = Query(..., description="First period, YYYY-MM"),
    end: str = Query(..., description="Last period, YYYY-MM"),
    block: Optional[str] = Query(None),
    house_number: Optional[str] = Query(None),
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
):
    """Payment status per month for one house (block + house_number) or every resident"""
    try:
        return reconciler.payment_history(start, end, block, house_number)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

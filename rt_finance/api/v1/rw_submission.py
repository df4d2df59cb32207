"""RW submission endpoints - reporting collected fees to the RW"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from rt_finance.api.dependencies import get_request_id
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import RWSubmissionSummary, SubmitToRWRequest
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.rw_submission import RWSubmissionService

router = APIRouter()


@router.get("/monthly-fee/pending-submission")
def get_pending_submission(
    period: Optional[str] = Query(None, description="Restrict to one period, YYYY-MM"),
    db: Session = Depends(get_db),
):
    """COMPLETED payments not yet reported, split into on-time and late"""
    return RWSubmissionService(db).pending_submission(period)


@router.post("/monthly-fee/submit-to-rw")
def submit_to_rw(body: SubmitToRWRequest, request: Request, db: Session = Depends(get_db)):
    try:
        submission = RWSubmissionService(db).submit_to_rw(body.ids, body.period, body.notes)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    records = [
        {"id": f.id, "block": f.block, "house_number": f.house_number, "amount": f.amount}
        for f in submission.monthly_fees
    ]
    return {
        "success": True,
        "message": f"{len(records)} records submitted to RW",
        "submission": {
            "id": str(submission.id),
            "period": submission.period,
            "total_amount": submission.total_amount,
            "submitted_at": submission.submitted_at.isoformat(),
            "records": records,
        },
    }


@router.get("/monthly-fee/rw-submissions")
def list_rw_submissions(
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
):
    submissions = RWSubmissionService(db).list_submissions(year, month)
    data: List[RWSubmissionSummary] = [
        RWSubmissionSummary(
            id=s.id,
            period=s.period,
            total_amount=s.total_amount,
            submitted_at=s.submitted_at,
            notes=s.notes,
            record_count=len(s.monthly_fees),
        )
        for s in submissions
    ]
    return {"total": len(data), "data": data}


@router.get("/monthly-fee/rw-submissions/{submission_id}")
def get_rw_submission(submission_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        submission_uuid = uuid.UUID(submission_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid submission ID format")

    try:
        return RWSubmissionService(db).get_submission(submission_uuid)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

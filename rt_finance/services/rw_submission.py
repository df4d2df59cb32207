"""Reporting completed monthly fees upward to the RW"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rt_finance.domain.exceptions import ValidationError, NotFoundError
from rt_finance.infrastructure.database.models import RWSubmission
from rt_finance.infrastructure.database.repositories import MonthlyFeeRepository, RWSubmissionRepository
from rt_finance.infrastructure.database.session import atomic
from rt_finance.utils.date_utils import current_period, normalize_period, format_period


class RWSubmissionService:
    """Groups COMPLETED payments into submissions and reports what is still outstanding"""

    def __init__(self, db: Session):
        self.db = db
        self.fees = MonthlyFeeRepository(db)
        self.submissions = RWSubmissionRepository(db)

    def pending_submission(self, period: Optional[str] = None) -> Dict[str, Any]:
        """
        COMPLETED payments not yet submitted, split into on-time and late.

        A payment is late when its period is before the current month.
        """
        if period:
            period = normalize_period(period)
        now = current_period()

        on_time: List[Dict[str, Any]] = []
        late: List[Dict[str, Any]] = []
        for fee in self.fees.get_pending_submission(period):
            record = {
                "id": fee.id,
                "block": fee.block,
                "house_number": fee.house_number,
                "full_name": fee.full_name,
                "period": fee.period,
                "amount": fee.amount,
                "is_late": fee.period < now,
            }
            (late if record["is_late"] else on_time).append(record)

        on_time_amount = sum(r["amount"] or 0 for r in on_time)
        late_amount = sum(r["amount"] or 0 for r in late)

        return {
            "current_period": now,
            "summary": {
                "total_records": len(on_time) + len(late),
                "total_amount": on_time_amount + late_amount,
                "on_time": {"count": len(on_time), "amount": on_time_amount},
                "late": {"count": len(late), "amount": late_amount},
            },
            "on_time_records": on_time,
            "late_records": late,
        }

    def submit_to_rw(self, fee_ids: List[int], period: Optional[str], notes: Optional[str] = None) -> RWSubmission:
        """Link eligible payments to a new submission; ineligible ids are ignored"""
        if not fee_ids:
            raise ValidationError("ids array is required")
        if not period:
            raise ValidationError("period is required (e.g. '2026-01')")
        period = normalize_period(period)

        with atomic(self.db):
            fees = self.fees.get_submittable(fee_ids)
            if not fees:
                raise ValidationError("No valid pending fees found for given IDs")
            submission = self.submissions.create_submission(period, notes or None, fees)
        return submission

    def list_submissions(self, year: Optional[int] = None, month: Optional[int] = None) -> List[RWSubmission]:
        if year and month:
            prefix = format_period(year, month)
        elif year:
            prefix = f"{year:04d}"
        else:
            prefix = None
        return self.submissions.list_submissions(prefix)

    def get_submission(self, submission_id: uuid.UUID) -> Dict[str, Any]:
        submission = self.submissions.get_submission(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")

        records = [
            {
                "id": fee.id,
                "block": fee.block,
                "house_number": fee.house_number,
                "full_name": fee.full_name,
                "period": fee.period,
                "amount": fee.amount,
                "is_late": fee.period != submission.period,
            }
            for fee in sorted(submission.monthly_fees, key=lambda f: (f.block, f.house_number))
        ]
        return {
            "id": submission.id,
            "period": submission.period,
            "total_amount": submission.total_amount,
            "submitted_at": submission.submitted_at,
            "notes": submission.notes,
            "records": records,
        }

"""Data access layer for finance entities"""

import uuid
from typing import Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session
from rt_finance.infrastructure.database.models import (
    Resident, MonthlyFee, DeferredSubscription, CashLedger, RWSubmission,
)
from rt_finance.domain.models import PaymentStatus, Bucket


class ResidentRepository:
    """Repository for registered households"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_house(self, block: str, house_number: str) -> Optional[Resident]:
        return (
            self.db.query(Resident)
            .filter(Resident.block == block, Resident.house_number == house_number)
            .first()
        )

    def list_residents(self, block: Optional[str] = None) -> List[Resident]:
        """All residents in ascending id order"""
        query = self.db.query(Resident)
        if block:
            query = query.filter(Resident.block == block)
        return query.order_by(Resident.id.asc()).all()

    def get_resident(self, resident_id: int) -> Optional[Resident]:
        return self.db.query(Resident).filter(Resident.id == resident_id).first()

    def search(
        self, block: Optional[str] = None, name: Optional[str] = None, offset: int = 0, limit: int = 50,
    ) -> Tuple[List[Resident], int]:
        """One page of residents by block, then id, plus the total matching count"""
        query = self.db.query(Resident)
        if block:
            query = query.filter(Resident.block == block)
        if name:
            query = query.filter(Resident.full_name.ilike(f"%{name}%"))

        total = query.count()
        rows = query.order_by(Resident.block.asc(), Resident.id.asc()).offset(offset).limit(limit).all()
        return rows, total

    def list_blocks(self) -> List[str]:
        rows = self.db.query(Resident.block).distinct().order_by(Resident.block.asc()).all()
        return [block for (block,) in rows]

    def list_houses(self, block: Optional[str] = None) -> List[Tuple[str, str]]:
        """(block, house_number) pairs in registration order"""
        query = self.db.query(Resident.block, Resident.house_number)
        if block:
            query = query.filter(Resident.block == block)
        return [(b, h) for b, h in query.order_by(Resident.id.asc()).all()]


class MonthlyFeeRepository:
    """Repository for monthly fee payments"""

    def __init__(self, db: Session):
        self.db = db

    def create_fee(self, **fields) -> MonthlyFee:
        fee = MonthlyFee(**fields)
        self.db.add(fee)
        self.db.flush()  # Surface unique-constraint violations before commit
        return fee

    def get_fee(self, fee_id: int) -> Optional[MonthlyFee]:
        return self.db.get(MonthlyFee, fee_id)

    def find_for_house(self, block: str, house_number: str, period: str) -> Optional[MonthlyFee]:
        return (
            self.db.query(MonthlyFee)
            .filter(
                MonthlyFee.block == block,
                MonthlyFee.house_number == house_number,
                MonthlyFee.period == period,
            )
            .first()
        )

    def get_pending_batch(self, limit: int) -> List[MonthlyFee]:
        """Oldest PENDING payments first"""
        return (
            self.db.query(MonthlyFee)
            .filter(MonthlyFee.status == PaymentStatus.PENDING.value)
            .order_by(MonthlyFee.created_at.asc(), MonthlyFee.id.asc())
            .limit(limit)
            .all()
        )

    def get_completed_for_period(self, period: str) -> List[MonthlyFee]:
        return (
            self.db.query(MonthlyFee)
            .filter(MonthlyFee.period == period, MonthlyFee.status == PaymentStatus.COMPLETED.value)
            .all()
        )

    def get_in_period_range(
        self,
        start_period: str,
        end_period: str,
        block: Optional[str] = None,
        house_number: Optional[str] = None,
    ) -> List[MonthlyFee]:
        query = self.db.query(MonthlyFee).filter(
            MonthlyFee.period >= start_period,
            MonthlyFee.period <= end_period,
        )
        if block:
            query = query.filter(MonthlyFee.block == block)
        if house_number:
            query = query.filter(MonthlyFee.house_number == house_number)
        return query.order_by(MonthlyFee.block, MonthlyFee.house_number, MonthlyFee.period).all()

    def get_pending_submission(self, period: Optional[str] = None) -> List[MonthlyFee]:
        """COMPLETED payments not yet linked to an RW submission"""
        query = self.db.query(MonthlyFee).filter(
            MonthlyFee.status == PaymentStatus.COMPLETED.value,
            MonthlyFee.rw_submission_id.is_(None),
        )
        if period:
            query = query.filter(MonthlyFee.period == period)
        return query.order_by(MonthlyFee.period, MonthlyFee.block, MonthlyFee.house_number).all()

    def get_submittable(self, fee_ids: Iterable[int]) -> List[MonthlyFee]:
        return (
            self.db.query(MonthlyFee)
            .filter(
                MonthlyFee.id.in_(list(fee_ids)),
                MonthlyFee.status == PaymentStatus.COMPLETED.value,
                MonthlyFee.rw_submission_id.is_(None),
            )
            .all()
        )


class DeferredSubscriptionRepository:
    """Repository for prepaid subscriptions"""

    def __init__(self, db: Session):
        self.db = db

    def create_subscription(self, **fields) -> DeferredSubscription:
        subscription = DeferredSubscription(**fields)
        self.db.add(subscription)
        self.db.flush()
        return subscription

    def get_subscription(self, subscription_id: uuid.UUID, for_update: bool = False) -> Optional[DeferredSubscription]:
        query = self.db.query(DeferredSubscription).filter(DeferredSubscription.id == subscription_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def list_subscriptions(self, active_only: bool = False) -> List[DeferredSubscription]:
        query = self.db.query(DeferredSubscription)
        if active_only:
            query = query.filter(DeferredSubscription.is_active.is_(True))
        return query.order_by(DeferredSubscription.created_at.desc()).all()

    def find_covering(self, block: str, house_number: str, period: str) -> Optional[DeferredSubscription]:
        """Active subscription for the house whose inclusive range contains the period"""
        return (
            self.db.query(DeferredSubscription)
            .filter(
                DeferredSubscription.block == block,
                DeferredSubscription.house_number == house_number,
                DeferredSubscription.is_active.is_(True),
                DeferredSubscription.start_month <= period,
                DeferredSubscription.end_month >= period,
            )
            .first()
        )

    def get_covering_period(self, period: str) -> List[DeferredSubscription]:
        """Active subscriptions covering the period, oldest first"""
        return (
            self.db.query(DeferredSubscription)
            .filter(
                DeferredSubscription.is_active.is_(True),
                DeferredSubscription.start_month <= period,
                DeferredSubscription.end_month >= period,
            )
            .order_by(DeferredSubscription.created_at.asc())
            .all()
        )


class CashLedgerRepository:
    """Repository for ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def create_entry(self, **fields) -> CashLedger:
        entry = CashLedger(**fields)
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_latest(self, bucket: Bucket = Bucket.CASH, for_update: bool = False) -> Optional[CashLedger]:
        """
        Most recently inserted entry in the bucket.

        Ordered by id, which follows insert order. created_at holds the
        transaction start time and does not.
        """
        query = (
            self.db.query(CashLedger)
            .filter(CashLedger.bucket == bucket.value)
            .order_by(CashLedger.id.desc())
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def list_entries(self, bucket: Optional[Bucket] = None) -> List[CashLedger]:
        query = self.db.query(CashLedger)
        if bucket:
            query = query.filter(CashLedger.bucket == bucket.value)
        return query.order_by(CashLedger.id.desc()).all()


class RWSubmissionRepository:
    """Repository for RW submissions"""

    def __init__(self, db: Session):
        self.db = db

    def create_submission(self, period: str, notes: Optional[str], fees: List[MonthlyFee]) -> RWSubmission:
        """Create submission, link the fees and total their amounts"""
        submission = RWSubmission(
            period=period,
            notes=notes,
            total_amount=sum(f.amount or 0 for f in fees),
        )
        self.db.add(submission)
        self.db.flush()

        for fee in fees:
            fee.rw_submission_id = submission.id

        return submission

    def get_submission(self, submission_id: uuid.UUID) -> Optional[RWSubmission]:
        return (
            self.db.query(RWSubmission)
            .filter(RWSubmission.id == submission_id)
            .first()
        )

    def list_submissions(self, period_prefix: Optional[str] = None) -> List[RWSubmission]:
        query = self.db.query(RWSubmission)
        if period_prefix:
            query = query.filter(RWSubmission.period.startswith(period_prefix))
        return query.order_by(RWSubmission.submitted_at.desc()).all()

"""Monthly fee reconciliation: proof intake, batch OCR, approval and period breakdowns"""

import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rt_finance.domain.amount_extractor import extract_amount
from rt_finance.domain.exceptions import ValidationError, NotFoundError, AlreadySubmitted, DeferredActive
from rt_finance.domain.fee_breakdown import breakdown_amount
from rt_finance.domain.models import PaymentStatus, FundingSource, BreakdownRow, BatchResult
from rt_finance.infrastructure.cache.breakdown_cache import BreakdownCache
from rt_finance.infrastructure.clients.image_store import ImageStore
from rt_finance.infrastructure.clients.ocr import TesseractOCR
from rt_finance.infrastructure.clients.telegram import TelegramNotifier
from rt_finance.infrastructure.database.models import MonthlyFee
from rt_finance.infrastructure.database.repositories import (
    MonthlyFeeRepository, ResidentRepository, DeferredSubscriptionRepository,
)
from rt_finance.infrastructure.database.session import atomic
from rt_finance.infrastructure.observability.logging import log_ocr_job
from rt_finance.infrastructure.observability.metrics import record_ocr_outcome, ocr_duration_histogram
from rt_finance.services.deferred import DeferredSubscriptionTracker
from rt_finance.utils.background import Scheduler, fire_and_forget, run_inline
from rt_finance.utils.date_utils import normalize_period, generate_period_range, month_label

logger = logging.getLogger(__name__)

# Below this an extracted amount cannot be a monthly fee and needs a human
APPROVAL_THRESHOLD = 100_000


def status_for_amount(amount: Optional[int]) -> PaymentStatus:
    if amount is not None and amount >= APPROVAL_THRESHOLD:
        return PaymentStatus.WAITING_APPROVAL
    return PaymentStatus.WAITING_MANUAL_INPUT


def fee_snapshot(fee: MonthlyFee) -> Dict[str, Any]:
    """Plain copy of a payment for work that runs after the session closes"""
    return {
        "id": fee.id,
        "block": fee.block,
        "house_number": fee.house_number,
        "full_name": fee.full_name,
        "period": fee.period,
        "amount": fee.amount,
        "status": fee.status,
        "notes": fee.notes,
        "image_url": fee.image_url,
    }


class MonthlyFeeReconciler:
    """
    Orchestrates the monthly fee pipeline.

    Cache writes and notifications go through ``schedule`` (FastAPI's
    ``BackgroundTasks.add_task`` in the API) wrapped in ``fire_and_forget``,
    so their failures never fail the primary operation.
    """

    def __init__(
        self,
        db: Session,
        image_store: ImageStore,
        ocr: TesseractOCR,
        notifier: TelegramNotifier,
        cache: BreakdownCache,
        schedule: Scheduler = run_inline,
    ):
        self.db = db
        self.image_store = image_store
        self.ocr = ocr
        self.notifier = notifier
        self.cache = cache
        self.schedule = schedule
        self.fees = MonthlyFeeRepository(db)
        self.residents = ResidentRepository(db)
        self.subscriptions = DeferredSubscriptionRepository(db)
        self.tracker = DeferredSubscriptionTracker(db)

    def _background(self, func, *args) -> None:
        self.schedule(fire_and_forget, func, *args)

    def _invalidate(self, period: str) -> None:
        self._background(self.cache.invalidate, period)

    def _notify(self, fee: MonthlyFee) -> None:
        snapshot = fee_snapshot(fee)
        if fee.status == PaymentStatus.WAITING_APPROVAL.value:
            self._background(self.notifier.send_approval_request, snapshot)
        elif fee.status == PaymentStatus.WAITING_MANUAL_INPUT.value:
            self._background(self.notifier.send_manual_input_request, snapshot)

    def _require_house(self, block: Optional[str], house_number: Optional[str]) -> None:
        if not block or not house_number:
            raise ValidationError("block and houseNumber are required")

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def validate_eligibility(self, block: str, house_number: str, period: str) -> None:
        """
        Check that a new payment may be accepted for the house and period.

        Raises:
            AlreadySubmitted: a payment already exists for the key
            DeferredActive: an active prepaid subscription covers the period
        """
        self._require_house(block, house_number)
        period = normalize_period(period)

        if self.fees.find_for_house(block, house_number, period) is not None:
            raise AlreadySubmitted("Monthly fee for this house and month has already been submitted")

        if self.tracker.is_covering_period(block, house_number, period):
            raise DeferredActive("This month is already covered by a prepaid subscription")

    def _persist(self, **fields) -> MonthlyFee:
        try:
            with atomic(self.db):
                return self.fees.create_fee(**fields)
        except IntegrityError:
            raise AlreadySubmitted("Monthly fee for this house and month has already been submitted") from None

    def submit_with_proof(
        self,
        block: str,
        house_number: str,
        period: str,
        image_bytes: bytes,
        filename: str = "receipt.jpg",
    ) -> MonthlyFee:
        """
        Accept a receipt photo: upload, OCR, extract and persist in one request.

        Eligibility is checked before anything is uploaded, the same as the
        manual path.
        """
        self._require_house(block, house_number)
        if not image_bytes:
            raise ValidationError("image file required")
        period = normalize_period(period)

        self.validate_eligibility(block, house_number, period)

        image_url = self.image_store.upload(image_bytes, filename)
        raw_text = self.ocr.recognize(image_bytes)
        amount = extract_amount(raw_text)

        resident = self.residents.find_by_house(block, house_number)

        fee = self._persist(
            block=block,
            house_number=house_number,
            period=period,
            full_name=resident.full_name if resident and resident.full_name else "Unknown",
            amount=amount,
            raw_text=raw_text,
            image_url=image_url,
            status=status_for_amount(amount).value,
            attempt=1,
            resident_id=resident.id if resident else None,
        )

        logger.info(
            "Monthly fee submitted with proof",
            extra={"fee_id": fee.id, "period": period, "amount": amount},
        )
        self._notify(fee)
        self._invalidate(period)
        return fee

    def submit_manual(
        self,
        block: str,
        house_number: str,
        period: str,
        name: Optional[str],
        image_url: Optional[str],
        notes: Optional[str] = None,
    ) -> MonthlyFee:
        """Queue an already-uploaded proof as PENDING for the OCR cron"""
        if not block or not house_number or not period or not image_url or not name:
            raise ValidationError("block, houseNumber, name, date and imageUrl are required")
        period = normalize_period(period)

        self.validate_eligibility(block, house_number, period)

        resident = self.residents.find_by_house(block, house_number)
        fee = self._persist(
            block=block,
            house_number=house_number,
            period=period,
            full_name=name.strip() or None,
            notes=notes.strip() if notes and notes.strip() else None,
            image_url=image_url,
            status=PaymentStatus.PENDING.value,
            resident_id=resident.id if resident else None,
        )
        self._invalidate(period)
        return fee

    # ------------------------------------------------------------------
    # Batch OCR
    # ------------------------------------------------------------------

    def run_batch_ocr(self, batch_size: int) -> BatchResult:
        """
        Process up to ``batch_size`` PENDING payments, oldest first, one at a time.

        A failing item is marked FAILED with its error and the loop moves on.
        """
        jobs = self.fees.get_pending_batch(batch_size)
        processed = failed = 0

        for job in jobs:
            start_time = time.time()
            fee_id, period = job.id, job.period

            try:
                with atomic(self.db):
                    job.status = PaymentStatus.PROCESSING.value

                with ocr_duration_histogram.time():
                    image = self.image_store.fetch(job.image_url)
                    raw_text = self.ocr.recognize(image)
                amount = extract_amount(raw_text)
                status = status_for_amount(amount)

                with atomic(self.db):
                    job.raw_text = raw_text
                    if amount is not None:
                        job.amount = amount
                    job.status = status.value
                    job.attempt = (job.attempt or 0) + 1

                record_ocr_outcome(status.value)
                log_ocr_job(fee_id, period, status.value, amount, (time.time() - start_time) * 1000)
                self._notify(job)
                processed += 1

            except Exception as e:
                self.db.rollback()
                logger.error(f"OCR job failed: {e}", extra={"fee_id": fee_id, "period": period})
                with atomic(self.db):
                    failed_job = self.fees.get_fee(fee_id)
                    failed_job.status = PaymentStatus.FAILED.value
                    failed_job.error_message = str(e)
                    failed_job.attempt = (failed_job.attempt or 0) + 1
                record_ocr_outcome(PaymentStatus.FAILED.value)
                failed += 1

            self._invalidate(period)

        return BatchResult(processed=processed, failed=failed)

    # ------------------------------------------------------------------
    # Human actions
    # ------------------------------------------------------------------

    def _get_fee(self, fee_id: int) -> MonthlyFee:
        fee = self.fees.get_fee(fee_id)
        if fee is None:
            raise NotFoundError("Monthly fee not found")
        return fee

    def approve(self, fee_id: int) -> MonthlyFee:
        with atomic(self.db):
            fee = self._get_fee(fee_id)
            if fee.amount is None:
                raise ValidationError("Cannot approve a payment without an amount; input it manually")
            fee.status = PaymentStatus.COMPLETED.value
        self._invalidate(fee.period)
        return fee

    def reject(self, fee_id: int) -> MonthlyFee:
        with atomic(self.db):
            fee = self._get_fee(fee_id)
            fee.status = PaymentStatus.REJECTED.value
        self._invalidate(fee.period)
        return fee

    def input_manual_amount(self, fee_id: int, amount: int, actor: str = "admin") -> MonthlyFee:
        """Treasurer-supplied amount for a receipt OCR could not read"""
        if not amount or amount < APPROVAL_THRESHOLD:
            raise ValidationError(f"Invalid amount: enter digits only (min {APPROVAL_THRESHOLD})")

        with atomic(self.db):
            fee = self._get_fee(fee_id)
            fee.amount = amount
            fee.status = PaymentStatus.COMPLETED.value
            fee.notes = f"Manual input by {actor}"
        self._invalidate(fee.period)
        return fee

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def build_period_breakdown(self, period: str) -> List[Dict[str, Any]]:
        """
        Per-resident allocation for one period.

        Priority per resident: active deferred subscription covering the
        period, then a COMPLETED payment, then an empty row. A COMPLETED
        payment without an amount drops the resident from the view.
        """
        period = normalize_period(period)

        cached = self.cache.get(period)
        if cached is not None:
            return cached

        # Newest covering subscription wins when several overlap
        deferred_by_house = {}
        for sub in self.subscriptions.get_covering_period(period):
            deferred_by_house[(sub.block, sub.house_number)] = sub

        fee_by_house = {
            (fee.block, fee.house_number): fee
            for fee in self.fees.get_completed_for_period(period)
        }

        rows = []
        for resident in self.residents.list_residents():
            key = (resident.block, resident.house_number)
            row = BreakdownRow(block=resident.block, house_number=resident.house_number, full_name=resident.full_name)

            if key in deferred_by_house:
                total, source = deferred_by_house[key].monthly_amount, FundingSource.DEFERRED
            elif key in fee_by_house:
                total, source = fee_by_house[key].amount, FundingSource.MONTHLY_FEE
                if total is None:
                    continue
            else:
                rows.append(row.to_dict())
                continue

            breakdown = breakdown_amount(total)
            row.source = source
            row.total_amount = total
            row.kas_rt = breakdown.kas_rt
            row.agama_rt = breakdown.agama_rt
            row.sampah = breakdown.sampah
            row.keamanan = breakdown.keamanan
            row.agama_rw = breakdown.agama_rw
            row.kas_rw = breakdown.kas_rw
            row.kkm_rw = breakdown.kkm_rw
            rows.append(row.to_dict())

        self._background(self.cache.set, period, rows)
        return rows

    def payment_history(
        self,
        start_period: str,
        end_period: str,
        block: Optional[str] = None,
        house_number: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Month-by-month payment status for one house, or for every resident"""
        start_period, end_period = normalize_period(start_period), normalize_period(end_period)
        if start_period > end_period:
            raise ValidationError("start period must not be after end period")

        periods = generate_period_range(start_period, end_period)
        range_label = f"{periods[0]} - {periods[-1]}"
        payments = self.fees.get_in_period_range(start_period, end_period, block, house_number)

        if block and house_number:
            by_period = {p.period: p for p in payments}
            resident = self.residents.find_by_house(block, house_number)
            full_name = resident.full_name if resident else (payments[0].full_name if payments else None)
            return {
                "block": block,
                "house_number": house_number,
                "full_name": full_name,
                "range": range_label,
                "history": [
                    {
                        "period": period,
                        "month": month_label(period),
                        "status": by_period[period].status if period in by_period else "NOT_PAID",
                        "amount": by_period[period].amount if period in by_period else None,
                        "payment_id": by_period[period].id if period in by_period else None,
                    }
                    for period in periods
                ],
            }

        by_house: Dict[tuple, Dict[str, MonthlyFee]] = {}
        for p in payments:
            by_house.setdefault((p.block, p.house_number), {})[p.period] = p

        data = []
        for resident in self.residents.list_residents(block):
            paid = by_house.get((resident.block, resident.house_number), {})
            data.append({
                "block": resident.block,
                "house_number": resident.house_number,
                "full_name": resident.full_name,
                "history": [
                    {"period": period, "status": paid[period].status if period in paid else "NOT_PAID"}
                    for period in periods
                ],
            })

        return {"range": range_label, "total_residents": len(data), "data": data}

"""Scheduler-triggered endpoints, guarded by the X-Cron-Secret header"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from rt_finance.api.dependencies import get_breakdown_cache, get_reconciler, get_request_id, verify_cron_secret
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import OcrRunResponse, ReleaseResponse
from rt_finance.config import settings
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.cache.breakdown_cache import BreakdownCache
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.deferred import DeferredSubscriptionTracker
from rt_finance.services.reconciler import MonthlyFeeReconciler
from rt_finance.utils.background import fire_and_forget
from rt_finance.utils.date_utils import normalize_period

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.post("/cron/run-ocr", response_model=OcrRunResponse)
def run_ocr(reconciler: MonthlyFeeReconciler = Depends(get_reconciler)):
    """
    OCR a small batch of queued receipts.

    Kept to a few jobs per call so one invocation stays inside the
    scheduler's request timeout.
    """
    result = reconciler.run_batch_ocr(settings.ocr_batch_size)
    if result.processed == 0 and result.failed == 0:
        return OcrRunResponse(message="No pending OCR jobs")

    logging.info("OCR cron finished", extra={"processed": result.processed, "failed": result.failed})
    return OcrRunResponse(message="OCR cron finished", processed=result.processed, failed=result.failed)


@router.post("/cron/release-deferred/{period}", response_model=ReleaseResponse)
def release_deferred(
    period: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    cache: BreakdownCache = Depends(get_breakdown_cache),
):
    """Consume one month of every active prepaid subscription"""
    try:
        period = normalize_period(period)
        summary = DeferredSubscriptionTracker(db).release_month(period)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    if summary.processed:
        background_tasks.add_task(fire_and_forget, cache.invalidate, period)

    return ReleaseResponse(
        release_month=summary.release_month,
        processed=summary.processed,
        skipped=summary.skipped,
    )

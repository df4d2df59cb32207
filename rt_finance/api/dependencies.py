"""Dependency injection for FastAPI endpoints"""

import hmac
from functools import lru_cache

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from rt_finance.config import settings
from rt_finance.infrastructure.cache.breakdown_cache import BreakdownCache
from rt_finance.infrastructure.clients.image_store import ImageStore
from rt_finance.infrastructure.clients.ocr import TesseractOCR
from rt_finance.infrastructure.clients.telegram import TelegramNotifier
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.reconciler import MonthlyFeeReconciler
from rt_finance.services.telegram_updates import TelegramUpdateHandler


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_image_store() -> ImageStore:
    """Provide receipt storage client instance"""
    return ImageStore()


def get_ocr() -> TesseractOCR:
    """Provide OCR engine instance"""
    return TesseractOCR()


def get_notifier() -> TelegramNotifier:
    """Provide Telegram notifier instance"""
    return TelegramNotifier()


@lru_cache
def get_breakdown_cache() -> BreakdownCache:
    """Shared Redis-backed breakdown cache (one connection pool per process)"""
    return BreakdownCache.from_url(settings.redis_url)


def get_reconciler(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    image_store: ImageStore = Depends(get_image_store),
    ocr: TesseractOCR = Depends(get_ocr),
    notifier: TelegramNotifier = Depends(get_notifier),
    cache: BreakdownCache = Depends(get_breakdown_cache),
) -> MonthlyFeeReconciler:
    """Reconciler whose side effects run after the response is sent"""
    return MonthlyFeeReconciler(
        db,
        image_store=image_store,
        ocr=ocr,
        notifier=notifier,
        cache=cache,
        schedule=background_tasks.add_task,
    )


def verify_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    """Shared-secret guard for scheduler-triggered endpoints"""
    if not settings.cron_secret or not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(status_code=403, detail="Forbidden")


def verify_telegram_secret(x_telegram_bot_api_secret_token: str | None = Header(default=None)) -> None:
    """Telegram echoes the secret_token given to setWebhook on every update"""
    expected = settings.telegram_webhook_secret
    if not expected or not x_telegram_bot_api_secret_token or not hmac.compare_digest(
        x_telegram_bot_api_secret_token, expected
    ):
        raise HTTPException(status_code=403, detail="Forbidden")


def get_update_handler(
    background_tasks: BackgroundTasks,
    reconciler: MonthlyFeeReconciler = Depends(get_reconciler),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> TelegramUpdateHandler:
    return TelegramUpdateHandler(reconciler, notifier, schedule=background_tasks.add_task)

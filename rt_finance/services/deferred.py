"""Prepaid (deferred) subscriptions released one month at a time"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from rt_finance.domain.exceptions import ValidationError, InvalidAmount, MissingRange, NotFoundError
from rt_finance.domain.models import Bucket, EntryType, LedgerSource, ReleaseSummary
from rt_finance.infrastructure.database.models import DeferredSubscription
from rt_finance.infrastructure.database.repositories import DeferredSubscriptionRepository
from rt_finance.infrastructure.database.session import atomic
from rt_finance.infrastructure.observability.metrics import deferred_release_counter
from rt_finance.services.cash_ledger import CashLedgerAccountant
from rt_finance.utils.date_utils import parse_period, is_in_range, month_label

logger = logging.getLogger(__name__)


def release_description(period: str, block: str, house_number: str) -> str:
    return f"Iuran {month_label(period)} - Blok {block} No {house_number}"


class DeferredSubscriptionTracker:
    """Creates subscriptions, answers coverage questions and releases monthly credits"""

    def __init__(self, db: Session):
        self.db = db
        self.subscriptions = DeferredSubscriptionRepository(db)
        self.ledger = CashLedgerAccountant(db)

    def create(
        self,
        block: str,
        house_number: str,
        total_amount: int,
        monthly_amount: int,
        start_month: Optional[str],
        end_month: Optional[str],
        source_ref: Optional[str] = None,
    ) -> DeferredSubscription:
        """
        Register a prepaid subscription.

        Raises:
            ValidationError: identity missing or amounts not positive
            InvalidAmount: total is not a multiple of the monthly amount
            MissingRange: start or end month absent
        """
        if not block or not house_number:
            raise ValidationError("Resident identity is required")
        if not total_amount or total_amount <= 0:
            raise ValidationError("totalAmount must be > 0")
        if not monthly_amount or monthly_amount <= 0:
            raise ValidationError("monthlyAmount must be > 0")
        if total_amount % monthly_amount != 0:
            raise InvalidAmount("totalAmount must be divisible by monthlyAmount")
        if not start_month or not end_month:
            raise MissingRange("startMonth and endMonth required")

        parse_period(start_month)
        parse_period(end_month)
        if start_month > end_month:
            raise ValidationError("startMonth must not be after endMonth")

        with atomic(self.db):
            subscription = self.subscriptions.create_subscription(
                block=block,
                house_number=house_number,
                total_amount=total_amount,
                monthly_amount=monthly_amount,
                remaining=total_amount,
                start_month=start_month,
                end_month=end_month,
                is_active=True,
                source_ref=source_ref,
            )
        return subscription

    def get(self, subscription_id: uuid.UUID) -> DeferredSubscription:
        subscription = self.subscriptions.get_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")
        return subscription

    def list_subscriptions(self, active_only: bool = False) -> List[DeferredSubscription]:
        return self.subscriptions.list_subscriptions(active_only)

    def is_covering_period(self, block: str, house_number: str, period: str) -> bool:
        return self.subscriptions.find_covering(block, house_number, period) is not None

    def release(self, subscription: DeferredSubscription, period: str, released_on: Optional[date] = None) -> bool:
        """
        Consume one month of credit for the period.

        Returns False (skipped) when the period is outside the subscription
        range or less than one monthly amount remains. Otherwise the DEFERRED
        ledger event and the subscription update commit together.
        """
        parse_period(period)

        with atomic(self.db):
            # Re-read under lock so concurrent releases see the latest remaining
            current = self.subscriptions.get_subscription(subscription.id, for_update=True)
            if current is None:
                raise NotFoundError("Subscription not found")

            if not is_in_range(period, current.start_month, current.end_month) or current.remaining < current.monthly_amount:
                deferred_release_counter.labels(outcome="skipped").inc()
                return False

            self.ledger.stage_entry(
                EntryType.OUT,
                current.monthly_amount,
                Bucket.DEFERRED,
                released_on or date.today(),
                release_description(period, current.block, current.house_number),
                LedgerSource.MONTHLY_FEE,
                str(current.id),
                "cron",
            )
            current.remaining -= current.monthly_amount
            current.is_active = current.remaining > 0

        deferred_release_counter.labels(outcome="released").inc()
        return True

    def release_month(self, period: str) -> ReleaseSummary:
        """Release the period for every active subscription"""
        processed = skipped = 0
        for subscription in self.subscriptions.list_subscriptions(active_only=True):
            if self.release(subscription, period):
                processed += 1
            else:
                skipped += 1

        logger.info(
            "Deferred monthly release completed",
            extra={"release_month": period, "processed": processed, "skipped": skipped},
        )
        return ReleaseSummary(release_month=period, processed=processed, skipped=skipped)

    def deactivate(self, subscription_id: uuid.UUID) -> DeferredSubscription:
        """Force a subscription inactive regardless of remaining credit"""
        with atomic(self.db):
            subscription = self.get(subscription_id)
            subscription.is_active = False
        return subscription

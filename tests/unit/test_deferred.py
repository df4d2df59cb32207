"""Unit tests for prepaid subscription tracking"""

import uuid
import pytest
from datetime import date
from rt_finance.domain.exceptions import InvalidAmount, MissingRange, NotFoundError, ValidationError
from rt_finance.domain.models import Bucket
from rt_finance.services.cash_ledger import CashLedgerAccountant
from rt_finance.services.deferred import DeferredSubscriptionTracker, release_description


@pytest.fixture
def tracker(db) -> DeferredSubscriptionTracker:
    return DeferredSubscriptionTracker(db)


@pytest.fixture
def subscription(tracker):
    """Three months prepaid, January to March 2025"""
    return tracker.create("B1", "11", 630000, 210000, "2025-01", "2025-03", source_ref="TRX-001")


def test_create_starts_with_full_remaining(subscription):
    assert subscription.remaining == 630000
    assert subscription.is_active is True


def test_total_must_divide_by_monthly(tracker):
    with pytest.raises(InvalidAmount) as exc:
        tracker.create("B1", "11", 500000, 210000, "2025-01", "2025-03")
    assert exc.value.code == "INVALID_AMOUNT"


def test_range_required(tracker):
    with pytest.raises(MissingRange):
        tracker.create("B1", "11", 630000, 210000, "2025-01", None)


@pytest.mark.parametrize("start,end", [("2025-13", "2025-12"), ("2025-03", "2025-01")])
def test_bad_range_rejected(tracker, start, end):
    with pytest.raises(ValidationError):
        tracker.create("B1", "11", 630000, 210000, start, end)


def test_release_consumes_one_month(tracker, subscription, db):
    """Test a release posts a DEFERRED event and decrements remaining"""
    assert tracker.release(subscription, "2025-01", released_on=date(2025, 1, 1)) is True

    db.refresh(subscription)
    assert subscription.remaining == 420000
    assert subscription.is_active is True

    entries = CashLedgerAccountant(db).list_entries(Bucket.DEFERRED)
    assert len(entries) == 1
    assert entries[0].type == "OUT"
    assert entries[0].amount == 210000
    assert entries[0].balance is None
    assert entries[0].source == "MONTHLY_FEE"
    assert entries[0].source_ref == str(subscription.id)
    assert entries[0].description == "Iuran Januari 2025 - Blok B1 No 11"


def test_full_consumption_deactivates(tracker, subscription, db):
    for period in ["2025-01", "2025-02", "2025-03"]:
        assert tracker.release(subscription, period) is True

    db.refresh(subscription)
    assert subscription.remaining == 0
    assert subscription.is_active is False
    assert tracker.release(subscription, "2025-03") is False
    assert len(CashLedgerAccountant(db).list_entries(Bucket.DEFERRED)) == 3


def test_release_outside_range_is_skipped(tracker, subscription, db):
    assert tracker.release(subscription, "2025-04") is False

    db.refresh(subscription)
    assert subscription.remaining == 630000
    assert CashLedgerAccountant(db).list_entries(Bucket.DEFERRED) == []


def test_deferred_release_does_not_touch_cash_balance(tracker, subscription, db):
    tracker.release(subscription, "2025-01")
    assert CashLedgerAccountant(db).latest_balance() == 0


def test_is_covering_period(tracker, subscription):
    assert tracker.is_covering_period("B1", "11", "2025-02") is True
    assert tracker.is_covering_period("B1", "11", "2025-04") is False
    assert tracker.is_covering_period("B1", "10", "2025-02") is False


def test_release_month_counts_processed_and_skipped(tracker, subscription):
    tracker.create("B1", "12", 420000, 210000, "2025-06", "2025-07")

    summary = tracker.release_month("2025-02")

    assert summary.release_month == "2025-02"
    assert summary.processed == 1
    assert summary.skipped == 1


def test_deactivate_keeps_remaining(tracker, subscription):
    deactivated = tracker.deactivate(subscription.id)

    assert deactivated.is_active is False
    assert deactivated.remaining == 630000
    assert tracker.is_covering_period("B1", "11", "2025-02") is False
    assert tracker.list_subscriptions(active_only=True) == []


def test_deactivate_unknown_subscription(tracker):
    with pytest.raises(NotFoundError):
        tracker.deactivate(uuid.uuid4())


def test_release_description():
    assert release_description("2025-03", "A2", "7") == "Iuran Maret 2025 - Blok A2 No 7"

"""Unit tests for monthly fee reconciliation"""

import pytest
from datetime import datetime
from rt_finance.domain.exceptions import (
    AlreadySubmitted, DeferredActive, NotFoundError, UnsupportedAmount, ValidationError,
)
from rt_finance.domain.models import PaymentStatus
from rt_finance.infrastructure.database.models import Resident
from rt_finance.infrastructure.database.repositories import MonthlyFeeRepository
from rt_finance.services.deferred import DeferredSubscriptionTracker
from rt_finance.services.reconciler import MonthlyFeeReconciler, status_for_amount


RECEIPT = b"BCA m-Transfer\nBERHASIL\nRp 210.000,00\nBerita: iuran"


def _completed_fee(db, block, house_number, period, amount):
    fee = MonthlyFeeRepository(db).create_fee(
        block=block, house_number=house_number, period=period,
        amount=amount, status=PaymentStatus.COMPLETED.value,
    )
    db.commit()
    return fee


def _queue(reconciler, image_store, house_number, content):
    url = image_store.put(f"https://img.test/queued-{house_number}.jpg", content)
    return reconciler.submit_manual("B1", house_number, "2025-01", "Warga", url)


def test_status_for_amount():
    assert status_for_amount(100000) == PaymentStatus.WAITING_APPROVAL
    assert status_for_amount(99999) == PaymentStatus.WAITING_MANUAL_INPUT
    assert status_for_amount(None) == PaymentStatus.WAITING_MANUAL_INPUT


# --- Eligibility ---------------------------------------------------------


def test_eligibility_is_repeatable(reconciler):
    """Test validation has no side effects"""
    reconciler.validate_eligibility("B1", "10", "2025-01")
    reconciler.validate_eligibility("B1", "10", "2025-01")


def test_existing_payment_blocks_new_one(reconciler):
    reconciler.submit_manual("B1", "10", "2025-01", "Budi", "https://img.test/a.jpg")

    with pytest.raises(AlreadySubmitted) as exc:
        reconciler.validate_eligibility("B1", "10", "2025-01-15")
    assert exc.value.code == "MONTHLY_FEE_ALREADY_SUBMITTED"


def test_rejected_payment_still_blocks(reconciler):
    fee = reconciler.submit_manual("B1", "10", "2025-01", "Budi", "https://img.test/a.jpg")
    reconciler.reject(fee.id)

    with pytest.raises(AlreadySubmitted):
        reconciler.validate_eligibility("B1", "10", "2025-01")


def test_covering_subscription_blocks_payment(db, reconciler):
    DeferredSubscriptionTracker(db).create("B1", "10", 630000, 210000, "2025-01", "2025-03")

    with pytest.raises(DeferredActive) as exc:
        reconciler.validate_eligibility("B1", "10", "2025-02")
    assert exc.value.code == "DEFERRED_ACTIVE"

    reconciler.validate_eligibility("B1", "10", "2025-04")


def test_missing_identity_rejected(reconciler):
    with pytest.raises(ValidationError):
        reconciler.validate_eligibility("", "10", "2025-01")


# --- Synchronous proof path ----------------------------------------------


def test_submit_with_proof_reads_amount(reconciler, residents, notifier, cache):
    fee = reconciler.submit_with_proof("B1", "11", "2025-01-20", RECEIPT, "bukti.jpg")

    assert fee.period == "2025-01"
    assert fee.amount == 210000
    assert fee.status == PaymentStatus.WAITING_APPROVAL.value
    assert fee.full_name == "Siti Aminah"
    assert fee.resident_id == residents[1].id
    assert fee.attempt == 1
    assert fee.image_url.startswith("https://img.test/")
    assert [p["id"] for p in notifier.approval_requests] == [fee.id]
    assert cache.invalidated == ["2025-01"]


def test_submit_with_proof_unreadable_amount(reconciler, notifier):
    fee = reconciler.submit_with_proof("B9", "1", "2025-01", b"foto buram", "bukti.jpg")

    assert fee.amount is None
    assert fee.status == PaymentStatus.WAITING_MANUAL_INPUT.value
    assert fee.full_name == "Unknown"
    assert len(notifier.manual_input_requests) == 1


def test_submit_with_proof_checks_eligibility_before_upload(reconciler, image_store):
    reconciler.submit_manual("B1", "10", "2025-01", "Budi", "https://img.test/a.jpg")

    with pytest.raises(AlreadySubmitted):
        reconciler.submit_with_proof("B1", "10", "2025-01", RECEIPT)
    assert image_store.objects == {}


def test_notification_failure_does_not_fail_submission(db, image_store, ocr, cache):
    """Test side effects are logged, not raised"""

    class BrokenNotifier:
        def send_approval_request(self, payment):
            raise RuntimeError("telegram down")

        def send_manual_input_request(self, payment):
            raise RuntimeError("telegram down")

    reconciler = MonthlyFeeReconciler(db, image_store=image_store, ocr=ocr, notifier=BrokenNotifier(), cache=cache)
    fee = reconciler.submit_with_proof("B1", "10", "2025-01", RECEIPT)

    assert fee.status == PaymentStatus.WAITING_APPROVAL.value


def test_deferred_side_effects_use_scheduler(db, image_store, ocr, notifier, cache):
    """Test cache and notification work is handed to the scheduler"""
    scheduled = []
    reconciler = MonthlyFeeReconciler(
        db, image_store=image_store, ocr=ocr, notifier=notifier, cache=cache,
        schedule=lambda func, *args: scheduled.append(args[0]),
    )
    reconciler.submit_with_proof("B1", "10", "2025-01", RECEIPT)

    assert scheduled == [notifier.send_approval_request, cache.invalidate]
    assert notifier.approval_requests == []


# --- Batch OCR ------------------------------------------------------------


def test_submit_manual_queues_pending(reconciler, cache):
    fee = reconciler.submit_manual("B1", "10", "2025-01", " Budi ", "https://img.test/a.jpg", notes="  ")

    assert fee.status == PaymentStatus.PENDING.value
    assert fee.full_name == "Budi"
    assert fee.notes is None
    assert fee.attempt == 0
    assert cache.invalidated == ["2025-01"]


def test_batch_ocr_isolates_failures(reconciler, image_store, notifier):
    good = _queue(reconciler, image_store, "10", RECEIPT)
    broken = reconciler.submit_manual("B1", "11", "2025-01", "Warga", "https://img.test/missing.jpg")
    small = _queue(reconciler, image_store, "12", b"Transfer Rp 50.000")

    result = reconciler.run_batch_ocr(3)

    assert result.processed == 2
    assert result.failed == 1

    assert good.status == PaymentStatus.WAITING_APPROVAL.value
    assert good.amount == 210000
    assert good.attempt == 1

    assert broken.status == PaymentStatus.FAILED.value
    assert broken.error_message == "Image download error: 404"
    assert broken.attempt == 1

    assert small.status == PaymentStatus.WAITING_MANUAL_INPUT.value
    assert small.amount == 50000

    assert len(notifier.approval_requests) == 1
    assert len(notifier.manual_input_requests) == 1


def test_batch_ocr_respects_batch_size(db, reconciler, image_store):
    for house_number in ["10", "11", "12", "13"]:
        _queue(reconciler, image_store, house_number, RECEIPT)

    result = reconciler.run_batch_ocr(3)

    assert result.processed == 3
    remaining = MonthlyFeeRepository(db).get_pending_batch(10)
    assert [fee.house_number for fee in remaining] == ["13"]


def test_batch_ocr_with_empty_queue(reconciler):
    result = reconciler.run_batch_ocr(3)
    assert (result.processed, result.failed) == (0, 0)


def test_unreadable_image_marks_failed(reconciler, image_store):
    fee = _queue(reconciler, image_store, "10", b"\x00\x01garbage")

    result = reconciler.run_batch_ocr(3)

    assert result.failed == 1
    assert fee.status == PaymentStatus.FAILED.value
    assert fee.error_message == "Uploaded file is not a readable image"


# --- Human actions -------------------------------------------------------


def test_approve_requires_amount(reconciler):
    fee = reconciler.submit_manual("B1", "10", "2025-01", "Budi", "https://img.test/a.jpg")
    with pytest.raises(ValidationError):
        reconciler.approve(fee.id)


def test_approve_and_reject(reconciler):
    approved = reconciler.submit_with_proof("B1", "10", "2025-01", RECEIPT)
    rejected = reconciler.submit_with_proof("B1", "11", "2025-01", RECEIPT)

    assert reconciler.approve(approved.id).status == PaymentStatus.COMPLETED.value
    assert reconciler.reject(rejected.id).status == PaymentStatus.REJECTED.value


def test_manual_amount_completes_payment(reconciler):
    fee = reconciler.submit_with_proof("B1", "10", "2025-01", b"foto buram")

    updated = reconciler.input_manual_amount(fee.id, 186000, actor="bendahara")

    assert updated.amount == 186000
    assert updated.status == PaymentStatus.COMPLETED.value
    assert updated.notes == "Manual input by bendahara"


def test_manual_amount_below_threshold_rejected(reconciler):
    fee = reconciler.submit_with_proof("B1", "10", "2025-01", b"foto buram")
    with pytest.raises(ValidationError):
        reconciler.input_manual_amount(fee.id, 50000)


def test_unknown_payment(reconciler):
    with pytest.raises(NotFoundError):
        reconciler.approve(999)


# --- Views ----------------------------------------------------------------


def test_period_breakdown_priorities(db, reconciler, residents):
    """Test subscription beats payment, unpaid residents get empty rows"""
    DeferredSubscriptionTracker(db).create("B1", "10", 630000, 210000, "2025-01", "2025-03")
    _completed_fee(db, "B1", "10", "2025-01", 186000)
    _completed_fee(db, "B1", "11", "2025-01", 186000)

    rows = reconciler.build_period_breakdown("2025-01")

    assert [(r["house_number"], r["source"], r["total_amount"]) for r in rows] == [
        ("10", "DEFERRED", 210000),
        ("11", "MONTHLY_FEE", 186000),
        ("12", None, None),
    ]
    assert rows[1]["keamanan"] == 97500
    assert rows[1]["agama_rt"] == 0
    assert rows[2]["kas_rt"] is None
    assert rows[2]["full_name"] == "Agus Wijaya"


def test_period_breakdown_prefers_newest_overlapping_subscription(db, reconciler, residents):
    """Test the most recently created subscription decides the monthly amount"""
    tracker = DeferredSubscriptionTracker(db)
    newest = tracker.create("B1", "10", 630000, 210000, "2025-01", "2025-03")
    oldest = tracker.create("B1", "10", 1200000, 200000, "2024-08", "2025-01")
    newest.created_at = datetime(2024, 12, 20)
    oldest.created_at = datetime(2024, 7, 25)
    db.commit()

    rows = reconciler.build_period_breakdown("2025-01")

    assert rows[0]["source"] == "DEFERRED"
    assert rows[0]["total_amount"] == 210000


def test_period_breakdown_omits_completed_without_amount(db, reconciler, residents):
    _completed_fee(db, "B1", "10", "2025-01", None)

    rows = reconciler.build_period_breakdown("2025-01")

    assert [r["house_number"] for r in rows] == ["11", "12"]


def test_period_breakdown_unsupported_amount(db, reconciler, residents):
    _completed_fee(db, "B1", "10", "2025-01", 150000)

    with pytest.raises(UnsupportedAmount):
        reconciler.build_period_breakdown("2025-01")


def test_period_breakdown_served_from_cache(db, reconciler, residents, cache):
    reconciler.build_period_breakdown("2025-01")
    assert "breakdown:2025:01" in cache.store

    db.add(Resident(block="B2", house_number="1", full_name="Dewi"))
    db.commit()

    assert len(reconciler.build_period_breakdown("2025-01")) == 3


def test_payment_invalidates_cached_breakdown(reconciler, residents, cache):
    reconciler.build_period_breakdown("2025-01")
    reconciler.submit_with_proof("B1", "10", "2025-01", RECEIPT)
    assert "breakdown:2025:01" not in cache.store


def test_history_for_one_house(db, reconciler, residents):
    _completed_fee(db, "B1", "11", "2025-02", 210000)

    history = reconciler.payment_history("2025-01", "2025-03", "B1", "11")

    assert history["full_name"] == "Siti Aminah"
    assert history["range"] == "2025-01 - 2025-03"
    assert [h["status"] for h in history["history"]] == ["NOT_PAID", "COMPLETED", "NOT_PAID"]
    assert history["history"][1]["amount"] == 210000
    assert history["history"][1]["month"] == "Februari 2025"


def test_history_for_all_residents(db, reconciler, residents):
    _completed_fee(db, "B1", "10", "2025-01", 210000)

    history = reconciler.payment_history("2025-01", "2025-02")

    assert history["total_residents"] == 3
    assert history["data"][0]["history"] == [
        {"period": "2025-01", "status": "COMPLETED"},
        {"period": "2025-02", "status": "NOT_PAID"},
    ]


def test_history_rejects_inverted_range(reconciler):
    with pytest.raises(ValidationError):
        reconciler.payment_history("2025-03", "2025-01")

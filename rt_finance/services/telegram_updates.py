"""Treasurer actions arriving from the Telegram chat: approve/reject buttons and amount replies"""

import logging
import re
from typing import Optional

from rt_finance.config import settings
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.clients.telegram import TelegramNotifier, format_rupiah
from rt_finance.services.reconciler import MonthlyFeeReconciler, APPROVAL_THRESHOLD
from rt_finance.utils.background import Scheduler, fire_and_forget, run_inline

logger = logging.getLogger(__name__)

CALLBACK_PATTERN = re.compile(r"^(approve|reject)_(\d+)$")
CAPTION_ID_PATTERN = re.compile(r"ID: #(\d+)")

# action -> (outcome, caption stamp, toast on success, toast on failure)
CALLBACK_REPLIES = {
    "approve": ("approved", "✅ *APPROVED*", "Data berhasil diapprove!", "Gagal mengupdate data."),
    "reject": ("rejected", "❌ *REJECTED*", "Data ditolak.", "Gagal menolak data."),
}


class TelegramUpdateHandler:
    """
    Applies what the treasurer does in the approval chat.

    Updates from any chat other than the configured treasurer chat are
    ignored. Replies back to Telegram go through ``schedule`` so a Telegram
    outage never undoes a status change that already committed.
    """

    def __init__(
        self,
        reconciler: MonthlyFeeReconciler,
        notifier: TelegramNotifier,
        chat_id: Optional[str] = None,
        schedule: Scheduler = run_inline,
    ):
        self.reconciler = reconciler
        self.notifier = notifier
        self.chat_id = chat_id if chat_id is not None else settings.telegram_chat_id
        self.schedule = schedule

    def _from_treasurer_chat(self, chat_id: int) -> bool:
        return bool(self.chat_id) and str(chat_id) == str(self.chat_id)

    def _reply(self, func, *args) -> None:
        self.schedule(fire_and_forget, func, *args)

    def handle_callback(
        self,
        callback_query_id: str,
        chat_id: int,
        message_id: int,
        caption: Optional[str],
        data: Optional[str],
        actor: str,
    ) -> str:
        """Approve/Reject button pressed under an approval request photo"""
        if not self._from_treasurer_chat(chat_id):
            return "ignored"

        match = CALLBACK_PATTERN.match(data or "")
        if not match:
            return "ignored"

        action, fee_id = match.group(1), int(match.group(2))
        outcome, stamp, success_text, failure_text = CALLBACK_REPLIES[action]
        try:
            if action == "approve":
                self.reconciler.approve(fee_id)
            else:
                self.reconciler.reject(fee_id)
        except DomainException as e:
            logger.warning(f"Telegram {action} failed for fee {fee_id}: {e.message}")
            self._reply(self.notifier.answer_callback_query, callback_query_id, failure_text)
            return "failed"

        logger.info(f"Monthly fee {fee_id} {outcome} via Telegram", extra={"fee_id": fee_id, "actor": actor})
        self._reply(self.notifier.edit_message_caption, chat_id, message_id, f"{caption or ''}\n\n{stamp} by {actor}")
        self._reply(self.notifier.answer_callback_query, callback_query_id, success_text)
        return outcome

    def handle_reply(
        self,
        chat_id: int,
        message_id: int,
        text: Optional[str],
        replied_caption: Optional[str],
        actor: str,
    ) -> str:
        """Treasurer replied to a manual-input request with the amount"""
        if not self._from_treasurer_chat(chat_id):
            return "ignored"

        match = CAPTION_ID_PATTERN.search(replied_caption or "")
        if not match:
            return "ignored"
        fee_id = int(match.group(1))

        digits = re.sub(r"\D", "", text or "")
        amount = int(digits) if digits else 0
        if amount < APPROVAL_THRESHOLD:
            self._reply(
                self.notifier.send_message, chat_id,
                f"❌ Nominal tidak valid. Masukkan angka saja (min {APPROVAL_THRESHOLD}).", message_id,
            )
            return "invalid_amount"

        try:
            self.reconciler.input_manual_amount(fee_id, amount, actor=actor)
        except DomainException as e:
            logger.warning(f"Telegram manual amount failed for fee {fee_id}: {e.message}")
            self._reply(self.notifier.send_message, chat_id, "❌ Gagal update database.", message_id)
            return "failed"

        self._reply(
            self.notifier.send_message, chat_id,
            f"✅ Data Updated! ID: {fee_id}\n💰 Nominal: {format_rupiah(amount)}\nStatus: COMPLETED", message_id,
        )
        return "amount_recorded"

"""Telegram Bot API client for treasurer approval requests and replies, with exponential backoff retry"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from rt_finance.config import settings
from rt_finance.domain.exceptions import NotificationError
from rt_finance.infrastructure.observability.metrics import notification_failure_counter

logger = logging.getLogger(__name__)


def format_rupiah(amount: Optional[int]) -> str:
    """210000 -> 'Rp 210.000'"""
    if amount is None:
        return "Rp -"
    return "Rp " + f"{amount:,}".replace(",", ".")


class TelegramNotifier:
    """Sends receipt photos to the treasurer chat for approval or manual amount entry"""

    def __init__(self, bot_token: str | None = None, chat_id: str | None = None):
        self.bot_token = bot_token if bot_token is not None else settings.telegram_bot_token
        self.chat_id = chat_id if chat_id is not None else settings.telegram_chat_id
        self.max_retries = settings.notify_max_retries
        self.backoff_base = settings.notify_backoff_base

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def send_approval_request(self, payment: Dict[str, Any]) -> None:
        """Photo plus Approve/Reject buttons for a payment with a readable amount"""
        caption = (
            "🆕 *Iuran Baru Menunggu Approval*\n\n"
            f"ID: #{payment['id']}\n"
            f"🏠 *Rumah*: {payment['block']}/{payment['house_number']}\n"
            f"👤 *Nama*: {payment.get('full_name') or 'Unknown'}\n"
            f"🗓 *Bulan*: {payment['period']}\n"
            f"💰 *Nominal*: {format_rupiah(payment.get('amount'))}\n"
            f"📝 *Catatan*: {payment.get('notes') or '-'}\n\n"
            "Mohon konfirmasi validitas transfer ini."
        )
        keyboard = {
            "inline_keyboard": [[
                {"text": "✅ Approve", "callback_data": f"approve_{payment['id']}"},
                {"text": "❌ Reject", "callback_data": f"reject_{payment['id']}"},
            ]]
        }
        self._send_photo(payment["image_url"], caption, reply_markup=keyboard)

    def send_manual_input_request(self, payment: Dict[str, Any]) -> None:
        """Photo asking the treasurer to reply with the correct amount"""
        caption = (
            "⚠️ *OCR GAGAL / TIDAK DITEMUKAN*\n\n"
            f"ID: #{payment['id']}\n"
            f"🏠 *Rumah*: {payment['block']}/{payment['house_number']}\n"
            f"🗓 *Bulan*: {payment['period']}\n\n"
            "Bot tidak dapat membaca nominal dari gambar.\n"
            "👉 *Silakan Reply pesan ini dengan nominal yang benar (angka saja).*"
        )
        self._send_photo(payment["image_url"], caption)

    def answer_callback_query(self, callback_query_id: str, text: str) -> None:
        """Toast shown to the treasurer who pressed a button"""
        self._call("answerCallbackQuery", {"callback_query_id": callback_query_id, "text": text})

    def edit_message_caption(self, chat_id: int | str, message_id: int, caption: str) -> None:
        """Rewrite a photo's caption, dropping its buttons"""
        self._call("editMessageCaption", {
            "chat_id": chat_id,
            "message_id": message_id,
            "caption": caption,
            "parse_mode": "Markdown",
        })

    def send_message(self, chat_id: int | str, text: str, reply_to_message_id: Optional[int] = None) -> None:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = reply_to_message_id
        self._call("sendMessage", payload)

    def _send_photo(self, photo_url: str, caption: str, reply_markup: Optional[Dict[str, Any]] = None) -> None:
        if not self.enabled:
            logger.warning("Telegram not configured, skipping notification")
            return

        payload: Dict[str, Any] = {
            "chat_id": self.chat_id,
            "photo": photo_url,
            "caption": caption,
            "parse_mode": "Markdown",
        }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        self._call("sendPhoto", payload)

    def _call(self, method: str, payload: Dict[str, Any]) -> None:
        """
        POST a Bot API method with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1), so 1s, 2s, ... with the defaults
        - Retries on 5xx/429 errors and network failures

        Raises:
            NotificationError: Telegram still failing after all retries
        """
        if not self.bot_token:
            logger.warning(f"Telegram not configured, skipping {method}")
            return

        url = f"{settings.telegram_api_base}/bot{self.bot_token}/{method}"
        attempt = 0
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            while True:
                try:
                    response = client.post(url, json=payload)
                    response.raise_for_status()
                    return
                except httpx.HTTPStatusError as e:
                    status = e.response.status_code
                    if status < 500 and status != 429:
                        notification_failure_counter.inc()
                        raise NotificationError(f"Telegram rejected {method}: {status}") from e
                    error = e
                except httpx.RequestError as e:
                    error = e

                attempt += 1
                notification_failure_counter.inc()
                if attempt >= self.max_retries:
                    raise NotificationError(f"Telegram unavailable after {attempt} attempts: {error}") from error

                time.sleep(self.backoff_base * (2 ** (attempt - 1)))

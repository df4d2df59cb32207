"""Telegram webhook: treasurer button presses and amount replies"""

from fastapi import APIRouter, Depends

from rt_finance.api.dependencies import get_update_handler, verify_telegram_secret
from rt_finance.api.v1.schemas import TelegramUpdate, TelegramWebhookResponse
from rt_finance.services.telegram_updates import TelegramUpdateHandler

router = APIRouter(dependencies=[Depends(verify_telegram_secret)])


@router.post("/telegram/webhook", response_model=TelegramWebhookResponse)
def telegram_webhook(update: TelegramUpdate, handler: TelegramUpdateHandler = Depends(get_update_handler)):
    """
    Receive one update pushed by Telegram.

    Always answers 200 once the secret checks out; Telegram redelivers
    anything else, and a failed action has already been reported back
    in the chat.
    """
    callback = update.callback_query
    if callback and callback.message:
        outcome = handler.handle_callback(
            callback_query_id=callback.id,
            chat_id=callback.message.chat.id,
            message_id=callback.message.message_id,
            caption=callback.message.caption,
            data=callback.data,
            actor=callback.from_user.first_name,
        )
        return TelegramWebhookResponse(outcome=outcome)

    message = update.message
    if message and message.text and message.reply_to_message:
        outcome = handler.handle_reply(
            chat_id=message.chat.id,
            message_id=message.message_id,
            text=message.text,
            replied_caption=message.reply_to_message.caption,
            actor=message.from_user.first_name if message.from_user else "admin",
        )
        return TelegramWebhookResponse(outcome=outcome)

    return TelegramWebhookResponse(outcome="ignored")

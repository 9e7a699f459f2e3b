from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from tokenbot.src import schemas
from tokenbot.src.config import settings
from tokenbot.src.core.dispatcher import Dispatcher, deliver
from tokenbot.src.core.locks import AccountBusyError
from tokenbot.src.core.telegram_client import MessageSender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhook", tags=["webhook"])


# -- Dependency helpers --------------------------------------------------------


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_sender(request: Request) -> MessageSender:
    return request.app.state.sender


def _matches(received: str | None, expected: str | None) -> bool:
    if not received or not expected:
        return False
    return hmac.compare_digest(received.encode(), expected.encode())


# -- Endpoints ----------------------------------------------------------------


@router.post("/{bot_token}", response_model=schemas.WebhookAck)
async def receive_update(
    bot_token: str,
    update: schemas.TelegramUpdate,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    sender: MessageSender = Depends(get_sender),
    secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
) -> schemas.WebhookAck:
    """Accept an update from Telegram and answer the sender."""
    if not _matches(bot_token, settings.bot_token):
        logger.warning("Rejected webhook call with an unknown bot token")
        raise HTTPException(status_code=403, detail="Forbidden")
    if settings.webhook_secret and not _matches(secret_token, settings.webhook_secret):
        logger.warning("Rejected webhook call with a bad secret token")
        raise HTTPException(status_code=403, detail="Forbidden")

    # Only text messages from a known sender are handled
    message = update.message
    if message is None or message.from_user is None or not message.text:
        return schemas.WebhookAck()

    account_id = message.from_user.id
    try:
        reply = await dispatcher.handle_incoming(account_id, message.text)
    except AccountBusyError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    if reply is not None:
        await deliver(sender, account_id, reply)
    return schemas.WebhookAck()

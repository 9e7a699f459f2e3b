from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tokenbot.src import schemas
from tokenbot.src.api.webhook import get_sender
from tokenbot.src.core.telegram_client import MessageSender, TelegramError
from tokenbot.src.repositories.record_repository import RecordRepository
from tokenbot.src.storage.database import get_db

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.post("", response_model=schemas.RelayResponse, status_code=202)
async def relay_message(
    body: schemas.RelayRequest,
    db: AsyncSession = Depends(get_db),
    sender: MessageSender = Depends(get_sender),
) -> schemas.RelayResponse:
    """Forward a message to the account that owns the token."""
    record = await RecordRepository(db).find_by_token(body.token)
    if record is None:
        raise HTTPException(status_code=404, detail="Unknown token")

    try:
        await sender.send_text(record.account_id, body.message, silent=body.silent, parse_mode=body.parse_mode)
    except TelegramError as e:
        raise HTTPException(status_code=502, detail="Message could not be delivered") from e

    return schemas.RelayResponse(detail="Message accepted")

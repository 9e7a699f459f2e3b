from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tokenbot.src.core.telegram_client import ParseMode


# ── Health Schemas ────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    version: str


class DepsHealthResponse(BaseModel):
    database: str
    redis: str


# ── Telegram Update Schemas ───────────────────────────────────────────
# Only the fields the bot reads; everything else in an update is ignored.


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    type: str


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: Optional[TelegramChat] = None
    text: Optional[str] = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Optional[TelegramMessage] = None


class WebhookAck(BaseModel):
    ok: bool = True


# ── Relay Schemas ─────────────────────────────────────────────────────


class RelayRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)
    message: str = Field(..., min_length=1, max_length=4096)
    silent: bool = False
    parse_mode: ParseMode = ParseMode.markdown


class RelayResponse(BaseModel):
    detail: str

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from tokenbot.src.config import settings
from tokenbot.src.core.locks import AccountBusyError
from tokenbot.src.main import app

WEBHOOK_URL = "/api/v1/webhook/123456:test-bot-token"


def make_update(text: str | None = "/start", user_id: int | None = 555, **extra) -> dict:
    message: dict = {"message_id": 1, "date": 0, "chat": {"id": user_id or 1, "type": "private"}}
    if user_id is not None:
        message["from"] = {"id": user_id, "is_bot": False, "first_name": "Test"}
    if text is not None:
        message["text"] = text
    message.update(extra)
    return {"update_id": 10, "message": message}


async def test_text_message_is_answered(client: AsyncClient, mock_sender: AsyncMock, locale) -> None:
    resp = await client.post(WEBHOOK_URL, json=make_update("/help"))

    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    mock_sender.send_text.assert_awaited_once_with(555, locale.help)


async def test_create_over_webhook(client: AsyncClient, mock_sender: AsyncMock, generator) -> None:
    resp = await client.post(WEBHOOK_URL, json=make_update("/create"))

    assert resp.status_code == 200
    account_id, text = mock_sender.send_text.await_args.args
    assert account_id == 555
    assert generator.issued[0] in text


async def test_wrong_bot_token_forbidden(client: AsyncClient, mock_sender: AsyncMock) -> None:
    resp = await client.post("/api/v1/webhook/not-the-token", json=make_update())

    assert resp.status_code == 403
    mock_sender.send_text.assert_not_called()


async def test_secret_header_required_when_configured(
    client: AsyncClient, mock_sender: AsyncMock, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "webhook_secret", "hook-secret")

    missing = await client.post(WEBHOOK_URL, json=make_update())
    wrong = await client.post(WEBHOOK_URL, json=make_update(), headers={"X-Telegram-Bot-Api-Secret-Token": "nope"})
    right = await client.post(
        WEBHOOK_URL, json=make_update(), headers={"X-Telegram-Bot-Api-Secret-Token": "hook-secret"}
    )

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert right.status_code == 200
    mock_sender.send_text.assert_awaited_once()


@pytest.mark.parametrize(
    "update",
    [
        {"update_id": 1},
        {"update_id": 1, "edited_message": {"message_id": 1, "text": "/start"}},
        make_update(text=None, sticker={"file_id": "x"}),
        make_update(user_id=None),
        make_update("   "),
    ],
)
async def test_non_text_updates_are_ignored(client: AsyncClient, mock_sender: AsyncMock, update: dict) -> None:
    resp = await client.post(WEBHOOK_URL, json=update)

    assert resp.status_code == 200
    mock_sender.send_text.assert_not_called()
    mock_sender.send_easter_egg.assert_not_called()


async def test_easter_egg_is_sent_as_sticker(client: AsyncClient, mock_sender: AsyncMock, dispatcher) -> None:
    dispatcher.rng = MagicMock()
    dispatcher.rng.randrange.return_value = 0

    resp = await client.post(WEBHOOK_URL, json=make_update("/bogus"))

    assert resp.status_code == 200
    mock_sender.send_easter_egg.assert_awaited_once_with(555)
    mock_sender.send_text.assert_not_called()


async def test_busy_account_returns_503(client: AsyncClient, dispatcher) -> None:
    dispatcher.handle_incoming = AsyncMock(side_effect=AccountBusyError(555))

    resp = await client.post(WEBHOOK_URL, json=make_update("/create"))

    assert resp.status_code == 503


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert app.title == "tokenbot"

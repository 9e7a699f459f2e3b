from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tokenbot.src.core.commands import (
    Command,
    CommandRegistry,
    CommandResult,
    DuplicateCommandError,
    build_commands,
    extract_command_key,
)
from tokenbot.src.core.guards import guest_only, registered_only
from tokenbot.src.models import Record, RecordState


def _command(key: str, text: str = "ok") -> Command:
    return Command(key, AsyncMock(return_value=CommandResult(text)))


# ── extract_command_key ──────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("text", "key"),
    [
        ("/create", "/create"),
        ("/create extra args", "/create"),
        ("/create\tnow", "/create"),
        ("/create\nsecond line", "/create"),
        ("hello there", "hello"),
        ("", ""),
    ],
)
def test_extract_command_key(text: str, key: str) -> None:
    assert extract_command_key(text) == key


# ── CommandRegistry ──────────────────────────────────────────────────────


def test_registry_resolves_exact_key() -> None:
    registry = CommandRegistry([_command("/start"), _command("/help")])
    assert registry.resolve("/start").key == "/start"
    assert "/help" in registry
    assert len(registry) == 2


def test_registry_is_case_sensitive() -> None:
    registry = CommandRegistry([_command("/start")])
    assert registry.resolve("/Start") is None
    assert registry.resolve("/START") is None


def test_registry_unknown_key() -> None:
    assert CommandRegistry([_command("/start")]).resolve("/bogus") is None


def test_registry_rejects_duplicate_keys() -> None:
    with pytest.raises(DuplicateCommandError) as exc_info:
        CommandRegistry([_command("/start"), _command("/help"), _command("/start")])
    assert exc_info.value.keys == ["/start"]


def test_built_command_set_has_unique_keys(locale) -> None:
    commands = build_commands(
        locale,
        MagicMock(),
        registration_enabled=lambda: True,
        api_endpoint_url="https://example.com",
    )
    registry = CommandRegistry(commands)
    assert set(registry.keys) == {
        "/start", "/help", "/about", "/directive", "/token",
        "/create", "/delete", "/regenerate", "/confirm", "/cancel",
    }


# ── Command.process ──────────────────────────────────────────────────────


async def test_guard_failure_short_circuits_handler() -> None:
    handler = AsyncMock(return_value=CommandResult("ran", applied=True))
    command = Command("/create", handler, (guest_only("already"),))

    result = await command.process(MagicMock(), Record(account_id=1, token="t", state=RecordState.active))

    assert result == CommandResult("already", applied=False)
    handler.assert_not_called()


async def test_handler_runs_when_guards_pass() -> None:
    handler = AsyncMock(return_value=CommandResult("ran", applied=True))
    command = Command("/token", handler, (registered_only("no"),))
    record = Record(account_id=1, token="t", state=RecordState.active)
    repo = MagicMock()

    result = await command.process(repo, record)

    assert result.text == "ran"
    handler.assert_awaited_once_with(repo, record)


async def test_unguarded_command_always_runs() -> None:
    handler = AsyncMock(return_value=CommandResult("info"))
    result = await Command("/about", handler).process(MagicMock(), Record.unregistered(1))
    assert result.text == "info"


async def test_create_checks_registration_before_guest_guard(locale) -> None:
    commands = {
        c.key: c
        for c in build_commands(
            locale,
            MagicMock(),
            registration_enabled=lambda: False,
            api_endpoint_url="https://example.com",
        )
    }
    registered = Record(account_id=1, token="t", state=RecordState.active)

    result = await commands["/create"].process(MagicMock(), registered)

    assert result.text == locale.create_closed
    assert result.applied is False


async def test_token_command_formats_token_and_endpoint(locale) -> None:
    commands = {
        c.key: c
        for c in build_commands(
            locale,
            MagicMock(),
            registration_enabled=lambda: True,
            api_endpoint_url="https://example.com/api",
        )
    }

    result = await commands["/token"].process(MagicMock(), Record(account_id=1, token="abc123", state=RecordState.active))

    assert "abc123" in result.text
    assert "https://example.com/api" in result.text

from __future__ import annotations

from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from tokenbot.src.core.guards import (
    Guard,
    guest_only,
    no_pending_action,
    pending_only,
    registered_only,
    registration_open,
    run_guards,
)
from tokenbot.src.core.state_machine import RecordStateMachine
from tokenbot.src.locale.loader import Locale
from tokenbot.src.models import Record, RecordState
from tokenbot.src.repositories.record_repository import RecordRepository

COMMAND_PREFIX = "/"


@dataclass(frozen=True)
class CommandResult:
    text: str
    applied: bool = False


Handler = Callable[[RecordRepository, Record], Awaitable[CommandResult]]


@dataclass(frozen=True)
class Command:
    """A command key bound to its guards and its handler."""

    key: str
    handler: Handler
    guards: tuple[Guard, ...] = ()

    async def process(self, repo: RecordRepository, record: Record) -> CommandResult:
        """Run the guards, then the handler if every guard passed."""
        failure = run_guards(self.guards, record)
        if failure is not None:
            return CommandResult(failure)
        return await self.handler(repo, record)


class DuplicateCommandError(Exception):
    """Two commands were registered under the same key."""

    def __init__(self, keys: list[str]) -> None:
        self.keys = keys
        super().__init__(f"Duplicate command keys: {', '.join(keys)}")


class CommandRegistry:
    """Fixed mapping from command key to command, validated once at construction."""

    def __init__(self, commands: Iterable[Command]) -> None:
        commands = list(commands)
        duplicates = sorted(key for key, count in Counter(c.key for c in commands).items() if count > 1)
        if duplicates:
            raise DuplicateCommandError(duplicates)
        self._commands: dict[str, Command] = {c.key: c for c in commands}

    def resolve(self, key: str) -> Command | None:
        return self._commands.get(key)

    @property
    def keys(self) -> list[str]:
        return list(self._commands)

    def __contains__(self, key: object) -> bool:
        return key in self._commands

    def __len__(self) -> int:
        return len(self._commands)


def extract_command_key(text: str) -> str:
    """Return the text up to the first whitespace character."""
    parts = text.split(maxsplit=1)
    return parts[0] if parts else ""


# -- Command set ---------------------------------------------------------------


def _reply(text: str) -> Handler:
    async def handler(repo: RecordRepository, record: Record) -> CommandResult:
        return CommandResult(text)

    return handler


def build_commands(
    locale: Locale,
    state_machine: RecordStateMachine,
    *,
    registration_enabled: Callable[[], bool],
    api_endpoint_url: str,
) -> list[Command]:
    """Build the bot's command set."""

    async def start(repo: RecordRepository, record: Record) -> CommandResult:
        status = locale.start_registration_open if registration_enabled() else locale.start_registration_closed
        return CommandResult(f"{locale.start}\n{status}")

    async def token(repo: RecordRepository, record: Record) -> CommandResult:
        return CommandResult(locale.token.format(token=record.token, endpoint=api_endpoint_url))

    async def create(repo: RecordRepository, record: Record) -> CommandResult:
        created = await state_machine.create(repo, record)
        return CommandResult(locale.create_success.format(token=created.token), applied=True)

    async def delete(repo: RecordRepository, record: Record) -> CommandResult:
        await state_machine.request_deletion(repo, record)
        text = locale.delete_prompt
        if not registration_enabled():
            text = f"{text}\n{locale.delete_registration_closed}"
        return CommandResult(text, applied=True)

    async def regenerate(repo: RecordRepository, record: Record) -> CommandResult:
        await state_machine.request_regeneration(repo, record)
        return CommandResult(locale.regenerate_prompt, applied=True)

    async def confirm(repo: RecordRepository, record: Record) -> CommandResult:
        result = await state_machine.confirm(repo, record)
        if result.state == RecordState.unregistered:
            return CommandResult(locale.confirm_deletion, applied=True)
        return CommandResult(locale.confirm_regeneration.format(token=result.token), applied=True)

    async def cancel(repo: RecordRepository, record: Record) -> CommandResult:
        await state_machine.cancel(repo, record)
        return CommandResult(locale.cancel_success, applied=True)

    must_be_registered = registered_only(locale.not_registered)
    nothing_pending = no_pending_action(locale.pending_action)
    awaiting_confirmation = pending_only(locale.nothing_to_confirm)

    return [
        Command("/start", start),
        Command("/help", _reply(locale.help)),
        Command("/about", _reply(locale.about)),
        Command("/directive", _reply(locale.directive)),
        Command("/token", token, (must_be_registered,)),
        Command(
            "/create",
            create,
            (registration_open(registration_enabled, locale.create_closed), guest_only(locale.already_registered)),
        ),
        Command("/delete", delete, (must_be_registered, nothing_pending)),
        Command("/regenerate", regenerate, (must_be_registered, nothing_pending)),
        Command("/confirm", confirm, (awaiting_confirmation,)),
        Command("/cancel", cancel, (awaiting_confirmation,)),
    ]

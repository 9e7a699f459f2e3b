from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tokenbot.src.core.commands import COMMAND_PREFIX, CommandRegistry, build_commands, extract_command_key
from tokenbot.src.core.locks import AccountLocks
from tokenbot.src.core.state_machine import RecordStateMachine
from tokenbot.src.core.telegram_client import MessageSender
from tokenbot.src.core.token_generator import SecretTokenGenerator, TokenGenerator
from tokenbot.src.locale.loader import Locale
from tokenbot.src.repositories.record_repository import RecordRepository

logger = logging.getLogger(__name__)

EASTER_EGG_ODDS = 20  # one unrecognized message in twenty


@dataclass(frozen=True)
class Reply:
    """What to send back: either text or the easter egg artifact."""

    text: str | None = None
    easter_egg: bool = False
    applied: bool = False


class Dispatcher:
    """Routes inbound text to a command and returns the reply.

    Each recognized command runs under the account's lock in its own session,
    so a failure leaves nothing half-written.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        locale: Locale,
        session_factory: async_sessionmaker[AsyncSession],
        locks: AccountLocks,
        *,
        rng: random.Random | None = None,
        easter_egg_odds: int = EASTER_EGG_ODDS,
    ) -> None:
        self.registry = registry
        self.locale = locale
        self.session_factory = session_factory
        self.locks = locks
        self.rng = rng or random.Random()
        self.easter_egg_odds = easter_egg_odds

    async def handle_incoming(self, account_id: int, text: str) -> Reply | None:
        """Process one inbound message. Returns None when there is nothing to answer."""
        text = text.strip()
        if not text:
            return None

        command = self.registry.resolve(extract_command_key(text))
        if command is None:
            return self._unrecognized(text)

        async with self.locks.hold(account_id):
            async with self.session_factory() as session:
                repo = RecordRepository(session)
                record = await repo.load(account_id)
                try:
                    result = await command.process(repo, record)
                except Exception:
                    logger.exception("Command %s failed for account %s", command.key, account_id)
                    raise
        return Reply(text=result.text, applied=result.applied)

    def _unrecognized(self, text: str) -> Reply:
        if self.easter_egg_odds > 0 and self.rng.randrange(self.easter_egg_odds) == 0:
            return Reply(easter_egg=True)
        if text.startswith(COMMAND_PREFIX):
            return Reply(text=self.locale.error_invalid_command)
        return Reply(text=self.locale.error_not_understood)


async def deliver(sender: MessageSender, account_id: int, reply: Reply) -> None:
    """Hand a reply to the messaging collaborator."""
    if reply.easter_egg:
        await sender.send_easter_egg(account_id)
    elif reply.text is not None:
        await sender.send_text(account_id, reply.text)


def create_dispatcher(
    locale: Locale,
    session_factory: async_sessionmaker[AsyncSession],
    locks: AccountLocks,
    *,
    registration_enabled: Callable[[], bool],
    api_endpoint_url: str,
    generator: TokenGenerator | None = None,
    rng: random.Random | None = None,
    easter_egg_odds: int = EASTER_EGG_ODDS,
) -> Dispatcher:
    """Wire the state machine, command set and registry into a dispatcher."""
    state_machine = RecordStateMachine(generator or SecretTokenGenerator())
    commands = build_commands(
        locale,
        state_machine,
        registration_enabled=registration_enabled,
        api_endpoint_url=api_endpoint_url,
    )
    return Dispatcher(
        CommandRegistry(commands),
        locale,
        session_factory,
        locks,
        rng=rng,
        easter_egg_odds=easter_egg_odds,
    )

from __future__ import annotations

import logging

from tokenbot.src.core.token_generator import TokenGenerator
from tokenbot.src.models import Record, RecordState
from tokenbot.src.repositories.record_repository import RecordRepository

logger = logging.getLogger(__name__)


class InvalidTransitionError(ValueError):
    """A record was asked to move along an edge the lifecycle does not have."""

    def __init__(self, from_state: RecordState, to_state: RecordState | None = None) -> None:
        self.from_state = from_state
        self.to_state = to_state
        if to_state is None:
            message = f"Invalid transition: nothing to confirm from {from_state.value}"
        else:
            message = f"Invalid transition: {from_state.value} -> {to_state.value}"
        super().__init__(message)


class RecordStateMachine:
    """State machine for an account's token record.

    Every operation validates its edge, applies the writes through the
    repository and commits them as one unit.
    """

    TRANSITIONS: dict[RecordState, set[RecordState]] = {
        RecordState.unregistered: {RecordState.active},
        RecordState.active: {RecordState.pending_deletion, RecordState.pending_regeneration},
        RecordState.pending_deletion: {RecordState.unregistered, RecordState.active},
        RecordState.pending_regeneration: {RecordState.active},
    }

    def __init__(self, generator: TokenGenerator) -> None:
        self.generator = generator

    def can_transition(self, from_state: RecordState, to_state: RecordState) -> bool:
        """Check if a transition is allowed."""
        allowed = self.TRANSITIONS.get(from_state, set())
        return to_state in allowed

    def _validate(self, record: Record, new_state: RecordState) -> None:
        if not self.can_transition(record.state, new_state):
            raise InvalidTransitionError(record.state, new_state)

    # -- Transitions -----------------------------------------------------------

    async def create(self, repo: RecordRepository, record: Record) -> Record:
        """Issue a token to an unregistered account."""
        self._validate(record, RecordState.active)
        created = Record(account_id=record.account_id, token=self.generator.generate(), state=RecordState.active)
        await repo.insert(created)
        await repo.commit()
        logger.info("Account %s registered", record.account_id)
        return created

    async def request_deletion(self, repo: RecordRepository, record: Record) -> Record:
        return await self._mark(repo, record, RecordState.pending_deletion)

    async def request_regeneration(self, repo: RecordRepository, record: Record) -> Record:
        return await self._mark(repo, record, RecordState.pending_regeneration)

    async def cancel(self, repo: RecordRepository, record: Record) -> Record:
        """Drop the pending action; the token stays as it was."""
        return await self._mark(repo, record, RecordState.active)

    async def confirm(self, repo: RecordRepository, record: Record) -> Record:
        """Carry out the pending action and return the account's resulting record.

        Deletion yields a transient unregistered record; regeneration yields the
        replacement record holding the new token.
        """
        if record.state == RecordState.pending_deletion:
            return await self._delete(repo, record)
        if record.state == RecordState.pending_regeneration:
            return await self._regenerate(repo, record)
        raise InvalidTransitionError(record.state)

    # -- Side effects ----------------------------------------------------------

    async def _mark(self, repo: RecordRepository, record: Record, new_state: RecordState) -> Record:
        old_state = record.state
        self._validate(record, new_state)
        record.state = new_state
        await repo.commit()
        logger.info("Account %s: %s -> %s", record.account_id, old_state.value, new_state.value)
        return record

    async def _delete(self, repo: RecordRepository, record: Record) -> Record:
        self._validate(record, RecordState.unregistered)
        await repo.remove(record)
        await repo.commit()
        logger.info("Account %s deleted its token", record.account_id)
        return Record.unregistered(record.account_id)

    async def _regenerate(self, repo: RecordRepository, record: Record) -> Record:
        self._validate(record, RecordState.active)
        replacement = Record(account_id=record.account_id, token=self.generator.generate(), state=RecordState.active)
        await repo.replace(record, replacement)
        await repo.commit()
        logger.info("Account %s regenerated its token", record.account_id)
        return replacement

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tokenbot.src.models import Record, RecordState
from tokenbot.src.repositories.base import BaseRepository


class RecordConflictError(Exception):
    """A write violated a uniqueness constraint of the records table."""


class TokenCollisionError(RecordConflictError):
    """A freshly generated token is already assigned to another record."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__("Generated token collides with an existing record")


class RecordRepository(BaseRepository):
    """Data access layer for Record entities.

    Writes are flushed but not committed; callers group a transition's writes
    and finish with ``commit()``.
    """

    async def find_by_account(self, account_id: int) -> Record | None:
        """Get the persisted record for an account."""
        result = await self.db.execute(select(Record).where(Record.account_id == account_id))
        return result.scalar_one_or_none()

    async def find_by_token(self, token: str) -> Record | None:
        """Get the persisted record owning a token."""
        result = await self.db.execute(select(Record).where(Record.token == token))
        return result.scalar_one_or_none()

    async def load(self, account_id: int) -> Record:
        """Return the account's record, or a transient unregistered one if there is no row."""
        record = await self.find_by_account(account_id)
        if record is None:
            return Record.unregistered(account_id)
        return record

    async def insert(self, record: Record) -> Record:
        """Persist a new record."""
        if record.token is None or record.state == RecordState.unregistered:
            raise ValueError("Unregistered records cannot be persisted")
        await self._ensure_token_free(record.token)
        try:
            return await self.add(record)
        except IntegrityError as e:
            raise RecordConflictError(f"Cannot insert record for account {record.account_id}") from e

    async def remove(self, record: Record) -> None:
        """Delete a persisted record."""
        await self.db.delete(record)
        await self.db.flush()

    async def replace(self, old: Record, new: Record) -> Record:
        """Swap ``old`` for ``new`` inside the current transaction.

        The delete is flushed before the insert because both rows carry the same
        account id.
        """
        if new.account_id != old.account_id:
            raise ValueError("Replacement record must belong to the same account")
        if new.token is not None:
            await self._ensure_token_free(new.token)
        await self.remove(old)
        return await self.insert(new)

    async def _ensure_token_free(self, token: str) -> None:
        if await self.find_by_token(token) is not None:
            raise TokenCollisionError(token)

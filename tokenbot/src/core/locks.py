from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

import redis.asyncio as redis
from redis.exceptions import LockError

logger = logging.getLogger(__name__)


class AccountBusyError(Exception):
    """The account's lock could not be acquired in time."""

    def __init__(self, account_id: int) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} is busy")


class AccountLocks(Protocol):
    def hold(self, account_id: int) -> AbstractAsyncContextManager[None]: ...


class LocalAccountLocks:
    """In-process per-account mutual exclusion.

    One ``asyncio.Lock`` per account id, dropped once nobody holds or awaits it.
    Only correct when a single process serves all requests.
    """

    def __init__(self, timeout: float | None = 10.0) -> None:
        self.timeout = timeout
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, account_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(account_id, asyncio.Lock())
        self._users[account_id] = self._users.get(account_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                raise AccountBusyError(account_id) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[account_id] -= 1
            if self._users[account_id] == 0:
                del self._users[account_id]
                del self._locks[account_id]


class RedisAccountLocks:
    """Per-account mutual exclusion shared by every process using the same Redis.

    ``timeout`` bounds how long a crashed holder can keep the lock;
    ``blocking_timeout`` bounds how long a request waits for it.
    """

    PREFIX = "record:lock:"

    def __init__(self, redis_client: redis.Redis, timeout: float = 30.0, blocking_timeout: float = 10.0) -> None:
        self.redis = redis_client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    def _lock_key(self, account_id: int) -> str:
        return f"{self.PREFIX}{account_id}"

    @asynccontextmanager
    async def hold(self, account_id: int) -> AsyncIterator[None]:
        lock = self.redis.lock(
            self._lock_key(account_id),
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        if not await lock.acquire():
            raise AccountBusyError(account_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Lock for account %s expired before release", account_id)

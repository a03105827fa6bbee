"""
Per-account mutual exclusion for balance read-modify-write cycles.

Two OUTBOUND requests against the same account must not both read the old
balance, both pass the funds check and both subtract. Holding the account's
lock across "load, check, write, commit" prevents that inside one process.
Writers in other processes are caught by the optimistic version check on
the accounts row (see app.models.account).

Locks are scoped per account, never global: requests for different
accounts never wait on each other. A lock is dropped from the registry as
soon as no task holds or awaits it, so the registry only grows with the
number of accounts being written concurrently.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager


class AccountLocks:
    """Registry of asyncio locks keyed by account id."""

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}
        self._users: dict[uuid.UUID, int] = {}

    @asynccontextmanager
    async def hold(self, account_id: uuid.UUID):
        """Hold the lock for `account_id` for the duration of the block."""
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        self._users[account_id] = self._users.get(account_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[account_id] -= 1
            if self._users[account_id] == 0:
                del self._users[account_id]
                del self._locks[account_id]

    def __len__(self) -> int:
        return len(self._locks)

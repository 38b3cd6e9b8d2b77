"""Keyed locks that serialize work on a single room or booking."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import is_postgres
from .exceptions import ConcurrencyConflictError
from .observability import metrics_collector

logger = logging.getLogger(__name__)


class KeyedLockRegistry:
    """
    Process-local asyncio locks, one per key.

    A lock only lives while somebody holds or waits for it, so the registry
    never grows with the number of rooms or bookings ever touched.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str, timeout: float | None = None) -> AsyncIterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            ConcurrencyConflictError: If the lock is not acquired within timeout
        """
        timeout = settings.lock_timeout_seconds if timeout is None else timeout
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError as e:
                metrics_collector.record_concurrency_conflict(key.split(":", 1)[0])
                logger.warning(
                    "Timed out waiting for lock",
                    extra={"lock_key": key, "timeout_seconds": timeout}
                )
                raise ConcurrencyConflictError(
                    detail=f"Timed out after {timeout}s waiting for {key}",
                    resource=key,
                ) from e

            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


# Shared by every service in the process
lock_registry = KeyedLockRegistry()


async def acquire_advisory_lock(session: AsyncSession, key: str) -> None:
    """
    Take a transaction-scoped PostgreSQL advisory lock for ``key``.

    The lock is released automatically at commit or rollback. Other dialects
    (SQLite in tests) rely on the in-process registry alone.
    """
    if not is_postgres(session):
        return

    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
        {"lock_key": key},
    )

    logger.debug("Acquired advisory lock", extra={"lock_key": key})


def room_lock_key(room_number: str) -> str:
    return f"room:{room_number}"


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}"

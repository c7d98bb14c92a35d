"""Per-report locks that serialise the quota check-then-persist step."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from app.utils.logging_config import logger
from app.utils.result import AppError, ErrorKind


class ReportLease(Protocol):
    async def refresh(self) -> None:
        """Raises ``AppError`` when the lock is no longer held by the caller."""
        ...


class ReportLocks(Protocol):
    def hold(self, report_id: str) -> AsyncContextManager[ReportLease]: ...


class _LocalLease:
    async def refresh(self) -> None:
        return None


class _LockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class InProcessReportLocks:
    """One ``asyncio.Lock`` per report id, dropped once nobody waits on it."""

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, report_id: str) -> AsyncIterator[ReportLease]:
        entry = self._entries.get(report_id)
        if entry is None:
            entry = self._entries[report_id] = _LockEntry()
        entry.holders += 1
        try:
            async with entry.lock:
                yield _LocalLease()
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._entries.pop(report_id, None)

    def __len__(self) -> int:
        return len(self._entries)


class _RedisLease:
    def __init__(self, lock, report_id: str) -> None:
        self.lock = lock
        self.report_id = report_id

    async def refresh(self) -> None:
        """Resets the lock TTL, failing if another worker may own it by now."""
        try:
            await self.lock.reacquire()
        except (LockError, RedisError) as exc:
            logger.error(f"Upload lock for report {self.report_id} was lost: {exc}")
            raise AppError(
                ErrorKind.TIMEOUT,
                f"Upload lock for report {self.report_id} expired before the file was recorded.",
                {"report_id": self.report_id},
                exc,
            ) from exc


class RedisReportLocks:
    """
    Redis-backed locks for deployments running several API workers.

    The lock expires after ``timeout`` seconds so a crashed worker cannot
    block a report forever. Holders call ``refresh`` on the yielded lease
    before each write so a slow batch keeps its lock alive.
    """

    key_prefix = "report-quota"

    def __init__(
        self,
        client: redis.Redis,
        timeout: float,
        blocking_timeout: Optional[float] = None,
    ) -> None:
        self.client = client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout if blocking_timeout is not None else timeout

    @asynccontextmanager
    async def hold(self, report_id: str) -> AsyncIterator[ReportLease]:
        lock = self.client.lock(
            f"{self.key_prefix}:{report_id}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            logger.error(f"Redis error while locking report {report_id}: {exc}")
            raise AppError(
                ErrorKind.UNAVAILABLE,
                "Upload lock service unavailable.",
                {"report_id": report_id},
                exc,
            ) from exc
        if not acquired:
            raise AppError(
                ErrorKind.TIMEOUT,
                f"Timed out waiting for the upload lock of report {report_id}.",
                {"report_id": report_id},
            )

        try:
            yield _RedisLease(lock, report_id)
        finally:
            try:
                await lock.release()
            except (LockError, RedisError) as exc:
                # lock already expired; the batch itself has finished
                logger.warning(f"Could not release upload lock for {report_id}: {exc}")

# app/db/unit_of_work.py
"""
Explicit transaction scope passed by reference through a call chain.

A UnitOfWork owns one AsyncSession and is committed or rolled back exactly
once, when its `async with` block exits. Locks taken through it are held
until that moment and released right after, so the serial allocator and the
booking insert that follows it always run under the same lock.
"""

import asyncio
import hashlib
import time
from datetime import date
from types import TracebackType
from typing import Hashable, Optional, Type

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from common import InternalError, get_app_logger
from common.context_vars import request_timer_context_var

logger = get_app_logger(__name__)


class SerialLockRegistry:
    """
    Process-local mutexes keyed by (doctor_id, serial_date).

    Entries are created on demand and dropped as soon as nobody holds or
    waits for them, so the registry does not grow with the calendar.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def held_count(self) -> int:
        return sum(1 for lock in self._locks.values() if lock.locked())

    async def acquire(self, key: Hashable) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._forget(key)
            logger.error("Timed out waiting for serial lock", key=str(key))
            raise InternalError("The booking queue is busy, please retry")

    def release(self, key: Hashable) -> None:
        lock = self._locks.get(key)
        if lock is not None and lock.locked():
            lock.release()
        self._forget(key)

    def _forget(self, key: Hashable) -> None:
        remaining = self._waiters.get(key, 1) - 1
        if remaining <= 0:
            self._waiters.pop(key, None)
            lock = self._locks.get(key)
            if lock is not None and not lock.locked():
                self._locks.pop(key, None)
        else:
            self._waiters[key] = remaining


def advisory_lock_key(doctor_id: str, serial_date: date) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(
        f"{doctor_id}:{serial_date.isoformat()}".encode(), digest_size=8
    ).digest()
    return int.from_bytes(digest, "big", signed=True)


class UnitOfWork:
    """
    Usage:
        async with db_manager.unit_of_work() as uow:
            await uow.lock_serial(doctor_id, serial_date)
            ...
            uow.session.add(row)
        # committed here (or rolled back if the block raised)
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        locks: SerialLockRegistry,
        dialect_name: str,
    ) -> None:
        self._session_maker = session_maker
        self._locks = locks
        self.dialect_name = dialect_name
        self._session: Optional[AsyncSession] = None
        self._held: list[Hashable] = []
        self._started_at = 0.0
        self.committed = False

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its 'async with' block")
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    async def __aenter__(self) -> "UnitOfWork":
        if self._session is not None:
            raise RuntimeError("UnitOfWork is not re-entrant")
        self._started_at = time.perf_counter()
        self._session = self._session_maker()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        session = self.session
        try:
            if exc_type is None:
                await session.commit()
                self.committed = True
            else:
                await session.rollback()
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()
            self._session = None
            for key in reversed(self._held):
                self._locks.release(key)
            self._held.clear()
            self._record_timing()

    async def lock_serial(self, doctor_id: str, serial_date: date) -> None:
        """
        Take the exclusive (doctor_id, serial_date) lock for the rest of this
        transaction.

        Within one process an asyncio mutex serializes allocators; on
        PostgreSQL a transaction-scoped advisory lock extends that across
        instances. Either is released when the transaction ends.
        """
        key = (doctor_id, serial_date)
        if key in self._held:
            return

        await self._locks.acquire(key)
        self._held.append(key)

        if self.dialect_name == "postgresql":
            timeout_ms = int(self._locks.timeout * 1000)
            await self.session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": advisory_lock_key(doctor_id, serial_date)},
            )

    def _record_timing(self) -> None:
        timer = request_timer_context_var.get()
        if timer is None:
            return
        elapsed_ms = (time.perf_counter() - self._started_at) * 1000
        timer.timings["db"] = timer.timings.get("db", 0) + elapsed_ms
        timer.count("transaction_count")


__all__ = ["UnitOfWork", "SerialLockRegistry", "advisory_lock_key"]

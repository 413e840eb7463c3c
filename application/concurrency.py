"""Per-day capacity locks and per-reservation record locks"""
import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from typing import AsyncIterator, List
from weakref import WeakValueDictionary

from domain.value_objects import ReservationPolicy, to_utc


class CapacityLockRegistry:
    """Serializes check-then-commit for overlapping conflict windows.

    Every local calendar day touched by ``[arrival - W, arrival + W]`` owns
    one lock. Two overlapping windows share at least one day, so they always
    contend on a common lock; acquiring in sorted order rules out deadlock.
    Record locks serialize mutations of a single reservation and are always
    taken before day locks.
    Valid within a single event loop only.
    """

    def __init__(self, policy: ReservationPolicy):
        self.policy = policy
        self._locks: "WeakValueDictionary[date, asyncio.Lock]" = WeakValueDictionary()
        self._record_locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def days_for(self, arrival_time: datetime) -> List[date]:
        arrival_time = to_utc(arrival_time)
        window = self.policy.conflict_window
        first = self.policy.local_time(arrival_time - window).date()
        last = self.policy.local_time(arrival_time + window).date()
        days = []
        current = first
        while current <= last:
            days.append(current)
            current += timedelta(days=1)
        return days

    def _lock_for(self, day: date) -> asyncio.Lock:
        lock = self._locks.get(day)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[day] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *arrival_times: datetime) -> AsyncIterator[None]:
        """Hold the locks for every window around the given arrival times"""
        days = sorted({day for arrival in arrival_times for day in self.days_for(arrival)})
        # Strong references keep the locks alive while held
        locks = [self._lock_for(day) for day in days]
        acquired: List[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def _record_lock_for(self, reservation_id: str) -> asyncio.Lock:
        lock = self._record_locks.get(reservation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._record_locks[reservation_id] = lock
        return lock

    @asynccontextmanager
    async def hold_reservation(self, reservation_id: str) -> AsyncIterator[None]:
        """Serialize read-check-write on one existing reservation.

        Taken before any day lock, never after.
        """
        lock = self._record_lock_for(reservation_id)
        async with lock:
            yield

"""Capacity Conflict Detection"""
from datetime import datetime
from typing import Optional

from loguru import logger

from domain.repositories import ReservationStore
from domain.value_objects import ReservationPolicy, to_utc


class CapacityConflictDetector:
    """Decides whether a party fits around an arrival time.

    Capacity is a coarse heuristic: the sum of party sizes of every
    non-cancelled reservation whose arrival falls inside the symmetric,
    inclusive window around the candidate must stay within
    ``policy.capacity_bound``.

    When the store cannot be read the detector fails open (reports no
    conflict) so bookings keep flowing; every such event is logged at
    WARNING and counted in ``fail_open_count``.
    """

    def __init__(self, store: ReservationStore, policy: Optional[ReservationPolicy] = None):
        self.store = store
        self.policy = policy or ReservationPolicy()
        self.fail_open_count = 0

    @property
    def capacity_bound(self) -> int:
        return self.policy.capacity_bound

    async def committed_covers(self, arrival_time: datetime, exclude_id: Optional[str] = None) -> int:
        """Seats already taken by reservations inside the window; store errors propagate"""
        arrival_time = to_utc(arrival_time)
        window = self.policy.conflict_window
        nearby = await self.store.find_by_date_range(arrival_time - window, arrival_time + window)
        return sum(
            r.party_size for r in nearby
            if r.is_active() and r.reservation_id != exclude_id
        )

    async def remaining_capacity(self, arrival_time: datetime, exclude_id: Optional[str] = None) -> int:
        committed = await self.committed_covers(arrival_time, exclude_id)
        return max(self.capacity_bound - committed, 0)

    async def has_conflict(
        self,
        arrival_time: datetime,
        party_size: int,
        exclude_id: Optional[str] = None
    ) -> bool:
        try:
            committed = await self.committed_covers(arrival_time, exclude_id)
        except Exception as exc:
            self.fail_open_count += 1
            logger.bind(arrival_time=str(arrival_time), party_size=party_size).warning(
                "FAIL-OPEN: capacity check skipped, store read failed ({}: {}); total fail-open events: {}",
                type(exc).__name__, exc, self.fail_open_count
            )
            return False

        conflict = committed + party_size > self.capacity_bound
        if conflict:
            logger.info(
                "Capacity conflict at {}: {} committed + {} requested > {}",
                to_utc(arrival_time).isoformat(), committed, party_size, self.capacity_bound
            )
        return conflict

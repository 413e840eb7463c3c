"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field, validator
from uuid import uuid4
from datetime import datetime
from typing import Optional, List, Dict

from domain.enums import ReservationStatus
from domain.value_objects import to_utc, utc_now


TERMINAL_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED})


def generate_reservation_id() -> str:
    """Fresh opaque identifier; uuid4 entropy keeps ids from ever repeating"""
    return f"RES_{uuid4().hex.upper()}"


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: str = Field(default_factory=generate_reservation_id)

    # Guest
    guest_name: str
    guest_email: str
    guest_phone: str

    # Booking
    arrival_time: datetime
    party_size: int = Field(ge=1)
    notes: Optional[str] = None

    # Status
    status: ReservationStatus = ReservationStatus.REQUESTED

    # Metadata
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    updated_by: Optional[str] = None

    class Config:
        from_attributes = True

    @validator('arrival_time', 'created_at', 'updated_at')
    def normalize_timestamps(cls, v):
        return to_utc(v)

    @validator('updated_at')
    def updated_not_before_created(cls, v, values):
        if 'created_at' in values and v < values['created_at']:
            raise ValueError('updated_at must not precede created_at')
        return v

    # ==================== QUERY METHODS ====================
    def is_terminal(self) -> bool:
        """Check if no further transition is permitted"""
        return self.status in TERMINAL_STATUSES

    def is_active(self) -> bool:
        """Check if the reservation still occupies capacity"""
        return self.status != ReservationStatus.CANCELLED

    def minutes_until_arrival(self, now: datetime) -> float:
        return (self.arrival_time - to_utc(now)).total_seconds() / 60


class ReservationStatistics(BaseModel):
    """Aggregate figures over an arrival-time range"""
    total: int = 0
    by_status: Dict[ReservationStatus, int] = {}
    total_guests: int = 0
    average_party_size: float = 0.0

    @staticmethod
    def from_reservations(reservations: List[Reservation]) -> "ReservationStatistics":
        by_status = {status: 0 for status in ReservationStatus}
        for reservation in reservations:
            by_status[reservation.status] += 1
        total_guests = sum(r.party_size for r in reservations)
        average = round(total_guests / len(reservations), 2) if reservations else 0.0
        return ReservationStatistics(
            total=len(reservations),
            by_status=by_status,
            total_guests=total_guests,
            average_party_size=average
        )


class AvailabilityCheck(BaseModel):
    """Answer to 'can this party be seated around this time'"""
    arrival_time: datetime
    party_size: int
    available: bool
    remaining_covers: int
    capacity_bound: int


class PaginatedResult(BaseModel):
    """One page of reservations plus the total matching the filter"""
    items: List[Reservation] = []
    total: int = 0
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

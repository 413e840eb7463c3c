"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from domain.enums import ReservationStatus, AuditAction, ErrorCode


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReservationPolicy(BaseModel):
    """Value Object holding every business policy constant.

    Passed into the rule engine, the conflict detector and the service at
    construction time so no module hard-codes its own numbers.
    """
    # Business hours, evaluated in ``timezone``: arrival hour in [opening, closing)
    opening_hour: int = Field(default=11, ge=0, le=23)
    closing_hour: int = Field(default=22, ge=1, le=24)
    closed_weekdays: Tuple[int, ...] = (0,)  # Monday
    timezone: str = "UTC"

    # Booking horizon
    max_advance_days: int = Field(default=30, ge=1)

    # Party size
    min_party_size: int = Field(default=1, ge=1)
    max_party_size: int = Field(default=12, ge=1)
    large_party_threshold: int = Field(default=8, ge=1)
    large_party_notice_hours: int = Field(default=24, ge=0)
    special_approval_threshold: int = Field(default=10, ge=1)

    # Field limits
    guest_name_min_length: int = Field(default=2, ge=1)
    guest_name_max_length: int = Field(default=100, ge=1)
    email_max_length: int = Field(default=254, ge=3)
    notes_max_length: int = Field(default=500, ge=0)

    # Capacity heuristic
    conflict_window_minutes: int = Field(default=120, ge=0)
    max_concurrent_reservations: int = Field(default=10, ge=1)
    average_seats_per_table: int = Field(default=4, ge=1)

    # Guest-only lead times
    guest_cancellation_lead_minutes: int = Field(default=120, ge=0)
    guest_modification_lead_minutes: int = Field(default=120, ge=0)

    # Paging
    default_page_limit: int = Field(default=20, ge=1)
    max_page_limit: int = Field(default=100, ge=1)

    @validator('closing_hour')
    def closing_after_opening(cls, v, values):
        if 'opening_hour' in values and v <= values['opening_hour']:
            raise ValueError('Closing hour must be after opening hour')
        return v

    @validator('closed_weekdays')
    def weekdays_in_range(cls, v):
        if any(day < 0 or day > 6 for day in v):
            raise ValueError('Closed weekdays must be between 0 (Monday) and 6 (Sunday)')
        return v

    @validator('max_page_limit')
    def max_page_not_below_default(cls, v, values):
        if 'default_page_limit' in values and v < values['default_page_limit']:
            raise ValueError('Maximum page limit must not be below the default page limit')
        return v

    @validator('timezone')
    def known_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f'Unknown timezone: {v}')
        return v

    @property
    def capacity_bound(self) -> int:
        """Maximum aggregate party size accepted inside one conflict window"""
        return self.max_concurrent_reservations * self.average_seats_per_table

    @property
    def conflict_window(self) -> timedelta:
        return timedelta(minutes=self.conflict_window_minutes)

    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local_time(self, value: datetime) -> datetime:
        """Express an instant in the restaurant's local time"""
        return to_utc(value).astimezone(self.tzinfo())

    class Config:
        frozen = True


class FieldError(BaseModel):
    """A single rule failure"""
    field: str
    message: str
    code: ErrorCode

    class Config:
        frozen = True


class ValidationResult(BaseModel):
    """Outcome of running the rule engine over a draft"""
    errors: List[FieldError] = []

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def codes(self) -> List[ErrorCode]:
        return [error.code for error in self.errors]

    def errors_for(self, field: str) -> List[FieldError]:
        return [error for error in self.errors if error.field == field]

    class Config:
        frozen = True


class ReservationDraft(BaseModel):
    """Unvalidated candidate reservation supplied to create.

    Types are deliberately loose so malformed input reaches the rule engine
    and comes back as field errors instead of a parsing exception.
    """
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    arrival_time: Optional[Union[datetime, str]] = None
    party_size: Optional[Union[int, float]] = None
    notes: Optional[str] = None


MAX_RANGE_DAYS = 365

PATCHABLE_FIELDS = ("guest_name", "guest_email", "guest_phone", "arrival_time", "party_size", "notes")
SCHEDULE_FIELDS = ("arrival_time", "party_size")


class ReservationPatch(BaseModel):
    """Partial set of fields merged onto an existing reservation"""
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    arrival_time: Optional[Union[datetime, str]] = None
    party_size: Optional[Union[int, float]] = None
    notes: Optional[str] = None

    def touched_fields(self) -> List[str]:
        """Fields carrying a value in this patch"""
        return [name for name in PATCHABLE_FIELDS if getattr(self, name) is not None]

    def touches_schedule(self) -> bool:
        return any(getattr(self, name) is not None for name in SCHEDULE_FIELDS)


class ReservationFilter(BaseModel):
    """Read-side predicate for listing reservations"""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[ReservationStatus] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    party_size: Optional[int] = Field(default=None, ge=1)

    @validator('start_date', 'end_date')
    def normalize_bounds(cls, v):
        return to_utc(v) if v is not None else v

    @validator('end_date')
    def end_after_start(cls, v, values):
        start = values.get('start_date')
        if v is not None and start is not None:
            if start > v:
                raise ValueError('Start date must be before end date')
            if (v - start) > timedelta(days=MAX_RANGE_DAYS):
                raise ValueError(f'Date range cannot exceed {MAX_RANGE_DAYS} days')
        return v

    def matches(self, reservation) -> bool:
        """Evaluate the predicate against a single reservation"""
        if self.start_date and reservation.arrival_time < self.start_date:
            return False
        if self.end_date and reservation.arrival_time > self.end_date:
            return False
        if self.status and reservation.status != self.status:
            return False
        if self.guest_name and self.guest_name.strip().lower() not in reservation.guest_name.lower():
            return False
        if self.guest_email and self.guest_email.strip().lower() != reservation.guest_email.lower():
            return False
        if self.party_size is not None and reservation.party_size != self.party_size:
            return False
        return True

    class Config:
        frozen = True


class PaginationRequest(BaseModel):
    """Offset/limit paging request; an unset limit means the policy default"""
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    class Config:
        frozen = True


class AuditEntry(BaseModel):
    """Append-only record of one mutating operation"""
    reservation_id: str
    action: AuditAction
    actor: str
    previous_status: Optional[ReservationStatus] = None
    new_status: Optional[ReservationStatus] = None
    changes: List[str] = []
    timestamp: datetime = Field(default_factory=utc_now)

    class Config:
        frozen = True

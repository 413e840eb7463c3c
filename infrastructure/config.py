"""Application settings"""
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from domain.value_objects import ReservationPolicy


_PROJECT_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix='RESERVATION_',
        env_file=str(_PROJECT_ROOT / '.env'),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Restaurant Reservation API'
    VERSION: str = '1.0.0'
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = 'INFO'
    LOG_SERIALIZE: bool = False

    # Security (tokens are issued elsewhere; only verified here)
    SECRET_KEY: SecretStr = SecretStr('change-me-in-production')
    ALGORITHM: str = 'HS256'

    # Deadline applied to every write, seconds; unset means no deadline
    OPERATION_TIMEOUT: Optional[float] = None

    # Business hours
    OPENING_HOUR: int = 11
    CLOSING_HOUR: int = 22
    CLOSED_WEEKDAYS: Annotated[List[int], NoDecode] = [0]  # "0,6" or "[0, 6]"
    TIMEZONE: str = 'UTC'
    MAX_ADVANCE_DAYS: int = 30

    # Party size
    MIN_PARTY_SIZE: int = 1
    MAX_PARTY_SIZE: int = 12
    LARGE_PARTY_THRESHOLD: int = 8
    LARGE_PARTY_NOTICE_HOURS: int = 24
    SPECIAL_APPROVAL_THRESHOLD: int = 10

    # Capacity
    CONFLICT_WINDOW_MINUTES: int = 120
    MAX_CONCURRENT_RESERVATIONS: int = 10
    AVERAGE_SEATS_PER_TABLE: int = 4

    # Guest lead times
    GUEST_CANCELLATION_LEAD_MINUTES: int = 120
    GUEST_MODIFICATION_LEAD_MINUTES: int = 120

    # Paging
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    @field_validator('CLOSED_WEEKDAYS', mode='before')
    @classmethod
    def assemble_closed_weekdays(cls, v):
        if isinstance(v, str):
            return [int(i) for i in v.strip().strip('[]').split(',') if i.strip()]
        return v

    def policy(self) -> ReservationPolicy:
        """Business policy built from these settings"""
        return ReservationPolicy(
            opening_hour=self.OPENING_HOUR,
            closing_hour=self.CLOSING_HOUR,
            closed_weekdays=tuple(self.CLOSED_WEEKDAYS),
            timezone=self.TIMEZONE,
            max_advance_days=self.MAX_ADVANCE_DAYS,
            min_party_size=self.MIN_PARTY_SIZE,
            max_party_size=self.MAX_PARTY_SIZE,
            large_party_threshold=self.LARGE_PARTY_THRESHOLD,
            large_party_notice_hours=self.LARGE_PARTY_NOTICE_HOURS,
            special_approval_threshold=self.SPECIAL_APPROVAL_THRESHOLD,
            conflict_window_minutes=self.CONFLICT_WINDOW_MINUTES,
            max_concurrent_reservations=self.MAX_CONCURRENT_RESERVATIONS,
            average_seats_per_table=self.AVERAGE_SEATS_PER_TABLE,
            guest_cancellation_lead_minutes=self.GUEST_CANCELLATION_LEAD_MINUTES,
            guest_modification_lead_minutes=self.GUEST_MODIFICATION_LEAD_MINUTES,
            default_page_limit=self.DEFAULT_PAGE_LIMIT,
            max_page_limit=self.MAX_PAGE_LIMIT,
        )

"""Notification collaborator interface"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from domain.entities import Reservation
from domain.enums import AuditAction, ReservationStatus
from domain.value_objects import utc_now


class ReservationEvent(BaseModel):
    """Something guests or staff may want to hear about"""
    event_type: AuditAction
    reservation: Reservation
    actor: str
    previous_status: Optional[ReservationStatus] = None
    occurred_at: datetime = Field(default_factory=utc_now)


class ReservationNotifier(ABC):
    """Fire-and-forget sink; callers catch and log whatever it raises"""

    @abstractmethod
    async def record(self, event: ReservationEvent) -> None:
        pass

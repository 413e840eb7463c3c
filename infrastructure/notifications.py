"""Logging notifier"""
from typing import List

from loguru import logger

from domain.notifications import ReservationEvent, ReservationNotifier


class LoggingNotifier(ReservationNotifier):
    """Notifier that logs events instead of sending messages; keeps them for inspection"""

    def __init__(self):
        self.events: List[ReservationEvent] = []

    async def record(self, event: ReservationEvent) -> None:
        self.events.append(event)
        reservation = event.reservation
        logger.bind(reservation_id=reservation.reservation_id, actor=event.actor).info(
            "Notify {}: {} ({} guests at {}) is now {}",
            event.event_type.value,
            reservation.guest_email,
            reservation.party_size,
            reservation.arrival_time.isoformat(),
            reservation.status.value
        )

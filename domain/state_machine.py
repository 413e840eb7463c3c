"""Reservation State Machine"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel

from domain.auth import Actor
from domain.entities import Reservation
from domain.enums import AuditAction, ReservationStatus
from domain.exceptions import InvalidTransitionError
from domain.value_objects import AuditEntry, to_utc, utc_now


TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.REQUESTED: frozenset({ReservationStatus.APPROVED, ReservationStatus.CANCELLED}),
    ReservationStatus.APPROVED: frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}


class TransitionOutcome(BaseModel):
    """Transitioned reservation plus the audit entry describing the change"""
    reservation: Reservation
    audit_entry: AuditEntry


class ReservationStateMachine:
    """Enforces legal status transitions.

    ``apply_transition`` never mutates its input: it returns a new
    reservation and the audit entry the caller must persist with it.
    """

    def can_transition(self, current: ReservationStatus, requested: ReservationStatus) -> bool:
        return requested in TRANSITIONS[current]

    def allowed_targets(self, current: ReservationStatus) -> FrozenSet[ReservationStatus]:
        return TRANSITIONS[current]

    def apply_transition(
        self,
        reservation: Reservation,
        requested: ReservationStatus,
        actor: Actor,
        now: Optional[datetime] = None,
        action: Optional[AuditAction] = None
    ) -> TransitionOutcome:
        if not self.can_transition(reservation.status, requested):
            raise InvalidTransitionError(reservation.status, requested)

        stamp = to_utc(now) if now is not None else utc_now()
        stamp = max(stamp, reservation.created_at)
        if action is None:
            action = AuditAction.CANCELLED if requested == ReservationStatus.CANCELLED else AuditAction.STATUS_CHANGED

        transitioned = reservation.model_copy(update={
            "status": requested,
            "updated_at": stamp,
            "updated_by": actor.actor_id,
        })
        entry = AuditEntry(
            reservation_id=reservation.reservation_id,
            action=action,
            actor=actor.actor_id,
            previous_status=reservation.status,
            new_status=requested,
            timestamp=stamp
        )
        return TransitionOutcome(reservation=transitioned, audit_entry=entry)

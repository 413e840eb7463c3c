"""Application Services - Reservation use cases"""
import asyncio
from datetime import date, datetime, time, timedelta
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from loguru import logger

from application.concurrency import CapacityLockRegistry
from application.conflicts import CapacityConflictDetector
from domain.auth import Actor
from domain.entities import (
    Reservation, ReservationStatistics, AvailabilityCheck, PaginatedResult
)
from domain.enums import AuditAction, ErrorCode, ReservationStatus
from domain.exceptions import (
    BusinessRuleError, ConflictError, ForbiddenError, NotFoundError,
    OperationTimeoutError, ValidationError
)
from domain.notifications import ReservationEvent, ReservationNotifier
from domain.repositories import ReservationStore
from domain.state_machine import ReservationStateMachine
from domain.validation import POLICY_CODES, ReservationValidator, normalized_fields
from domain.value_objects import (
    AuditEntry, FieldError, PaginationRequest, ReservationDraft, ReservationFilter,
    ReservationPatch, ReservationPolicy, ValidationResult, MAX_RANGE_DAYS, PATCHABLE_FIELDS,
    to_utc, utc_now
)

T = TypeVar("T")


class ReservationService:
    """Service for Reservation business use cases

    The only component that writes. Every write runs
    validate -> capacity check under lock -> unit of work (record + audit)
    and only then notifies, best-effort.
    """

    def __init__(self,
                 store: ReservationStore,
                 policy: Optional[ReservationPolicy] = None,
                 notifier: Optional[ReservationNotifier] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 locks: Optional[CapacityLockRegistry] = None,
                 operation_timeout: Optional[float] = None):
        self.store = store
        self.policy = policy or ReservationPolicy()
        self.notifier = notifier
        self.clock = clock or utc_now
        self.validator = ReservationValidator(self.policy)
        self.detector = CapacityConflictDetector(store, self.policy)
        self.state_machine = ReservationStateMachine()
        self.locks = locks or CapacityLockRegistry(self.policy)
        self.operation_timeout = operation_timeout

    def now(self) -> datetime:
        return to_utc(self.clock())

    # ==================== COMMANDS ====================
    async def create(self, draft: ReservationDraft, actor: Optional[Actor] = None) -> Reservation:
        """Validate, check capacity and persist a new REQUESTED reservation"""
        actor = actor or Actor.guest(draft.guest_email or "anonymous")
        now = self.now()

        self._raise_for(self.validator.validate(draft, now), "create")
        fields = normalized_fields(draft)

        reservation = await self._with_deadline(self._insert_new(fields, actor, now), "create")
        logger.bind(reservation_id=reservation.reservation_id, actor=actor.actor_id).info(
            "Reservation created for {} guests at {}", reservation.party_size, reservation.arrival_time.isoformat()
        )
        await self._notify(AuditAction.CREATED, reservation, actor)
        return reservation

    async def update(self, reservation_id: str, patch: ReservationPatch, actor: Actor) -> Reservation:
        """Merge a patch onto an existing, non-terminal reservation"""
        touched = patch.touched_fields()
        if not touched:
            raise ValidationError([FieldError(
                field="patch",
                message="At least one field must be provided to update",
                code=ErrorCode.EMPTY_UPDATE
            )])

        current, updated = await self._with_deadline(
            self._update_locked(reservation_id, patch, touched, actor), "update"
        )
        logger.bind(reservation_id=reservation_id, actor=actor.actor_id).info(
            "Reservation updated: {}", ", ".join(touched)
        )
        await self._notify(AuditAction.UPDATED, updated, actor, previous_status=current.status)
        return updated

    async def cancel(self, reservation_id: str, actor: Actor) -> Reservation:
        """Cancel a reservation; guests must respect the cancellation lead time"""
        current, cancelled = await self._with_deadline(
            self._cancel_locked(reservation_id, actor), "cancel"
        )
        logger.bind(reservation_id=reservation_id, actor=actor.actor_id).info("Reservation cancelled")
        await self._notify(AuditAction.CANCELLED, cancelled, actor, previous_status=current.status)
        return cancelled

    async def change_status(
        self,
        reservation_id: str,
        new_status: ReservationStatus,
        actor: Actor
    ) -> Reservation:
        """Drive the state machine on behalf of staff"""
        if not actor.is_privileged:
            raise ForbiddenError("Only staff can change reservation status")

        current, changed = await self._with_deadline(
            self._transition_locked(reservation_id, new_status, actor, AuditAction.STATUS_CHANGED),
            "change_status"
        )
        logger.bind(reservation_id=reservation_id, actor=actor.actor_id).info(
            "Reservation status {} -> {}", current.status.value, new_status.value
        )
        await self._notify(AuditAction.STATUS_CHANGED, changed, actor, previous_status=current.status)
        return changed

    # ==================== QUERIES ====================
    async def get(self, reservation_id: str) -> Reservation:
        reservation = await self.store.find_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError(reservation_id)
        return reservation

    async def list(
        self,
        reservation_filter: Optional[ReservationFilter] = None,
        pagination: Optional[PaginationRequest] = None
    ) -> PaginatedResult:
        """One page of reservations matching the filter, ordered by arrival"""
        reservation_filter = reservation_filter or ReservationFilter()
        pagination = pagination or PaginationRequest()
        limit = min(pagination.limit or self.policy.default_page_limit, self.policy.max_page_limit)

        items, total = await self.store.find_filtered(reservation_filter, limit, pagination.offset)
        return PaginatedResult(items=items, total=total, limit=limit, offset=pagination.offset)

    async def get_by_email(self, email: str) -> List[Reservation]:
        return await self.store.find_by_guest_email(email.strip().lower())

    async def get_by_date_and_status(
        self,
        day: date,
        status: Optional[ReservationStatus] = None
    ) -> List[Reservation]:
        """Reservations arriving on a local calendar day, optionally of one status"""
        tz = self.policy.tzinfo()
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = start + timedelta(days=1) - timedelta(microseconds=1)
        reservations = await self.store.find_by_date_range(to_utc(start), to_utc(end))
        if status is not None:
            reservations = [r for r in reservations if r.status == status]
        return reservations

    async def get_statistics(self, start: datetime, end: datetime) -> ReservationStatistics:
        start, end = to_utc(start), to_utc(end)
        if start > end or end - start > timedelta(days=MAX_RANGE_DAYS):
            raise ValidationError([FieldError(
                field="dateRange",
                message=f"Start date must precede end date and the range cannot exceed {MAX_RANGE_DAYS} days",
                code=ErrorCode.INVALID_DATE_RANGE
            )])
        reservations = await self.store.find_by_date_range(start, end)
        return ReservationStatistics.from_reservations(reservations)

    async def check_availability(self, arrival_time: datetime, party_size: int) -> AvailabilityCheck:
        """Advisory capacity answer; store failures propagate here"""
        arrival_time = to_utc(arrival_time)
        remaining = await self.detector.remaining_capacity(arrival_time)
        return AvailabilityCheck(
            arrival_time=arrival_time,
            party_size=party_size,
            available=party_size <= remaining,
            remaining_covers=remaining,
            capacity_bound=self.detector.capacity_bound
        )

    async def audit_trail(self, reservation_id: str) -> List[AuditEntry]:
        await self.get(reservation_id)
        return await self.store.find_audit_entries(reservation_id)

    # ==================== WRITE STEPS ====================
    async def _insert_new(self, fields: dict, actor: Actor, now: datetime) -> Reservation:
        async with self.locks.hold(fields["arrival_time"]):
            if await self.detector.has_conflict(fields["arrival_time"], fields["party_size"]):
                raise ConflictError()

            reservation = Reservation(
                **fields,
                status=ReservationStatus.REQUESTED,
                created_at=now,
                updated_at=now,
                updated_by=actor.actor_id
            )
            async with self.store.unit_of_work() as uow:
                uow.insert(reservation)
                uow.append_audit(AuditEntry(
                    reservation_id=reservation.reservation_id,
                    action=AuditAction.CREATED,
                    actor=actor.actor_id,
                    new_status=reservation.status,
                    changes=list(PATCHABLE_FIELDS),
                    timestamp=now
                ))
                await uow.commit()
        return reservation

    # Each *_locked step re-reads the record under its lock so every check
    # sees the latest committed state; the commit is compare-and-set on it.
    async def _update_locked(
        self,
        reservation_id: str,
        patch: ReservationPatch,
        touched: List[str],
        actor: Actor
    ) -> Tuple[Reservation, Reservation]:
        async with self.locks.hold_reservation(reservation_id):
            now = self.now()
            current = await self.get(reservation_id)
            self._reject_terminal(current, "modify")
            self._guard_lead_time(
                current, actor, now, self.policy.guest_modification_lead_minutes, "modified"
            )

            merged = self._merge(current, patch)
            reschedule = patch.touches_schedule()
            checked_fields = PATCHABLE_FIELDS if reschedule else touched
            self._raise_for(self.validator.validate(merged, now, fields=checked_fields), "update")

            updated = await self._replace_existing(current, merged, touched, actor, now, reschedule)
        return current, updated

    async def _cancel_locked(self, reservation_id: str, actor: Actor) -> Tuple[Reservation, Reservation]:
        async with self.locks.hold_reservation(reservation_id):
            now = self.now()
            current = await self.get(reservation_id)
            if current.status == ReservationStatus.CANCELLED:
                raise BusinessRuleError("Reservation is already cancelled", ErrorCode.ALREADY_CANCELLED.value)
            if current.status == ReservationStatus.COMPLETED:
                raise BusinessRuleError("Cannot cancel a completed reservation", ErrorCode.RESERVATION_COMPLETED.value)
            self._guard_lead_time(
                current, actor, now, self.policy.guest_cancellation_lead_minutes, "cancelled"
            )
            cancelled = await self._transition(
                current, ReservationStatus.CANCELLED, actor, now, AuditAction.CANCELLED
            )
        return current, cancelled

    async def _transition_locked(
        self,
        reservation_id: str,
        target: ReservationStatus,
        actor: Actor,
        action: AuditAction
    ) -> Tuple[Reservation, Reservation]:
        async with self.locks.hold_reservation(reservation_id):
            now = self.now()
            current = await self.get(reservation_id)
            changed = await self._transition(current, target, actor, now, action)
        return current, changed

    async def _replace_existing(
        self,
        current: Reservation,
        merged: ReservationDraft,
        touched: List[str],
        actor: Actor,
        now: datetime,
        reschedule: bool
    ) -> Reservation:
        fields = normalized_fields(merged)
        updated = current.model_copy(update={
            **fields,
            "updated_at": max(now, current.created_at),
            "updated_by": actor.actor_id,
        })
        entry = AuditEntry(
            reservation_id=current.reservation_id,
            action=AuditAction.UPDATED,
            actor=actor.actor_id,
            previous_status=current.status,
            new_status=current.status,
            changes=list(touched),
            timestamp=updated.updated_at
        )

        if not reschedule:
            await self._commit_replacement(updated, entry, expected=current)
            return updated

        async with self.locks.hold(updated.arrival_time):
            conflict = await self.detector.has_conflict(
                updated.arrival_time, updated.party_size, exclude_id=current.reservation_id
            )
            if conflict:
                raise ConflictError()
            await self._commit_replacement(updated, entry, expected=current)
        return updated

    async def _transition(
        self,
        current: Reservation,
        target: ReservationStatus,
        actor: Actor,
        now: datetime,
        action: AuditAction
    ) -> Reservation:
        outcome = self.state_machine.apply_transition(current, target, actor, now=now, action=action)
        await self._commit_replacement(outcome.reservation, outcome.audit_entry, expected=current)
        return outcome.reservation

    async def _commit_replacement(
        self,
        reservation: Reservation,
        entry: AuditEntry,
        expected: Optional[Reservation] = None
    ) -> None:
        async with self.store.unit_of_work() as uow:
            uow.replace(reservation, expected=expected)
            uow.append_audit(entry)
            await uow.commit()

    async def _with_deadline(self, operation: Awaitable[T], name: str) -> T:
        if self.operation_timeout is None:
            return await operation
        try:
            return await asyncio.wait_for(operation, timeout=self.operation_timeout)
        except asyncio.TimeoutError:
            logger.warning("{} exceeded its {}s deadline; staged writes discarded", name, self.operation_timeout)
            raise OperationTimeoutError(f"{name} exceeded its {self.operation_timeout}s deadline")

    # ==================== GUARDS ====================
    def _raise_for(self, result: ValidationResult, operation: str) -> None:
        """Policy-only failures become a BusinessRuleError, anything else a ValidationError"""
        if result.is_valid:
            return
        codes = set(result.codes())
        logger.warning("{} rejected: {}", operation, ", ".join(code.value for code in result.codes()))
        if codes <= POLICY_CODES:
            first = result.errors[0]
            raise BusinessRuleError(first.message, first.code.value, result.errors)
        raise ValidationError(result.errors)

    def _reject_terminal(self, reservation: Reservation, verb: str) -> None:
        if reservation.status == ReservationStatus.CANCELLED:
            raise BusinessRuleError(
                f"Cannot {verb} a cancelled reservation", ErrorCode.RESERVATION_CANCELLED.value
            )
        if reservation.status == ReservationStatus.COMPLETED:
            raise BusinessRuleError(
                f"Cannot {verb} a completed reservation", ErrorCode.RESERVATION_COMPLETED.value
            )

    def _guard_lead_time(
        self,
        reservation: Reservation,
        actor: Actor,
        now: datetime,
        lead_minutes: int,
        verb: str
    ) -> None:
        """Guests may not act inside the lead time before arrival; staff bypass"""
        if actor.is_privileged:
            return
        if reservation.minutes_until_arrival(now) < lead_minutes:
            raise BusinessRuleError(
                f"Reservations cannot be {verb} less than {lead_minutes} minutes before arrival",
                ErrorCode.TOO_CLOSE_TO_ARRIVAL.value
            )

    @staticmethod
    def _merge(current: Reservation, patch: ReservationPatch) -> ReservationDraft:
        values = {
            name: getattr(current, name) for name in PATCHABLE_FIELDS
        }
        values.update({name: getattr(patch, name) for name in patch.touched_fields()})
        return ReservationDraft(**values)

    # ==================== NOTIFICATIONS ====================
    async def _notify(
        self,
        event_type: AuditAction,
        reservation: Reservation,
        actor: Actor,
        previous_status: Optional[ReservationStatus] = None
    ) -> None:
        if self.notifier is None:
            return
        event = ReservationEvent(
            event_type=event_type,
            reservation=reservation,
            actor=actor.actor_id,
            previous_status=previous_status,
            occurred_at=self.now()
        )
        try:
            await self.notifier.record(event)
        except Exception as exc:
            logger.bind(reservation_id=reservation.reservation_id).error(
                "Notification for {} failed: {}: {}", event_type.value, type(exc).__name__, exc
            )

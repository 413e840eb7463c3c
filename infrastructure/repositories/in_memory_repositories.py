"""In-Memory Repository Implementations"""
from datetime import datetime
from typing import Optional, List, Dict, Tuple

from loguru import logger

from domain.repositories import ReservationStore, StoreUnitOfWork
from domain.entities import Reservation
from domain.enums import ReservationStatus
from domain.exceptions import ConcurrentModificationError, StorageError
from domain.value_objects import AuditEntry, ReservationFilter, to_utc


class InMemoryUnitOfWork(StoreUnitOfWork):
    """Buffers writes until commit; commit applies them without awaiting"""

    def __init__(self, store: "InMemoryReservationStore"):
        self._store = store
        self._inserts: List[Reservation] = []
        self._replacements: List[Tuple[Reservation, Optional[Reservation]]] = []
        self._audit_entries: List[AuditEntry] = []
        self._committed = False

    @property
    def committed(self) -> bool:
        return self._committed

    def insert(self, reservation: Reservation) -> None:
        self._inserts.append(reservation.model_copy(deep=True))

    def replace(self, reservation: Reservation, expected: Optional[Reservation] = None) -> None:
        self._replacements.append((reservation.model_copy(deep=True), expected))

    def append_audit(self, entry: AuditEntry) -> None:
        self._audit_entries.append(entry)

    async def commit(self) -> None:
        if self._committed:
            raise StorageError("Unit of work already committed", retryable=False)
        self._store._apply(self._inserts, self._replacements, self._audit_entries)
        self._committed = True

    async def rollback(self) -> None:
        if self._inserts or self._replacements or self._audit_entries:
            logger.debug(
                "Discarding staged writes: {} inserts, {} replacements, {} audit entries",
                len(self._inserts), len(self._replacements), len(self._audit_entries)
            )
        self._inserts.clear()
        self._replacements.clear()
        self._audit_entries.clear()


class InMemoryReservationStore(ReservationStore):
    """In-memory implementation of ReservationStore"""

    def __init__(self):
        self._storage: Dict[str, Reservation] = {}
        self._audit_log: List[AuditEntry] = []
        self._connected = False

    # ==================== LIFECYCLE ====================
    async def connect(self) -> None:
        self._connected = True
        logger.info("In-memory reservation store connected")

    async def close(self) -> None:
        self._connected = False
        logger.info("In-memory reservation store closed")

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise StorageError("Reservation store is not connected")

    # ==================== READS ====================
    async def find_by_id(self, reservation_id: str) -> Optional[Reservation]:
        """Find reservation by ID"""
        self._ensure_connected()
        reservation = self._storage.get(reservation_id)
        return reservation.model_copy(deep=True) if reservation else None

    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        """Find reservations arriving within [start, end]"""
        self._ensure_connected()
        start, end = to_utc(start), to_utc(end)
        return self._sorted_copies(
            r for r in self._storage.values() if start <= r.arrival_time <= end
        )

    async def find_by_status(self, status: ReservationStatus) -> List[Reservation]:
        """Find reservations in a status"""
        self._ensure_connected()
        return self._sorted_copies(r for r in self._storage.values() if r.status == status)

    async def find_by_guest_email(self, email: str) -> List[Reservation]:
        """Find reservations for a guest email, newest first"""
        self._ensure_connected()
        wanted = email.strip().lower()
        matches = [r for r in self._storage.values() if r.guest_email.lower() == wanted]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in matches]

    async def find_filtered(
        self,
        reservation_filter: ReservationFilter,
        limit: int,
        offset: int
    ) -> Tuple[List[Reservation], int]:
        """Find one page of reservations matching the filter"""
        self._ensure_connected()
        matches = self._sorted_copies(r for r in self._storage.values() if reservation_filter.matches(r))
        return matches[offset:offset + limit], len(matches)

    async def find_audit_entries(self, reservation_id: str) -> List[AuditEntry]:
        self._ensure_connected()
        return [entry for entry in self._audit_log if entry.reservation_id == reservation_id]

    # ==================== WRITES ====================
    async def insert(self, reservation: Reservation) -> Reservation:
        async with self.unit_of_work() as uow:
            uow.insert(reservation)
            await uow.commit()
        return reservation.model_copy(deep=True)

    async def replace(self, reservation_id: str, reservation: Reservation) -> Reservation:
        if reservation.reservation_id != reservation_id:
            raise StorageError("Reservation id cannot change on replace", retryable=False)
        async with self.unit_of_work() as uow:
            uow.replace(reservation)
            await uow.commit()
        return reservation.model_copy(deep=True)

    def unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    def _apply(
        self,
        inserts: List[Reservation],
        replacements: List[Tuple[Reservation, Optional[Reservation]]],
        audit_entries: List[AuditEntry]
    ) -> None:
        """Check every staged write first, then apply them all"""
        self._ensure_connected()
        for reservation in inserts:
            if reservation.reservation_id in self._storage:
                raise StorageError(
                    f"Reservation id already exists: {reservation.reservation_id}", retryable=False
                )
        for reservation, expected in replacements:
            stored = self._storage.get(reservation.reservation_id)
            if stored is None:
                raise StorageError(
                    f"Reservation does not exist: {reservation.reservation_id}", retryable=False
                )
            if expected is not None and (
                stored.status != expected.status or stored.updated_at != expected.updated_at
            ):
                raise ConcurrentModificationError(reservation.reservation_id)

        for reservation in inserts:
            self._storage[reservation.reservation_id] = reservation
        for reservation, _ in replacements:
            self._storage[reservation.reservation_id] = reservation
        self._audit_log.extend(audit_entries)

    @staticmethod
    def _sorted_copies(reservations) -> List[Reservation]:
        ordered = sorted(reservations, key=lambda r: (r.arrival_time, r.created_at, r.reservation_id))
        return [r.model_copy(deep=True) for r in ordered]

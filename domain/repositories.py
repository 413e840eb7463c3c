"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Tuple

from domain.entities import Reservation
from domain.enums import ReservationStatus
from domain.value_objects import AuditEntry, ReservationFilter


class StoreUnitOfWork(ABC):
    """Stages writes and audit entries so they land together or not at all

    Usage:
        async with store.unit_of_work() as uow:
            uow.insert(reservation)
            uow.append_audit(entry)
            await uow.commit()

    Leaving the block without committing (error, cancellation, timeout)
    discards everything staged.
    """

    async def __aenter__(self) -> "StoreUnitOfWork":
        return self

    async def __aexit__(self, *args) -> None:
        if not self.committed:
            await self.rollback()

    @property
    @abstractmethod
    def committed(self) -> bool:
        pass

    @abstractmethod
    def insert(self, reservation: Reservation) -> None:
        """Stage a new reservation"""
        pass

    @abstractmethod
    def replace(self, reservation: Reservation, expected: Optional[Reservation] = None) -> None:
        """Stage a full replacement of an existing reservation.

        When ``expected`` is given, commit fails with
        ConcurrentModificationError unless the stored record still has the
        status and updated_at it had when ``expected`` was read.
        """
        pass

    @abstractmethod
    def append_audit(self, entry: AuditEntry) -> None:
        """Stage an audit entry"""
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass


class ReservationStore(ABC):
    """Persistence interface for the Reservation aggregate"""

    async def __aenter__(self) -> "ReservationStore":
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    @abstractmethod
    async def connect(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: str) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_date_range(self, start: datetime, end: datetime) -> List[Reservation]:
        """Find reservations arriving within [start, end]"""
        pass

    @abstractmethod
    async def find_by_status(self, status: ReservationStatus) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_by_guest_email(self, email: str) -> List[Reservation]:
        pass

    @abstractmethod
    async def find_filtered(
        self,
        reservation_filter: ReservationFilter,
        limit: int,
        offset: int
    ) -> Tuple[List[Reservation], int]:
        """Return one page of matches and the total match count"""
        pass

    @abstractmethod
    async def insert(self, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def replace(self, reservation_id: str, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def find_audit_entries(self, reservation_id: str) -> List[AuditEntry]:
        pass

    @abstractmethod
    def unit_of_work(self) -> StoreUnitOfWork:
        pass

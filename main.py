from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query

from api.schemas import (
    # Reservation
    CreateReservationRequest, UpdateReservationRequest, ChangeStatusRequest,
    ReservationResponse, PaginatedReservationResponse,
    # Queries
    AvailabilityResponse, StatisticsResponse, AuditEntryResponse,
    # Errors
    ErrorResponse
)
from api.dependencies import get_current_actor, get_reservation_service, require_staff
from api.errors import register_exception_handlers

from application.services import ReservationService
from domain.auth import Actor
from domain.enums import ReservationStatus
from domain.notifications import ReservationNotifier
from domain.repositories import ReservationStore
from domain.value_objects import (
    PaginationRequest, ReservationDraft, ReservationFilter, ReservationPatch
)
from infrastructure.config import Settings
from infrastructure.logging import setup_logging
from infrastructure.notifications import LoggingNotifier
from infrastructure.repositories.in_memory_repositories import InMemoryReservationStore

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}

router = APIRouter()

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@router.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@router.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [f"{item.name}" for item in ReservationStatus],
        "description": "Reservation status values: REQUESTED, APPROVED, CANCELLED, COMPLETED"
    }

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@router.post("/api/reservations", response_model=ReservationResponse, status_code=201,
             responses=ERROR_RESPONSES, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Create new reservation"""
    draft = ReservationDraft(**request.model_dump())
    if actor.actor_id == Actor.guest().actor_id and draft.guest_email:
        actor = Actor.guest(draft.guest_email)
    reservation = await service.create(draft, actor)
    return _reservation_to_response(reservation)

@router.get("/api/reservations", response_model=PaginatedReservationResponse, tags=["Reservations"])
async def list_reservations(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: Optional[ReservationStatus] = None,
    guest_name: Optional[str] = None,
    guest_email: Optional[str] = None,
    party_size: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    service: ReservationService = Depends(get_reservation_service),
    staff: Actor = Depends(require_staff)
):
    """List reservations matching a filter, one page at a time"""
    reservation_filter = ReservationFilter(
        start_date=start_date,
        end_date=end_date,
        status=status,
        guest_name=guest_name,
        guest_email=guest_email,
        party_size=party_size
    )
    page = await service.list(reservation_filter, PaginationRequest(limit=limit, offset=offset))
    return PaginatedReservationResponse(
        items=[_reservation_to_response(r) for r in page.items],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_more=page.has_more
    )

@router.get("/api/reservations/by-email", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_reservations_by_email(
    email: str = Query(..., min_length=3),
    service: ReservationService = Depends(get_reservation_service)
):
    """Get a guest's reservations by email"""
    reservations = await service.get_by_email(email)
    return [_reservation_to_response(r) for r in reservations]

@router.get("/api/reservations/availability", response_model=AvailabilityResponse, tags=["Availability"])
async def check_availability(
    arrival_time: datetime,
    party_size: int = Query(..., ge=1),
    service: ReservationService = Depends(get_reservation_service)
):
    """Check remaining capacity around an arrival time"""
    availability = await service.check_availability(arrival_time, party_size)
    return AvailabilityResponse(**availability.model_dump())

@router.get("/api/reservations/statistics", response_model=StatisticsResponse,
            responses=ERROR_RESPONSES, tags=["Reservations"])
async def get_statistics(
    start_date: datetime,
    end_date: datetime,
    service: ReservationService = Depends(get_reservation_service),
    staff: Actor = Depends(require_staff)
):
    """Aggregate figures for reservations arriving within a range"""
    stats = await service.get_statistics(start_date, end_date)
    return StatisticsResponse(
        start_date=start_date,
        end_date=end_date,
        total=stats.total,
        by_status={status.value: count for status, count in stats.by_status.items()},
        total_guests=stats.total_guests,
        average_party_size=stats.average_party_size
    )

@router.get("/api/reservations/{reservation_id}", response_model=ReservationResponse,
            responses=ERROR_RESPONSES, tags=["Reservations"])
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    staff: Actor = Depends(require_staff)
):
    """Get reservation by ID"""
    reservation = await service.get(reservation_id)
    return _reservation_to_response(reservation)

@router.get("/api/reservations/{reservation_id}/audit", response_model=List[AuditEntryResponse],
            responses=ERROR_RESPONSES, tags=["Reservations"])
async def get_audit_trail(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    staff: Actor = Depends(require_staff)
):
    """Get the audit trail of a reservation, oldest first"""
    entries = await service.audit_trail(reservation_id)
    return [AuditEntryResponse(**entry.model_dump()) for entry in entries]

@router.patch("/api/reservations/{reservation_id}", response_model=ReservationResponse,
              responses=ERROR_RESPONSES, tags=["Reservations"])
async def update_reservation(
    reservation_id: str,
    request: UpdateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Update the fields sent in the request"""
    patch = ReservationPatch(**request.model_dump(exclude_unset=True))
    reservation = await service.update(reservation_id, patch, actor)
    return _reservation_to_response(reservation)

@router.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse,
             responses=ERROR_RESPONSES, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Cancel reservation"""
    reservation = await service.cancel(reservation_id, actor)
    return _reservation_to_response(reservation)

@router.post("/api/reservations/{reservation_id}/status", response_model=ReservationResponse,
             responses=ERROR_RESPONSES, tags=["Reservations"])
async def change_reservation_status(
    reservation_id: str,
    request: ChangeStatusRequest,
    service: ReservationService = Depends(get_reservation_service),
    staff: Actor = Depends(require_staff)
):
    """Move a reservation to another status (staff only)"""
    reservation = await service.change_status(reservation_id, request.status, staff)
    return _reservation_to_response(reservation)

# ============================================================================
# APPLICATION FACTORY
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    store: ReservationStore = app.state.store
    await store.connect()
    try:
        yield
    finally:
        await store.close()

def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ReservationStore] = None,
    notifier: Optional[ReservationNotifier] = None,
    clock: Optional[Callable[[], datetime]] = None
) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_SERIALIZE)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Restaurant reservation lifecycle and availability API",
        version=settings.VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.store = store or InMemoryReservationStore()
    app.state.reservation_service = ReservationService(
        app.state.store,
        policy=settings.policy(),
        notifier=notifier or LoggingNotifier(),
        clock=clock,
        operation_timeout=settings.OPERATION_TIMEOUT
    )

    register_exception_handlers(app)
    app.include_router(router)
    return app

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _reservation_to_response(reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        guest_name=reservation.guest_name,
        guest_email=reservation.guest_email,
        guest_phone=reservation.guest_phone,
        arrival_time=reservation.arrival_time,
        party_size=reservation.party_size,
        notes=reservation.notes,
        status=reservation.status.value,
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
        updated_by=reservation.updated_by
    )

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Optional, Union

from domain.enums import ReservationStatus, AuditAction


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO

    Fields stay optional so missing or malformed values come back as
    field errors from the rule engine rather than a schema rejection.
    """
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    arrival_time: Optional[Union[datetime, str]] = None
    party_size: Optional[Union[int, float]] = None
    notes: Optional[str] = None


class UpdateReservationRequest(BaseModel):
    """Update reservation request DTO; only the fields sent are changed"""
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    arrival_time: Optional[Union[datetime, str]] = None
    party_size: Optional[Union[int, float]] = None
    notes: Optional[str] = None


class ChangeStatusRequest(BaseModel):
    """Change status request DTO"""
    status: ReservationStatus


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: str
    guest_name: str
    guest_email: str
    guest_phone: str
    arrival_time: datetime
    party_size: int
    notes: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    updated_by: Optional[str] = None


class PaginatedReservationResponse(BaseModel):
    """One page of reservations"""
    items: List[ReservationResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


# ============================================================================
# QUERY SCHEMAS
# ============================================================================

class AvailabilityResponse(BaseModel):
    """Availability response DTO"""
    arrival_time: datetime
    party_size: int
    available: bool
    remaining_covers: int
    capacity_bound: int


class StatisticsResponse(BaseModel):
    """Reservation statistics response DTO"""
    start_date: datetime
    end_date: datetime
    total: int
    by_status: Dict[str, int]
    total_guests: int
    average_party_size: float


class AuditEntryResponse(BaseModel):
    """Audit entry response DTO"""
    reservation_id: str
    action: AuditAction
    actor: str
    previous_status: Optional[ReservationStatus] = None
    new_status: Optional[ReservationStatus] = None
    changes: List[str] = []
    timestamp: datetime


# ============================================================================
# ERROR SCHEMAS
# ============================================================================

class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Union[List[dict], dict]] = None
    retryable: bool = False


class ErrorResponse(BaseModel):
    """Envelope for every error the API returns"""
    error: ErrorBody = Field(...)

"""Domain Enums"""
from enum import Enum


class ReservationStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ActorRole(str, Enum):
    GUEST = "GUEST"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class AuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    CANCELLED = "CANCELLED"
    STATUS_CHANGED = "STATUS_CHANGED"


class ErrorCode(str, Enum):
    """Stable machine-readable codes carried by field errors"""
    REQUIRED = "REQUIRED"
    MIN_LENGTH = "MIN_LENGTH"
    MAX_LENGTH = "MAX_LENGTH"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    OUTSIDE_BUSINESS_HOURS = "OUTSIDE_BUSINESS_HOURS"
    RESTAURANT_CLOSED = "RESTAURANT_CLOSED"
    TOO_FAR_FUTURE = "TOO_FAR_FUTURE"
    MIN_VALUE = "MIN_VALUE"
    MAX_VALUE = "MAX_VALUE"
    ADVANCE_NOTICE_REQUIRED = "ADVANCE_NOTICE_REQUIRED"
    SPECIAL_APPROVAL_REQUIRED = "SPECIAL_APPROVAL_REQUIRED"
    TOO_CLOSE_TO_ARRIVAL = "TOO_CLOSE_TO_ARRIVAL"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    RESERVATION_COMPLETED = "RESERVATION_COMPLETED"
    RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
    EMPTY_UPDATE = "EMPTY_UPDATE"

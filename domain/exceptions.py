"""Domain Exceptions"""
from typing import Any, Dict, List, Optional

from domain.enums import ReservationStatus
from domain.value_objects import FieldError


class ReservationError(Exception):
    """Base class for every failure the core reports to its callers"""

    def __init__(self, message: str, code: str, status_code: int = 400, retryable: bool = False) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)

    def details(self) -> Any:
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Structured form handed to the transport layer"""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details(),
            "retryable": self.retryable,
        }


class ValidationError(ReservationError):
    """One or more rule failures; always carries the complete list"""

    def __init__(self, errors: List[FieldError], message: Optional[str] = None) -> None:
        self.errors = list(errors)
        if message is None:
            message = (
                self.errors[0].message if len(self.errors) == 1
                else f"Validation failed with {len(self.errors)} errors"
            )
        super().__init__(message, "VALIDATION_ERROR", 422)

    def details(self) -> Any:
        return [error.model_dump(mode="json") for error in self.errors]


class BusinessRuleError(ReservationError):
    """Rejected for a named policy reason distinct from field validation"""

    def __init__(self, message: str, rule: str, errors: Optional[List[FieldError]] = None) -> None:
        self.rule = rule
        self.errors = list(errors or [])
        super().__init__(message, "BUSINESS_RULE_VIOLATION", 422)

    def details(self) -> Any:
        return {
            "rule": self.rule,
            "errors": [error.model_dump(mode="json") for error in self.errors],
        }


class ConflictError(ReservationError):
    """Accepting the request would overcommit capacity in the window"""

    def __init__(self, message: str = "The requested time slot is not available. Please choose a different time.") -> None:
        super().__init__(message, "CAPACITY_CONFLICT", 409)


class NotFoundError(ReservationError):
    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(f"Reservation not found with identifier: {reservation_id}", "NOT_FOUND", 404)


class InvalidTransitionError(ReservationError):
    def __init__(self, current: ReservationStatus, requested: ReservationStatus) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid status transition from {current.value} to {requested.value}",
            "INVALID_STATUS_TRANSITION",
            409
        )

    def details(self) -> Any:
        return {"current": self.current.value, "requested": self.requested.value}


class ConcurrentModificationError(ReservationError):
    """The reservation changed between read and write; reload and retry"""

    def __init__(self, reservation_id: str) -> None:
        self.reservation_id = reservation_id
        super().__init__(
            f"Reservation {reservation_id} was modified concurrently",
            "CONCURRENT_MODIFICATION",
            409,
            retryable=True
        )


class ForbiddenError(ReservationError):
    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message, "FORBIDDEN", 403)


class StorageError(ReservationError):
    """The store collaborator failed; retryable unless stated otherwise"""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message, "STORAGE_ERROR", 503, retryable)


class OperationTimeoutError(StorageError):
    def __init__(self, message: str = "Operation exceeded its deadline") -> None:
        super().__init__(message, retryable=True)
        self.code = "OPERATION_TIMEOUT"
        self.status_code = 504

"""Validation Rule Engine

Pure checks of field-level and business-rule constraints against a
reservation draft. Nothing here raises or performs I/O: every check appends
to the error list so a client can fix all fields in one round trip. The
current time is an explicit argument.
"""
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from domain.enums import ErrorCode
from domain.value_objects import (
    FieldError, ReservationDraft, ReservationPolicy, ValidationResult,
    PATCHABLE_FIELDS, to_utc
)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")

# Codes describing booking policy rather than malformed input
POLICY_CODES = frozenset({
    ErrorCode.ADVANCE_NOTICE_REQUIRED,
    ErrorCode.SPECIAL_APPROVAL_REQUIRED,
})


def normalize_phone(phone: str) -> str:
    """Strip spaces, dashes and parentheses"""
    return PHONE_SEPARATORS.sub("", phone.strip())


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def parse_arrival_time(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Parse an arrival time into aware UTC, or None when unparseable"""
    if value is None:
        return None
    try:
        if isinstance(value, datetime):
            return to_utc(value)
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return to_utc(datetime.fromisoformat(text))
    except (ValueError, OverflowError):
        # Malformed, or valid but unrepresentable once shifted to UTC
        return None


def coerce_party_size(value: Any) -> Optional[int]:
    """Whole-number party size, or None for anything that is not one"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def normalized_fields(draft: ReservationDraft) -> Dict[str, Any]:
    """Canonical stored form of a draft that already passed validation"""
    notes = draft.notes.strip() if draft.notes else None
    return {
        "guest_name": draft.guest_name.strip(),
        "guest_email": draft.guest_email.strip().lower(),
        "guest_phone": normalize_phone(draft.guest_phone),
        "arrival_time": parse_arrival_time(draft.arrival_time),
        "party_size": coerce_party_size(draft.party_size),
        "notes": notes or None,
    }


class ReservationValidator:
    """Rule engine configured with one explicit policy"""

    def __init__(self, policy: Optional[ReservationPolicy] = None):
        self.policy = policy or ReservationPolicy()

    def validate(
        self,
        draft: ReservationDraft,
        now: datetime,
        fields: Optional[Iterable[str]] = None
    ) -> ValidationResult:
        """Run every applicable check and return all failures.

        ``fields`` limits the run to the named draft fields; the cross-field
        large-party rules only run when party size is selected.
        """
        selected = set(fields) if fields is not None else set(PATCHABLE_FIELDS)
        now = to_utc(now)
        errors: List[FieldError] = []

        if "guest_name" in selected:
            errors.extend(self._check_guest_name(draft.guest_name))
        if "guest_email" in selected:
            errors.extend(self._check_guest_email(draft.guest_email))
        if "guest_phone" in selected:
            errors.extend(self._check_guest_phone(draft.guest_phone))
        if "notes" in selected:
            errors.extend(self._check_notes(draft.notes))

        arrival: Optional[datetime] = None
        if "arrival_time" in selected:
            arrival_errors, arrival = self._check_arrival_time(draft.arrival_time, now)
            errors.extend(arrival_errors)
            if arrival_errors:
                arrival = None

        if "party_size" in selected:
            size_errors, size = self._check_party_size(draft.party_size)
            errors.extend(size_errors)
            if not size_errors:
                errors.extend(self._check_large_party(size, arrival, now))

        return ValidationResult(errors=errors)

    # ==================== FIELD CHECKS ====================
    def _check_guest_name(self, name: Optional[str]) -> List[FieldError]:
        if not name or not name.strip():
            return [_error("guestName", "Guest name is required", ErrorCode.REQUIRED)]
        length = len(name.strip())
        if length < self.policy.guest_name_min_length:
            return [_error(
                "guestName",
                f"Guest name must be at least {self.policy.guest_name_min_length} characters long",
                ErrorCode.MIN_LENGTH
            )]
        if length > self.policy.guest_name_max_length:
            return [_error(
                "guestName",
                f"Guest name must not exceed {self.policy.guest_name_max_length} characters",
                ErrorCode.MAX_LENGTH
            )]
        return []

    def _check_guest_email(self, email: Optional[str]) -> List[FieldError]:
        if not email or not email.strip():
            return [_error("guestEmail", "Email is required", ErrorCode.REQUIRED)]
        if not is_valid_email(email):
            return [_error("guestEmail", "Invalid email format", ErrorCode.INVALID_FORMAT)]
        if len(email.strip()) > self.policy.email_max_length:
            return [_error(
                "guestEmail",
                f"Email must not exceed {self.policy.email_max_length} characters",
                ErrorCode.MAX_LENGTH
            )]
        return []

    def _check_guest_phone(self, phone: Optional[str]) -> List[FieldError]:
        if not phone or not phone.strip():
            return [_error("guestPhone", "Phone number is required", ErrorCode.REQUIRED)]
        if not PHONE_PATTERN.match(normalize_phone(phone)):
            return [_error(
                "guestPhone",
                "Invalid phone number format. Use international format (+1234567890) or local format (1234567)",
                ErrorCode.INVALID_FORMAT
            )]
        return []

    def _check_notes(self, notes: Optional[str]) -> List[FieldError]:
        if notes and len(notes) > self.policy.notes_max_length:
            return [_error(
                "notes",
                f"Notes must not exceed {self.policy.notes_max_length} characters",
                ErrorCode.MAX_LENGTH
            )]
        return []

    def _check_arrival_time(
        self,
        value: Union[datetime, str, None],
        now: datetime
    ) -> Tuple[List[FieldError], Optional[datetime]]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return [_error("arrivalTime", "Arrival time is required", ErrorCode.REQUIRED)], None

        arrival = parse_arrival_time(value)
        if arrival is None:
            return [_error("arrivalTime", "Invalid date format", ErrorCode.INVALID_FORMAT)], None

        errors: List[FieldError] = []
        policy = self.policy

        if arrival <= now:
            errors.append(_error(
                "arrivalTime", "Arrival time must be in the future", ErrorCode.INVALID_DATE_RANGE
            ))
        elif arrival > now + timedelta(days=policy.max_advance_days):
            errors.append(_error(
                "arrivalTime",
                f"Reservations can only be made up to {policy.max_advance_days} days in advance",
                ErrorCode.TOO_FAR_FUTURE
            ))

        try:
            local = policy.local_time(arrival)
        except OverflowError:
            # Only reachable at the edge of the calendar, already past or beyond the horizon
            return errors, arrival
        if local.hour < policy.opening_hour or local.hour >= policy.closing_hour:
            errors.append(_error(
                "arrivalTime",
                f"Reservations are only available between {policy.opening_hour:02d}:00 "
                f"and {policy.closing_hour:02d}:00",
                ErrorCode.OUTSIDE_BUSINESS_HOURS
            ))
        if local.weekday() in policy.closed_weekdays:
            errors.append(_error(
                "arrivalTime",
                f"Restaurant is closed on {local.strftime('%A')}s",
                ErrorCode.RESTAURANT_CLOSED
            ))

        return errors, arrival

    def _check_party_size(self, value: Any) -> Tuple[List[FieldError], Optional[int]]:
        if value is None:
            return [_error("partySize", "Party size is required", ErrorCode.REQUIRED)], None
        size = coerce_party_size(value)
        if size is None:
            return [_error("partySize", "Party size must be a whole number", ErrorCode.INVALID_TYPE)], None
        if size < self.policy.min_party_size:
            return [_error(
                "partySize",
                f"Party size must be at least {self.policy.min_party_size}",
                ErrorCode.MIN_VALUE
            )], None
        if size > self.policy.max_party_size:
            return [_error(
                "partySize",
                f"Party size cannot exceed {self.policy.max_party_size} people",
                ErrorCode.MAX_VALUE
            )], None
        return [], size

    def _check_large_party(
        self,
        size: int,
        arrival: Optional[datetime],
        now: datetime
    ) -> List[FieldError]:
        policy = self.policy
        errors: List[FieldError] = []

        if (
            arrival is not None
            and size > policy.large_party_threshold
            and arrival - now < timedelta(hours=policy.large_party_notice_hours)
        ):
            errors.append(_error(
                "partySize",
                f"Large parties ({policy.large_party_threshold + 1}+ people) require at least "
                f"{policy.large_party_notice_hours} hours advance notice",
                ErrorCode.ADVANCE_NOTICE_REQUIRED
            ))

        # Hard stop, independent of notice
        if size > policy.special_approval_threshold:
            errors.append(_error(
                "partySize",
                f"Parties larger than {policy.special_approval_threshold} people require special approval. "
                "Please call the restaurant.",
                ErrorCode.SPECIAL_APPROVAL_REQUIRED
            ))

        return errors


def _error(field: str, message: str, code: ErrorCode) -> FieldError:
    return FieldError(field=field, message=message, code=code)

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from email_validator import EmailNotValidError, validate_email

from ..models import BookingStatus
from .errors import (
    AlreadyCancelledError,
    CapacityExceededError,
    ForbiddenError,
    InsufficientCapacityError,
    InvalidInputError,
    PastBookingError,
    ServiceUnavailableError,
    SlotUnavailableError,
)


@dataclass(frozen=True)
class SlotSnapshot:
    service_id: int
    is_bookable: bool
    available_spots: int


@dataclass(frozen=True)
class ServiceSnapshot:
    is_active: bool
    max_participants: int
    price: Decimal


def normalize_email(value: Any) -> str:
    """
    Syntax-check an address and return its normalized form (domain lowercased,
    local part kept as typed). No DNS lookups.
    """
    if not isinstance(value, str):
        raise InvalidInputError("invalid email address")
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise InvalidInputError("invalid email address") from exc


def is_valid_email(value: Any) -> bool:
    try:
        normalize_email(value)
    except InvalidInputError:
        return False
    return True


def validate_booking_request(
    *,
    guest_email: Any,
    time_slot_id: Any,
    service_id: Any,
    participant_count: Any,
) -> None:
    """Input checks that run before anything is read from storage."""
    if not is_valid_email(guest_email):
        raise InvalidInputError("invalid email address")
    if time_slot_id is None or service_id is None:
        raise InvalidInputError("time slot and service are required")
    if isinstance(participant_count, bool) or not isinstance(participant_count, int) or participant_count < 1:
        raise InvalidInputError("participant count must be a positive integer")


def validate_booking(
    slot: SlotSnapshot | None,
    service: ServiceSnapshot | None,
    *,
    service_id: int,
    participant_count: int,
) -> Decimal:
    """
    Pure validation of a booking against the slot and service it targets.
    Returns the total price to capture on the booking. Raises domain errors otherwise.
    The capacity check here is advisory; the ledger re-checks it atomically.
    """
    if slot is None or not slot.is_bookable:
        raise SlotUnavailableError("time slot is not available")
    if slot.available_spots < participant_count:
        raise InsufficientCapacityError(slot.available_spots)
    if service is None or not service.is_active:
        raise ServiceUnavailableError("service is not available")
    if participant_count > service.max_participants:
        raise CapacityExceededError(f"maximum {service.max_participants} participants for this service")
    if slot.service_id != service_id:
        raise InvalidInputError("time slot does not belong to this service")
    return service.price * participant_count


def validate_cancellation(
    *,
    guest_email: str,
    requester_email: str,
    status: BookingStatus,
    starts_at: datetime,
    now: datetime,
) -> None:
    if guest_email != requester_email:
        raise ForbiddenError("this booking does not belong to you")
    if status == BookingStatus.CANCELLED:
        raise AlreadyCancelledError("booking is already cancelled")
    if starts_at <= now:
        raise PastBookingError("cannot cancel a booking whose time slot has already started")

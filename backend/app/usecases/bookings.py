import logging
from datetime import datetime
from typing import cast

from ..domain.errors import AlreadyCancelledError, NotFoundError
from ..domain.repositories import BookingRepository, CapacityLedger, ServiceRepository, TimeSlotRepository
from ..domain.services import (
    ServiceSnapshot,
    SlotSnapshot,
    normalize_email,
    validate_booking,
    validate_booking_request,
    validate_cancellation,
)
from ..models import Booking, Service, TimeSlot
from ..utils.time import utc_now_naive

logger = logging.getLogger(__name__)


async def create_booking(
    slot_repo: TimeSlotRepository,
    service_repo: ServiceRepository,
    booking_repo: BookingRepository,
    ledger: CapacityLedger,
    *,
    time_slot_id: int | None,
    service_id: int | None,
    guest_email: str,
    participant_count: int,
    guest_name: str | None = None,
    guest_phone: str | None = None,
    special_requests: str | None = None,
) -> tuple[Booking, TimeSlot, Service]:
    """
    Reserve `participant_count` spots on a slot and record the booking.
    Must run inside the caller's transaction: the ledger decrement and the
    booking insert commit together or not at all.
    """
    validate_booking_request(
        guest_email=guest_email,
        time_slot_id=time_slot_id,
        service_id=service_id,
        participant_count=participant_count,
    )

    slot = await slot_repo.get(time_slot_id)
    service = await service_repo.get(service_id)
    total_price = validate_booking(
        None
        if slot is None
        else SlotSnapshot(
            service_id=slot.service_id,
            is_bookable=slot.is_bookable,
            available_spots=slot.available_spots,
        ),
        None
        if service is None
        else ServiceSnapshot(
            is_active=service.is_active,
            max_participants=service.max_participants,
            price=service.price,
        ),
        service_id=service_id,
        participant_count=participant_count,
    )
    slot, service = cast(TimeSlot, slot), cast(Service, service)

    await ledger.decrement(slot.id, participant_count)
    booking = await booking_repo.create(
        time_slot_id=slot.id,
        service_id=service.id,
        guest_email=normalize_email(guest_email),
        guest_name=guest_name or None,
        guest_phone=guest_phone or None,
        participant_count=participant_count,
        total_price=total_price,
        special_requests=special_requests or None,
    )
    logger.info(
        "booking %s created on slot %s for %s participant(s)", booking.id, slot.id, participant_count
    )
    return booking, slot, service


async def cancel_booking(
    booking_repo: BookingRepository,
    ledger: CapacityLedger,
    *,
    booking_id: int,
    requester_email: str,
    now: datetime | None = None,
) -> tuple[Booking, TimeSlot, Service]:
    requester_email = normalize_email(requester_email)

    row = await booking_repo.get_for_update(booking_id)
    if row is None:
        raise NotFoundError("booking not found")
    booking, slot, service = row

    validate_cancellation(
        guest_email=booking.guest_email,
        requester_email=requester_email,
        status=booking.status,
        starts_at=slot.start_time,
        now=now or utc_now_naive(),
    )

    # Conditional transition guards against a concurrent cancel of the same booking.
    if not await booking_repo.mark_cancelled(booking):
        raise AlreadyCancelledError("booking is already cancelled")
    await ledger.increment(slot.id, booking.participant_count)
    logger.info(
        "booking %s cancelled, %s spot(s) returned to slot %s", booking.id, booking.participant_count, slot.id
    )
    return booking, slot, service


async def list_bookings_by_email(
    booking_repo: BookingRepository,
    *,
    email: str,
) -> list[tuple[Booking, TimeSlot, Service]]:
    return await booking_repo.list_by_email(normalize_email(email))

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyCapacityLedger,
    SqlAlchemyServiceRepository,
    SqlAlchemyTimeSlotRepository,
)
from ..models import BookingStatus
from ..schemas import (
    BookingCancelResponse,
    BookingCreate,
    BookingCreatedResponse,
    BookingListItem,
    BookingListResponse,
)
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
) -> BookingCreatedResponse:
    slot_repo = SqlAlchemyTimeSlotRepository(session)
    service_repo = SqlAlchemyServiceRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    try:
        async with session.begin():
            booking, slot, service = await booking_usecase.create_booking(
                slot_repo,
                service_repo,
                booking_repo,
                ledger,
                time_slot_id=payload.time_slot_id,
                service_id=payload.service_id,
                guest_email=payload.guest_email,
                guest_name=payload.guest_name,
                guest_phone=payload.guest_phone,
                participant_count=payload.participant_count,
                special_requests=payload.special_requests,
            )
            # A failed audit write rolls the booking back.
            emit_audit_log(
                action="booking.created",
                booking_id=booking.id,
                time_slot_id=slot.id,
                service_id=service.id,
                guest_email=booking.guest_email,
                participant_count=booking.participant_count,
                status_from=None,
                status_to=booking.status,
                total_price=booking.total_price,
            )
    except RuntimeError as exc:
        logger.exception("booking rolled back after audit failure")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to record booking") from exc

    return BookingCreatedResponse.from_db(booking=booking, slot=slot, service=service)


@router.get("/email/{email}", response_model=BookingListResponse)
async def list_bookings_by_email(
    email: str,
    session: AsyncSession = Depends(get_session),
) -> BookingListResponse:
    booking_repo = SqlAlchemyBookingRepository(session)
    rows = await booking_usecase.list_bookings_by_email(booking_repo, email=email)
    items = [BookingListItem.from_db(booking=booking, slot=slot, service=service) for booking, slot, service in rows]
    return BookingListResponse(count=len(items), data=items)


@router.patch("/{booking_id}/cancel/{email}", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    email: str = Path(...),
    session: AsyncSession = Depends(get_session),
) -> BookingCancelResponse:
    booking_repo = SqlAlchemyBookingRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    try:
        async with session.begin():
            booking, slot, service = await booking_usecase.cancel_booking(
                booking_repo,
                ledger,
                booking_id=booking_id,
                requester_email=email,
            )
            emit_audit_log(
                action="booking.cancelled",
                booking_id=booking.id,
                time_slot_id=slot.id,
                service_id=service.id,
                guest_email=booking.guest_email,
                participant_count=booking.participant_count,
                status_from=BookingStatus.CONFIRMED,
                status_to=booking.status,
                total_price=booking.total_price,
            )
    except RuntimeError as exc:
        logger.exception("cancellation rolled back after audit failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to record cancellation"
        ) from exc

    return BookingCancelResponse.from_db(booking=booking, service=service)

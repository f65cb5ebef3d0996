from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Tuple, cast

from sqlalchemy import Select, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..domain.errors import CapacityIntegrityError, InsufficientCapacityError, InvalidInputError
from ..domain.repositories import BookingRepository, CapacityLedger, ServiceRepository, TimeSlotRepository
from ..models import Booking, BookingStatus, Service, TimeSlot
from ..utils.time import utc_now_naive


def _rowcount(result: Any) -> int:
    return cast(CursorResult[Any], result).rowcount


class SqlAlchemyServiceRepository(ServiceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, service_id: int) -> Service | None:
        result = await self.session.scalar(select(Service).where(Service.id == service_id))
        return result if isinstance(result, Service) else None

    async def list_active(self) -> List[Service]:
        stmt = select(Service).where(Service.is_active.is_(True)).order_by(Service.name, Service.id)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyTimeSlotRepository(TimeSlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, slot_id: int) -> TimeSlot | None:
        result = await self.session.scalar(select(TimeSlot).where(TimeSlot.id == slot_id))
        return result if isinstance(result, TimeSlot) else None

    async def list_bookable(
        self,
        *,
        start: datetime,
        end: datetime | None = None,
        service_ids: Iterable[int],
        limit: int | None = None,
    ) -> List[TimeSlot]:
        ids = list(service_ids)
        if not ids:
            return []
        stmt: Select[Tuple[TimeSlot]] = (
            select(TimeSlot)
            .where(
                TimeSlot.service_id.in_(ids),
                TimeSlot.start_time >= start,
                TimeSlot.is_bookable.is_(True),
                TimeSlot.available_spots > 0,
            )
            .order_by(TimeSlot.start_time, TimeSlot.id)
        )
        if end is not None:
            stmt = stmt.where(TimeSlot.start_time < end)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyCapacityLedger(CapacityLedger):
    """Remaining-spot counter on time_slots, mutated only by conditional UPDATEs."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def decrement(self, slot_id: int, amount: int) -> None:
        if amount < 1:
            raise InvalidInputError("amount must be positive")
        # Check and write happen in one statement so concurrent bookings cannot both pass.
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.available_spots >= amount)
            .values(available_spots=TimeSlot.available_spots - amount, updated_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if _rowcount(result) != 1:
            remaining = await self.session.scalar(select(TimeSlot.available_spots).where(TimeSlot.id == slot_id))
            raise InsufficientCapacityError(int(remaining or 0))

    async def increment(self, slot_id: int, amount: int) -> None:
        if amount < 1:
            raise InvalidInputError("amount must be positive")
        stmt = (
            update(TimeSlot)
            .where(TimeSlot.id == slot_id, TimeSlot.available_spots + amount <= TimeSlot.total_capacity)
            .values(available_spots=TimeSlot.available_spots + amount, updated_at=utc_now_naive())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if _rowcount(result) != 1:
            raise CapacityIntegrityError(f"restoring {amount} spot(s) would exceed capacity of slot {slot_id}")


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        *,
        time_slot_id: int,
        service_id: int,
        guest_email: str,
        guest_name: str | None,
        guest_phone: str | None,
        participant_count: int,
        total_price: Decimal,
        special_requests: str | None,
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            time_slot_id=time_slot_id,
            service_id=service_id,
            guest_email=guest_email,
            guest_name=guest_name,
            guest_phone=guest_phone,
            participant_count=participant_count,
            total_price=total_price,
            special_requests=special_requests,
            status=BookingStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_for_update(self, booking_id: int) -> Optional[Tuple[Booking, TimeSlot, Service]]:
        stmt: Select[Tuple[Booking, TimeSlot, Service]] = (
            select(Booking, TimeSlot, Service)
            .join(TimeSlot, Booking.time_slot_id == TimeSlot.id)
            .join(Service, Booking.service_id == Service.id)
            .where(Booking.id == booking_id)
            .with_for_update(of=Booking)
        )
        row = (await self.session.execute(stmt)).first()
        return cast(Optional[Tuple[Booking, TimeSlot, Service]], row)

    async def mark_cancelled(self, booking: Booking) -> bool:
        """Move a CONFIRMED booking to CANCELLED. Returns False if another request got there first."""
        now = utc_now_naive()
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.CONFIRMED)
            .values(status=BookingStatus.CANCELLED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if _rowcount(result) != 1:
            return False
        set_committed_value(booking, "status", BookingStatus.CANCELLED)
        set_committed_value(booking, "updated_at", now)
        return True

    async def list_by_email(self, email: str) -> List[Tuple[Booking, TimeSlot, Service]]:
        stmt: Select[Tuple[Booking, TimeSlot, Service]] = (
            select(Booking, TimeSlot, Service)
            .join(TimeSlot, Booking.time_slot_id == TimeSlot.id)
            .join(Service, Booking.service_id == Service.id)
            .where(Booking.guest_email == email)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[Booking, TimeSlot, Service]], list(rows.all()))

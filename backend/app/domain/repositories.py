from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Protocol

from ..models import Booking, Service, TimeSlot


class ServiceRepository(Protocol):
    async def get(self, service_id: int) -> Service | None: ...

    async def list_active(self) -> list[Service]: ...


class TimeSlotRepository(Protocol):
    async def get(self, slot_id: int) -> TimeSlot | None: ...

    async def list_bookable(
        self,
        *,
        start: datetime,
        end: datetime | None = None,
        service_ids: Iterable[int],
        limit: int | None = None,
    ) -> list[TimeSlot]: ...


class CapacityLedger(Protocol):
    async def decrement(self, slot_id: int, amount: int) -> None: ...

    async def increment(self, slot_id: int, amount: int) -> None: ...


class BookingRepository(Protocol):
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
    ) -> Booking: ...

    async def get_for_update(self, booking_id: int) -> tuple[Booking, TimeSlot, Service] | None: ...

    async def mark_cancelled(self, booking: Booking) -> bool: ...

    async def list_by_email(self, email: str) -> list[tuple[Booking, TimeSlot, Service]]: ...

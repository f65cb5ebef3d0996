from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

import pytest
from app.domain.errors import (
    AlreadyCancelledError,
    ForbiddenError,
    InsufficientCapacityError,
    InvalidInputError,
    NotFoundError,
    PastBookingError,
    ServiceUnavailableError,
    SlotUnavailableError,
)
from app.models import Booking, BookingStatus, Service, TimeSlot
from app.usecases import bookings as uc


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _service(**overrides: object) -> Service:
    now = _utc_now_naive()
    values: dict[str, object] = dict(
        id=1,
        name="Trail ride",
        description=None,
        price=Decimal("40.00"),
        duration_minutes=90,
        max_participants=4,
        category="rides",
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    values.update(overrides)
    return Service(**values)


def _slot(**overrides: object) -> TimeSlot:
    start = _utc_now_naive() + timedelta(days=3)
    values: dict[str, object] = dict(
        id=10,
        service_id=1,
        start_time=start,
        end_time=start + timedelta(minutes=90),
        total_capacity=5,
        available_spots=5,
        is_bookable=True,
        created_at=start,
        updated_at=start,
    )
    values.update(overrides)
    return TimeSlot(**values)


def _booking(slot: TimeSlot, **overrides: object) -> Booking:
    now = _utc_now_naive()
    values: dict[str, object] = dict(
        id=100,
        guest_email="guest@example.com",
        guest_name="Guest",
        guest_phone=None,
        time_slot_id=slot.id,
        service_id=slot.service_id,
        participant_count=2,
        total_price=Decimal("80.00"),
        special_requests=None,
        status=BookingStatus.CONFIRMED,
        created_at=now,
        updated_at=now,
    )
    values.update(overrides)
    return Booking(**values)


class FakeSlotRepo:
    def __init__(self, slot: Optional[TimeSlot]) -> None:
        self.slot = slot

    async def get(self, slot_id: int) -> Optional[TimeSlot]:
        return self.slot

    async def list_bookable(self, **kwargs: object) -> List[TimeSlot]:  # pragma: no cover
        return []


class FakeServiceRepo:
    def __init__(self, service: Optional[Service]) -> None:
        self.service = service

    async def get(self, service_id: int) -> Optional[Service]:
        return self.service

    async def list_active(self) -> List[Service]:  # pragma: no cover
        return [self.service] if self.service else []


class FakeLedger:
    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.fail_with = fail_with
        self.decrements: List[Tuple[int, int]] = []
        self.increments: List[Tuple[int, int]] = []

    async def decrement(self, slot_id: int, amount: int) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.decrements.append((slot_id, amount))

    async def increment(self, slot_id: int, amount: int) -> None:
        self.increments.append((slot_id, amount))


class FakeBookingRepo:
    def __init__(self, row: Optional[Tuple[Booking, TimeSlot, Service]] = None, cancel_wins: bool = True) -> None:
        self.row = row
        self.cancel_wins = cancel_wins
        self.created: List[Booking] = []
        self.cancel_called = False

    async def create(self, **kwargs: object) -> Booking:
        booking = Booking(id=len(self.created) + 1, status=BookingStatus.CONFIRMED, created_at=_utc_now_naive(), **kwargs)
        self.created.append(booking)
        return booking

    async def get_for_update(self, booking_id: int) -> Optional[Tuple[Booking, TimeSlot, Service]]:
        return self.row

    async def mark_cancelled(self, booking: Booking) -> bool:
        self.cancel_called = True
        if not self.cancel_wins:
            return False
        booking.status = BookingStatus.CANCELLED
        return True

    async def list_by_email(self, email: str) -> List[Tuple[Booking, TimeSlot, Service]]:
        return [self.row] if self.row else []


async def _create(
    slot: Optional[TimeSlot],
    service: Optional[Service],
    booking_repo: FakeBookingRepo,
    ledger: FakeLedger,
    **overrides: object,
) -> Tuple[Booking, TimeSlot, Service]:
    kwargs: dict[str, object] = dict(
        time_slot_id=10,
        service_id=1,
        guest_email="guest@example.com",
        participant_count=2,
    )
    kwargs.update(overrides)
    return await uc.create_booking(
        FakeSlotRepo(slot),
        FakeServiceRepo(service),
        booking_repo,
        ledger,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_create_booking_decrements_and_captures_price() -> None:
    repo = FakeBookingRepo()
    ledger = FakeLedger()
    booking, slot, service = await _create(_slot(), _service(), repo, ledger, guest_name="", special_requests="helmets")

    assert ledger.decrements == [(10, 2)]
    assert repo.created == [booking]
    assert booking.total_price == Decimal("80.00")
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.guest_name is None
    assert booking.special_requests == "helmets"
    assert slot.id == 10 and service.id == 1


@pytest.mark.asyncio
async def test_create_booking_rejects_invalid_email_before_lookup() -> None:
    repo = FakeBookingRepo()
    ledger = FakeLedger()
    with pytest.raises(InvalidInputError):
        await _create(None, None, repo, ledger, guest_email="not-an-email")
    assert ledger.decrements == []


@pytest.mark.asyncio
async def test_create_booking_stores_normalized_email() -> None:
    repo = FakeBookingRepo()
    booking, _, _ = await _create(_slot(), _service(), repo, FakeLedger(), guest_email="Rider@Ranch.EXAMPLE.com")
    assert booking.guest_email == "Rider@ranch.example.com"


@pytest.mark.asyncio
async def test_create_booking_rejects_unbookable_slot() -> None:
    repo = FakeBookingRepo()
    ledger = FakeLedger()
    with pytest.raises(SlotUnavailableError):
        await _create(_slot(is_bookable=False), _service(), repo, ledger)
    assert repo.created == []


@pytest.mark.asyncio
async def test_create_booking_rejects_inactive_service() -> None:
    repo = FakeBookingRepo()
    ledger = FakeLedger()
    with pytest.raises(ServiceUnavailableError):
        await _create(_slot(), _service(is_active=False), repo, ledger)
    assert ledger.decrements == []


@pytest.mark.asyncio
async def test_create_booking_skips_insert_when_ledger_refuses() -> None:
    # Pre-check passes on a stale read but the atomic decrement finds the slot full.
    repo = FakeBookingRepo()
    ledger = FakeLedger(fail_with=InsufficientCapacityError(0))
    with pytest.raises(InsufficientCapacityError):
        await _create(_slot(available_spots=5), _service(), repo, ledger)
    assert repo.created == []


@pytest.mark.asyncio
async def test_cancel_booking_restores_spots() -> None:
    slot = _slot(available_spots=3)
    service = _service()
    booking = _booking(slot)
    repo = FakeBookingRepo(row=(booking, slot, service))
    ledger = FakeLedger()

    updated, _, _ = await uc.cancel_booking(repo, ledger, booking_id=booking.id, requester_email="guest@example.com")

    assert updated.status == BookingStatus.CANCELLED
    assert ledger.increments == [(slot.id, 2)]


@pytest.mark.asyncio
async def test_cancel_booking_rejects_invalid_email() -> None:
    with pytest.raises(InvalidInputError):
        await uc.cancel_booking(FakeBookingRepo(), FakeLedger(), booking_id=1, requester_email="bad")


@pytest.mark.asyncio
async def test_cancel_booking_not_found() -> None:
    with pytest.raises(NotFoundError):
        await uc.cancel_booking(FakeBookingRepo(), FakeLedger(), booking_id=1, requester_email="guest@example.com")


@pytest.mark.asyncio
async def test_cancel_already_cancelled_never_restores_twice() -> None:
    slot = _slot()
    booking = _booking(slot, status=BookingStatus.CANCELLED)
    repo = FakeBookingRepo(row=(booking, slot, _service()))
    ledger = FakeLedger()
    with pytest.raises(AlreadyCancelledError):
        await uc.cancel_booking(repo, ledger, booking_id=booking.id, requester_email="guest@example.com")
    assert repo.cancel_called is False
    assert ledger.increments == []


@pytest.mark.asyncio
async def test_cancel_loses_race_to_concurrent_cancel() -> None:
    slot = _slot()
    booking = _booking(slot)
    repo = FakeBookingRepo(row=(booking, slot, _service()), cancel_wins=False)
    ledger = FakeLedger()
    with pytest.raises(AlreadyCancelledError):
        await uc.cancel_booking(repo, ledger, booking_id=booking.id, requester_email="guest@example.com")
    assert ledger.increments == []


@pytest.mark.asyncio
async def test_cancel_forbidden_after_slot_started() -> None:
    slot = _slot(start_time=_utc_now_naive() - timedelta(minutes=5))
    booking = _booking(slot)
    repo = FakeBookingRepo(row=(booking, slot, _service()))
    ledger = FakeLedger()
    with pytest.raises(PastBookingError):
        await uc.cancel_booking(repo, ledger, booking_id=booking.id, requester_email="guest@example.com")
    assert repo.cancel_called is False


@pytest.mark.asyncio
async def test_list_bookings_validates_email() -> None:
    with pytest.raises(InvalidInputError):
        await uc.list_bookings_by_email(FakeBookingRepo(), email="guest")


@pytest.mark.asyncio
async def test_cancel_booking_rejects_other_case_local_part() -> None:
    slot = _slot()
    booking = _booking(slot)
    repo = FakeBookingRepo(row=(booking, slot, _service()))
    ledger = FakeLedger()
    with pytest.raises(ForbiddenError):
        await uc.cancel_booking(repo, ledger, booking_id=booking.id, requester_email="GUEST@example.com")
    assert repo.cancel_called is False
    assert ledger.increments == []


@pytest.mark.asyncio
async def test_cancel_booking_accepts_other_case_domain() -> None:
    slot = _slot()
    booking = _booking(slot)
    repo = FakeBookingRepo(row=(booking, slot, _service()))
    updated, _, _ = await uc.cancel_booking(
        repo, FakeLedger(), booking_id=booking.id, requester_email="guest@EXAMPLE.com"
    )
    assert updated.status == BookingStatus.CANCELLED

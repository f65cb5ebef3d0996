from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio
from app.config import get_settings
from app.models import Base, Booking, BookingStatus, Service, TimeSlot
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@pytest.fixture(autouse=True)
def _business_timezone_utc(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUSINESS_TIMEZONE", "UTC")
    monkeypatch.setenv("APP_ENV", "development")
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")

    # Take the write lock when a transaction starts so concurrent writers queue
    # up behind SQLite's busy timeout instead of deadlocking on lock upgrade.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, _: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Seeder:
    """Inserts services and slots directly, the way admin tooling would."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def service(
        self,
        *,
        name: str = "Trail ride",
        price: str = "45.00",
        duration_minutes: int = 60,
        max_participants: int = 6,
        category: str = "rides",
        is_active: bool = True,
    ) -> Service:
        now = utc_now_naive()
        service = Service(
            name=name,
            description=None,
            price=Decimal(price),
            duration_minutes=duration_minutes,
            max_participants=max_participants,
            category=category,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(service)
        return service

    async def slot(
        self,
        service: Service,
        *,
        start: datetime | None = None,
        capacity: int = 5,
        available: int | None = None,
        is_bookable: bool = True,
    ) -> TimeSlot:
        now = utc_now_naive()
        start = start or (now + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)
        slot = TimeSlot(
            service_id=service.id,
            start_time=start,
            end_time=start + timedelta(minutes=service.duration_minutes),
            total_capacity=capacity,
            available_spots=capacity if available is None else available,
            is_bookable=is_bookable,
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(slot)
        return slot

    async def available_spots(self, slot_id: int) -> int:
        async with self.session_factory() as session:
            value = await session.scalar(select(TimeSlot.available_spots).where(TimeSlot.id == slot_id))
            return int(value)

    async def confirmed_participants(self, slot_id: int) -> int:
        async with self.session_factory() as session:
            value = await session.scalar(
                select(func.coalesce(func.sum(Booking.participant_count), 0)).where(
                    Booking.time_slot_id == slot_id,
                    Booking.status == BookingStatus.CONFIRMED,
                )
            )
            return int(value or 0)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)

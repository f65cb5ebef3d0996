import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List
from zoneinfo import ZoneInfo

from ..domain.errors import InvalidInputError, NotFoundError
from ..domain.repositories import ServiceRepository, TimeSlotRepository
from ..models import Service, TimeSlot
from ..utils.time import business_tz, local_midnight_as_utc, local_today, utc_naive_to_local

DEFAULT_WINDOW_DAYS = 7
MAX_WINDOW_DAYS = 90
MIN_CALENDAR_YEAR = 1970
MAX_CALENDAR_YEAR = 2100


@dataclass(frozen=True)
class DayAvailability:
    day: date
    slots: List[TimeSlot]


@dataclass(frozen=True)
class ServiceAvailability:
    service: Service
    start_date: date
    end_date: date
    days: int
    by_day: List[DayAvailability]

    @property
    def total_slots(self) -> int:
        return sum(len(entry.slots) for entry in self.by_day)


@dataclass(frozen=True)
class CalendarDay:
    day: date
    slot_counts: Dict[int, int] = field(default_factory=dict)

    def slots_for(self, service_id: int) -> int:
        return self.slot_counts.get(service_id, 0)

    @property
    def has_availability(self) -> bool:
        return any(count > 0 for count in self.slot_counts.values())


@dataclass(frozen=True)
class MonthlyCalendar:
    year: int
    month: int
    services: List[Service]
    days: List[CalendarDay]

    @property
    def days_with_availability(self) -> int:
        return sum(1 for day in self.days if day.has_availability)


async def get_service_availability(
    service_repo: ServiceRepository,
    slot_repo: TimeSlotRepository,
    *,
    service_id: int,
    start_date: date | None = None,
    days: int = DEFAULT_WINDOW_DAYS,
    tz: ZoneInfo | None = None,
) -> ServiceAvailability:
    """
    Bookable slots of one service over [start_date, start_date + days), grouped
    by local calendar day. Days without any bookable slot are left out.
    """
    tz = tz or business_tz()
    if days < 1 or days > MAX_WINDOW_DAYS:
        raise InvalidInputError(f"days must be between 1 and {MAX_WINDOW_DAYS}")
    start_date = start_date or local_today(tz)
    if not MIN_CALENDAR_YEAR <= start_date.year <= MAX_CALENDAR_YEAR:
        raise InvalidInputError(f"date must fall between {MIN_CALENDAR_YEAR} and {MAX_CALENDAR_YEAR}")

    service = await service_repo.get(service_id)
    if service is None or not service.is_active:
        raise NotFoundError("service not found")

    end_date = start_date + timedelta(days=days)
    slots = await slot_repo.list_bookable(
        start=local_midnight_as_utc(start_date, tz),
        end=local_midnight_as_utc(end_date, tz),
        service_ids=[service.id],
    )

    grouped: Dict[date, List[TimeSlot]] = defaultdict(list)
    for slot in slots:
        grouped[utc_naive_to_local(slot.start_time, tz).date()].append(slot)

    by_day = [DayAvailability(day=day, slots=grouped[day]) for day in sorted(grouped)]
    return ServiceAvailability(
        service=service,
        start_date=start_date,
        end_date=end_date,
        days=days,
        by_day=by_day,
    )


async def get_monthly_calendar(
    service_repo: ServiceRepository,
    slot_repo: TimeSlotRepository,
    *,
    year: int,
    month: int,
    tz: ZoneInfo | None = None,
) -> MonthlyCalendar:
    """Every day of the month with per-service counts of bookable slots, zero-filled."""
    tz = tz or business_tz()
    if not 1 <= month <= 12:
        raise InvalidInputError("month must be between 1 and 12")
    if not MIN_CALENDAR_YEAR <= year <= MAX_CALENDAR_YEAR:
        raise InvalidInputError(f"year must be between {MIN_CALENDAR_YEAR} and {MAX_CALENDAR_YEAR}")

    days_in_month = calendar.monthrange(year, month)[1]
    first_day = date(year, month, 1)
    next_month = first_day + timedelta(days=days_in_month)

    services = await service_repo.list_active()
    slots = await slot_repo.list_bookable(
        start=local_midnight_as_utc(first_day, tz),
        end=local_midnight_as_utc(next_month, tz),
        service_ids=[service.id for service in services],
    )

    counts: Dict[date, Dict[int, int]] = defaultdict(lambda: defaultdict(int))
    for slot in slots:
        counts[utc_naive_to_local(slot.start_time, tz).date()][slot.service_id] += 1

    days: List[CalendarDay] = []
    for offset in range(days_in_month):
        day = first_day + timedelta(days=offset)
        days.append(
            CalendarDay(
                day=day,
                slot_counts={service.id: counts[day][service.id] for service in services},
            )
        )
    return MonthlyCalendar(year=year, month=month, services=services, days=days)

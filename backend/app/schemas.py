from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer
from pydantic.alias_generators import to_camel

from .models import Booking, BookingStatus, Service, TimeSlot
from .usecases.availability import MonthlyCalendar, ServiceAvailability
from .utils.formatting import (
    format_date,
    format_display_date,
    format_money,
    format_month_name,
    format_time,
    format_weekday_short,
)
from .utils.time import business_tz, utc_naive_to_local

MAX_PARTICIPANTS_PER_BOOKING = 20


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorDetail(CamelModel):
    field: str
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    details: Optional[Any] = None


# -- services -----------------------------------------------------------------


class ServiceRead(CamelModel):
    id: int
    name: str
    description: Optional[str]
    price: Decimal
    duration_minutes: int
    max_participants: int
    category: str

    @classmethod
    def from_db(cls, *, service: Service) -> "ServiceRead":
        return cls(
            id=service.id,
            name=service.name,
            description=service.description,
            price=service.price,
            duration_minutes=service.duration_minutes,
            max_participants=service.max_participants,
            category=service.category,
        )


class UpcomingSlotRead(CamelModel):
    id: int
    date: str
    time: str
    start_time: datetime
    available_spots: int

    @field_serializer("start_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()


class ServiceDetailRead(ServiceRead):
    upcoming_slots: List[UpcomingSlotRead]

    @classmethod
    def from_db_with_slots(
        cls,
        *,
        service: Service,
        slots: List[TimeSlot],
        tz: Optional[ZoneInfo] = None,
    ) -> "ServiceDetailRead":
        tz = tz or business_tz()
        upcoming = []
        for slot in slots:
            local_start = utc_naive_to_local(slot.start_time, tz)
            upcoming.append(
                UpcomingSlotRead(
                    id=slot.id,
                    date=format_date(local_start),
                    time=format_time(local_start),
                    start_time=local_start,
                    available_spots=slot.available_spots,
                )
            )
        base = ServiceRead.from_db(service=service)
        return cls(**base.model_dump(), upcoming_slots=upcoming)


class ServiceListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[ServiceRead]


class ServiceDetailResponse(CamelModel):
    success: bool = True
    data: ServiceDetailRead


# -- availability -------------------------------------------------------------


class AvailabilityServiceInfo(CamelModel):
    id: int
    name: str
    price: Decimal
    duration: int
    max_participants: int


class AvailabilityPeriod(CamelModel):
    from_: str = Field(alias="from")
    to: str
    days: int


class AvailabilitySlotRead(CamelModel):
    id: int
    time: str
    start_time: datetime
    end_time: datetime
    duration: int
    available_spots: int
    is_available: bool

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()


class AvailabilityDayRead(CamelModel):
    date: str
    display_date: str
    slots: List[AvailabilitySlotRead]


class ServiceAvailabilityResponse(CamelModel):
    success: bool = True
    service: AvailabilityServiceInfo
    period: AvailabilityPeriod
    availability: List[AvailabilityDayRead]
    total_slots: int

    @classmethod
    def from_domain(cls, result: ServiceAvailability, *, tz: Optional[ZoneInfo] = None) -> "ServiceAvailabilityResponse":
        tz = tz or business_tz()
        service = result.service
        days = []
        for entry in result.by_day:
            slots = []
            for slot in entry.slots:
                local_start = utc_naive_to_local(slot.start_time, tz)
                slots.append(
                    AvailabilitySlotRead(
                        id=slot.id,
                        time=format_time(local_start),
                        start_time=local_start,
                        end_time=utc_naive_to_local(slot.end_time, tz),
                        duration=service.duration_minutes,
                        available_spots=slot.available_spots,
                        is_available=slot.available_spots > 0,
                    )
                )
            days.append(
                AvailabilityDayRead(
                    date=format_date(entry.day),
                    display_date=format_display_date(entry.day),
                    slots=slots,
                )
            )
        return cls(
            service=AvailabilityServiceInfo(
                id=service.id,
                name=service.name,
                price=service.price,
                duration=service.duration_minutes,
                max_participants=service.max_participants,
            ),
            period=AvailabilityPeriod(
                from_=format_date(result.start_date),
                to=format_date(result.end_date),
                days=result.days,
            ),
            availability=days,
            total_slots=result.total_slots,
        )


class ServiceRef(CamelModel):
    id: int
    name: str


class CalendarServiceCount(CamelModel):
    id: int
    name: str
    slots: int
    has_availability: bool


class CalendarDayRead(CamelModel):
    date: str
    day: int
    weekday: str
    services: List[CalendarServiceCount]
    has_availability: bool


class CalendarMonthRead(CamelModel):
    year: int
    month: int
    name: str


class CalendarSummary(CamelModel):
    total_services: int
    total_days: int
    days_with_availability: int


class MonthlyCalendarResponse(CamelModel):
    success: bool = True
    month: CalendarMonthRead
    services: List[ServiceRef]
    calendar: List[CalendarDayRead]
    summary: CalendarSummary

    @classmethod
    def from_domain(cls, result: MonthlyCalendar) -> "MonthlyCalendarResponse":
        calendar_days = [
            CalendarDayRead(
                date=format_date(day.day),
                day=day.day.day,
                weekday=format_weekday_short(day.day),
                services=[
                    CalendarServiceCount(
                        id=service.id,
                        name=service.name,
                        slots=day.slots_for(service.id),
                        has_availability=day.slots_for(service.id) > 0,
                    )
                    for service in result.services
                ],
                has_availability=day.has_availability,
            )
            for day in result.days
        ]
        return cls(
            month=CalendarMonthRead(
                year=result.year,
                month=result.month,
                name=format_month_name(result.year, result.month),
            ),
            services=[ServiceRef(id=s.id, name=s.name) for s in result.services],
            calendar=calendar_days,
            summary=CalendarSummary(
                total_services=len(result.services),
                total_days=len(result.days),
                days_with_availability=result.days_with_availability,
            ),
        )


# -- bookings -----------------------------------------------------------------


class BookingCreate(CamelModel):
    time_slot_id: int = Field(ge=1)
    service_id: int = Field(ge=1)
    guest_email: EmailStr
    guest_name: Optional[str] = Field(default=None, max_length=255)
    guest_phone: Optional[str] = Field(default=None, max_length=50)
    participant_count: int = Field(ge=1, le=MAX_PARTICIPANTS_PER_BOOKING)
    special_requests: Optional[str] = Field(default=None, max_length=500)


class BookingServiceSummary(CamelModel):
    id: int
    name: str
    price: Decimal
    duration: int


class BookingSlotSummary(CamelModel):
    id: int
    start_time: datetime
    end_time: datetime

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()


class BookingRead(CamelModel):
    id: int
    guest_email: str
    guest_name: Optional[str]
    guest_phone: Optional[str]
    time_slot_id: int
    service_id: int
    participant_count: int
    total_price: Decimal
    special_requests: Optional[str]
    status: BookingStatus
    created_at: datetime
    service: BookingServiceSummary
    time_slot: BookingSlotSummary

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(
        cls,
        *,
        booking: Booking,
        slot: TimeSlot,
        service: Service,
        tz: Optional[ZoneInfo] = None,
    ) -> "BookingRead":
        tz = tz or business_tz()
        return cls(
            id=booking.id,
            guest_email=booking.guest_email,
            guest_name=booking.guest_name,
            guest_phone=booking.guest_phone,
            time_slot_id=booking.time_slot_id,
            service_id=booking.service_id,
            participant_count=booking.participant_count,
            total_price=booking.total_price,
            special_requests=booking.special_requests,
            status=booking.status,
            created_at=utc_naive_to_local(booking.created_at, tz),
            service=BookingServiceSummary(
                id=service.id,
                name=service.name,
                price=service.price,
                duration=service.duration_minutes,
            ),
            time_slot=BookingSlotSummary(
                id=slot.id,
                start_time=utc_naive_to_local(slot.start_time, tz),
                end_time=utc_naive_to_local(slot.end_time, tz),
            ),
        )


class BookingSummary(CamelModel):
    participants: int
    total: str
    date: str
    time: str


class BookingCreatedResponse(CamelModel):
    success: bool = True
    message: str
    data: BookingRead
    summary: BookingSummary

    @classmethod
    def from_db(
        cls,
        *,
        booking: Booking,
        slot: TimeSlot,
        service: Service,
        tz: Optional[ZoneInfo] = None,
    ) -> "BookingCreatedResponse":
        tz = tz or business_tz()
        local_start = utc_naive_to_local(slot.start_time, tz)
        return cls(
            message="Booking confirmed",
            data=BookingRead.from_db(booking=booking, slot=slot, service=service, tz=tz),
            summary=BookingSummary(
                participants=booking.participant_count,
                total=format_money(booking.total_price),
                date=format_date(local_start),
                time=format_time(local_start),
            ),
        )


class BookingListItem(CamelModel):
    id: int
    guest_name: Optional[str]
    service: str
    date: str
    time: str
    participants: int
    total: str
    total_price: Decimal
    status: BookingStatus
    special_requests: Optional[str]
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(
        cls,
        *,
        booking: Booking,
        slot: TimeSlot,
        service: Service,
        tz: Optional[ZoneInfo] = None,
    ) -> "BookingListItem":
        tz = tz or business_tz()
        local_start = utc_naive_to_local(slot.start_time, tz)
        return cls(
            id=booking.id,
            guest_name=booking.guest_name,
            service=service.name,
            date=format_date(local_start),
            time=format_time(local_start),
            participants=booking.participant_count,
            total=format_money(booking.total_price),
            total_price=booking.total_price,
            status=booking.status,
            special_requests=booking.special_requests,
            created_at=utc_naive_to_local(booking.created_at, tz),
        )


class BookingListResponse(CamelModel):
    success: bool = True
    count: int
    data: List[BookingListItem]


class BookingCancelData(CamelModel):
    id: int
    status: BookingStatus
    refund: str
    refund_amount: Decimal
    service: str
    message: str


class BookingCancelResponse(CamelModel):
    success: bool = True
    message: str
    data: BookingCancelData

    @classmethod
    def from_db(cls, *, booking: Booking, service: Service) -> "BookingCancelResponse":
        return cls(
            message="Booking cancelled",
            data=BookingCancelData(
                id=booking.id,
                status=booking.status,
                refund=format_money(booking.total_price),
                refund_amount=booking.total_price,
                service=service.name,
                message="The spots are available for booking again",
            ),
        )

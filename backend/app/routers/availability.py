from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ..deps import get_service_repo, get_slot_repo
from ..infrastructure.repositories import SqlAlchemyServiceRepository, SqlAlchemyTimeSlotRepository
from ..schemas import MonthlyCalendarResponse, ServiceAvailabilityResponse
from ..usecases import availability as availability_usecase

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/service/{service_id}", response_model=ServiceAvailabilityResponse)
async def get_service_availability(
    service_id: int = Path(..., ge=1),
    start_date: Optional[date] = Query(default=None, alias="date", description="First day, YYYY-MM-DD"),
    days: int = Query(default=availability_usecase.DEFAULT_WINDOW_DAYS),
    service_repo: SqlAlchemyServiceRepository = Depends(get_service_repo),
    slot_repo: SqlAlchemyTimeSlotRepository = Depends(get_slot_repo),
) -> ServiceAvailabilityResponse:
    result = await availability_usecase.get_service_availability(
        service_repo,
        slot_repo,
        service_id=service_id,
        start_date=start_date,
        days=days,
    )
    return ServiceAvailabilityResponse.from_domain(result)


@router.get("/calendar/{year}/{month}", response_model=MonthlyCalendarResponse)
async def get_monthly_calendar(
    year: int,
    month: int,
    service_repo: SqlAlchemyServiceRepository = Depends(get_service_repo),
    slot_repo: SqlAlchemyTimeSlotRepository = Depends(get_slot_repo),
) -> MonthlyCalendarResponse:
    result = await availability_usecase.get_monthly_calendar(service_repo, slot_repo, year=year, month=month)
    return MonthlyCalendarResponse.from_domain(result)

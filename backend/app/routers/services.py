from fastapi import APIRouter, Depends, Path

from ..deps import get_service_repo, get_slot_repo
from ..infrastructure.repositories import SqlAlchemyServiceRepository, SqlAlchemyTimeSlotRepository
from ..schemas import ServiceDetailRead, ServiceDetailResponse, ServiceListResponse, ServiceRead
from ..usecases import services as service_usecase

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=ServiceListResponse)
async def list_services(
    service_repo: SqlAlchemyServiceRepository = Depends(get_service_repo),
) -> ServiceListResponse:
    services = await service_usecase.list_services(service_repo)
    return ServiceListResponse(count=len(services), data=[ServiceRead.from_db(service=s) for s in services])


@router.get("/{service_id}", response_model=ServiceDetailResponse)
async def get_service(
    service_id: int = Path(..., ge=1),
    service_repo: SqlAlchemyServiceRepository = Depends(get_service_repo),
    slot_repo: SqlAlchemyTimeSlotRepository = Depends(get_slot_repo),
) -> ServiceDetailResponse:
    service, upcoming = await service_usecase.get_service_detail(service_repo, slot_repo, service_id=service_id)
    return ServiceDetailResponse(data=ServiceDetailRead.from_db_with_slots(service=service, slots=upcoming))

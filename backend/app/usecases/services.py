from datetime import datetime

from ..domain.errors import NotFoundError
from ..domain.repositories import ServiceRepository, TimeSlotRepository
from ..models import Service, TimeSlot
from ..utils.time import utc_now_naive

UPCOMING_SLOTS_LIMIT = 10


async def list_services(service_repo: ServiceRepository) -> list[Service]:
    return await service_repo.list_active()


async def get_service_detail(
    service_repo: ServiceRepository,
    slot_repo: TimeSlotRepository,
    *,
    service_id: int,
    now: datetime | None = None,
) -> tuple[Service, list[TimeSlot]]:
    service = await service_repo.get(service_id)
    if service is None or not service.is_active:
        raise NotFoundError("service not found")
    upcoming = await slot_repo.list_bookable(
        start=now or utc_now_naive(),
        service_ids=[service.id],
        limit=UPCOMING_SLOTS_LIMIT,
    )
    return service, upcoming

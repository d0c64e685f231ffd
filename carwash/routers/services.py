from uuid import UUID

from fastapi import APIRouter, Depends, status

from carwash.crud.services import service_crud
from carwash.deps import require_admin
from carwash.errors import NotFound
from carwash.responses import Envelope, ok
from carwash.schemas import (
    ActiveFilter,
    ServiceCreate,
    ServiceDetail,
    ServiceResponse,
    ServiceUpdate,
)

router = APIRouter(prefix="/services", tags=["services"])

SERVICE_NOT_FOUND = "Service not found"


@router.get("", response_model=Envelope[list[ServiceResponse]])
async def list_services(
    filters: ActiveFilter = Depends(),
) -> Envelope[list[ServiceResponse]]:
    services = await service_crud.list_services(is_active=filters.is_active)
    return ok(services, "Services retrieved successfully")


@router.get("/{service_id}", response_model=Envelope[ServiceDetail])
async def get_service(service_id: UUID) -> Envelope[ServiceDetail]:
    service = await service_crud.get_service(service_id)
    if not service:
        raise NotFound(SERVICE_NOT_FOUND)
    return ok(service, "Service retrieved successfully")


@router.post(
    "",
    response_model=Envelope[ServiceResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_service(payload: ServiceCreate) -> Envelope[ServiceResponse]:
    service = await service_crud.create_service(payload)
    return ok(service, "Service created successfully")


@router.put(
    "/{service_id}",
    response_model=Envelope[ServiceResponse],
    dependencies=[Depends(require_admin)],
)
async def update_service(
    service_id: UUID, payload: ServiceUpdate
) -> Envelope[ServiceResponse]:
    service = await service_crud.update_service(service_id, payload)
    if not service:
        raise NotFound(SERVICE_NOT_FOUND)
    return ok(service, "Service updated successfully")


@router.delete(
    "/{service_id}",
    response_model=Envelope[ServiceResponse],
    dependencies=[Depends(require_admin)],
)
async def delete_service(service_id: UUID) -> Envelope[ServiceResponse]:
    """Retires the service; it stays referenced by its past bookings."""
    service = await service_crud.retire_service(service_id)
    if not service:
        raise NotFound(SERVICE_NOT_FOUND)
    return ok(service, "Service deleted successfully")


@router.patch(
    "/{service_id}/activate",
    response_model=Envelope[ServiceResponse],
    dependencies=[Depends(require_admin)],
)
async def activate_service(service_id: UUID) -> Envelope[ServiceResponse]:
    service = await service_crud.activate_service(service_id)
    if not service:
        raise NotFound(SERVICE_NOT_FOUND)
    return ok(service, "Service activated successfully")

from uuid import UUID

from fastapi import APIRouter, Depends, status

from carwash.crud.vehicles import vehicle_crud
from carwash.deps import CurrentUser, get_current_user
from carwash.errors import NotFound
from carwash.responses import Envelope, ok
from carwash.schemas import (
    ActiveFilter,
    VehicleCreate,
    VehicleDetail,
    VehicleResponse,
    VehicleStats,
    VehicleUpdate,
)

router = APIRouter(prefix="/vehicles", tags=["vehicles"])

VEHICLE_NOT_FOUND = "Vehicle not found"


@router.post(
    "", response_model=Envelope[VehicleResponse], status_code=status.HTTP_201_CREATED
)
async def create_vehicle(
    payload: VehicleCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[VehicleResponse]:
    vehicle = await vehicle_crud.create_vehicle(current_user.id, payload)
    return ok(vehicle, "Vehicle added successfully")


@router.get("", response_model=Envelope[list[VehicleResponse]])
async def list_vehicles(
    filters: ActiveFilter = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[list[VehicleResponse]]:
    vehicles = await vehicle_crud.list_vehicles(
        current_user.id, is_active=filters.is_active
    )
    return ok(vehicles, "Vehicles retrieved successfully")


@router.get("/{vehicle_id}", response_model=Envelope[VehicleDetail])
async def get_vehicle(
    vehicle_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[VehicleDetail]:
    vehicle = await vehicle_crud.get_vehicle(vehicle_id, current_user.id)
    if not vehicle:
        raise NotFound(VEHICLE_NOT_FOUND)
    return ok(vehicle, "Vehicle retrieved successfully")


@router.put("/{vehicle_id}", response_model=Envelope[VehicleResponse])
async def update_vehicle(
    vehicle_id: UUID,
    payload: VehicleUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[VehicleResponse]:
    vehicle = await vehicle_crud.update_vehicle(vehicle_id, current_user.id, payload)
    if not vehicle:
        raise NotFound(VEHICLE_NOT_FOUND)
    return ok(vehicle, "Vehicle updated successfully")


@router.delete("/{vehicle_id}", response_model=Envelope[VehicleResponse])
async def delete_vehicle(
    vehicle_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[VehicleResponse]:
    vehicle = await vehicle_crud.retire_vehicle(vehicle_id, current_user.id)
    if not vehicle:
        raise NotFound(VEHICLE_NOT_FOUND)
    return ok(vehicle, "Vehicle deleted successfully")


@router.patch("/{vehicle_id}/activate", response_model=Envelope[VehicleResponse])
async def activate_vehicle(
    vehicle_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[VehicleResponse]:
    vehicle = await vehicle_crud.activate_vehicle(vehicle_id, current_user.id)
    if not vehicle:
        raise NotFound(VEHICLE_NOT_FOUND)
    return ok(vehicle, "Vehicle activated successfully")


@router.get("/{vehicle_id}/stats", response_model=Envelope[VehicleStats])
async def vehicle_stats(
    vehicle_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[VehicleStats]:
    stats = await vehicle_crud.vehicle_stats(vehicle_id, current_user.id)
    if not stats:
        raise NotFound(VEHICLE_NOT_FOUND)
    return ok(stats, "Vehicle statistics retrieved successfully")

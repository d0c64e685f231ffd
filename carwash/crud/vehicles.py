from __future__ import annotations

from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError

from carwash.crud.base import CRUD
from carwash.crud.bookings import booking_crud
from carwash.errors import Conflict
from carwash.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Lifecycle,
    Transaction,
    TransactionStatus,
    Vehicle,
)
from carwash.schemas import (
    VehicleCreate,
    VehicleDetail,
    VehicleResponse,
    VehicleStats,
    VehicleUpdate,
)

RECENT_VEHICLE_BOOKINGS = 5
PLATE_TAKEN = "Plate number already registered"


class VehicleCRUD(CRUD[Vehicle, VehicleResponse]):
    async def _owned(self, vehicle_id: UUID, user_id: UUID) -> Vehicle | None:
        return await Vehicle.get_or_none(id=vehicle_id, user_id=user_id)

    async def list_vehicles(
        self, user_id: UUID, is_active: bool | None = None
    ) -> list[VehicleResponse]:
        qs = Vehicle.filter(user_id=user_id)
        if is_active is not None:
            qs = qs.filter(state=Lifecycle.ACTIVE if is_active else Lifecycle.RETIRED)
        return [self.to_schema(v) for v in await qs.order_by("-created_at")]

    async def get_vehicle(self, vehicle_id: UUID, user_id: UUID) -> VehicleDetail | None:
        vehicle = await self._owned(vehicle_id, user_id)
        if not vehicle:
            return None

        recent = (
            await Booking.filter(vehicle_id=vehicle.id)
            .order_by("-created_at")
            .limit(RECENT_VEHICLE_BOOKINGS)
        )
        return VehicleDetail(
            **self.to_schema(vehicle).model_dump(),
            recent_bookings=await booking_crud.enrich(recent),
        )

    async def create_vehicle(self, user_id: UUID, payload: VehicleCreate) -> VehicleResponse:
        if await Vehicle.exists(plate_number=payload.plate_number):
            raise Conflict(PLATE_TAKEN)
        try:
            vehicle = await Vehicle.create(user_id=user_id, **payload.model_dump())
        except IntegrityError:
            raise Conflict(PLATE_TAKEN) from None

        logger.info("Vehicle {} ({}) added by {}", vehicle.id, vehicle.plate_number, user_id)
        return self.to_schema(vehicle)

    async def update_vehicle(
        self, vehicle_id: UUID, user_id: UUID, payload: VehicleUpdate
    ) -> VehicleResponse | None:
        vehicle = await self._owned(vehicle_id, user_id)
        if not vehicle:
            return None

        changes = payload.model_dump(exclude_none=True)
        plate = changes.get("plate_number")
        if plate and plate != vehicle.plate_number:
            if await Vehicle.filter(plate_number=plate).exclude(id=vehicle.id).exists():
                raise Conflict(PLATE_TAKEN)

        if changes:
            vehicle.update_from_dict(changes)
            try:
                await vehicle.save(update_fields=[*changes, "updated_at"])
            except IntegrityError:
                raise Conflict(PLATE_TAKEN) from None
        return self.to_schema(vehicle)

    async def retire_vehicle(self, vehicle_id: UUID, user_id: UUID) -> VehicleResponse | None:
        vehicle = await self._owned(vehicle_id, user_id)
        if not vehicle:
            return None
        if await Booking.exists(vehicle_id=vehicle.id, status__in=ACTIVE_BOOKING_STATUSES):
            raise Conflict("Cannot delete vehicle with active bookings")
        return await self._set_state(vehicle, Lifecycle.RETIRED)

    async def activate_vehicle(
        self, vehicle_id: UUID, user_id: UUID
    ) -> VehicleResponse | None:
        vehicle = await self._owned(vehicle_id, user_id)
        if not vehicle:
            return None
        return await self._set_state(vehicle, Lifecycle.ACTIVE)

    async def _set_state(self, vehicle: Vehicle, state: Lifecycle) -> VehicleResponse:
        vehicle.state = state
        await vehicle.save(update_fields=["state", "updated_at"])
        return self.to_schema(vehicle)

    async def vehicle_stats(self, vehicle_id: UUID, user_id: UUID) -> VehicleStats | None:
        vehicle = await self._owned(vehicle_id, user_id)
        if not vehicle:
            return None

        statuses = await Booking.filter(vehicle_id=vehicle.id).values_list(
            "status", flat=True
        )
        spent = await Transaction.filter(
            booking__vehicle_id=vehicle.id, status=TransactionStatus.PAID
        ).values_list("amount", flat=True)

        return VehicleStats(
            total_bookings=len(statuses),
            completed_bookings=sum(1 for s in statuses if s == BookingStatus.DONE),
            total_spent=sum(spent),
            vehicle=self.to_schema(vehicle),
        )


vehicle_crud = VehicleCRUD(Vehicle, VehicleResponse)

from __future__ import annotations

from uuid import UUID

from loguru import logger

from carwash.crud.base import CRUD
from carwash.errors import Conflict
from carwash.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Lifecycle,
    Review,
    Service,
)
from carwash.schemas import (
    ServiceCreate,
    ServiceDetail,
    ServiceResponse,
    ServiceUpdate,
)


class ServiceCRUD(CRUD[Service, ServiceResponse]):
    async def list_services(self, is_active: bool | None = None) -> list[ServiceResponse]:
        qs = Service.all()
        if is_active is not None:
            qs = qs.filter(state=Lifecycle.ACTIVE if is_active else Lifecycle.RETIRED)
        return [self.to_schema(s) for s in await qs.order_by("-created_at")]

    async def get_service(self, service_id: UUID) -> ServiceDetail | None:
        service = await Service.get_or_none(id=service_id)
        if not service:
            return None

        total_bookings = await Booking.filter(
            service_id=service.id, status=BookingStatus.DONE
        ).count()
        ratings = await Review.filter(booking__service_id=service.id).values_list(
            "rating", flat=True
        )
        return ServiceDetail(
            **self.to_schema(service).model_dump(),
            total_bookings=total_bookings,
            average_rating=round(sum(ratings) / len(ratings), 1) if ratings else 0,
            total_reviews=len(ratings),
        )

    async def create_service(self, payload: ServiceCreate) -> ServiceResponse:
        service = await Service.create(**payload.model_dump())
        logger.info("Service {} created: {}", service.id, service.name)
        return self.to_schema(service)

    async def update_service(
        self, service_id: UUID, payload: ServiceUpdate
    ) -> ServiceResponse | None:
        service = await Service.get_or_none(id=service_id)
        if not service:
            return None

        changes = payload.model_dump(exclude_none=True)
        if changes:
            service.update_from_dict(changes)
            await service.save(update_fields=[*changes, "updated_at"])
        return self.to_schema(service)

    async def retire_service(self, service_id: UUID) -> ServiceResponse | None:
        service = await Service.get_or_none(id=service_id)
        if not service:
            return None
        if await Booking.exists(service_id=service.id, status__in=ACTIVE_BOOKING_STATUSES):
            raise Conflict("Cannot delete service with active bookings")

        return await self._set_state(service, Lifecycle.RETIRED)

    async def activate_service(self, service_id: UUID) -> ServiceResponse | None:
        service = await Service.get_or_none(id=service_id)
        if not service:
            return None
        return await self._set_state(service, Lifecycle.ACTIVE)

    async def _set_state(self, service: Service, state: Lifecycle) -> ServiceResponse:
        service.state = state
        await service.save(update_fields=["state", "updated_at"])
        logger.info("Service {} is now {}", service.id, state)
        return self.to_schema(service)


service_crud = ServiceCRUD(Service, ServiceResponse)

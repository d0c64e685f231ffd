from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from carwash.crud.base import CRUD, fetch_map
from carwash.errors import Conflict, NotFound
from carwash.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    BookingStatusHistory,
    Lifecycle,
    Review,
    Service,
    Transaction,
    TransactionStatus,
    User,
    Vehicle,
    slot_key,
)
from carwash.responses import Page
from carwash.schemas import (
    AvailableSlots,
    BookingCreate,
    BookingDetail,
    BookingEnriched,
    BookingFilters,
    BookingResponse,
    ReviewResponse,
    ServiceResponse,
    StatusHistoryEntry,
    TransactionResponse,
    UserSummary,
    VehicleResponse,
)

SLOT_TAKEN = "Time slot is already booked"


async def apply_status(booking: Booking, new_status: BookingStatus, notes: str) -> None:
    """
    Persist a status change and append its history row.

    Must run inside a transaction. Keeps `active_slot` in step with the
    status so the unique index only ever holds non-terminal bookings;
    reviving a booking into a slot that someone else now holds raises
    IntegrityError.
    """
    booking.status = new_status
    booking.active_slot = (
        slot_key(booking.date, booking.time_slot)
        if new_status in ACTIVE_BOOKING_STATUSES
        else None
    )
    await booking.save(update_fields=["status", "active_slot", "updated_at"])
    await BookingStatusHistory.create(booking=booking, status=new_status, notes=notes)


class BookingCRUD(CRUD[Booking, BookingResponse]):
    async def enrich(self, bookings: list[Booking]) -> list[BookingEnriched]:
        """Join bookings with their service, vehicle, customer and transaction."""
        if not bookings:
            return []

        parsed = [self.to_schema(b) for b in bookings]

        services = await fetch_map(Service, {b.service_id for b in parsed})
        vehicles = await fetch_map(Vehicle, {b.vehicle_id for b in parsed})
        users = await fetch_map(User, {b.user_id for b in parsed})
        transactions = {
            tx.booking_id: tx
            for tx in await Transaction.filter(booking_id__in=[b.id for b in parsed])
        }

        result = []
        for b in parsed:
            service = services.get(b.service_id)
            vehicle = vehicles.get(b.vehicle_id)
            user = users.get(b.user_id)
            tx = transactions.get(b.id)
            result.append(
                BookingEnriched(
                    **b.model_dump(),
                    service=ServiceResponse.model_validate(service) if service else None,
                    vehicle=VehicleResponse.model_validate(vehicle) if vehicle else None,
                    user=UserSummary.model_validate(user) if user else None,
                    transaction=TransactionResponse.model_validate(tx) if tx else None,
                )
            )
        return result

    async def _enrich_one(self, booking: Booking) -> BookingEnriched:
        return (await self.enrich([booking]))[0]

    async def create_booking(self, user_id: UUID, payload: BookingCreate) -> BookingEnriched:
        """
        Persist a new pending booking after validating:
          - the service exists and is active
          - the vehicle, when given, belongs to the user and is active
          - no pending/processing booking holds the same date + time slot
        The booking and its first history row are written atomically.
        """
        if not await Service.exists(id=payload.service_id, state=Lifecycle.ACTIVE):
            raise NotFound("Service not found or inactive")

        if payload.vehicle_id is not None and not await Vehicle.exists(
            id=payload.vehicle_id, user_id=user_id, state=Lifecycle.ACTIVE
        ):
            raise NotFound("Vehicle not found or not owned by user")

        try:
            # Atomic check-then-insert; active_slot's unique index backs up the
            # lock on backends without SELECT ... FOR UPDATE.
            async with in_transaction():
                if await Booking.filter(
                    date=payload.date,
                    time_slot=payload.time_slot,
                    status__in=ACTIVE_BOOKING_STATUSES,
                ).select_for_update().exists():
                    raise Conflict(SLOT_TAKEN)

                booking = await Booking.create(
                    user_id=user_id,
                    service_id=payload.service_id,
                    vehicle_id=payload.vehicle_id,
                    date=payload.date,
                    time_slot=payload.time_slot,
                    location=payload.location,
                    notes=payload.notes,
                    status=BookingStatus.PENDING,
                    active_slot=slot_key(payload.date, payload.time_slot),
                )
                await BookingStatusHistory.create(
                    booking=booking, status=BookingStatus.PENDING, notes="Booking created"
                )
        except IntegrityError:
            raise Conflict(SLOT_TAKEN) from None

        logger.info(
            "Booking {} created by {} for {} {}",
            booking.id,
            user_id,
            payload.date,
            payload.time_slot,
        )
        return await self._enrich_one(booking)

    async def list_available_slots(self, day: date) -> AvailableSlots:
        taken = await Booking.filter(
            date=day, status__in=ACTIVE_BOOKING_STATUSES
        ).values_list("time_slot", flat=True)
        return AvailableSlots.from_booked(day, taken)

    async def list_bookings(
        self,
        filters: BookingFilters,
        user_id: UUID | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> Page[BookingEnriched]:
        qs = Booking.all()

        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)
        if created_from is not None and created_to is not None:
            qs = qs.filter(created_at__gte=created_from, created_at__lte=created_to)

        rows, pagination = await self.paginate(
            qs.order_by("-created_at"), filters.page, filters.limit
        )
        return Page[BookingEnriched](
            items=await self.enrich(rows), pagination=pagination
        )

    async def list_recent(self, limit: int = 10) -> list[BookingEnriched]:
        return await self.enrich(await Booking.all().order_by("-created_at").limit(limit))

    async def get_booking(
        self, booking_id: UUID, user_id: UUID | None = None
    ) -> Booking | None:
        if user_id is not None:
            return await Booking.get_or_none(id=booking_id, user_id=user_id)
        return await Booking.get_or_none(id=booking_id)

    async def get_booking_detail(
        self, booking_id: UUID, user_id: UUID | None = None
    ) -> BookingDetail | None:
        booking = await self.get_booking(booking_id, user_id=user_id)
        if not booking:
            return None

        enriched = await self._enrich_one(booking)
        review = await Review.get_or_none(booking_id=booking.id)
        history = await BookingStatusHistory.filter(booking_id=booking.id).order_by(
            "-created_at"
        )
        return BookingDetail(
            **enriched.model_dump(),
            review=ReviewResponse.model_validate(review) if review else None,
            status_history=[StatusHistoryEntry.model_validate(h) for h in history],
        )

    async def cancel_booking(
        self, booking_id: UUID, user_id: UUID, reason: str | None = None
    ) -> BookingEnriched:
        """
        Customer cancellation. Only non-terminal bookings can be cancelled;
        a paid transaction is moved to refunded in the same DB transaction.
        """
        async with in_transaction():
            booking = (
                await Booking.filter(id=booking_id, user_id=user_id)
                .select_for_update()
                .first()
            )
            if not booking:
                raise NotFound("Booking not found")
            if booking.status == BookingStatus.CANCELLED:
                raise Conflict("Booking is already cancelled")
            if booking.status == BookingStatus.DONE:
                raise Conflict("Cannot cancel completed booking")

            await apply_status(
                booking, BookingStatus.CANCELLED, reason or "Cancelled by user"
            )

            tx = (
                await Transaction.filter(booking_id=booking.id)
                .select_for_update()
                .first()
            )
            if tx and tx.status == TransactionStatus.PAID:
                tx.status = TransactionStatus.REFUNDED
                await tx.save(update_fields=["status", "updated_at"])
                logger.info("Transaction {} refunded after cancellation", tx.id)

        logger.info("Booking {} cancelled by {}", booking.id, user_id)
        return await self._enrich_one(booking)

    async def admin_update_status(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        notes: str | None = None,
    ) -> BookingEnriched | None:
        """
        Operator override: writes any status without the transition graph.
        The slot invariant still applies when reviving a terminal booking.
        """
        try:
            async with in_transaction():
                booking = (
                    await Booking.filter(id=booking_id).select_for_update().first()
                )
                if not booking:
                    return None
                old_status = booking.status
                await apply_status(
                    booking, new_status, notes or f"Status set to {new_status} by admin"
                )
        except IntegrityError:
            raise Conflict(SLOT_TAKEN) from None

        logger.warning(
            "Admin override: booking {} {} -> {}", booking.id, old_status, new_status
        )
        return await self._enrich_one(booking)


booking_crud = BookingCRUD(Booking, BookingResponse)

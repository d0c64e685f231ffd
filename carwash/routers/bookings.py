from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from carwash.cache import cache_booked_slots, get_booked_slots, invalidate_slots_cache
from carwash.crud.bookings import booking_crud
from carwash.deps import CurrentUser, get_current_user
from carwash.errors import NotFound
from carwash.rate_limit import booking_limiter
from carwash.responses import Envelope, Page, ok
from carwash.schemas import (
    AvailableSlots,
    BookingCancel,
    BookingCreate,
    BookingDetail,
    BookingEnriched,
    BookingFilters,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/available-slots", response_model=Envelope[AvailableSlots])
async def available_slots(
    day: date = Query(alias="date", description="YYYY-MM-DD"),
) -> Envelope[AvailableSlots]:
    """
    Public: which catalog slots are still free on `date`.
    Only pending/processing bookings hold a slot.
    """
    booked = await get_booked_slots(day)
    if booked is not None:
        logger.debug("Cache hit for booked slots: date={}", day)
        slots = AvailableSlots.from_booked(day, booked)
    else:
        logger.debug("Cache miss for booked slots: date={}", day)
        slots = await booking_crud.list_available_slots(day)
        await cache_booked_slots(day, slots.booked_slots)
    return ok(slots, "Available slots retrieved successfully")


@router.post(
    "",
    response_model=Envelope[BookingEnriched],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(get_current_user), Depends(booking_limiter)],
)
async def create_booking(
    payload: BookingCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[BookingEnriched]:
    booking = await booking_crud.create_booking(current_user.id, payload)
    await invalidate_slots_cache(payload.date)
    return ok(booking, "Booking created successfully")


@router.get("", response_model=Envelope[Page[BookingEnriched]])
async def list_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[Page[BookingEnriched]]:
    page = await booking_crud.list_bookings(filters, user_id=current_user.id)
    return ok(page, "Bookings retrieved successfully")


@router.get("/{booking_id}", response_model=Envelope[BookingDetail])
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[BookingDetail]:
    booking = await booking_crud.get_booking_detail(booking_id, user_id=current_user.id)
    if not booking:
        raise NotFound("Booking not found")
    return ok(booking, "Booking retrieved successfully")


@router.patch("/{booking_id}/cancel", response_model=Envelope[BookingEnriched])
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancel | None = None,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[BookingEnriched]:
    booking = await booking_crud.cancel_booking(
        booking_id, current_user.id, reason=payload.reason if payload else None
    )
    await invalidate_slots_cache(booking.date)
    return ok(booking, "Booking cancelled successfully")

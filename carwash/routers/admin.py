from uuid import UUID

from fastapi import APIRouter, Depends

from carwash.cache import invalidate_slots_cache
from carwash.crud import reports
from carwash.crud.bookings import booking_crud
from carwash.crud.users import user_crud
from carwash.deps import require_admin
from carwash.errors import NotFound
from carwash.rate_limit import admin_limiter
from carwash.responses import Envelope, Page, ok
from carwash.schemas import (
    AdminBookingFilters,
    BookingEnriched,
    BookingStatusUpdate,
    DashboardPeriod,
    DashboardStats,
    FinancialReport,
    FinancialReportQuery,
    UserFilters,
    UserPublic,
)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin), Depends(admin_limiter)],
)


@router.get("/dashboard", response_model=Envelope[DashboardStats])
async def dashboard(period: str = DashboardPeriod.TODAY) -> Envelope[DashboardStats]:
    """Unknown periods fall back to today."""
    stats = await reports.dashboard(period)
    return ok(stats, "Dashboard statistics retrieved successfully")


@router.get("/bookings", response_model=Envelope[Page[BookingEnriched]])
async def list_bookings(
    filters: AdminBookingFilters = Depends(),
) -> Envelope[Page[BookingEnriched]]:
    created_from = created_to = None
    if filters.start_date is not None and filters.end_date is not None:
        created_from = reports.as_utc(filters.start_date)
        created_to = reports.as_utc(filters.end_date)

    page = await booking_crud.list_bookings(
        filters, created_from=created_from, created_to=created_to
    )
    return ok(page, "Bookings retrieved successfully")


@router.patch("/bookings/{booking_id}/status", response_model=Envelope[BookingEnriched])
async def update_booking_status(
    booking_id: UUID, payload: BookingStatusUpdate
) -> Envelope[BookingEnriched]:
    booking = await booking_crud.admin_update_status(
        booking_id, payload.status, payload.notes
    )
    if not booking:
        raise NotFound("Booking not found")
    await invalidate_slots_cache(booking.date)
    return ok(booking, "Booking status updated successfully")


@router.get("/financial-report", response_model=Envelope[FinancialReport])
async def financial_report(
    query: FinancialReportQuery = Depends(),
) -> Envelope[FinancialReport]:
    report = await reports.financial_report(
        query.start_date, query.end_date, query.group_by
    )
    return ok(report, "Financial report generated successfully")


@router.get("/users", response_model=Envelope[Page[UserPublic]])
async def list_users(filters: UserFilters = Depends()) -> Envelope[Page[UserPublic]]:
    page = await user_crud.list_users(filters)
    return ok(page, "Users retrieved successfully")

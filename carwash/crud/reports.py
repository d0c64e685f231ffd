from __future__ import annotations

import asyncio
import calendar
from datetime import UTC, date, datetime, time, timedelta

from carwash.crud.bookings import booking_crud
from carwash.models import (
    Booking,
    BookingStatus,
    Role,
    Service,
    Transaction,
    TransactionStatus,
    User,
)
from carwash.schemas import (
    BookingCounts,
    ChartPoint,
    DashboardPeriod,
    DashboardStats,
    FinancialReport,
    GroupBy,
    ReportPeriod,
    ReportSummary,
    Total,
)

REPORT_DEFAULT_DAYS = 30
RECENT_BOOKINGS = 10


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes from query strings are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def one_month_before(moment: datetime) -> datetime:
    year, month = moment.year, moment.month - 1
    if month == 0:
        year, month = year - 1, 12
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: DashboardPeriod | str, now: datetime) -> datetime:
    if period == DashboardPeriod.WEEK:
        return now - timedelta(days=7)
    if period == DashboardPeriod.MONTH:
        return one_month_before(now)
    # today, and anything unrecognised
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)


def week_start(day: date) -> date:
    """Sunday on or before `day`."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def bucket_key(moment: datetime, group_by: GroupBy) -> str:
    day = as_utc(moment).date()
    if group_by == GroupBy.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if group_by == GroupBy.WEEK:
        return week_start(day).isoformat()
    return day.isoformat()


def build_chart(
    rows: list[tuple[datetime, int]], group_by: GroupBy
) -> list[ChartPoint]:
    """Bucket (created_at, amount) pairs, ordered by bucket key."""
    buckets: dict[str, list[int]] = {}
    for created_at, amount in sorted(rows, key=lambda r: r[0]):
        revenue_count = buckets.setdefault(bucket_key(created_at, group_by), [0, 0])
        revenue_count[0] += amount
        revenue_count[1] += 1
    return [
        ChartPoint(date=key, revenue=revenue, count=count)
        for key, (revenue, count) in sorted(buckets.items())
    ]


def summarize(amounts: list[int]) -> ReportSummary:
    total = sum(amounts)
    return ReportSummary(
        total_revenue=total,
        total_transactions=len(amounts),
        average_transaction=round(total / len(amounts), 2) if amounts else 0,
    )


async def _paid_revenue(start: datetime, end: datetime) -> int:
    amounts = await Transaction.filter(
        status=TransactionStatus.PAID, created_at__gte=start, created_at__lte=end
    ).values_list("amount", flat=True)
    return sum(amounts)


async def _booking_counts(start: datetime, end: datetime) -> BookingCounts:
    statuses = await Booking.filter(
        created_at__gte=start, created_at__lte=end
    ).values_list("status", flat=True)
    counts = {s: 0 for s in BookingStatus}
    for s in statuses:
        counts[BookingStatus(s)] += 1
    return BookingCounts(
        total=len(statuses),
        pending=counts[BookingStatus.PENDING],
        processing=counts[BookingStatus.PROCESSING],
        completed=counts[BookingStatus.DONE],
        cancelled=counts[BookingStatus.CANCELLED],
    )


async def dashboard(
    period: DashboardPeriod | str, now: datetime | None = None
) -> DashboardStats:
    now = now or utcnow()
    start = period_start(period, now)
    try:
        period = DashboardPeriod(period)
    except ValueError:
        period = DashboardPeriod.TODAY

    bookings, revenue, new_users, services, recent = await asyncio.gather(
        _booking_counts(start, now),
        _paid_revenue(start, now),
        User.filter(role=Role.USER, created_at__gte=start, created_at__lte=now).count(),
        Service.all().count(),
        booking_crud.list_recent(RECENT_BOOKINGS),
    )

    return DashboardStats(
        period=period,
        start=start,
        end=now,
        bookings=bookings,
        revenue=Total(total=revenue),
        users=Total(total=new_users),
        services=Total(total=services),
        recent_bookings=recent,
    )


async def financial_report(
    start_date: datetime | None,
    end_date: datetime | None,
    group_by: GroupBy = GroupBy.DAY,
    now: datetime | None = None,
) -> FinancialReport:
    if start_date is not None and end_date is not None:
        start, end = as_utc(start_date), as_utc(end_date)
    else:
        end = now or utcnow()
        start = end - timedelta(days=REPORT_DEFAULT_DAYS)

    rows = await Transaction.filter(
        status=TransactionStatus.PAID, created_at__gte=start, created_at__lte=end
    ).values_list("created_at", "amount")

    return FinancialReport(
        period=ReportPeriod(start=start, end=end),
        summary=summarize([amount for _, amount in rows]),
        chart_data=build_chart(list(rows), group_by),
    )

from __future__ import annotations

import datetime as dt
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from carwash import settings
from carwash.models import (
    BookingStatus,
    Lifecycle,
    PaymentMethod,
    Role,
    TransactionStatus,
    VehicleType,
)
from carwash.validation import (
    has_min_length,
    is_catalog_time_slot,
    is_past_date,
    is_valid_booking_status,
    is_valid_email,
    is_valid_payment_method,
    is_valid_phone,
    is_valid_plate_number,
    is_valid_rating,
    is_valid_time_slot_format,
    is_valid_transaction_status,
    is_valid_vehicle_type,
    is_valid_year,
    normalize_plate_number,
)

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class PageParams(BaseModel):
    """Bind to a FastAPI route via Depends(PageParams)."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


def _min_length(value: str | None, length: int, message: str) -> str:
    if not isinstance(value, str) or not has_min_length(value, length):
        raise ValueError(message)
    return value.strip()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserRegister(BaseModel):
    name: str
    email: str
    password: str
    phone: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: str) -> str:
        return _min_length(v, 2, "Name must be at least 2 characters long")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_email(v.strip()):
            raise ValueError("Valid email is required")
        return v.strip().lower()

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not isinstance(v, str) or len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v

    @field_validator("phone", mode="before")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        if not isinstance(v, str) or not is_valid_phone(v):
            raise ValueError("Invalid phone number format")
        return v


class UserLogin(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(BaseModel):
    name: str | None = None
    email: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        return _min_length(v, 2, "Name must be at least 2 characters long")

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        if not isinstance(v, str) or not is_valid_email(v.strip()):
            raise ValueError("Valid email is required")
        return v.strip().lower()

    @model_validator(mode="after")
    def require_one_field(self) -> ProfileUpdate:
        if self.name is None and self.email is None:
            raise ValueError("At least one field (name or email) is required")
        return self


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password", mode="before")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        if not isinstance(v, str) or len(v) < 6:
            raise ValueError("New password must be at least 6 characters long")
        return v


class UserSummary(BaseModel):
    id: UUID
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserPublic(UserSummary):
    phone: str | None = None
    role: Role
    created_at: dt.datetime


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserPublic


class UserFilters(PageParams):
    role: Role | None = None


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class ServiceCreate(BaseModel):
    name: str
    description: str
    price: int = Field(gt=0, description="Smallest currency unit")
    duration: int = Field(gt=0, description="Minutes")

    @field_validator("name", "description", mode="before")
    @classmethod
    def check_text(cls, v: str) -> str:
        return _min_length(v, 1, "Field is required")


class ServiceUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    price: int | None = Field(default=None, gt=0)
    duration: int | None = Field(default=None, gt=0)

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        return _min_length(v, 1, "Field must not be blank")


class ServiceResponse(BaseModel):
    id: UUID
    name: str
    description: str
    price: int
    duration: int
    state: Lifecycle
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class ServiceDetail(ServiceResponse):
    total_bookings: int
    average_rating: float
    total_reviews: int


class ActiveFilter(BaseModel):
    is_active: bool | None = None


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------


class VehicleCreate(BaseModel):
    brand: str
    model: str
    year: int
    color: str
    plate_number: str
    vehicle_type: VehicleType

    @field_validator("brand", "model", "color", mode="before")
    @classmethod
    def check_text(cls, v: str, info) -> str:
        return _min_length(
            v, 2, f"{info.field_name.capitalize()} must be at least 2 characters long"
        )

    @field_validator("year", mode="before")
    @classmethod
    def check_year(cls, v: int) -> int:
        if not isinstance(v, int) or isinstance(v, bool) or not is_valid_year(v):
            raise ValueError("Valid year is required")
        return v

    @field_validator("plate_number", mode="before")
    @classmethod
    def check_plate(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_plate_number(v):
            raise ValueError("Valid Indonesian plate number is required")
        return normalize_plate_number(v)

    @field_validator("vehicle_type", mode="before")
    @classmethod
    def check_vehicle_type(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_vehicle_type(v):
            raise ValueError('Vehicle type must be either "car" or "motorcycle"')
        return v


class VehicleUpdate(BaseModel):
    brand: str | None = None
    model: str | None = None
    year: int | None = None
    color: str | None = None
    plate_number: str | None = None
    vehicle_type: VehicleType | None = None

    @field_validator("brand", "model", "color", mode="before")
    @classmethod
    def check_text(cls, v: str | None, info) -> str | None:
        if v in (None, ""):
            return None
        return _min_length(
            v, 2, f"{info.field_name.capitalize()} must be at least 2 characters long"
        )

    @field_validator("year", mode="before")
    @classmethod
    def check_year(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if not isinstance(v, int) or isinstance(v, bool) or not is_valid_year(v):
            raise ValueError("Valid year is required")
        return v

    @field_validator("plate_number", mode="before")
    @classmethod
    def check_plate(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        if not isinstance(v, str) or not is_valid_plate_number(v):
            raise ValueError("Valid Indonesian plate number is required")
        return normalize_plate_number(v)

    @field_validator("vehicle_type", mode="before")
    @classmethod
    def check_vehicle_type(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        if not isinstance(v, str) or not is_valid_vehicle_type(v):
            raise ValueError('Vehicle type must be either "car" or "motorcycle"')
        return v


class VehicleResponse(BaseModel):
    id: UUID
    user_id: UUID
    brand: str
    model: str
    year: int
    color: str
    plate_number: str
    vehicle_type: VehicleType
    state: Lifecycle
    is_active: bool
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    service_id: UUID
    vehicle_id: UUID | None = None
    date: dt.date
    time_slot: str
    location: str
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("date", mode="after")
    @classmethod
    def reject_past_date(cls, v: dt.date) -> dt.date:
        if is_past_date(v):
            raise ValueError("Booking date cannot be in the past")
        return v

    @field_validator("time_slot", mode="before")
    @classmethod
    def check_time_slot(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_time_slot_format(v):
            raise ValueError("Valid time slot is required (format: HH:MM-HH:MM)")
        if not is_catalog_time_slot(v):
            raise ValueError("Time slot is not offered")
        return v

    @field_validator("location", mode="before")
    @classmethod
    def check_location(cls, v: str) -> str:
        return _min_length(v, 5, "Location must be at least 5 characters long")


class BookingCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_booking_status(v):
            raise ValueError("Invalid status value")
        return v


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    service_id: UUID
    vehicle_id: UUID | None
    date: dt.date
    time_slot: str
    location: str
    notes: str | None
    status: BookingStatus
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    id: UUID
    booking_id: UUID
    user_id: UUID
    amount: int
    method: PaymentMethod
    status: TransactionStatus
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewResponse(BaseModel):
    id: UUID
    user_id: UUID
    booking_id: UUID
    rating: int
    comment: str | None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class StatusHistoryEntry(BaseModel):
    id: UUID
    status: BookingStatus
    notes: str | None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class BookingEnriched(BookingResponse):
    """Booking joined with its service, vehicle, customer and payment."""

    service: ServiceResponse | None = None
    vehicle: VehicleResponse | None = None
    user: UserSummary | None = None
    transaction: TransactionResponse | None = None


class BookingDetail(BookingEnriched):
    review: ReviewResponse | None = None
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)


class AvailableSlots(BaseModel):
    date: dt.date
    available_slots: list[str]
    booked_slots: list[str]

    @classmethod
    def from_booked(cls, day: dt.date, booked: set[str] | list[str]) -> AvailableSlots:
        """Split the slot catalog by the slots held on `day`, in catalog order."""
        held = set(booked)
        return cls(
            date=day,
            available_slots=[s for s in settings.TIME_SLOTS if s not in held],
            booked_slots=[s for s in settings.TIME_SLOTS if s in held],
        )


class BookingFilters(PageParams):
    status: BookingStatus | None = None


class AdminBookingFilters(BookingFilters):
    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionCreate(BaseModel):
    booking_id: UUID
    amount: int
    method: PaymentMethod

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, v: int) -> int:
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("method", mode="before")
    @classmethod
    def check_method(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_payment_method(v):
            raise ValueError("Invalid payment method")
        return v


class TransactionStatusUpdate(BaseModel):
    status: TransactionStatus

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: str) -> str:
        if not isinstance(v, str) or not is_valid_transaction_status(v):
            raise ValueError("Invalid transaction status")
        return v


class TransactionDetail(TransactionResponse):
    booking: BookingEnriched | None = None


class TransactionFilters(PageParams):
    status: TransactionStatus | None = None


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


def _check_rating(v: int) -> int:
    if not is_valid_rating(v):
        raise ValueError("Rating must be an integer between 1 and 5")
    return v


def _check_comment(v: str | None) -> str | None:
    if v is None:
        return None
    if not isinstance(v, str):
        raise ValueError("Comment must be a string")
    v = v.strip()
    if len(v) > 500:
        raise ValueError("Comment must not exceed 500 characters")
    return v or None


class ReviewCreate(BaseModel):
    booking_id: UUID
    rating: int
    comment: str | None = None

    check_rating = field_validator("rating", mode="before")(_check_rating)
    check_comment = field_validator("comment", mode="before")(_check_comment)


class ReviewUpdate(BaseModel):
    rating: int | None = None
    comment: str | None = None

    @field_validator("rating", mode="before")
    @classmethod
    def check_rating(cls, v: int | None) -> int | None:
        return None if v is None else _check_rating(v)

    check_comment = field_validator("comment", mode="before")(_check_comment)


class ReviewDetail(ReviewResponse):
    user: UserSummary | None = None
    service: ServiceResponse | None = None
    vehicle: VehicleResponse | None = None


class ReviewFilters(PageParams):
    rating: int | None = Field(default=None, ge=1, le=5)
    service_id: UUID | None = None


class RatingBucket(BaseModel):
    rating: int
    count: int


class ReviewStats(BaseModel):
    total_reviews: int
    average_rating: float
    rating_distribution: list[RatingBucket]


# ---------------------------------------------------------------------------
# Vehicles (composite views)
# ---------------------------------------------------------------------------


class VehicleDetail(VehicleResponse):
    recent_bookings: list[BookingEnriched] = Field(default_factory=list)


class VehicleStats(BaseModel):
    total_bookings: int
    completed_bookings: int
    total_spent: int
    vehicle: VehicleResponse


# ---------------------------------------------------------------------------
# Admin reporting
# ---------------------------------------------------------------------------


class DashboardPeriod(StrEnum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class GroupBy(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class BookingCounts(BaseModel):
    total: int
    pending: int
    processing: int
    completed: int
    cancelled: int


class Total(BaseModel):
    total: int


class DashboardStats(BaseModel):
    period: DashboardPeriod
    start: dt.datetime
    end: dt.datetime
    bookings: BookingCounts
    revenue: Total
    users: Total
    services: Total
    recent_bookings: list[BookingEnriched]


class ReportPeriod(BaseModel):
    start: dt.datetime
    end: dt.datetime


class ReportSummary(BaseModel):
    total_revenue: int
    total_transactions: int
    average_transaction: float


class ChartPoint(BaseModel):
    date: str
    revenue: int
    count: int


class FinancialReport(BaseModel):
    period: ReportPeriod
    summary: ReportSummary
    chart_data: list[ChartPoint]


class FinancialReportQuery(BaseModel):
    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None
    group_by: GroupBy = GroupBy.DAY

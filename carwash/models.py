from datetime import date
from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"


class Lifecycle(StrEnum):
    ACTIVE = "active"  # accepts new bookings
    RETIRED = "retired"  # soft-deleted, kept for booking/transaction history


class VehicleType(StrEnum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"


class BookingStatus(StrEnum):
    PENDING = "pending"  # just created, awaiting payment
    PROCESSING = "processing"  # paid, wash scheduled or in progress
    DONE = "done"  # service delivered
    CANCELLED = "cancelled"  # cancelled by customer, admin or failed payment


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.PROCESSING)
TERMINAL_BOOKING_STATUSES = (BookingStatus.DONE, BookingStatus.CANCELLED)


class PaymentMethod(StrEnum):
    EWALLET = "ewallet"
    TRANSFER = "transfer"
    CASH = "cash"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


def slot_key(day: date, time_slot: str) -> str:
    return f"{day.isoformat()}|{time_slot}"


class TimestampedModel(Model):
    id = fields.UUIDField(primary_key=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        abstract = True


class LifecycleMixin:
    state: Lifecycle

    @property
    def is_active(self) -> bool:
        return self.state == Lifecycle.ACTIVE


class User(TimestampedModel):
    name = fields.CharField(max_length=100)
    email = fields.CharField(max_length=255, unique=True)
    phone = fields.CharField(max_length=20, null=True)
    password_hash = fields.CharField(max_length=255)
    role = fields.CharEnumField(Role, default=Role.USER)

    class Meta:  # type: ignore
        table = "users"
        ordering = ["-created_at"]


class Service(LifecycleMixin, TimestampedModel):
    name = fields.CharField(max_length=100)
    description = fields.TextField()
    price = fields.IntField()  # smallest currency unit
    duration = fields.IntField()  # minutes
    state = fields.CharEnumField(Lifecycle, default=Lifecycle.ACTIVE)

    class Meta:  # type: ignore
        table = "services"
        ordering = ["-created_at"]


class Vehicle(LifecycleMixin, TimestampedModel):
    user: fields.ForeignKeyRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="vehicles"
    )
    brand = fields.CharField(max_length=50)
    model = fields.CharField(max_length=50)
    year = fields.IntField()
    color = fields.CharField(max_length=30)
    plate_number = fields.CharField(max_length=20, unique=True)  # upper-case
    vehicle_type = fields.CharEnumField(VehicleType)
    state = fields.CharEnumField(Lifecycle, default=Lifecycle.ACTIVE)

    class Meta:  # type: ignore
        table = "vehicles"
        ordering = ["-created_at"]


class Booking(TimestampedModel):
    user: fields.ForeignKeyRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="bookings"
    )
    service: fields.ForeignKeyRelation[Service] = fields.ForeignKeyField(
        "models.Service", related_name="bookings", on_delete=fields.RESTRICT
    )
    vehicle: fields.ForeignKeyNullableRelation[Vehicle] = fields.ForeignKeyField(
        "models.Vehicle",
        related_name="bookings",
        null=True,
        on_delete=fields.SET_NULL,
    )

    date = fields.DateField()
    time_slot = fields.CharField(max_length=11)
    location = fields.CharField(max_length=255)
    notes = fields.TextField(null=True)
    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)

    # "<date>|<time_slot>" while pending/processing, NULL once terminal.
    # The unique index is the store-level guard against double booking.
    active_slot = fields.CharField(max_length=32, null=True, unique=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]


class BookingStatusHistory(Model):
    id = fields.UUIDField(primary_key=True)
    booking: fields.ForeignKeyRelation[Booking] = fields.ForeignKeyField(
        "models.Booking", related_name="status_history"
    )
    status = fields.CharEnumField(BookingStatus)
    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        table = "booking_status_history"
        ordering = ["-created_at"]


class Transaction(TimestampedModel):
    booking: fields.OneToOneRelation[Booking] = fields.OneToOneField(
        "models.Booking", related_name="transaction"
    )
    user: fields.ForeignKeyRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="transactions"
    )
    amount = fields.IntField()
    method = fields.CharEnumField(PaymentMethod)
    status = fields.CharEnumField(TransactionStatus, default=TransactionStatus.PENDING)

    class Meta:  # type: ignore
        table = "transactions"
        ordering = ["-created_at"]


class Review(TimestampedModel):
    user: fields.ForeignKeyRelation[User] = fields.ForeignKeyField(
        "models.User", related_name="reviews"
    )
    booking: fields.OneToOneRelation[Booking] = fields.OneToOneField(
        "models.Booking", related_name="review"
    )
    rating = fields.SmallIntField()
    comment = fields.CharField(max_length=500, null=True)

    class Meta:  # type: ignore
        table = "reviews"
        ordering = ["-created_at"]

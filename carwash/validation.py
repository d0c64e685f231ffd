"""
Pure predicates used by the request schemas.

They never raise; callers collect every failing rule so a client sees the
whole list of problems in one response.
"""

import re
from datetime import date

from carwash import settings
from carwash.models import (
    BookingStatus,
    PaymentMethod,
    TransactionStatus,
    VehicleType,
)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^(\+62|62|0)[0-9]{9,13}$")
_PLATE_RE = re.compile(r"^[A-Z]{1,2}\s?\d{1,4}\s?[A-Z]{1,3}$")
_TIME_SLOT_RE = re.compile(
    r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]-([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def is_valid_phone(phone: str) -> bool:
    """Indonesian mobile numbers: +62 / 62 / 0 prefix followed by 9-13 digits."""
    return bool(_PHONE_RE.match(phone))


def normalize_plate_number(plate_number: str) -> str:
    return plate_number.strip().upper()


def is_valid_plate_number(plate_number: str) -> bool:
    """Indonesian plates, e.g. "B 1234 ABC" or "D1234XY"."""
    return bool(_PLATE_RE.match(normalize_plate_number(plate_number)))


def is_valid_rating(rating: object) -> bool:
    return isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5


def is_valid_time_slot_format(time_slot: str) -> bool:
    return bool(_TIME_SLOT_RE.match(time_slot))


def is_catalog_time_slot(time_slot: str) -> bool:
    return time_slot in settings.TIME_SLOTS


def is_valid_year(year: int, today: date | None = None) -> bool:
    today = today or date.today()
    return 1900 <= year <= today.year + 1


def is_past_date(day: date, today: date | None = None) -> bool:
    return day < (today or date.today())


def has_min_length(value: str | None, length: int) -> bool:
    return value is not None and len(value.strip()) >= length


def is_valid_booking_status(value: str) -> bool:
    return value in BookingStatus._value2member_map_


def is_valid_transaction_status(value: str) -> bool:
    return value in TransactionStatus._value2member_map_


def is_valid_payment_method(value: str) -> bool:
    return value in PaymentMethod._value2member_map_


def is_valid_vehicle_type(value: str) -> bool:
    return value in VehicleType._value2member_map_

"""Endpoint tests for /vehicles plus plate uniqueness and stats against the DB."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from carwash.crud.bookings import booking_crud
from carwash.crud.vehicles import vehicle_crud
from carwash.errors import Conflict
from carwash.models import BookingStatus, Service, Transaction, TransactionStatus, User
from carwash.schemas import BookingCreate, VehicleCreate, VehicleUpdate

from .factories import (
    CUSTOMER_ID,
    VEHICLE_ID,
    future_day,
    vehicle_create_payload,
    vehicle_response,
)

CRUD_PATH = "carwash.routers.vehicles.vehicle_crud"


class TestVehicleRoutes:
    def test_create(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_vehicle = AsyncMock(return_value=vehicle_response())
            resp = customer_client.post("/vehicles", json=vehicle_create_payload())
        assert resp.status_code == 201
        user_id, payload = mock_crud.create_vehicle.call_args[0]
        assert user_id == CUSTOMER_ID
        assert payload.plate_number == "B 1234 ABC"

    def test_invalid_plate(self, customer_client):
        resp = customer_client.post(
            "/vehicles", json=vehicle_create_payload(plate_number="12-AB")
        )
        assert resp.status_code == 400
        assert resp.json()["details"] == [
            "plate_number: Valid Indonesian plate number is required"
        ]

    def test_requires_auth(self, anon_client):
        assert anon_client.get("/vehicles").status_code == 401

    def test_get_other_users_vehicle_is_404(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_vehicle = AsyncMock(return_value=None)
            resp = customer_client.get(f"/vehicles/{VEHICLE_ID}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Vehicle not found"

    def test_duplicate_plate(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_vehicle = AsyncMock(
                side_effect=Conflict("Plate number already registered")
            )
            resp = customer_client.post("/vehicles", json=vehicle_create_payload())
        assert resp.status_code == 400


async def _user(email: str = "u@test.com") -> User:
    return await User.create(name="Test User", email=email, password_hash="x")


@pytest.mark.anyio
class TestVehicleCrud:
    async def test_plate_is_globally_unique(self, db):
        me, other = await _user(), await _user("o@test.com")
        await vehicle_crud.create_vehicle(me.id, VehicleCreate(**vehicle_create_payload()))

        with pytest.raises(Conflict):
            await vehicle_crud.create_vehicle(
                other.id, VehicleCreate(**vehicle_create_payload(plate_number="b 1234 abc"))
            )

    async def test_update_to_taken_plate_conflicts(self, db):
        me = await _user()
        await vehicle_crud.create_vehicle(me.id, VehicleCreate(**vehicle_create_payload()))
        second = await vehicle_crud.create_vehicle(
            me.id, VehicleCreate(**vehicle_create_payload(plate_number="D 55 XY"))
        )

        with pytest.raises(Conflict):
            await vehicle_crud.update_vehicle(
                second.id, me.id, VehicleUpdate(plate_number="B 1234 ABC")
            )

    async def test_update_same_plate_is_fine(self, db):
        me = await _user()
        vehicle = await vehicle_crud.create_vehicle(
            me.id, VehicleCreate(**vehicle_create_payload())
        )

        updated = await vehicle_crud.update_vehicle(
            vehicle.id, me.id, VehicleUpdate(plate_number="B 1234 ABC", color="Hitam")
        )

        assert updated.color == "Hitam"

    async def test_retire_blocked_by_active_booking_then_allowed(self, db):
        me = await _user()
        service = await Service.create(
            name="Cuci Mobil Reguler", description="Cuci", price=25000, duration=30
        )
        vehicle = await vehicle_crud.create_vehicle(
            me.id, VehicleCreate(**vehicle_create_payload())
        )
        booking = await booking_crud.create_booking(
            me.id,
            BookingCreate(
                service_id=service.id,
                vehicle_id=vehicle.id,
                date=future_day(),
                time_slot="08:00-09:00",
                location="Jl. Sudirman No. 1",
            ),
        )

        with pytest.raises(Conflict):
            await vehicle_crud.retire_vehicle(vehicle.id, me.id)

        await booking_crud.cancel_booking(booking.id, me.id)
        retired = await vehicle_crud.retire_vehicle(vehicle.id, me.id)
        assert retired.is_active is False

    async def test_stats_and_recent_bookings(self, db):
        me = await _user()
        service = await Service.create(
            name="Cuci Mobil Reguler", description="Cuci", price=25000, duration=30
        )
        vehicle = await vehicle_crud.create_vehicle(
            me.id, VehicleCreate(**vehicle_create_payload())
        )
        for slot in ("08:00-09:00", "09:00-10:00"):
            booking = await booking_crud.create_booking(
                me.id,
                BookingCreate(
                    service_id=service.id,
                    vehicle_id=vehicle.id,
                    date=future_day(),
                    time_slot=slot,
                    location="Jl. Sudirman No. 1",
                ),
            )
        await booking_crud.admin_update_status(booking.id, BookingStatus.DONE)
        await Transaction.create(
            booking_id=booking.id,
            user=me,
            amount=25000,
            method="cash",
            status=TransactionStatus.PAID,
        )

        stats = await vehicle_crud.vehicle_stats(vehicle.id, me.id)
        detail = await vehicle_crud.get_vehicle(vehicle.id, me.id)

        assert stats.total_bookings == 2
        assert stats.completed_bookings == 1
        assert stats.total_spent == 25000
        assert len(detail.recent_bookings) == 2

    async def test_other_user_cannot_see_vehicle(self, db):
        me, other = await _user(), await _user("o@test.com")
        vehicle = await vehicle_crud.create_vehicle(
            me.id, VehicleCreate(**vehicle_create_payload())
        )
        assert await vehicle_crud.get_vehicle(vehicle.id, other.id) is None

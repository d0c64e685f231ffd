"""Endpoint tests for /services plus retire/activate rules against the DB."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from carwash.crud.bookings import booking_crud
from carwash.crud.services import service_crud
from carwash.errors import Conflict
from carwash.models import BookingStatus, Lifecycle, Review, User
from carwash.schemas import BookingCreate, ServiceCreate, ServiceUpdate

from .factories import SERVICE_ID, future_day, service_response

CRUD_PATH = "carwash.routers.services.service_crud"

NEW_SERVICE = {
    "name": "Cuci Mobil Premium",
    "description": "Cuci lengkap dan wax",
    "price": 50000,
    "duration": 60,
}


class TestServiceRoutes:
    def test_list_is_public(self, anon_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.list_services = AsyncMock(return_value=[service_response()])
            resp = anon_client.get("/services", params={"is_active": "true"})
        assert resp.status_code == 200
        assert resp.json()["data"][0]["is_active"] is True
        mock_crud.list_services.assert_awaited_once_with(is_active=True)

    def test_detail_not_found(self, anon_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_service = AsyncMock(return_value=None)
            resp = anon_client.get(f"/services/{SERVICE_ID}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Service not found"

    def test_create_requires_admin(self, customer_client):
        resp = customer_client.post("/services", json=NEW_SERVICE)
        assert resp.status_code == 403

    def test_admin_creates(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_service = AsyncMock(
                return_value=service_response(name="Cuci Mobil Premium", price=50000)
            )
            resp = admin_client.post("/services", json=NEW_SERVICE)
        assert resp.status_code == 201
        assert resp.json()["data"]["price"] == 50000

    def test_non_positive_price_rejected(self, admin_client):
        resp = admin_client.post("/services", json={**NEW_SERVICE, "price": 0})
        assert resp.status_code == 400

    def test_delete_with_active_bookings(self, admin_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.retire_service = AsyncMock(
                side_effect=Conflict("Cannot delete service with active bookings")
            )
            resp = admin_client.delete(f"/services/{SERVICE_ID}")
        assert resp.status_code == 400


@pytest.mark.anyio
class TestServiceCrud:
    async def test_partial_update(self, db):
        service = await service_crud.create_service(ServiceCreate(**NEW_SERVICE))

        updated = await service_crud.update_service(
            service.id, ServiceUpdate(price=55000)
        )

        assert updated.price == 55000
        assert updated.name == NEW_SERVICE["name"]

    async def test_retire_blocked_by_pending_booking(self, db):
        user = await User.create(name="Test User", email="u@test.com", password_hash="x")
        service = await service_crud.create_service(ServiceCreate(**NEW_SERVICE))
        await booking_crud.create_booking(
            user.id,
            BookingCreate(
                service_id=service.id,
                date=future_day(),
                time_slot="08:00-09:00",
                location="Jl. Sudirman No. 1",
            ),
        )

        with pytest.raises(Conflict):
            await service_crud.retire_service(service.id)

    async def test_retire_and_activate(self, db):
        service = await service_crud.create_service(ServiceCreate(**NEW_SERVICE))

        retired = await service_crud.retire_service(service.id)
        assert retired.state == Lifecycle.RETIRED
        assert retired.is_active is False
        assert await service_crud.list_services(is_active=True) == []

        active = await service_crud.activate_service(service.id)
        assert active.is_active is True

    async def test_detail_stats(self, db):
        user = await User.create(name="Test User", email="u@test.com", password_hash="x")
        service = await service_crud.create_service(ServiceCreate(**NEW_SERVICE))
        for slot, rating in (("08:00-09:00", 5), ("09:00-10:00", 4)):
            booking = await booking_crud.create_booking(
                user.id,
                BookingCreate(
                    service_id=service.id,
                    date=future_day(),
                    time_slot=slot,
                    location="Jl. Sudirman No. 1",
                ),
            )
            await booking_crud.admin_update_status(booking.id, BookingStatus.DONE)
            await Review.create(user=user, booking_id=booking.id, rating=rating)

        detail = await service_crud.get_service(service.id)

        assert detail.total_bookings == 2
        assert detail.total_reviews == 2
        assert detail.average_rating == 4.5

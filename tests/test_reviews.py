"""Endpoint tests for /reviews (CRUD mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from carwash.errors import Conflict, NotFound
from carwash.schemas import RatingBucket, ReviewStats

from .factories import (
    BOOKING_ID,
    REVIEW_ID,
    SERVICE_ID,
    page_of,
    review_response,
)

CRUD_PATH = "carwash.routers.reviews.review_crud"


class TestCreateReview:
    def test_success(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_review = AsyncMock(return_value=review_response())
            resp = customer_client.post(
                "/reviews", json={"booking_id": str(BOOKING_ID), "rating": 5}
            )
        assert resp.status_code == 201
        assert resp.json()["data"]["rating"] == 5

    def test_rating_out_of_range(self, customer_client):
        resp = customer_client.post(
            "/reviews", json={"booking_id": str(BOOKING_ID), "rating": 6}
        )
        assert resp.status_code == 400
        assert resp.json()["details"] == [
            "rating: Rating must be an integer between 1 and 5"
        ]

    def test_booking_not_done(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.create_review = AsyncMock(
                side_effect=Conflict("Can only review completed bookings")
            )
            resp = customer_client.post(
                "/reviews", json={"booking_id": str(BOOKING_ID), "rating": 4}
            )
        assert resp.status_code == 400


class TestPublicReviews:
    def test_all_is_public_and_filtered(self, anon_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.list_all_reviews = AsyncMock(return_value=page_of([]))
            resp = anon_client.get(
                "/reviews/all", params={"rating": 5, "service_id": str(SERVICE_ID)}
            )
        assert resp.status_code == 200
        filters = mock_crud.list_all_reviews.call_args[0][0]
        assert filters.rating == 5
        assert filters.service_id == SERVICE_ID

    def test_rating_filter_bounds(self, anon_client):
        assert anon_client.get("/reviews/all", params={"rating": 9}).status_code == 400

    def test_stats(self, anon_client):
        stats = ReviewStats(
            total_reviews=1,
            average_rating=5.0,
            rating_distribution=[RatingBucket(rating=5, count=1)],
        )
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.review_stats = AsyncMock(return_value=stats)
            resp = anon_client.get("/reviews/stats")
        assert resp.status_code == 200
        assert resp.json()["data"]["average_rating"] == 5.0
        mock_crud.review_stats.assert_awaited_once_with(None)


class TestOwnReviews:
    def test_by_booking_without_review(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_by_booking = AsyncMock(return_value=None)
            resp = customer_client.get(f"/reviews/booking/{BOOKING_ID}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "No review found for this booking"

    def test_by_booking_of_someone_else(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.get_by_booking = AsyncMock(side_effect=NotFound("Booking not found"))
            resp = customer_client.get(f"/reviews/booking/{BOOKING_ID}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Booking not found"

    def test_update(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.update_review = AsyncMock(return_value=review_response(rating=3))
            resp = customer_client.put(f"/reviews/{REVIEW_ID}", json={"rating": 3})
        assert resp.status_code == 200
        assert resp.json()["data"]["rating"] == 3

    def test_delete_missing(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.delete_review = AsyncMock(return_value=False)
            resp = customer_client.delete(f"/reviews/{REVIEW_ID}")
        assert resp.status_code == 404

    def test_delete(self, customer_client):
        with patch(CRUD_PATH) as mock_crud:
            mock_crud.delete_review = AsyncMock(return_value=True)
            resp = customer_client.delete(f"/reviews/{REVIEW_ID}")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Review deleted successfully"

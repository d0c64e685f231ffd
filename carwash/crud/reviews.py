from __future__ import annotations

from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError

from carwash.crud.base import CRUD, fetch_map
from carwash.errors import Conflict, NotFound
from carwash.models import Booking, BookingStatus, Review, Service, User, Vehicle
from carwash.responses import Page
from carwash.schemas import (
    PageParams,
    RatingBucket,
    ReviewCreate,
    ReviewDetail,
    ReviewFilters,
    ReviewResponse,
    ReviewStats,
    ReviewUpdate,
    ServiceResponse,
    UserSummary,
    VehicleResponse,
)

ALREADY_REVIEWED = "Review already exists for this booking"


class ReviewCRUD(CRUD[Review, ReviewResponse]):
    async def enrich(self, reviews: list[Review]) -> list[ReviewDetail]:
        if not reviews:
            return []

        bookings = await fetch_map(Booking, {r.booking_id for r in reviews})
        services = await fetch_map(Service, {b.service_id for b in bookings.values()})
        vehicles = await fetch_map(Vehicle, {b.vehicle_id for b in bookings.values()})
        users = await fetch_map(User, {r.user_id for r in reviews})

        result = []
        for r in reviews:
            booking = bookings.get(r.booking_id)
            service = services.get(booking.service_id) if booking else None
            vehicle = vehicles.get(booking.vehicle_id) if booking else None
            user = users.get(r.user_id)
            result.append(
                ReviewDetail(
                    **self.to_schema(r).model_dump(),
                    user=UserSummary.model_validate(user) if user else None,
                    service=ServiceResponse.model_validate(service) if service else None,
                    vehicle=VehicleResponse.model_validate(vehicle) if vehicle else None,
                )
            )
        return result

    async def create_review(self, user_id: UUID, payload: ReviewCreate) -> ReviewResponse:
        """
        A review needs a booking that the caller owns, that is done, and that
        has no review yet.
        """
        booking = await Booking.get_or_none(id=payload.booking_id, user_id=user_id)
        if not booking:
            raise NotFound("Booking not found")
        if booking.status != BookingStatus.DONE:
            raise Conflict("Can only review completed bookings")
        if await Review.exists(booking_id=booking.id):
            raise Conflict(ALREADY_REVIEWED)

        try:
            review = await Review.create(
                user_id=user_id,
                booking_id=booking.id,
                rating=payload.rating,
                comment=payload.comment,
            )
        except IntegrityError:
            raise Conflict(ALREADY_REVIEWED) from None

        logger.info("Review {} ({}*) for booking {}", review.id, review.rating, booking.id)
        return self.to_schema(review)

    async def list_user_reviews(
        self, user_id: UUID, params: PageParams
    ) -> Page[ReviewDetail]:
        rows, pagination = await self.paginate(
            Review.filter(user_id=user_id).order_by("-created_at"),
            params.page,
            params.limit,
        )
        return Page[ReviewDetail](items=await self.enrich(rows), pagination=pagination)

    async def list_all_reviews(self, filters: ReviewFilters) -> Page[ReviewDetail]:
        qs = Review.all()
        if filters.rating is not None:
            qs = qs.filter(rating=filters.rating)
        if filters.service_id is not None:
            qs = qs.filter(booking__service_id=filters.service_id)

        rows, pagination = await self.paginate(
            qs.order_by("-created_at"), filters.page, filters.limit
        )
        return Page[ReviewDetail](items=await self.enrich(rows), pagination=pagination)

    async def review_stats(self, service_id: UUID | None = None) -> ReviewStats:
        qs = Review.all()
        if service_id is not None:
            qs = qs.filter(booking__service_id=service_id)
        ratings = await qs.values_list("rating", flat=True)

        return ReviewStats(
            total_reviews=len(ratings),
            average_rating=round(sum(ratings) / len(ratings), 1) if ratings else 0,
            rating_distribution=[
                RatingBucket(rating=star, count=sum(1 for r in ratings if r == star))
                for star in range(5, 0, -1)
            ],
        )

    async def update_review(
        self, review_id: UUID, user_id: UUID, payload: ReviewUpdate
    ) -> ReviewResponse | None:
        review = await Review.get_or_none(id=review_id, user_id=user_id)
        if not review:
            return None

        changes = payload.model_dump(exclude_unset=True)
        if changes.get("rating") is None:
            changes.pop("rating", None)
        if changes:
            review.update_from_dict(changes)
            await review.save(update_fields=[*changes, "updated_at"])
        return self.to_schema(review)

    async def delete_review(self, review_id: UUID, user_id: UUID) -> bool:
        return await self.delete_by(id=review_id, user_id=user_id)

    async def get_by_booking(
        self, booking_id: UUID, user_id: UUID
    ) -> ReviewDetail | None:
        if not await Booking.exists(id=booking_id, user_id=user_id):
            raise NotFound("Booking not found")
        review = await Review.get_or_none(booking_id=booking_id)
        if not review:
            return None
        return (await self.enrich([review]))[0]


review_crud = ReviewCRUD(Review, ReviewResponse)

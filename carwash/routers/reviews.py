from uuid import UUID

from fastapi import APIRouter, Depends, status

from carwash.crud.reviews import review_crud
from carwash.deps import CurrentUser, get_current_user
from carwash.errors import NotFound
from carwash.responses import Envelope, Page, ok
from carwash.schemas import (
    PageParams,
    ReviewCreate,
    ReviewDetail,
    ReviewFilters,
    ReviewResponse,
    ReviewStats,
    ReviewUpdate,
)

router = APIRouter(prefix="/reviews", tags=["reviews"])

REVIEW_NOT_FOUND = "Review not found"


@router.post(
    "", response_model=Envelope[ReviewResponse], status_code=status.HTTP_201_CREATED
)
async def create_review(
    payload: ReviewCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[ReviewResponse]:
    review = await review_crud.create_review(current_user.id, payload)
    return ok(review, "Review created successfully")


@router.get("", response_model=Envelope[Page[ReviewDetail]])
async def list_my_reviews(
    params: PageParams = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[Page[ReviewDetail]]:
    page = await review_crud.list_user_reviews(current_user.id, params)
    return ok(page, "Reviews retrieved successfully")


# Public listings; declared before /{review_id} routes.


@router.get("/all", response_model=Envelope[Page[ReviewDetail]])
async def list_all_reviews(
    filters: ReviewFilters = Depends(),
) -> Envelope[Page[ReviewDetail]]:
    page = await review_crud.list_all_reviews(filters)
    return ok(page, "Reviews retrieved successfully")


@router.get("/stats", response_model=Envelope[ReviewStats])
async def review_stats(service_id: UUID | None = None) -> Envelope[ReviewStats]:
    stats = await review_crud.review_stats(service_id)
    return ok(stats, "Review statistics retrieved successfully")


@router.get("/booking/{booking_id}", response_model=Envelope[ReviewDetail])
async def get_review_by_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[ReviewDetail]:
    review = await review_crud.get_by_booking(booking_id, current_user.id)
    if not review:
        raise NotFound("No review found for this booking")
    return ok(review, "Review retrieved successfully")


@router.put("/{review_id}", response_model=Envelope[ReviewResponse])
async def update_review(
    review_id: UUID,
    payload: ReviewUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[ReviewResponse]:
    review = await review_crud.update_review(review_id, current_user.id, payload)
    if not review:
        raise NotFound(REVIEW_NOT_FOUND)
    return ok(review, "Review updated successfully")


@router.delete("/{review_id}", response_model=Envelope[None])
async def delete_review(
    review_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[None]:
    if not await review_crud.delete_review(review_id, current_user.id):
        raise NotFound(REVIEW_NOT_FOUND)
    return ok(message="Review deleted successfully")

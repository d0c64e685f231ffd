from uuid import UUID

from fastapi import APIRouter, Depends, status

from carwash.cache import invalidate_slots_cache
from carwash.crud.transactions import transaction_crud
from carwash.deps import CurrentUser, get_current_user, require_admin
from carwash.errors import NotFound
from carwash.responses import Envelope, Page, ok
from carwash.schemas import (
    TransactionCreate,
    TransactionDetail,
    TransactionFilters,
    TransactionResponse,
    TransactionStatusUpdate,
)

router = APIRouter(prefix="/transactions", tags=["transactions"])

TRANSACTION_NOT_FOUND = "Transaction not found"


@router.post(
    "",
    response_model=Envelope[TransactionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_transaction(
    payload: TransactionCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[TransactionResponse]:
    tx = await transaction_crud.create_transaction(current_user.id, payload)
    return ok(tx, "Transaction created successfully")


@router.get("", response_model=Envelope[Page[TransactionDetail]])
async def list_transactions(
    filters: TransactionFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[Page[TransactionDetail]]:
    page = await transaction_crud.list_transactions(current_user.id, filters)
    return ok(page, "Transactions retrieved successfully")


@router.get("/{transaction_id}", response_model=Envelope[TransactionDetail])
async def get_transaction(
    transaction_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[TransactionDetail]:
    tx = await transaction_crud.get_transaction(transaction_id, current_user.id)
    if not tx:
        raise NotFound(TRANSACTION_NOT_FOUND)
    return ok(tx, "Transaction retrieved successfully")


@router.patch("/{transaction_id}/confirm", response_model=Envelope[TransactionResponse])
async def confirm_payment(
    transaction_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> Envelope[TransactionResponse]:
    tx, _ = await transaction_crud.confirm_payment(transaction_id, current_user.id)
    return ok(tx, "Payment confirmed successfully")


@router.patch(
    "/{transaction_id}/status",
    response_model=Envelope[TransactionResponse],
    dependencies=[Depends(require_admin)],
)
async def update_transaction_status(
    transaction_id: UUID,
    payload: TransactionStatusUpdate,
) -> Envelope[TransactionResponse]:
    result = await transaction_crud.admin_update_status(transaction_id, payload.status)
    if not result:
        raise NotFound(TRANSACTION_NOT_FOUND)

    tx, booking = result
    # failed/refunded may have released the slot
    await invalidate_slots_cache(booking.date)
    return ok(tx, "Transaction status updated successfully")

from __future__ import annotations

from uuid import UUID

from loguru import logger
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from carwash.crud.base import CRUD
from carwash.crud.bookings import SLOT_TAKEN, apply_status, booking_crud
from carwash.errors import Conflict, NotFound
from carwash.models import (
    TERMINAL_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Transaction,
    TransactionStatus,
)
from carwash.responses import Page
from carwash.schemas import (
    TransactionCreate,
    TransactionDetail,
    TransactionFilters,
    TransactionResponse,
)

# Transaction status -> booking status it drives.
BOOKING_STATUS_FOR = {
    TransactionStatus.PAID: BookingStatus.PROCESSING,
    TransactionStatus.FAILED: BookingStatus.CANCELLED,
    TransactionStatus.REFUNDED: BookingStatus.CANCELLED,
}

PAYMENT_NOTES = {
    TransactionStatus.PAID: "Payment confirmed",
    TransactionStatus.FAILED: "Payment failed",
    TransactionStatus.REFUNDED: "Payment refunded",
}


async def drive_booking(booking: Booking, tx_status: TransactionStatus) -> bool:
    """
    Move the owning booking after a payment status change.
    Returns True when the booking was written. A terminal booking is moved
    too; reviving it into a slot someone else now holds raises IntegrityError.
    """
    target = BOOKING_STATUS_FOR.get(tx_status)
    if target is None or booking.status == target:
        return False
    if booking.status in TERMINAL_BOOKING_STATUSES:
        logger.warning(
            "Booking {} is {}, moving to {} for payment status {}",
            booking.id,
            booking.status,
            target,
            tx_status,
        )
    await apply_status(booking, target, PAYMENT_NOTES[tx_status])
    return True


class TransactionCRUD(CRUD[Transaction, TransactionResponse]):
    async def create_transaction(
        self, user_id: UUID, payload: TransactionCreate
    ) -> TransactionResponse:
        booking = await Booking.get_or_none(id=payload.booking_id, user_id=user_id)
        if not booking:
            raise NotFound("Booking not found")
        if booking.status == BookingStatus.CANCELLED:
            raise Conflict("Cannot create transaction for cancelled booking")
        if await Transaction.exists(booking_id=booking.id):
            raise Conflict("Transaction already exists for this booking")

        try:
            tx = await Transaction.create(
                booking_id=booking.id,
                user_id=user_id,
                amount=payload.amount,
                method=payload.method,
                status=TransactionStatus.PENDING,
            )
        except IntegrityError:
            raise Conflict("Transaction already exists for this booking") from None

        logger.info(
            "Transaction {} created for booking {} ({} {})",
            tx.id,
            booking.id,
            payload.amount,
            payload.method,
        )
        return self.to_schema(tx)

    async def list_transactions(
        self, user_id: UUID, filters: TransactionFilters
    ) -> Page[TransactionDetail]:
        qs = Transaction.filter(user_id=user_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)

        rows, pagination = await self.paginate(
            qs.order_by("-created_at"), filters.page, filters.limit
        )
        return Page[TransactionDetail](
            items=await self._with_bookings(rows), pagination=pagination
        )

    async def get_transaction(
        self, transaction_id: UUID, user_id: UUID
    ) -> TransactionDetail | None:
        tx = await Transaction.get_or_none(id=transaction_id, user_id=user_id)
        if not tx:
            return None
        return (await self._with_bookings([tx]))[0]

    async def _with_bookings(self, rows: list[Transaction]) -> list[TransactionDetail]:
        if not rows:
            return []
        bookings = await Booking.filter(id__in=[tx.booking_id for tx in rows])
        enriched = {b.id: b for b in await booking_crud.enrich(bookings)}
        return [
            TransactionDetail(
                **self.to_schema(tx).model_dump(), booking=enriched.get(tx.booking_id)
            )
            for tx in rows
        ]

    async def confirm_payment(
        self, transaction_id: UUID, user_id: UUID
    ) -> tuple[TransactionResponse, Booking]:
        """
        pending -> paid, and the booking pending -> processing, in one DB
        transaction. Rejects anything but a pending transaction on a live
        booking; nothing is written in that case.
        """
        async with in_transaction():
            tx = (
                await Transaction.filter(id=transaction_id, user_id=user_id)
                .select_for_update()
                .first()
            )
            if not tx:
                raise NotFound("Transaction not found")
            if tx.status != TransactionStatus.PENDING:
                raise Conflict("Transaction is not pending")

            booking = (
                await Booking.filter(id=tx.booking_id).select_for_update().first()
            )
            if not booking:
                raise NotFound("Booking not found")
            if booking.status in TERMINAL_BOOKING_STATUSES:
                raise Conflict(f"Booking is already {booking.status}")

            tx.status = TransactionStatus.PAID
            await tx.save(update_fields=["status", "updated_at"])
            await drive_booking(booking, TransactionStatus.PAID)

        logger.info("Payment confirmed: transaction {} booking {}", tx.id, booking.id)
        return self.to_schema(tx), booking

    async def admin_update_status(
        self, transaction_id: UUID, new_status: TransactionStatus
    ) -> tuple[TransactionResponse, Booking] | None:
        """
        Operator override. The booking always follows the payment: paid ->
        processing, failed/refunded -> cancelled. When that would revive a
        booking into a slot that is now taken, nothing is written.
        """
        try:
            async with in_transaction():
                tx = (
                    await Transaction.filter(id=transaction_id)
                    .select_for_update()
                    .first()
                )
                if not tx:
                    return None
                booking = (
                    await Booking.filter(id=tx.booking_id).select_for_update().first()
                )

                old_status = tx.status
                tx.status = new_status
                await tx.save(update_fields=["status", "updated_at"])
                if booking:
                    await drive_booking(booking, new_status)
        except IntegrityError:
            raise Conflict(SLOT_TAKEN) from None

        logger.warning(
            "Admin override: transaction {} {} -> {}", tx.id, old_status, new_status
        )
        return self.to_schema(tx), booking


transaction_crud = TransactionCRUD(Transaction, TransactionResponse)

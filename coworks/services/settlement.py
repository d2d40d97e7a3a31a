"""State transitions shared by the checkout callback and the webhook."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.models.booking import BOOKING_MODELS, BookingStatus, PaymentStatus, SeatBooking, MeetingBooking
from coworks.models.payment import Payment
from coworks.services.gateway import PaymentGateway

logger = logging.getLogger(__name__)


@dataclass
class Settlement:
    payment: Payment | None
    booking: SeatBooking | MeetingBooking


async def resolve_order(db: AsyncSession, order_id: str) -> Settlement | None:
    """Find the single booking linked to a gateway order id, or None."""
    if not order_id:
        return None
    locked = {"populate_existing": True}
    payment = (
        await db.execute(
            select(Payment).where(Payment.order_id == order_id).with_for_update().execution_options(**locked)
        )
    ).scalar_one_or_none()
    if payment is not None:
        model = BOOKING_MODELS[payment.booking_type]
        booking = (
            await db.execute(
                select(model).where(model.id == payment.booking_id).with_for_update().execution_options(**locked)
            )
        ).scalar_one_or_none()
        if booking is not None:
            return Settlement(payment=payment, booking=booking)

    matches: list[SeatBooking | MeetingBooking] = []
    for model in (SeatBooking, MeetingBooking):
        rows = await db.execute(
            select(model).where(model.order_id == order_id).with_for_update().execution_options(**locked)
        )
        matches.extend(rows.scalars().all())
    if len(matches) != 1:
        if len(matches) > 1:
            logger.warning("Order %s is linked to %s bookings, refusing to pick one", order_id, len(matches))
        return None
    return Settlement(payment=payment, booking=matches[0])


def _set_payment(settlement: Settlement, status: PaymentStatus, payment_id: str | None) -> None:
    settlement.booking.payment_status = status
    if payment_id:
        settlement.booking.payment_id = payment_id
    if settlement.payment is not None:
        settlement.payment.status = status
        if payment_id:
            settlement.payment.payment_id = payment_id


def mark_authorized(settlement: Settlement, payment_id: str | None) -> bool:
    """Authorization is not capture: record the payment id, keep PENDING."""
    if settlement.booking.payment_status != PaymentStatus.PENDING:
        return False
    if payment_id and settlement.booking.payment_id != payment_id:
        _set_payment(settlement, PaymentStatus.PENDING, payment_id)
        return True
    return False


async def mark_captured(
    db: AsyncSession, settlement: Settlement, payment_id: str | None, gateway: PaymentGateway
) -> bool:
    """Settle a captured payment. Returns False when it was already applied."""
    booking = settlement.booking
    if booking.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
        return False

    if booking.status == BookingStatus.CANCELLED:
        # money arrived for a booking that no longer holds its slot
        pid = payment_id or booking.payment_id
        if not pid:
            logger.warning("Captured order %s on cancelled booking %s has no payment id", booking.order_id, booking.id)
            _set_payment(settlement, PaymentStatus.COMPLETED, None)
            return True
        refund = await gateway.refund(pid, idempotency_key=f"refund-{pid}")
        _set_payment(settlement, PaymentStatus.REFUNDED, pid)
        if settlement.payment is not None:
            settlement.payment.refund_id = refund.refund_id
        logger.warning("Refunded payment %s captured on cancelled booking %s", pid, booking.id)
        await db.flush()
        return True

    _set_payment(settlement, PaymentStatus.COMPLETED, payment_id)
    booking.confirm()
    await db.flush()
    logger.info("Booking %s/%s confirmed by payment %s", booking.booking_type.value, booking.id, payment_id)
    return True


async def mark_failed(db: AsyncSession, settlement: Settlement, payment_id: str | None) -> bool:
    booking = settlement.booking
    # a later successful attempt on the same order wins over an earlier failure
    if booking.payment_status != PaymentStatus.PENDING:
        return False
    _set_payment(settlement, PaymentStatus.FAILED, payment_id)
    if booking.status == BookingStatus.PENDING:
        booking.cancel()
    await db.flush()
    logger.info("Booking %s/%s cancelled after failed payment %s", booking.booking_type.value, booking.id, payment_id)
    return True

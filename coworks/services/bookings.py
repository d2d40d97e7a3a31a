from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.errors import (
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    PaymentVerificationError,
    ResourceUnavailableError,
    SlotConflictError,
    ValidationError,
)
from coworks.core.settings import Settings
from coworks.models.booking import (
    BOOKING_MODELS,
    BookingStatus,
    BookingType,
    MeetingBooking,
    PaymentStatus,
    SeatBooking,
)
from coworks.models.customer import Customer
from coworks.models.payment import Payment, PaymentMethod
from coworks.models.resource import AvailabilityStatus, Seat, SeatingTypeName
from coworks.services.availability import find_conflicts
from coworks.services.cost import billable_hours, booking_cost, coin_charge, to_minor_units
from coworks.services.gateway import GatewayOrder, PaymentGateway
from coworks.services.ledger import LedgerStore
from coworks.services.settlement import mark_captured, resolve_order

logger = logging.getLogger(__name__)


def parse_timestamp(value: datetime | str | None, field: str) -> datetime:
    """Parse an ISO-8601 value into a naive UTC datetime."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError("Invalid date format")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass
class BookingResult:
    booking: SeatBooking | MeetingBooking
    payment: Payment
    seat: Seat
    coins_used: int = 0
    coins_remaining: int | None = None
    order: GatewayOrder | None = None

    def payment_info(self, key_id: str = "") -> dict[str, Any]:
        if self.payment.method == PaymentMethod.COINS:
            return {
                "method": PaymentMethod.COINS.value,
                "coins_used": self.coins_used,
                "coins_remaining": self.coins_remaining,
            }
        return {
            "method": PaymentMethod.RAZORPAY.value,
            "order_id": self.order.order_id if self.order else self.booking.order_id,
            "amount": self.order.amount if self.order else to_minor_units(self.booking.total_amount),
            "currency": self.order.currency if self.order else self.payment.currency,
            "key_id": key_id,
        }

    def resource_info(self) -> dict[str, Any]:
        branch = self.seat.branch
        return {
            "id": self.seat.id,
            "name": self.seat.seat_number,
            "code": self.seat.seat_code,
            "hourly_rate": self.seat.effective_rate,
            "branch": {"id": branch.id, "name": branch.name, "location": branch.location} if branch else None,
        }


class BookingOrchestrator:
    """Creates bookings and settles them from coins or through the gateway.

    The ledger and the gateway are injected so tests and other
    environments can substitute them.
    """

    def __init__(self, ledger: LedgerStore, gateway: PaymentGateway, settings: Settings):
        self.ledger = ledger
        self.gateway = gateway
        self.settings = settings

    async def _load_seat(
        self, db: AsyncSession, seat_id: int | None, seat_code: str | None, lock: bool = False
    ) -> Seat | None:
        if seat_id is not None:
            stmt = select(Seat).where(Seat.id == seat_id)
        elif seat_code:
            stmt = select(Seat).where(Seat.seat_code == seat_code)
        else:
            raise ValidationError("seat_id or seat_code is required")
        if lock:
            stmt = stmt.with_for_update(of=Seat).execution_options(populate_existing=True)
        return (await db.execute(stmt)).unique().scalar_one_or_none()

    async def _lock_and_recheck(self, db: AsyncSession, seat: Seat, start: datetime, end: datetime) -> None:
        # serialises concurrent bookers of the same resource
        await self._load_seat(db, seat.id, None, lock=True)
        if await find_conflicts(db, seat.id, start, end):
            raise SlotConflictError("Resource is already booked for this time slot")

    async def book_resource(
        self,
        db: AsyncSession,
        customer_id: int,
        start_time: datetime | str | None,
        end_time: datetime | str | None,
        seat_id: int | None = None,
        seat_code: str | None = None,
        num_participants: int | None = None,
        amenities: Any = None,
        expected_type: SeatingTypeName | None = None,
    ) -> BookingResult:
        start = parse_timestamp(start_time, "start_time")
        end = parse_timestamp(end_time, "end_time")
        if end <= start:
            raise ValidationError("End time must be after start time")
        if num_participants is not None and num_participants < 1:
            raise ValidationError("num_participants must be at least 1")

        customer = await db.get(Customer, customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        await self.ledger.reset_if_due(db, customer_id)

        label = "Meeting room" if expected_type == SeatingTypeName.MEETING_ROOM else "Seat"
        seat = await self._load_seat(db, seat_id, seat_code)
        if not seat or (expected_type is not None and seat.seating_type.name != expected_type):
            raise NotFoundError(f"{label} not found")
        if seat.availability_status == AvailabilityStatus.MAINTENANCE:
            raise ResourceUnavailableError(f"{label} is not available")
        if num_participants is not None and num_participants > seat.capacity:
            raise ValidationError(f"{label} capacity is {seat.capacity}")

        if await find_conflicts(db, seat.id, start, end):
            raise SlotConflictError(f"{label} is already booked for this time slot")

        rate = seat.effective_rate
        amount = booking_cost(rate, start, end)
        hours = billable_hours(start, end)

        if seat.seating_type.coin_billing:
            return await self._book_with_coins(db, customer, seat, start, end, amount, hours, num_participants, amenities)
        return await self._book_with_order(db, customer, seat, start, end, amount, num_participants, amenities)

    def _new_booking(self, seat: Seat, **fields: Any) -> SeatBooking | MeetingBooking:
        num_participants = fields.pop("num_participants", None)
        amenities = fields.pop("amenities", None)
        if seat.seating_type.name == SeatingTypeName.MEETING_ROOM:
            return MeetingBooking(num_participants=num_participants or 1, amenities=amenities, **fields)
        return SeatBooking(**fields)

    async def _book_with_coins(
        self,
        db: AsyncSession,
        customer: Customer,
        seat: Seat,
        start: datetime,
        end: datetime,
        amount: Decimal,
        hours: int,
        num_participants: int | None,
        amenities: Any,
    ) -> BookingResult:
        required = coin_charge(amount)
        if customer.coins_balance < required:
            raise InsufficientBalanceError(customer.coins_balance, required)

        try:
            await self._lock_and_recheck(db, seat, start, end)
            booking = self._new_booking(
                seat,
                customer_id=customer.id,
                seat_id=seat.id,
                start_time=start,
                end_time=end,
                total_amount=amount,
                status=BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.COMPLETED,
                num_participants=num_participants,
                amenities=amenities,
            )
            db.add(booking)
            await db.flush()

            if required > 0:
                await self.ledger.debit(
                    db,
                    customer.id,
                    required,
                    booking_id=booking.id,
                    booking_type=booking.booking_type.value,
                    description=f"{seat.seating_type.name.value} booking: {hours} hour(s) at {seat.effective_rate}/hour",
                )
            payment = Payment(
                booking_type=booking.booking_type,
                booking_id=booking.id,
                customer_id=customer.id,
                amount=amount,
                currency=self.settings.CURRENCY,
                method=PaymentMethod.COINS,
                status=PaymentStatus.COMPLETED,
            )
            db.add(payment)
            seat.availability_status = AvailabilityStatus.BOOKED
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Customer %s booked seat %s with %s coins (booking %s)", customer.id, seat.id, required, booking.id)
        return BookingResult(
            booking=booking,
            payment=payment,
            seat=seat,
            coins_used=required,
            coins_remaining=customer.coins_balance,
        )

    async def _book_with_order(
        self,
        db: AsyncSession,
        customer: Customer,
        seat: Seat,
        start: datetime,
        end: datetime,
        amount: Decimal,
        num_participants: int | None,
        amenities: Any,
    ) -> BookingResult:
        # the order exists before any booking row, so a gateway failure leaves nothing behind;
        # the read transaction (and sqlite's write lock) is released for the network call
        await db.commit()
        receipt = f"bk_{seat.id}_{uuid.uuid4().hex[:16]}"
        order = await self.gateway.create_order(
            to_minor_units(amount),
            self.settings.CURRENCY,
            receipt,
            notes={
                "customer_id": str(customer.id),
                "seat_id": str(seat.id),
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
            },
        )

        try:
            await self._lock_and_recheck(db, seat, start, end)
            booking = self._new_booking(
                seat,
                customer_id=customer.id,
                seat_id=seat.id,
                start_time=start,
                end_time=end,
                total_amount=amount,
                status=BookingStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                order_id=order.order_id,
                num_participants=num_participants,
                amenities=amenities,
            )
            db.add(booking)
            await db.flush()
            payment = Payment(
                booking_type=booking.booking_type,
                booking_id=booking.id,
                customer_id=customer.id,
                amount=amount,
                currency=order.currency,
                method=PaymentMethod.RAZORPAY,
                status=PaymentStatus.PENDING,
                order_id=order.order_id,
            )
            db.add(payment)
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Customer %s holds seat %s pending order %s (booking %s)", customer.id, seat.id, order.order_id, booking.id)
        return BookingResult(booking=booking, payment=payment, seat=seat, order=order)

    async def verify_checkout(
        self, db: AsyncSession, customer_id: int, order_id: str, payment_id: str, signature: str
    ) -> SeatBooking | MeetingBooking:
        """Client-side confirmation after hosted checkout; same effect as a capture webhook."""
        if not self.gateway.verify_payment_signature(order_id, payment_id, signature):
            logger.warning("Checkout signature mismatch for order %s", order_id)
            raise PaymentVerificationError("Payment verification failed. Invalid signature.")
        settlement = await resolve_order(db, order_id)
        if settlement is None or settlement.booking.customer_id != customer_id:
            raise NotFoundError("Booking not found for this order")
        await mark_captured(db, settlement, payment_id, self.gateway)
        await db.commit()
        return settlement.booking

    async def get_booking(
        self, db: AsyncSession, customer_id: int, booking_type: BookingType, booking_id: int
    ) -> SeatBooking | MeetingBooking:
        model = BOOKING_MODELS[booking_type]
        booking = await db.get(model, booking_id)
        if not booking or booking.customer_id != customer_id:
            raise NotFoundError("Booking not found")
        return booking

    async def list_bookings(self, db: AsyncSession, customer_id: int) -> list[SeatBooking | MeetingBooking]:
        bookings: list[SeatBooking | MeetingBooking] = []
        for model in (SeatBooking, MeetingBooking):
            rows = await db.execute(select(model).where(model.customer_id == customer_id))
            bookings.extend(rows.scalars().all())
        bookings.sort(key=lambda b: b.start_time, reverse=True)
        return bookings

    async def cancel_booking(
        self, db: AsyncSession, customer_id: int, booking_type: BookingType, booking_id: int
    ) -> SeatBooking | MeetingBooking:
        """Abandon an unpaid checkout. Confirmed bookings only move on to COMPLETED."""
        booking = await self.get_booking(db, customer_id, booking_type, booking_id)
        if booking.status != BookingStatus.PENDING:
            raise InvalidStateError(f"Booking cannot be cancelled in status {booking.status.value}")
        booking.cancel()
        await db.flush()
        await db.commit()
        logger.info("Customer %s cancelled pending booking %s/%s", customer_id, booking_type.value, booking_id)
        return booking

    async def complete_expired_bookings(self, db: AsyncSession, now: datetime | None = None) -> dict[str, int]:
        """Close out bookings whose window has ended.

        CONFIRMED bookings become COMPLETED and their resource is released;
        unpaid PENDING bookings are cancelled.
        """
        now = now or datetime.utcnow()
        counts = {"completed": 0, "expired": 0}
        try:
            for model in (SeatBooking, MeetingBooking):
                rows = await db.execute(
                    select(model).where(
                        model.end_time <= now,
                        model.status.in_([BookingStatus.CONFIRMED, BookingStatus.PENDING]),
                    ).with_for_update()
                )
                for booking in rows.scalars().all():
                    if booking.complete():
                        counts["completed"] += 1
                        seat = await db.get(Seat, booking.seat_id)
                        if seat and seat.availability_status == AvailabilityStatus.BOOKED:
                            seat.availability_status = AvailabilityStatus.AVAILABLE
                    elif booking.cancel():
                        counts["expired"] += 1
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Closed expired bookings: %s", counts)
        return counts

from datetime import datetime
from decimal import Decimal

import pytest

from coworks.models.booking import BookingStatus, MeetingBooking, PaymentStatus, SeatBooking
from coworks.services.availability import find_conflicts, is_available


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 10, hour, minute)


async def add_booking(db, model, seat, customer, start, end, status=BookingStatus.CONFIRMED):
    booking = model(
        customer_id=customer.id,
        seat_id=seat.id,
        start_time=start,
        end_time=end,
        total_amount=Decimal("50.00"),
        status=status,
        payment_status=PaymentStatus.COMPLETED,
    )
    db.add(booking)
    await db.commit()
    return booking


@pytest.mark.asyncio
async def test_overlap_is_a_conflict(db, meeting_room, customer):
    await add_booking(db, MeetingBooking, meeting_room, customer, at(10), at(11))

    assert not await is_available(db, meeting_room.id, at(10, 30), at(11, 30))
    assert not await is_available(db, meeting_room.id, at(9, 30), at(10, 1))
    assert not await is_available(db, meeting_room.id, at(9), at(12))
    assert not await is_available(db, meeting_room.id, at(10, 15), at(10, 45))


@pytest.mark.asyncio
async def test_adjacent_windows_do_not_conflict(db, meeting_room, customer):
    await add_booking(db, MeetingBooking, meeting_room, customer, at(10), at(11))

    assert await is_available(db, meeting_room.id, at(11), at(12))
    assert await is_available(db, meeting_room.id, at(9), at(10))


@pytest.mark.asyncio
async def test_cancelled_bookings_are_ignored(db, meeting_room, customer):
    await add_booking(db, MeetingBooking, meeting_room, customer, at(10), at(11), status=BookingStatus.CANCELLED)

    assert await is_available(db, meeting_room.id, at(10), at(11))


@pytest.mark.asyncio
async def test_pending_bookings_hold_the_slot(db, hot_desk, customer):
    await add_booking(db, SeatBooking, hot_desk, customer, at(10), at(11), status=BookingStatus.PENDING)

    conflicts = await find_conflicts(db, hot_desk.id, at(10, 30), at(12))
    assert len(conflicts) == 1
    assert conflicts[0].status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_other_resources_do_not_conflict(db, meeting_room, hot_desk, customer):
    await add_booking(db, MeetingBooking, meeting_room, customer, at(10), at(11))

    assert await is_available(db, hot_desk.id, at(10), at(11))


@pytest.mark.asyncio
async def test_exclude_skips_the_booking_itself(db, meeting_room, customer):
    booking = await add_booking(db, MeetingBooking, meeting_room, customer, at(10), at(11))

    conflicts = await find_conflicts(db, meeting_room.id, at(10), at(11), exclude=(MeetingBooking, booking.id))
    assert conflicts == []

import asyncio
from datetime import datetime

import pytest

from coworks.models.booking import BookingStatus, MeetingBooking, SeatBooking
from coworks.models.resource import AvailabilityStatus, Seat
from coworks.services.cleanup import run_booking_cleanup, sweep_expired_bookings


def past(hour: int) -> datetime:
    return datetime(2020, 3, 2, hour)


@pytest.mark.asyncio
async def test_sweep_closes_out_ended_bookings(db, session_factory, orchestrator, meeting_room, hot_desk, customer):
    await orchestrator.book_resource(db, customer.id, past(9), past(10), seat_id=meeting_room.id)
    await orchestrator.book_resource(db, customer.id, past(9), past(10), seat_id=hot_desk.id)

    counts = await sweep_expired_bookings(session_factory, orchestrator, now=past(12))

    assert counts == {"completed": 1, "expired": 1}


@pytest.mark.asyncio
async def test_cleanup_loop_runs_until_cancelled(db, session_factory, orchestrator, meeting_room, hot_desk, customer):
    confirmed = await orchestrator.book_resource(db, customer.id, past(9), past(10), seat_id=meeting_room.id)
    pending = await orchestrator.book_resource(db, customer.id, past(9), past(10), seat_id=hot_desk.id)
    ids = (confirmed.booking.id, pending.booking.id, meeting_room.id)

    task = asyncio.create_task(run_booking_cleanup(session_factory, orchestrator, 0.01))
    await asyncio.sleep(0.1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    async with session_factory() as fresh:
        assert (await fresh.get(MeetingBooking, ids[0])).status == BookingStatus.COMPLETED
        assert (await fresh.get(SeatBooking, ids[1])).status == BookingStatus.CANCELLED
        assert (await fresh.get(Seat, ids[2])).availability_status == AvailabilityStatus.AVAILABLE

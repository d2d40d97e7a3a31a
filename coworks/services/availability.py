from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.models.booking import BookingStatus, SeatBooking, MeetingBooking


async def find_conflicts(
    db: AsyncSession,
    seat_id: int,
    start: datetime,
    end: datetime,
    exclude: tuple[type, int] | None = None,
) -> list[SeatBooking | MeetingBooking]:
    """Non-cancelled bookings on ``seat_id`` whose window overlaps [start, end).

    Windows are half-open: a booking ending exactly at ``start`` does not conflict.
    """
    conflicts: list[SeatBooking | MeetingBooking] = []
    for model in (SeatBooking, MeetingBooking):
        stmt = select(model).where(
            model.seat_id == seat_id,
            model.status != BookingStatus.CANCELLED,
            model.start_time < end,
            model.end_time > start,
        )
        if exclude is not None and exclude[0] is model:
            stmt = stmt.where(model.id != exclude[1])
        conflicts.extend((await db.execute(stmt)).scalars().all())
    return conflicts


async def is_available(
    db: AsyncSession,
    seat_id: int,
    start: datetime,
    end: datetime,
    exclude: tuple[type, int] | None = None,
) -> bool:
    return not await find_conflicts(db, seat_id, start, end, exclude)

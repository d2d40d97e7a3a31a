"""Periodic sweep that closes out bookings whose window has ended."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from coworks.services.bookings import BookingOrchestrator

logger = logging.getLogger(__name__)


async def sweep_expired_bookings(
    session_factory: sessionmaker,
    orchestrator: BookingOrchestrator,
    now: datetime | None = None,
) -> dict[str, int]:
    async with session_factory() as db:
        return await orchestrator.complete_expired_bookings(db, now)


async def run_booking_cleanup(
    session_factory: sessionmaker,
    orchestrator: BookingOrchestrator,
    interval_seconds: float,
) -> None:
    """Sweep forever; a failed sweep is logged and retried on the next tick."""
    while True:
        try:
            counts = await sweep_expired_bookings(session_factory, orchestrator)
            if counts["completed"] or counts["expired"]:
                logger.info("Booking cleanup: %s completed, %s expired", counts["completed"], counts["expired"])
        except Exception:
            logger.exception("Booking cleanup sweep failed")
        await asyncio.sleep(interval_seconds)

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from coworks.core.errors import envelope
from coworks.db import get_db
from coworks.deps import get_current_customer, get_orchestrator, require_complete_profile
from coworks.models.booking import BookingStatus, BookingType
from coworks.models.customer import Customer
from coworks.models.resource import SeatingTypeName
from coworks.services.bookings import BookingOrchestrator

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


class MeetingRoomBookingIn(BaseModel):
    seat_id: int | None = None
    seat_code: str | None = Field(default=None, max_length=32)
    start_time: str
    end_time: str
    num_participants: int = Field(ge=1)
    amenities: Any = None


class SeatBookingIn(BaseModel):
    seat_id: int | None = None
    seat_code: str | None = Field(default=None, max_length=32)
    start_time: str
    end_time: str


@router.post("/meeting-room", status_code=201)
async def book_meeting_room(
    payload: MeetingRoomBookingIn,
    customer: Customer = Depends(require_complete_profile),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.book_resource(
        db,
        customer.id,
        payload.start_time,
        payload.end_time,
        seat_id=payload.seat_id,
        seat_code=payload.seat_code,
        num_participants=payload.num_participants,
        amenities=payload.amenities,
        expected_type=SeatingTypeName.MEETING_ROOM,
    )
    return JSONResponse(
        envelope(
            {
                "booking": result.booking.to_dict(),
                "payment": result.payment_info(orchestrator.gateway.key_id),
                "meeting_room": result.resource_info(),
            },
            "Meeting room booked successfully",
        ),
        status_code=201,
    )


@router.post("", status_code=201)
async def book_seat(
    payload: SeatBookingIn,
    customer: Customer = Depends(require_complete_profile),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.book_resource(
        db,
        customer.id,
        payload.start_time,
        payload.end_time,
        seat_id=payload.seat_id,
        seat_code=payload.seat_code,
    )
    message = "Booking created, complete payment to confirm"
    if result.booking.status == BookingStatus.CONFIRMED:
        message = "Booking confirmed"
    return JSONResponse(
        envelope(
            {
                "booking": result.booking.to_dict(),
                "payment": result.payment_info(orchestrator.gateway.key_id),
                "seat": result.resource_info(),
            },
            message,
        ),
        status_code=201,
    )


@router.get("")
async def my_bookings(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    bookings = await orchestrator.list_bookings(db, customer.id)
    return envelope([b.to_dict() for b in bookings], "Bookings retrieved successfully")


@router.get("/{booking_type}/{booking_id}")
async def get_booking(
    booking_type: BookingType,
    booking_id: int,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    booking = await orchestrator.get_booking(db, customer.id, booking_type, booking_id)
    return envelope(booking.to_dict(), "Booking retrieved successfully")


@router.post("/{booking_type}/{booking_id}/cancel")
async def cancel_booking(
    booking_type: BookingType,
    booking_id: int,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    booking = await orchestrator.cancel_booking(db, customer.id, booking_type, booking_id)
    return envelope(booking.to_dict(), "Booking cancelled")

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from sqlalchemy import Integer, String, DateTime, Numeric, ForeignKey, Enum, JSON
from sqlalchemy.orm import Mapped, mapped_column

from coworks.db import Base


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class BookingType(str, enum.Enum):
    SEAT = "seat"
    MEETING = "meeting"


class BookingMixin:
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), index=True)
    seat_id: Mapped[int] = mapped_column(ForeignKey("seats.id"), index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=16), default=BookingStatus.PENDING
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=16), default=PaymentStatus.PENDING
    )
    # gateway references
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    booking_type: ClassVar[BookingType]

    def confirm(self) -> bool:
        """PENDING -> CONFIRMED. Returns False when nothing changed."""
        if self.status == BookingStatus.PENDING:
            self.status = BookingStatus.CONFIRMED
            return True
        return False

    def cancel(self) -> bool:
        """PENDING/CONFIRMED -> CANCELLED. Returns False when already cancelled or completed."""
        if self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            self.status = BookingStatus.CANCELLED
            return True
        return False

    def complete(self) -> bool:
        if self.status == BookingStatus.CONFIRMED:
            self.status = BookingStatus.COMPLETED
            return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "booking_type": self.booking_type.value,
            "seat_id": self.seat_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_amount": self.total_amount,
            "status": self.status,
            "payment_status": self.payment_status,
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "created_at": self.created_at,
        }


class SeatBooking(BookingMixin, Base):
    __tablename__ = "seat_bookings"

    booking_type = BookingType.SEAT


class MeetingBooking(BookingMixin, Base):
    __tablename__ = "meeting_bookings"

    booking_type = BookingType.MEETING

    num_participants: Mapped[int] = mapped_column(Integer, default=1)
    amenities: Mapped[Any | None] = mapped_column(JSON, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["num_participants"] = self.num_participants
        data["amenities"] = self.amenities
        return data


BOOKING_MODELS: dict[BookingType, type[SeatBooking] | type[MeetingBooking]] = {
    BookingType.SEAT: SeatBooking,
    BookingType.MEETING: MeetingBooking,
}

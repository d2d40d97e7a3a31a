from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import String, Integer, Boolean, Numeric, ForeignKey, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coworks.db import Base


class SeatingTypeName(str, enum.Enum):
    HOT_DESK = "HOT_DESK"
    DEDICATED_DESK = "DEDICATED_DESK"
    CUBICLE = "CUBICLE"
    MEETING_ROOM = "MEETING_ROOM"
    DAILY_PASS = "DAILY_PASS"


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    MAINTENANCE = "MAINTENANCE"


class Branch(Base):
    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128))
    short_code: Mapped[str | None] = mapped_column(String(16), unique=True, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)


class SeatingType(Base):
    __tablename__ = "seating_types"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[SeatingTypeName] = mapped_column(Enum(SeatingTypeName, native_enum=False, length=32), unique=True)
    short_code: Mapped[str | None] = mapped_column(String(16), unique=True, nullable=True)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    # settled immediately from the customer's coin balance
    coin_billing: Mapped[bool] = mapped_column(Boolean, default=False)


class Seat(Base):
    __tablename__ = "seats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), index=True)
    seating_type_id: Mapped[int] = mapped_column(ForeignKey("seating_types.id"), index=True)
    seat_number: Mapped[str] = mapped_column(String(32))
    seat_code: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, default=1)
    # display cache only, overlap checks go through the bookings tables
    availability_status: Mapped[AvailabilityStatus] = mapped_column(
        Enum(AvailabilityStatus, native_enum=False, length=16), default=AvailabilityStatus.AVAILABLE
    )

    seating_type: Mapped[SeatingType] = relationship(lazy="joined")
    branch: Mapped[Branch] = relationship(lazy="joined")

    @property
    def effective_rate(self) -> Decimal:
        if self.hourly_rate is not None:
            return Decimal(self.hourly_rate)
        return Decimal(self.seating_type.hourly_rate)

"""Booking cost rules: whole started hours at the resource's hourly rate."""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from coworks.core.errors import InvalidRangeError

CENTS = Decimal("0.01")


def billable_hours(start: datetime, end: datetime) -> int:
    if end <= start:
        raise InvalidRangeError("End time must be after start time")
    seconds = (end - start).total_seconds()
    return math.ceil(seconds / 3600)


def booking_cost(hourly_rate: Decimal | int | str, start: datetime, end: datetime) -> Decimal:
    """Cost of holding a resource from ``start`` to ``end``.

    A partly used hour is billed in full, so 90 minutes costs two hours.
    """
    hours = billable_hours(start, end)
    return (Decimal(str(hourly_rate)) * hours).quantize(CENTS, rounding=ROUND_HALF_UP)


def coin_charge(amount: Decimal) -> int:
    # 1 coin == 1 unit of currency
    return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from coworks.core.errors import InvalidRangeError, ValidationError
from coworks.services.cost import billable_hours, booking_cost, coin_charge, to_minor_units

START = datetime(2030, 1, 10, 9, 0)


def test_partial_hour_is_billed_in_full():
    end = START + timedelta(minutes=61)
    assert billable_hours(START, end) == 2
    assert booking_cost(Decimal("20.00"), START, end) == Decimal("40.00")
    assert coin_charge(booking_cost(Decimal("20.00"), START, end)) == 40


def test_ninety_minutes_bills_two_hours():
    assert booking_cost(Decimal("50"), START, START + timedelta(minutes=90)) == Decimal("100.00")


def test_exact_hours_are_not_rounded_up():
    assert billable_hours(START, START + timedelta(hours=2)) == 2
    assert billable_hours(START, START + timedelta(seconds=1)) == 1


def test_cost_keeps_two_decimal_places():
    assert booking_cost("33.335", START, START + timedelta(hours=1)) == Decimal("33.34")
    assert booking_cost(Decimal("12.50"), START, START + timedelta(hours=3)) == Decimal("37.50")


def test_coin_charge_rounds_to_nearest_coin():
    assert coin_charge(Decimal("37.50")) == 38
    assert coin_charge(Decimal("37.49")) == 37
    assert coin_charge(Decimal("100.00")) == 100


def test_minor_units():
    assert to_minor_units(Decimal("100.00")) == 10000
    assert to_minor_units(Decimal("37.55")) == 3755


@pytest.mark.parametrize("end", [START, START - timedelta(minutes=5)])
def test_empty_or_reversed_range_is_rejected(end):
    with pytest.raises(InvalidRangeError) as exc:
        booking_cost(Decimal("20"), START, end)
    assert isinstance(exc.value, ValidationError)
    assert exc.value.status_code == 400

from __future__ import annotations

import dataclasses
from datetime import date, datetime, timezone

import pytest

from conftest import MONDAY_9, MONDAY_10, NOW
from repairdesk.domain import Calendar, DailyAvailability, OrderStatus, ServiceOrder, TimeSlot
from repairdesk.services.availability import (
    DEFAULT_AVAILABILITY,
    compute_open_slots,
    day_of_week,
    is_slot_taken,
    to_local_time,
    validate_availability,
)
from repairdesk.services.errors import ValidationError


def _order(order_id, start, status=OrderStatus.PENDING, calendar_id="c2"):
    return ServiceOrder(
        id=order_id,
        service_order_number="OS-0001",
        title="Nevera - Maria",
        customer_id="cust1",
        customer_name="Maria",
        customer_phone="18095551234",
        customer_address="",
        appliance_type="Nevera",
        issue_description="No enfría",
        status=status,
        created_at=NOW,
        start=start,
        end=start.replace(hour=start.hour + 1),
        calendar_id=calendar_id,
    )


@pytest.fixture
def c2():
    monday = DailyAvailability(1, (TimeSlot("09:00", "10:00"), TimeSlot("11:00", "12:00")))
    return Calendar(id="c2", name="Agenda", user_id="s-tech", color="#000", availability=(monday,))


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2024, 3, 3)) == 0
    assert day_of_week(date(2024, 3, 4)) == 1
    assert day_of_week(date(2024, 3, 9)) == 6


def test_monday_slot_with_pending_order_is_occupied(c2):
    slots = compute_open_slots(c2, MONDAY_9.date(), [_order("so1", MONDAY_9)])
    assert [(s.start_time, s.occupied) for s in slots] == [("09:00", True), ("11:00", False)]


def test_cancelled_orders_free_their_slot(c2):
    slots = compute_open_slots(c2, MONDAY_9.date(), [_order("so1", MONDAY_9, OrderStatus.CANCELLED)])
    assert not any(s.occupied for s in slots)


def test_excluded_order_does_not_block_itself(c2):
    slots = compute_open_slots(c2, MONDAY_9.date(), [_order("so1", MONDAY_9)], exclude_order_id="so1")
    assert not slots[0].occupied


def test_orders_on_other_calendars_are_ignored(c2):
    slots = compute_open_slots(c2, MONDAY_9.date(), [_order("so1", MONDAY_9, calendar_id="c9")])
    assert not slots[0].occupied


def test_no_slots_for_unknown_calendar_or_empty_day(c2):
    assert compute_open_slots(None, MONDAY_9.date(), []) == []
    assert compute_open_slots(c2, date(2024, 3, 5), []) == []


def test_collision_is_exact_start_match():
    orders = [_order("so1", MONDAY_9)]
    assert is_slot_taken(orders, "c2", MONDAY_9)
    assert not is_slot_taken(orders, "c2", MONDAY_10)
    assert not is_slot_taken(orders, "c2", MONDAY_9, exclude_order_id="so1")


def test_default_availability_covers_weekdays_only():
    by_day = {d.day_of_week: d.slots for d in DEFAULT_AVAILABILITY}
    assert [s.start_time for s in by_day[1]] == ["09:00", "11:00", "13:00", "15:00", "17:00"]
    assert by_day[0] == () and by_day[6] == ()


def test_validate_availability_rejects_bad_ranges():
    with pytest.raises(ValidationError):
        validate_availability([DailyAvailability(1, (TimeSlot("10:00", "09:00"),))])
    with pytest.raises(ValidationError):
        validate_availability([DailyAvailability(1, (TimeSlot("9:00", "10:00"),))])
    with pytest.raises(ValidationError):
        validate_availability([DailyAvailability(7, ())])
    with pytest.raises(ValidationError):
        validate_availability([DailyAvailability(1, ()), DailyAvailability(1, ())])


def test_validate_availability_keeps_valid_template():
    assert validate_availability(DEFAULT_AVAILABILITY) == DEFAULT_AVAILABILITY
    replaced = dataclasses.replace(DEFAULT_AVAILABILITY[0], slots=list(DEFAULT_AVAILABILITY[0].slots))
    assert isinstance(validate_availability([replaced])[0].slots, tuple)


def test_local_time_conversion():
    utc = datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)
    assert to_local_time(utc, "America/Santo_Domingo") == MONDAY_9
    assert to_local_time(MONDAY_9, "America/Santo_Domingo") is MONDAY_9

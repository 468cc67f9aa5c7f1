"""
Bookable slot computation for staff calendars.

Slots come from a weekly template (one entry per weekday, 0 = Sunday).
A slot is identified by its start time only; every booking is assumed to
last one hour, so collisions are exact start-time matches.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ..domain import Calendar, DailyAvailability, OrderStatus, ServiceOrder, TimeSlot
from .errors import ValidationError

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

_WEEKDAY_HOURS = ("09:00", "11:00", "13:00", "15:00", "17:00")


def _hour_later(hhmm: str) -> str:
    hour, minute = hhmm.split(":")
    return f"{int(hour) + 1:02d}:{minute}"


DEFAULT_AVAILABILITY: tuple[DailyAvailability, ...] = tuple(
    DailyAvailability(
        day_of_week=dow,
        slots=tuple(TimeSlot(h, _hour_later(h)) for h in _WEEKDAY_HOURS) if 1 <= dow <= 5 else (),
    )
    for dow in (1, 2, 3, 4, 5, 6, 0)
)


@dataclass(frozen=True)
class SlotStatus:
    start_time: str
    end_time: str
    occupied: bool


def day_of_week(d: date) -> int:
    # date.weekday() is Monday = 0
    return (d.weekday() + 1) % 7


def format_hhmm(dt: datetime) -> str:
    return f"{dt.hour:02d}:{dt.minute:02d}"


def to_local_time(dt: datetime, time_zone: str) -> datetime:
    """Return ``dt`` as naive wall-clock time in ``time_zone``.

    Order times are stored naive; offset-aware input is converted on the way in.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(time_zone)).replace(tzinfo=None)


def slots_for_day(calendar: Optional[Calendar], target_date: date) -> tuple[TimeSlot, ...]:
    if calendar is None:
        return ()
    dow = day_of_week(target_date)
    for daily in calendar.availability:
        if daily.day_of_week == dow:
            return daily.slots
    return ()


def occupied_start_times(
    orders: Iterable[ServiceOrder],
    calendar_id: str,
    target_date: date,
    exclude_order_id: Optional[str] = None,
) -> set[str]:
    occupied: set[str] = set()
    for o in orders:
        if o.id == exclude_order_id or o.calendar_id != calendar_id:
            continue
        if o.start is None or o.status == OrderStatus.CANCELLED:
            continue
        if o.start.date() == target_date:
            occupied.add(format_hhmm(o.start))
    return occupied


def compute_open_slots(
    calendar: Optional[Calendar],
    target_date: date,
    orders: Iterable[ServiceOrder],
    exclude_order_id: Optional[str] = None,
) -> list[SlotStatus]:
    """Return the template slots for ``target_date`` flagged open or occupied.

    Nothing is reserved: a slot reported open may be taken before it is
    booked, which is why confirm/update repeat the collision check.
    """
    slots = slots_for_day(calendar, target_date)
    if not slots:
        return []
    occupied = occupied_start_times(orders, calendar.id, target_date, exclude_order_id)
    return [SlotStatus(s.start_time, s.end_time, s.start_time in occupied) for s in slots]


def is_slot_taken(
    orders: Iterable[ServiceOrder],
    calendar_id: str,
    start: datetime,
    exclude_order_id: Optional[str] = None,
) -> bool:
    return any(
        o.id != exclude_order_id
        and o.calendar_id == calendar_id
        and o.start == start
        and o.status != OrderStatus.CANCELLED
        for o in orders
    )


def validate_availability(availability: Iterable[DailyAvailability]) -> tuple[DailyAvailability, ...]:
    """Check times and weekdays. Overlapping ranges are not detected."""
    result = []
    seen_days: set[int] = set()
    for daily in availability:
        if not 0 <= daily.day_of_week <= 6:
            raise ValidationError(f"Invalid day of week: {daily.day_of_week}")
        if daily.day_of_week in seen_days:
            raise ValidationError(f"Duplicate day of week: {daily.day_of_week}")
        seen_days.add(daily.day_of_week)
        for slot in daily.slots:
            if not _HHMM.match(slot.start_time) or not _HHMM.match(slot.end_time):
                raise ValidationError(f"Time must be HH:MM: {slot.start_time}-{slot.end_time}")
            if slot.end_time <= slot.start_time:
                raise ValidationError(f"Slot must end after it starts: {slot.start_time}-{slot.end_time}")
        result.append(DailyAvailability(daily.day_of_week, tuple(daily.slots)))
    return tuple(result)

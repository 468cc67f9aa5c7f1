from __future__ import annotations

from unittest.mock import Mock

import pytest

from conftest import ADMIN_ID, MONDAY_9, MONDAY_10, NOW, order_input
from repairdesk.domain import DailyAvailability, OrderStatus, StaffRole, TimeSlot
from repairdesk.integrations.google_calendar import CalendarSync, GoogleCalendarClient
from repairdesk.services.errors import ValidationError
from repairdesk.services.order_service import OrderService
from repairdesk.services.staff_service import (
    StaffInput,
    StaffService,
    add_access_key,
    add_calendar,
    add_staff,
    delete_access_key,
    delete_calendar,
    delete_staff,
    set_current_user,
    staff_by_access_key,
    update_calendar,
    update_calendar_availability,
    update_public_form_availability,
    update_staff,
    update_staff_role,
)


def test_add_staff_creates_calendar(state):
    state, member = add_staff(state, StaffInput("Luis", "luis@example.com", StaffRole.TECHNICIAN))
    calendar = next(c for c in state.calendars if c.id == member.calendar_id)
    assert calendar.user_id == member.id
    assert calendar.availability


def test_only_admin_cannot_be_demoted_or_deleted(state):
    with pytest.raises(ValidationError):
        update_staff_role(state, ADMIN_ID, StaffRole.SECRETARY)
    with pytest.raises(ValidationError):
        delete_staff(state, ADMIN_ID, now=NOW)


def test_admin_can_be_demoted_when_another_exists(state):
    state, _ = update_staff_role(state, "s-sec", StaffRole.ADMIN)
    state, demoted = update_staff_role(state, ADMIN_ID, StaffRole.COORDINATOR)
    assert demoted.role == StaffRole.COORDINATOR


def test_deleting_staff_unassigns_their_orders(store):
    orders = OrderService(store=store, clock=lambda: NOW)
    order = orders.create_public_order(order_input()).order
    orders.confirm_order(order.id, {"start": MONDAY_9, "end": MONDAY_10, "calendar_id": "c2"})

    state, affected = delete_staff(store.state, "s-tech", now=NOW)

    assert [o.id for o in affected] == [order.id]
    (after,) = state.service_orders
    assert after.calendar_id is None
    assert after.status == OrderStatus.UNCONFIRMED
    assert all(c.id != "c2" for c in state.calendars)
    assert all(s.id != "s-tech" for s in state.staff)


def test_deleting_current_user_picks_another(store):
    state = set_current_user(store.state, "s-sec")
    state, _ = delete_staff(state, "s-sec", now=NOW, actor_id=ADMIN_ID)
    assert state.current_user_id == ADMIN_ID


def test_primary_calendar_cannot_be_deleted_directly(state):
    with pytest.raises(ValidationError):
        delete_calendar(state, "c2", now=NOW)


def test_secondary_calendar_can_be_deleted(state):
    state, extra = add_calendar(state, "Taller", "s-tech")
    state, affected = delete_calendar(state, extra.id, now=NOW)
    assert affected == []
    assert all(c.id != extra.id for c in state.calendars)


def test_access_keys_are_unique(state):
    state, _ = add_access_key(state, "s-sec", "1234")
    with pytest.raises(ValidationError):
        add_access_key(state, "s-tech", "1234")
    assert staff_by_access_key(state, "1234").id == "s-sec"
    assert staff_by_access_key(state, "9999") is None
    state, member = delete_access_key(state, "s-sec")
    assert member.access_key is None
    assert staff_by_access_key(state, "1234") is None


def test_calendar_availability_is_validated(state):
    with pytest.raises(ValidationError):
        update_calendar_availability(state, "c2", [DailyAvailability(1, (TimeSlot("12:00", "11:00"),))])
    state, calendar = update_calendar_availability(state, "c2", [DailyAvailability(6, (TimeSlot("08:00", "09:00"),))])
    assert calendar.availability[0].day_of_week == 6


def test_service_drops_linked_events(store):
    client = Mock(spec=GoogleCalendarClient)
    client.create_event.return_value = {"id": "evt-9"}
    sync = CalendarSync(client)
    orders = OrderService(store=store, sync=sync, notifier=Mock(), clock=lambda: NOW)
    order = orders.create_public_order(order_input()).order
    orders.confirm_order(order.id, {"start": MONDAY_9, "end": MONDAY_10, "calendar_id": "c2"})

    warnings = StaffService(store=store, sync=sync, clock=lambda: NOW).delete_staff("s-tech")

    assert warnings == []
    client.delete_event.assert_called_once_with("evt-9", "c2")
    assert store.state.service_orders[0].google_event_id is None


def test_update_staff_and_public_availability(state):
    state, member = update_staff(state, "s-sec", StaffInput("Ana María", "ana@example.com", StaffRole.SECRETARY))
    assert member.name == "Ana María"
    state = update_public_form_availability(state, [DailyAvailability(6, (TimeSlot("09:00", "10:00"),))])
    assert state.public_form_availability[0].day_of_week == 6
    state, calendar = update_calendar(state, "c3", name="Oficina", active=False)
    assert (calendar.name, calendar.active) == ("Oficina", False)

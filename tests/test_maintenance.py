from __future__ import annotations

import dataclasses
from datetime import date, datetime
from unittest.mock import Mock

import pytest

from conftest import NOW
from repairdesk.domain import SYSTEM_ACTOR, Customer, OrderStatus
from repairdesk.services.errors import ValidationError
from repairdesk.services.maintenance import (
    MaintenanceInput,
    MaintenanceScheduler,
    add_maintenance_schedule,
    add_months,
    delete_maintenance_schedule,
    run_maintenance_sweep,
    update_maintenance_schedule,
)
from repairdesk.store import Store


@pytest.fixture
def with_schedule(state):
    cust = Customer(id="cust1", name="Maria", phone="18095551234", address="Calle 1")
    state = dataclasses.replace(state, customers=(cust,))
    state, schedule = add_maintenance_schedule(
        state, MaintenanceInput("cust1", "Limpieza de aire acondicionado", 3, date(2023, 12, 1))
    )
    return state, schedule


def test_next_due_date_is_start_plus_frequency(with_schedule):
    _, schedule = with_schedule
    assert schedule.next_due_date == date(2024, 3, 1)


def test_month_addition_clamps_to_month_end():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)


def test_frequency_must_be_allowed(state):
    state = dataclasses.replace(state, customers=(Customer(id="cust1", name="M", phone="1"),))
    with pytest.raises(ValidationError):
        add_maintenance_schedule(state, MaintenanceInput("cust1", "Limpieza", 4, date(2024, 1, 1)))


def test_sweep_creates_one_order_and_advances_due_date(with_schedule):
    state, schedule = with_schedule
    state, created = run_maintenance_sweep(state, today=date(2024, 3, 1), now=NOW)

    assert len(created) == 1
    order = state.service_orders[0]
    assert order.status == OrderStatus.UNCONFIRMED
    assert order.history[0].user_id == SYSTEM_ACTOR
    assert "Limpieza de aire acondicionado" in order.issue_description
    assert state.maintenance_schedules[0].next_due_date == date(2024, 6, 1)
    assert state.customers[0].service_history == (order.id,)


def test_sweep_is_idempotent_while_order_is_open(with_schedule):
    state, _ = with_schedule
    state, _ = run_maintenance_sweep(state, today=date(2024, 3, 1), now=NOW)
    # even once the next due date has passed
    again, created = run_maintenance_sweep(state, today=date(2024, 7, 1), now=NOW)
    assert created == []
    assert again == state


def test_resolved_order_allows_next_cycle(with_schedule):
    state, _ = with_schedule
    state, _ = run_maintenance_sweep(state, today=date(2024, 3, 1), now=NOW)
    done = dataclasses.replace(state.service_orders[0], status=OrderStatus.COMPLETED)
    state = dataclasses.replace(state, service_orders=(done,))

    state, created = run_maintenance_sweep(state, today=date(2024, 6, 1), now=NOW)
    assert len(created) == 1
    assert state.maintenance_schedules[0].next_due_date == date(2024, 9, 1)


def test_future_schedules_are_left_alone(with_schedule):
    state, _ = with_schedule
    after, created = run_maintenance_sweep(state, today=date(2024, 2, 29), now=NOW)
    assert created == [] and after == state


def test_schedule_for_missing_customer_is_skipped(with_schedule):
    state, _ = with_schedule
    state = dataclasses.replace(state, customers=())
    after, created = run_maintenance_sweep(state, today=date(2024, 3, 1), now=NOW)
    assert created == [] and after == state


def test_scheduler_run_once_goes_through_store(with_schedule):
    state, _ = with_schedule
    store = Store(state)
    scheduler = MaintenanceScheduler(store, clock=lambda: datetime(2024, 3, 2, 6, 0))
    assert len(scheduler.run_once()) == 1
    assert scheduler.run_once() == []
    assert len(store.state.service_orders) == 1


def test_scheduler_thread_survives_failures():
    store = Mock()
    store.dispatch.side_effect = RuntimeError("boom")
    scheduler = MaintenanceScheduler(store, interval_seconds=0.01, clock=lambda: NOW)
    scheduler.start()
    scheduler.stop(timeout=1)
    assert store.dispatch.called


def test_update_and_delete_schedule(with_schedule):
    state, schedule = with_schedule
    state, updated = update_maintenance_schedule(
        state, schedule.id, MaintenanceInput("cust1", "Limpieza profunda", 6, date(2023, 12, 1))
    )
    assert updated.frequency_months == 6
    assert updated.next_due_date == schedule.next_due_date
    state = delete_maintenance_schedule(state, schedule.id)
    assert state.maintenance_schedules == ()

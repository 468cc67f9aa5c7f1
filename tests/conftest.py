from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from repairdesk.domain import Calendar, Staff, StaffRole
from repairdesk.seed import ADMIN_ID, initial_state
from repairdesk.services.availability import DEFAULT_AVAILABILITY
from repairdesk.services.order_service import CreateOrderInput, OrderService
from repairdesk.store import Store

NOW = datetime(2024, 3, 1, 8, 0)

# 2024-03-04 is a Monday
MONDAY_9 = datetime(2024, 3, 4, 9, 0)
MONDAY_10 = datetime(2024, 3, 4, 10, 0)
MONDAY_11 = datetime(2024, 3, 4, 11, 0)
MONDAY_12 = datetime(2024, 3, 4, 12, 0)


@pytest.fixture
def state():
    tech = Staff(id="s-tech", name="Pedro", email="pedro@example.com", calendar_id="c2", role=StaffRole.TECHNICIAN)
    secretary = Staff(id="s-sec", name="Ana", email="ana@example.com", calendar_id="c3", role=StaffRole.SECRETARY)
    base = initial_state("Test Co")
    return dataclasses.replace(
        base,
        staff=base.staff + (tech, secretary),
        calendars=base.calendars
        + (
            Calendar(id="c2", name="Agenda de Pedro", user_id="s-tech", color="#F57C00", availability=DEFAULT_AVAILABILITY),
            Calendar(id="c3", name="Agenda de Ana", user_id="s-sec", color="#33B679", availability=DEFAULT_AVAILABILITY),
        ),
    )


@pytest.fixture
def store(state):
    return Store(state)


@pytest.fixture
def order_service(store):
    return OrderService(store=store, clock=lambda: NOW)


def order_input(**overrides) -> CreateOrderInput:
    data = dict(
        customer_name="Maria Perez",
        customer_phone="18095551234",
        customer_address="Calle 1, Santo Domingo",
        appliance_type="Nevera",
        issue_description="No enfría",
    )
    data.update(overrides)
    return CreateOrderInput(**data)

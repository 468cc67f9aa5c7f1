from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta

from ..domain import (
    SYSTEM_ACTOR,
    ActionLog,
    AppState,
    LogAction,
    MaintenanceSchedule,
    OrderStatus,
    ServiceOrder,
)
from ..store import Store, find_by_id, get_by_id, new_id, remove_by_id, replace_by_id
from .customer_service import append_service_history
from .errors import ValidationError
from .order_service import DEFAULT_ORDER_PREFIX, format_order_number

logger = logging.getLogger(__name__)

ALLOWED_FREQUENCIES = (3, 6, 12)
DEFAULT_INTERVAL_SECONDS = 60 * 60
_UNRESOLVED = (OrderStatus.UNCONFIRMED, OrderStatus.PENDING)


def add_months(d: date, months: int) -> date:
    return d + relativedelta(months=months)


def maintenance_marker(schedule: MaintenanceSchedule) -> str:
    return f"Mantenimiento programado: {schedule.service_description}"


@dataclass
class MaintenanceInput:
    customer_id: str
    service_description: str
    frequency_months: int
    start_date: date


def _check(state: AppState, data: MaintenanceInput) -> None:
    get_by_id(state.customers, data.customer_id, "customer")
    if not data.service_description.strip():
        raise ValidationError("Service description cannot be empty.")
    if data.frequency_months not in ALLOWED_FREQUENCIES:
        raise ValidationError(f"Frequency must be one of {ALLOWED_FREQUENCIES} months.")


def add_maintenance_schedule(state: AppState, data: MaintenanceInput) -> tuple[AppState, MaintenanceSchedule]:
    _check(state, data)
    schedule = MaintenanceSchedule(
        id=new_id("ms"),
        customer_id=data.customer_id,
        service_description=data.service_description.strip(),
        frequency_months=data.frequency_months,
        start_date=data.start_date,
        next_due_date=add_months(data.start_date, data.frequency_months),
    )
    return dataclasses.replace(state, maintenance_schedules=state.maintenance_schedules + (schedule,)), schedule


def update_maintenance_schedule(
    state: AppState,
    schedule_id: str,
    data: MaintenanceInput,
    next_due_date: Optional[date] = None,
) -> tuple[AppState, MaintenanceSchedule]:
    original = get_by_id(state.maintenance_schedules, schedule_id, "maintenance schedule")
    _check(state, data)
    updated = dataclasses.replace(
        original,
        customer_id=data.customer_id,
        service_description=data.service_description.strip(),
        frequency_months=data.frequency_months,
        start_date=data.start_date,
        next_due_date=next_due_date or original.next_due_date,
    )
    schedules = replace_by_id(state.maintenance_schedules, updated)
    return dataclasses.replace(state, maintenance_schedules=schedules), updated


def delete_maintenance_schedule(state: AppState, schedule_id: str) -> AppState:
    get_by_id(state.maintenance_schedules, schedule_id, "maintenance schedule")
    return dataclasses.replace(
        state, maintenance_schedules=remove_by_id(state.maintenance_schedules, schedule_id)
    )


def _has_unresolved_order(state: AppState, customer_id: str, marker: str) -> bool:
    return any(
        o.customer_id == customer_id and marker in o.issue_description and o.status in _UNRESOLVED
        for o in state.service_orders
    )


def run_maintenance_sweep(
    state: AppState,
    *,
    today: date,
    now: datetime,
    prefix: str = DEFAULT_ORDER_PREFIX,
) -> tuple[AppState, list[str]]:
    """Create orders for every due schedule that has no open order yet.

    Safe to run repeatedly: a schedule whose customer still has an
    unresolved maintenance order is skipped and its due date left alone.
    """
    created: list[str] = []
    for schedule in state.maintenance_schedules:
        if schedule.next_due_date > today:
            continue
        customer = find_by_id(state.customers, schedule.customer_id)
        if customer is None:
            logger.warning("Schedule %s points at missing customer %s", schedule.id, schedule.customer_id)
            continue
        marker = maintenance_marker(schedule)
        if _has_unresolved_order(state, customer.id, marker):
            continue

        number = state.last_service_order_number + 1
        service = f"Mantenimiento: {schedule.service_description}"
        order = ServiceOrder(
            id=new_id("so"),
            service_order_number=format_order_number(number, prefix),
            title=f"{service} - {customer.name}",
            customer_id=customer.id,
            customer_name=customer.name,
            customer_phone=customer.phone,
            customer_address=customer.address,
            customer_email=customer.email or None,
            latitude=customer.latitude,
            longitude=customer.longitude,
            appliance_type=service,
            issue_description=marker,
            status=OrderStatus.UNCONFIRMED,
            created_at=now,
            history=(
                ActionLog(
                    action=LogAction.CREATED,
                    timestamp=now,
                    user_id=SYSTEM_ACTOR,
                    details="Generado automáticamente por programa de mantenimiento.",
                ),
            ),
        )
        advanced = dataclasses.replace(
            schedule, next_due_date=add_months(schedule.next_due_date, schedule.frequency_months)
        )
        state = dataclasses.replace(
            state,
            service_orders=state.service_orders + (order,),
            maintenance_schedules=replace_by_id(state.maintenance_schedules, advanced),
            last_service_order_number=number,
        )
        state = append_service_history(state, customer.id, order.id)
        created.append(order.id)
        logger.info("Maintenance order %s for schedule %s", order.service_order_number, schedule.id)
    return state, created


class MaintenanceScheduler:
    """Runs the sweep at start and then on a fixed interval in a daemon thread."""

    def __init__(
        self,
        store: Store,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
        order_number_prefix: str = DEFAULT_ORDER_PREFIX,
    ) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.order_number_prefix = order_number_prefix
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> list[str]:
        now = self.clock()
        return self.store.dispatch(
            run_maintenance_sweep, today=now.date(), now=now, prefix=self.order_number_prefix
        )

    def _loop(self) -> None:
        while True:
            try:
                created = self.run_once()
            except Exception:
                logger.exception("Maintenance sweep failed")
            else:
                if created:
                    logger.info("Maintenance sweep created %d order(s)", len(created))
            if self._stop.wait(self.interval_seconds):
                return

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="maintenance-sweep", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

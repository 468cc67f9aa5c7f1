from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..domain import (
    ActionLog,
    AppState,
    Calendar,
    DailyAvailability,
    LogAction,
    OrderStatus,
    ServiceOrder,
    Staff,
    StaffRole,
)
from ..integrations.google_calendar import CalendarSync
from ..store import Store, get_by_id, new_id, remove_by_id, replace_by_id, require_actor
from .availability import DEFAULT_AVAILABILITY, validate_availability
from .errors import ValidationError

logger = logging.getLogger(__name__)

CALENDAR_COLORS = ("#D50000", "#F57C00", "#039BE5", "#33B679", "#8E24AA", "#E67C73", "#0B8043", "#3F51B5")

# Orders still waiting to be worked go back to the confirmation queue when unassigned.
_REQUEUE = (OrderStatus.PENDING, OrderStatus.IN_PROGRESS)


@dataclass
class StaffInput:
    name: str
    email: str
    role: StaffRole
    personal_phone: Optional[str] = None
    fleet_phone: Optional[str] = None
    id_number: Optional[str] = None


def _check_staff(data: StaffInput) -> None:
    if not data.name.strip():
        raise ValidationError("Staff name cannot be empty.")
    if not data.email.strip():
        raise ValidationError("Staff email cannot be empty.")
    StaffRole(data.role)


def _admin_count(staff: Iterable[Staff]) -> int:
    return sum(1 for s in staff if s.role == StaffRole.ADMIN)


def _guard_last_admin(state: AppState, member: Staff, new_role: Optional[StaffRole]) -> None:
    if member.role != StaffRole.ADMIN or new_role == StaffRole.ADMIN:
        return
    if _admin_count(state.staff) == 1:
        raise ValidationError("The only administrator cannot be removed or demoted.")


def _next_color(state: AppState) -> str:
    return CALENDAR_COLORS[len(state.calendars) % len(CALENDAR_COLORS)]


def add_staff(state: AppState, data: StaffInput) -> tuple[AppState, Staff]:
    _check_staff(data)
    staff_id = new_id("s")
    calendar = Calendar(
        id=new_id("c"),
        name=f"Agenda de {data.name.strip()}",
        user_id=staff_id,
        color=_next_color(state),
        availability=DEFAULT_AVAILABILITY,
        active=True,
    )
    member = Staff(
        id=staff_id,
        name=data.name.strip(),
        email=data.email.strip(),
        calendar_id=calendar.id,
        role=StaffRole(data.role),
        personal_phone=data.personal_phone,
        fleet_phone=data.fleet_phone,
        id_number=data.id_number,
    )
    state = dataclasses.replace(
        state,
        staff=state.staff + (member,),
        calendars=state.calendars + (calendar,),
    )
    return state, member


def update_staff(state: AppState, staff_id: str, data: StaffInput) -> tuple[AppState, Staff]:
    member = get_by_id(state.staff, staff_id, "staff member")
    _check_staff(data)
    _guard_last_admin(state, member, StaffRole(data.role))
    updated = dataclasses.replace(
        member,
        name=data.name.strip(),
        email=data.email.strip(),
        role=StaffRole(data.role),
        personal_phone=data.personal_phone,
        fleet_phone=data.fleet_phone,
        id_number=data.id_number,
    )
    return dataclasses.replace(state, staff=replace_by_id(state.staff, updated)), updated


def update_staff_role(state: AppState, staff_id: str, role: StaffRole) -> tuple[AppState, Staff]:
    member = get_by_id(state.staff, staff_id, "staff member")
    role = StaffRole(role)
    _guard_last_admin(state, member, role)
    updated = dataclasses.replace(member, role=role)
    return dataclasses.replace(state, staff=replace_by_id(state.staff, updated)), updated


def _unassign_calendar_orders(
    state: AppState, calendar_id: str, *, now: datetime, actor_id: str
) -> tuple[AppState, list[ServiceOrder]]:
    affected: list[ServiceOrder] = []
    orders = []
    for o in state.service_orders:
        if o.calendar_id != calendar_id:
            orders.append(o)
            continue
        affected.append(o)
        entry = ActionLog(LogAction.EDITED, now, actor_id, "Calendario eliminado; cita sin asignar.")
        orders.append(
            dataclasses.replace(
                o,
                calendar_id=None,
                status=OrderStatus.UNCONFIRMED if o.status in _REQUEUE else o.status,
                google_event_id=None,
                is_google_synced=False,
                history=o.history + (entry,),
            )
        )
    return dataclasses.replace(state, service_orders=tuple(orders)), affected


def delete_staff(
    state: AppState,
    staff_id: str,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, list[ServiceOrder]]:
    """Remove a staff member and their calendar.

    Returns the orders that were on the calendar, as they were before being
    unassigned.
    """
    member = get_by_id(state.staff, staff_id, "staff member")
    _guard_last_admin(state, member, None)
    actor = require_actor(state, actor_id)

    state, affected = _unassign_calendar_orders(state, member.calendar_id, now=now, actor_id=actor)
    remaining = remove_by_id(state.staff, staff_id)
    current = state.current_user_id
    if current == staff_id:
        current = remaining[0].id if remaining else None
    state = dataclasses.replace(
        state,
        staff=remaining,
        calendars=remove_by_id(state.calendars, member.calendar_id),
        current_user_id=current,
    )
    logger.info("Deleted staff %s; %d order(s) unassigned", staff_id, len(affected))
    return state, affected


def add_calendar(state: AppState, name: str, user_id: str) -> tuple[AppState, Calendar]:
    if not name.strip():
        raise ValidationError("Calendar name cannot be empty.")
    get_by_id(state.staff, user_id, "staff member")
    calendar = Calendar(
        id=new_id("c"),
        name=name.strip(),
        user_id=user_id,
        color=_next_color(state),
        availability=DEFAULT_AVAILABILITY,
        active=True,
    )
    return dataclasses.replace(state, calendars=state.calendars + (calendar,)), calendar


def update_calendar(
    state: AppState,
    calendar_id: str,
    *,
    name: Optional[str] = None,
    color: Optional[str] = None,
    active: Optional[bool] = None,
) -> tuple[AppState, Calendar]:
    calendar = get_by_id(state.calendars, calendar_id, "calendar")
    changes = {}
    if name is not None:
        if not name.strip():
            raise ValidationError("Calendar name cannot be empty.")
        changes["name"] = name.strip()
    if color is not None:
        changes["color"] = color
    if active is not None:
        changes["active"] = active
    updated = dataclasses.replace(calendar, **changes)
    return dataclasses.replace(state, calendars=replace_by_id(state.calendars, updated)), updated


def update_calendar_availability(
    state: AppState, calendar_id: str, availability: Iterable[DailyAvailability]
) -> tuple[AppState, Calendar]:
    calendar = get_by_id(state.calendars, calendar_id, "calendar")
    updated = dataclasses.replace(calendar, availability=validate_availability(availability))
    return dataclasses.replace(state, calendars=replace_by_id(state.calendars, updated)), updated


def update_public_form_availability(state: AppState, availability: Iterable[DailyAvailability]) -> AppState:
    return dataclasses.replace(state, public_form_availability=validate_availability(availability))


def delete_calendar(
    state: AppState,
    calendar_id: str,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, list[ServiceOrder]]:
    get_by_id(state.calendars, calendar_id, "calendar")
    if any(s.calendar_id == calendar_id for s in state.staff):
        raise ValidationError("This calendar is a staff member's primary calendar; manage the staff member first.")
    actor = require_actor(state, actor_id)
    state, affected = _unassign_calendar_orders(state, calendar_id, now=now, actor_id=actor)
    return dataclasses.replace(state, calendars=remove_by_id(state.calendars, calendar_id)), affected


def add_access_key(state: AppState, staff_id: str, key: str) -> tuple[AppState, Staff]:
    member = get_by_id(state.staff, staff_id, "staff member")
    key = (key or "").strip()
    if not key:
        raise ValidationError("Access key cannot be empty.")
    if any(s.access_key == key and s.id != staff_id for s in state.staff):
        raise ValidationError("Access key is already in use.")
    updated = dataclasses.replace(member, access_key=key)
    return dataclasses.replace(state, staff=replace_by_id(state.staff, updated)), updated


def delete_access_key(state: AppState, staff_id: str) -> tuple[AppState, Staff]:
    member = get_by_id(state.staff, staff_id, "staff member")
    updated = dataclasses.replace(member, access_key=None)
    return dataclasses.replace(state, staff=replace_by_id(state.staff, updated)), updated


def staff_by_access_key(state: AppState, key: str) -> Optional[Staff]:
    for s in state.staff:
        if s.access_key and s.access_key == key:
            return s
    return None


def set_current_user(state: AppState, staff_id: Optional[str]) -> AppState:
    if staff_id is not None:
        get_by_id(state.staff, staff_id, "staff member")
    return dataclasses.replace(state, current_user_id=staff_id)


class StaffService:
    """Staff and calendar removals, which also drop linked calendar events."""

    def __init__(
        self,
        *,
        store: Store,
        sync: Optional[CalendarSync] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.sync = sync or CalendarSync()
        self.clock = clock

    def _drop_events(self, orders: list[ServiceOrder]) -> list[str]:
        warnings: list[str] = []
        for o in orders:
            warnings += self.sync.removed(o).warnings
        return warnings

    def delete_staff(self, staff_id: str, *, actor_id: Optional[str] = None) -> list[str]:
        affected = self.store.dispatch(delete_staff, staff_id, now=self.clock(), actor_id=actor_id)
        return self._drop_events(affected)

    def delete_calendar(self, calendar_id: str, *, actor_id: Optional[str] = None) -> list[str]:
        affected = self.store.dispatch(delete_calendar, calendar_id, now=self.clock(), actor_id=actor_id)
        return self._drop_events(affected)

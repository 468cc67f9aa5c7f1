from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Optional

from ..domain import (
    PUBLIC_FORM_ACTOR,
    ActionLog,
    AppState,
    LogAction,
    OrderStatus,
    ServiceOrder,
)
from ..integrations.google_calendar import CalendarSync, SyncOutcome
from ..notifications import OrderNotifier
from ..store import Store, find_by_id, get_by_id, new_id, replace_by_id, require_actor
from .availability import SlotStatus, compute_open_slots, format_hhmm, is_slot_taken
from .customer_service import CustomerInput, append_service_history, resolve_customer
from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_ORDER_PREFIX = "OS"

# Fields that only the lifecycle itself may set.
PROTECTED_FIELDS = frozenset(
    {
        "id",
        "service_order_number",
        "customer_id",
        "status",
        "history",
        "created_at",
        "is_google_synced",
        "google_event_id",
        "rescheduled_count",
        "confirmed_by_id",
        "cancelled_by_id",
        "cancellation_reason",
        "attended_by_id",
        "archive_reason",
    }
)
_ORDER_FIELDS = frozenset(f.name for f in dataclasses.fields(ServiceOrder))


@dataclass
class CreateOrderInput:
    customer_name: str
    customer_phone: str
    customer_address: str
    appliance_type: str
    issue_description: str
    customer_email: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    calendar_id: Optional[str] = None
    reminders: tuple[int, ...] = ()
    is_checkup_only: bool = False
    service_notes: Optional[str] = None


def format_order_number(number: int, prefix: str = DEFAULT_ORDER_PREFIX) -> str:
    return f"{prefix}-{number:04d}"


def _log(action: LogAction, now: datetime, actor_id: str, details: Optional[str] = None) -> ActionLog:
    return ActionLog(action=action, timestamp=now, user_id=actor_id, details=details)


def _with_order(state: AppState, order: ServiceOrder) -> AppState:
    return dataclasses.replace(state, service_orders=replace_by_id(state.service_orders, order))


def _wall_clock(value, field_name: str) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(f"{field_name} must be a datetime.")
    if value.tzinfo is not None:
        raise ValidationError(f"{field_name} must be local time without a UTC offset.")
    return value


def _check_reminders(reminders) -> tuple[int, ...]:
    result = tuple(int(m) for m in reminders)
    if any(m < 0 for m in result):
        raise ValidationError("Reminder minutes cannot be negative.")
    return result


def _apply_changes(order: ServiceOrder, changes: dict[str, Any]) -> ServiceOrder:
    unknown = set(changes) - _ORDER_FIELDS
    if unknown:
        raise ValidationError(f"Unknown service order fields: {sorted(unknown)}")
    protected = set(changes) & PROTECTED_FIELDS
    if protected:
        raise ValidationError(f"Fields cannot be edited directly: {sorted(protected)}")
    changes = dict(changes)
    if "reminders" in changes:
        changes["reminders"] = _check_reminders(changes["reminders"] or ())
    for key in ("start", "end"):
        if key in changes:
            changes[key] = _wall_clock(changes[key], key)
    for required in ("customer_name", "customer_phone", "appliance_type", "issue_description"):
        if required in changes and not str(changes[required] or "").strip():
            raise ValidationError(f"{required} cannot be empty.")
    return dataclasses.replace(order, **changes)


def _check_schedule(
    state: AppState,
    *,
    start: datetime,
    end: Optional[datetime],
    calendar_id: str,
    exclude_order_id: Optional[str],
) -> None:
    get_by_id(state.calendars, calendar_id, "calendar")
    if end is not None and end <= start:
        raise ValidationError("Appointment end must be after its start.")
    if is_slot_taken(state.service_orders, calendar_id, start, exclude_order_id):
        raise ValidationError(
            f"The {format_hhmm(start)} slot on {start.date().isoformat()} is already booked on this calendar."
        )


def create_order(
    state: AppState,
    data: CreateOrderInput,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
    public: bool = False,
    prefix: str = DEFAULT_ORDER_PREFIX,
) -> tuple[AppState, ServiceOrder]:
    if not data.appliance_type.strip():
        raise ValidationError("Service/appliance type cannot be empty.")
    if not data.issue_description.strip():
        raise ValidationError("Issue description cannot be empty.")

    if public:
        actor = PUBLIC_FORM_ACTOR
        creator_id = None
        calendar_id = None
        details = "Cita creada desde formulario público."
    else:
        actor = require_actor(state, actor_id)
        creator_id = actor
        calendar_id = data.calendar_id
        details = "Cita creada por personal interno."
        if calendar_id is not None:
            get_by_id(state.calendars, calendar_id, "calendar")
    start = _wall_clock(data.start, "start")
    end = _wall_clock(data.end, "end")
    if start is not None and end is not None and end <= start:
        raise ValidationError("Appointment end must be after its start.")

    state, customer = resolve_customer(
        state,
        CustomerInput(
            name=data.customer_name,
            phone=data.customer_phone,
            email=data.customer_email,
            address=data.customer_address,
            latitude=data.latitude,
            longitude=data.longitude,
        ),
        created_by_id=creator_id,
    )

    number = state.last_service_order_number + 1
    order = ServiceOrder(
        id=new_id("so"),
        service_order_number=format_order_number(number, prefix),
        title=f"{data.appliance_type.strip()} - {data.customer_name.strip()}",
        customer_id=customer.id,
        customer_name=data.customer_name.strip(),
        customer_phone=data.customer_phone.strip(),
        customer_address=data.customer_address.strip(),
        customer_email=data.customer_email.strip() or None,
        latitude=data.latitude,
        longitude=data.longitude,
        appliance_type=data.appliance_type.strip(),
        issue_description=data.issue_description.strip(),
        status=OrderStatus.UNCONFIRMED,
        created_at=now,
        start=start,
        end=end,
        calendar_id=calendar_id,
        reminders=_check_reminders(data.reminders),
        is_checkup_only=data.is_checkup_only,
        service_notes=data.service_notes,
        created_by_id=creator_id,
        history=(_log(LogAction.CREATED, now, actor, details),),
    )
    state = dataclasses.replace(
        state,
        service_orders=state.service_orders + (order,),
        last_service_order_number=number,
    )
    state = append_service_history(state, customer.id, order.id)
    logger.info("Created %s for customer %s (%s)", order.service_order_number, customer.id, actor)
    return state, order


def confirm_order(
    state: AppState,
    order_id: str,
    changes: dict[str, Any],
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, ServiceOrder]:
    order = get_by_id(state.service_orders, order_id, "service order")
    if order.status != OrderStatus.UNCONFIRMED:
        raise ValidationError(f"Only '{OrderStatus.UNCONFIRMED.value}' orders can be confirmed.")
    actor = require_actor(state, actor_id)
    merged = _apply_changes(order, changes)
    if merged.start is None or merged.end is None or not merged.calendar_id:
        raise ValidationError("Confirming requires start, end and calendar.")
    _check_schedule(state, start=merged.start, end=merged.end, calendar_id=merged.calendar_id, exclude_order_id=order.id)

    confirmed = dataclasses.replace(
        merged,
        status=OrderStatus.PENDING,
        confirmed_by_id=actor,
        created_by_id=merged.created_by_id or actor,
        history=merged.history + (_log(LogAction.CONFIRMED, now, actor),),
    )
    state = _with_order(state, confirmed)

    customer = find_by_id(state.customers, confirmed.customer_id)
    if customer is not None and not customer.created_by_id:
        customer = dataclasses.replace(customer, created_by_id=actor)
        state = dataclasses.replace(state, customers=replace_by_id(state.customers, customer))
    logger.info("Confirmed %s on %s at %s", confirmed.service_order_number, confirmed.calendar_id, confirmed.start)
    return state, confirmed


def _is_reschedule(original: ServiceOrder, changes: dict[str, Any]) -> bool:
    new_start = changes.get("start")
    if new_start is not None and original.start is not None and new_start != original.start:
        return True
    new_calendar = changes.get("calendar_id")
    return bool(new_calendar and original.calendar_id and new_calendar != original.calendar_id)


def update_order(
    state: AppState,
    order_id: str,
    changes: dict[str, Any],
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, tuple[ServiceOrder, ServiceOrder]]:
    """Apply field edits. A changed start or calendar counts as a reschedule."""
    original = get_by_id(state.service_orders, order_id, "service order")
    actor = require_actor(state, actor_id)
    updated = _apply_changes(original, changes)
    if changes.get("calendar_id"):
        get_by_id(state.calendars, changes["calendar_id"], "calendar")

    touches_schedule = "start" in changes or "calendar_id" in changes or "end" in changes
    if touches_schedule and updated.start is not None and updated.calendar_id:
        if updated.status != OrderStatus.CANCELLED:
            _check_schedule(
                state,
                start=updated.start,
                end=updated.end,
                calendar_id=updated.calendar_id,
                exclude_order_id=original.id,
            )

    if _is_reschedule(original, changes):
        action = LogAction.RESCHEDULED
        updated = dataclasses.replace(updated, rescheduled_count=original.rescheduled_count + 1)
    else:
        action = LogAction.EDITED
    updated = dataclasses.replace(updated, history=original.history + (_log(action, now, actor),))
    return _with_order(state, updated), (original, updated)


def cancel_order(
    state: AppState,
    order_id: str,
    reason: str,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, ServiceOrder]:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required.")
    order = get_by_id(state.service_orders, order_id, "service order")
    if order.status.is_terminal:
        raise ValidationError(f"Order is already '{order.status.value}'.")
    actor = require_actor(state, actor_id)
    cancelled = dataclasses.replace(
        order,
        status=OrderStatus.CANCELLED,
        cancellation_reason=reason,
        cancelled_by_id=actor,
        history=order.history + (_log(LogAction.CANCELLED, now, actor, f"Motivo: {reason}"),),
    )
    logger.info("Cancelled %s: %s", order.service_order_number, reason)
    return _with_order(state, cancelled), cancelled


def archive_order(
    state: AppState,
    order_id: str,
    attended_by_id: str,
    reason: str,
    *,
    now: datetime,
) -> tuple[AppState, ServiceOrder]:
    reason = (reason or "").strip()
    if not attended_by_id:
        raise ValidationError("The attending staff member is required.")
    if not reason:
        raise ValidationError("An archive reason is required.")
    order = get_by_id(state.service_orders, order_id, "service order")
    if order.status != OrderStatus.UNCONFIRMED:
        raise ValidationError(f"Only '{OrderStatus.UNCONFIRMED.value}' orders can be archived.")
    get_by_id(state.staff, attended_by_id, "staff member")
    archived = dataclasses.replace(
        order,
        status=OrderStatus.NOT_SCHEDULED,
        attended_by_id=attended_by_id,
        archive_reason=reason,
        history=order.history + (_log(LogAction.ARCHIVED, now, attended_by_id, f"Motivo: {reason}"),),
    )
    return _with_order(state, archived), archived


def set_order_status(
    state: AppState,
    order_id: str,
    status: OrderStatus,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, ServiceOrder]:
    order = get_by_id(state.service_orders, order_id, "service order")
    status = OrderStatus(status)
    if order.status.is_terminal:
        raise ValidationError(f"Order is '{order.status.value}' and cannot change status.")
    if status.is_terminal:
        raise ValidationError(f"Use cancel or archive to set '{status.value}'.")
    if status == order.status:
        return state, order
    actor = require_actor(state, actor_id)
    entry = _log(LogAction.STATUS_CHANGED, now, actor, f"{order.status.value} -> {status.value}")
    updated = dataclasses.replace(order, status=status, history=order.history + (entry,))
    return _with_order(state, updated), updated


def set_order_reminders(
    state: AppState,
    order_id: str,
    reminders,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, ServiceOrder]:
    order = get_by_id(state.service_orders, order_id, "service order")
    actor = require_actor(state, actor_id)
    minutes = _check_reminders(reminders)
    entry = _log(LogAction.EDITED, now, actor, "Recordatorios actualizados.")
    updated = dataclasses.replace(order, reminders=minutes, history=order.history + (entry,))
    return _with_order(state, updated), updated


def link_calendar_event(state: AppState, order_id: str, event_id: str) -> tuple[AppState, ServiceOrder]:
    order = get_by_id(state.service_orders, order_id, "service order")
    linked = dataclasses.replace(order, google_event_id=event_id, is_google_synced=True)
    return _with_order(state, linked), linked


@dataclass
class OrderResult:
    order: ServiceOrder
    warnings: list[str] = field(default_factory=list)


class OrderService:
    """Runs lifecycle transitions against the store, then syncs the calendar.

    The local change is committed before any sync call, and a failed sync
    only adds a warning to the result.
    """

    def __init__(
        self,
        *,
        store: Store,
        sync: Optional[CalendarSync] = None,
        notifier: Optional[OrderNotifier] = None,
        clock: Callable[[], datetime] = datetime.now,
        order_number_prefix: str = DEFAULT_ORDER_PREFIX,
    ) -> None:
        self.store = store
        self.sync = sync or CalendarSync()
        self.notifier = notifier or OrderNotifier()
        self.clock = clock
        self.order_number_prefix = order_number_prefix

    def _finish(self, order: ServiceOrder, outcome: SyncOutcome) -> OrderResult:
        if outcome.event_id:
            order = self.store.dispatch(link_calendar_event, order.id, outcome.event_id)
        return OrderResult(order=order, warnings=list(outcome.warnings))

    def _publish_if_scheduled(self, order: ServiceOrder) -> OrderResult:
        if order.start is None or order.end is None or not order.calendar_id:
            return OrderResult(order=order)
        return self._finish(order, self.sync.publish(order))

    def create_order(self, data: CreateOrderInput, *, actor_id: Optional[str] = None) -> OrderResult:
        order = self.store.dispatch(
            create_order, data, now=self.clock(), actor_id=actor_id, prefix=self.order_number_prefix
        )
        self.notifier.new_order(order)
        return self._publish_if_scheduled(order)

    def create_public_order(self, data: CreateOrderInput) -> OrderResult:
        order = self.store.dispatch(
            create_order, data, now=self.clock(), public=True, prefix=self.order_number_prefix
        )
        self.notifier.new_order(order)
        return OrderResult(order=order)

    def confirm_order(
        self, order_id: str, changes: dict[str, Any], *, actor_id: Optional[str] = None
    ) -> OrderResult:
        order = self.store.dispatch(confirm_order, order_id, changes, now=self.clock(), actor_id=actor_id)
        return self._finish(order, self.sync.publish(order))

    def update_order(
        self, order_id: str, changes: dict[str, Any], *, actor_id: Optional[str] = None
    ) -> OrderResult:
        previous, order = self.store.dispatch(update_order, order_id, changes, now=self.clock(), actor_id=actor_id)
        return self._finish(order, self.sync.rescheduled(previous, order))

    def cancel_order(self, order_id: str, reason: str, *, actor_id: Optional[str] = None) -> OrderResult:
        order = self.store.dispatch(cancel_order, order_id, reason, now=self.clock(), actor_id=actor_id)
        return self._finish(order, self.sync.status_changed(order))

    def archive_order(self, order_id: str, attended_by_id: str, reason: str) -> OrderResult:
        order = self.store.dispatch(archive_order, order_id, attended_by_id, reason, now=self.clock())
        return OrderResult(order=order)

    def set_status(self, order_id: str, status: OrderStatus, *, actor_id: Optional[str] = None) -> OrderResult:
        order = self.store.dispatch(set_order_status, order_id, status, now=self.clock(), actor_id=actor_id)
        return self._finish(order, self.sync.status_changed(order))

    def set_reminders(self, order_id: str, reminders, *, actor_id: Optional[str] = None) -> OrderResult:
        order = self.store.dispatch(set_order_reminders, order_id, reminders, now=self.clock(), actor_id=actor_id)
        return self._finish(order, self.sync.reminders_changed(order))

    def open_slots(
        self, calendar_id: str, day: date, exclude_order_id: Optional[str] = None
    ) -> list[SlotStatus]:
        state = self.store.state
        calendar = find_by_id(state.calendars, calendar_id)
        return compute_open_slots(calendar, day, state.service_orders, exclude_order_id)

"""
Google Calendar sync.

One service order maps to at most one event (``google_event_id``). Every
call is a single attempt; failures are logged and reported back as warnings,
never raised to the caller of a lifecycle operation.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

import requests

from ..domain import OrderStatus, ServiceOrder

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.googleapis.com/calendar/v3"
DEFAULT_TIMEOUT = 15.0

STATUS_COLOR_IDS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "5",
    OrderStatus.IN_PROGRESS: "10",
    OrderStatus.COMPLETED: "9",
    OrderStatus.CANCELLED: "8",
    OrderStatus.UNCONFIRMED: "3",
    OrderStatus.WARRANTY: "11",
    OrderStatus.NOT_SCHEDULED: "8",
}


class CalendarSyncError(Exception):
    pass


def status_color_id(status: OrderStatus) -> str:
    return STATUS_COLOR_IDS[status]


def event_summary(order: ServiceOrder, status_label: Optional[str] = None) -> str:
    return f"{order.appliance_type} - {order.customer_name} [{status_label or order.status.value}]"


def build_event_description(order: ServiceOrder) -> str:
    clean_phone = re.sub(r"\D", "", order.customer_phone)
    lines = [
        "<b>-- INFORMACIÓN DEL CLIENTE --</b>",
        f"<b>Nombre:</b> {order.customer_name}",
        f"<b>Teléfono:</b> {order.customer_phone}",
        f'<b>WhatsApp:</b> <a href="https://wa.me/{clean_phone}">https://wa.me/{clean_phone}</a>',
        f"<b>Dirección:</b> {order.customer_address}",
        "",
        "<b>-- DETALLES DEL SERVICIO --</b>",
        f"<b>Servicio:</b> {order.appliance_type}",
    ]
    if order.is_checkup_only:
        lines.append("<b>Tipo:</b> Solo Chequeo")
    lines.append(f"<b>Falla Reportada:</b> {order.issue_description}")
    if order.service_notes:
        lines += ["", "<b>-- TRABAJO REALIZADO Y NOTAS --</b>", order.service_notes]
    return "\n".join(lines)


def format_reminders(minutes: tuple[int, ...]) -> dict[str, Any]:
    if not minutes:
        return {"useDefault": True}
    return {"useDefault": False, "overrides": [{"method": "popup", "minutes": m} for m in minutes]}


class GoogleCalendarClient:
    """Thin REST client for the Calendar v3 events endpoints.

    The OAuth access token is opaque here; refreshing it is someone else's job.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        time_zone: str = "America/Santo_Domingo",
        timeout: float = DEFAULT_TIMEOUT,
        calendar_map: Optional[dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.time_zone = time_zone
        self.timeout = timeout
        self.calendar_map = dict(calendar_map or {})
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    def remote_calendar_id(self, calendar_id: str) -> str:
        return self.calendar_map.get(calendar_id, calendar_id)

    def _events_url(self, calendar_id: str, *parts: str) -> str:
        remote = quote(self.remote_calendar_id(calendar_id), safe="")
        return "/".join((self.base_url, "calendars", remote, "events") + parts)

    def _request(self, method: str, url: str, **kwargs) -> Optional[dict]:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise CalendarSyncError(f"{method} {url} failed: {e}") from e
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _when(self, dt: datetime) -> dict[str, str]:
        return {"dateTime": dt.isoformat(), "timeZone": self.time_zone}

    def create_event(self, order: ServiceOrder, calendar_id: str) -> dict:
        if order.start is None or order.end is None:
            raise CalendarSyncError(f"Order {order.service_order_number} has no schedule to publish.")
        body = {
            "summary": event_summary(order),
            "location": order.customer_address,
            "description": build_event_description(order),
            "start": self._when(order.start),
            "end": self._when(order.end),
            "reminders": format_reminders(order.reminders),
            "colorId": status_color_id(order.status),
        }
        event = self._request("POST", self._events_url(calendar_id), json=body)
        if not event or "id" not in event:
            raise CalendarSyncError("Calendar API returned no event id.")
        return event

    def patch_event(
        self,
        event_id: str,
        calendar_id: str,
        *,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        color_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        reminders: Optional[tuple[int, ...]] = None,
    ) -> Optional[dict]:
        body: dict[str, Any] = {}
        if summary:
            body["summary"] = summary
        if description:
            body["description"] = description
        if color_id:
            body["colorId"] = color_id
        if start is not None:
            body["start"] = self._when(start)
        if end is not None:
            body["end"] = self._when(end)
        if reminders is not None:
            body["reminders"] = format_reminders(reminders)
        return self._request("PATCH", self._events_url(calendar_id, event_id), json=body)

    def move_event(self, event_id: str, source_calendar_id: str, destination_calendar_id: str) -> Optional[dict]:
        return self._request(
            "POST",
            self._events_url(source_calendar_id, event_id, "move"),
            params={"destination": self.remote_calendar_id(destination_calendar_id)},
        )

    def delete_event(self, event_id: str, calendar_id: str = "primary") -> None:
        self._request("DELETE", self._events_url(calendar_id, event_id))

    def list_upcoming_events(self, calendar_id: str = "primary", now: Optional[datetime] = None) -> list[dict]:
        time_min = (now or datetime.now()).astimezone().isoformat()
        data = self._request(
            "GET",
            self._events_url(calendar_id),
            params={"timeMin": time_min, "showDeleted": "false", "singleEvents": "true", "orderBy": "startTime"},
        )
        return list((data or {}).get("items", []))


@dataclass
class SyncOutcome:
    event_id: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


class CalendarSync:
    """Best-effort bridge between lifecycle transitions and the calendar client.

    With no client configured every method is a no-op.
    """

    def __init__(self, client: Optional[GoogleCalendarClient] = None) -> None:
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _warn(self, outcome: SyncOutcome, order: ServiceOrder, what: str, err: Exception) -> SyncOutcome:
        logger.warning("Calendar sync (%s) failed for %s: %s", what, order.service_order_number, err)
        outcome.warnings.append(f"Could not {what} the calendar event for {order.service_order_number}.")
        return outcome

    def publish(self, order: ServiceOrder) -> SyncOutcome:
        """Create the event, or fully patch it when the order is already linked."""
        outcome = SyncOutcome()
        if not self.enabled:
            return outcome
        if order.start is None or order.end is None or not order.calendar_id:
            logger.error("Order %s lacks start/end/calendar, not synced", order.service_order_number)
            outcome.warnings.append(f"{order.service_order_number} is missing schedule data for calendar sync.")
            return outcome
        if order.google_event_id:
            try:
                self.client.patch_event(
                    order.google_event_id,
                    order.calendar_id,
                    summary=event_summary(order),
                    description=build_event_description(order),
                    color_id=status_color_id(order.status),
                    start=order.start,
                    end=order.end,
                )
            except CalendarSyncError as e:
                return self._warn(outcome, order, "update", e)
            return outcome
        try:
            event = self.client.create_event(order, order.calendar_id)
        except CalendarSyncError as e:
            return self._warn(outcome, order, "create", e)
        outcome.event_id = event["id"]
        logger.info("Order %s linked to event %s", order.service_order_number, outcome.event_id)
        return outcome

    def rescheduled(self, previous: ServiceOrder, order: ServiceOrder) -> SyncOutcome:
        outcome = SyncOutcome()
        if not self.enabled or not order.google_event_id or not order.calendar_id:
            return outcome
        if order.start is None or order.end is None:
            return outcome
        try:
            if previous.calendar_id and previous.calendar_id != order.calendar_id:
                self.client.move_event(order.google_event_id, previous.calendar_id, order.calendar_id)
            self.client.patch_event(
                order.google_event_id,
                order.calendar_id,
                summary=event_summary(order),
                description=build_event_description(order),
                color_id=status_color_id(order.status),
                start=order.start,
                end=order.end,
            )
        except CalendarSyncError as e:
            return self._warn(outcome, order, "update", e)
        return outcome

    def status_changed(self, order: ServiceOrder) -> SyncOutcome:
        outcome = SyncOutcome()
        if not self.enabled or not order.google_event_id or not order.calendar_id:
            return outcome
        label = "CANCELADO" if order.status == OrderStatus.CANCELLED else None
        try:
            self.client.patch_event(
                order.google_event_id,
                order.calendar_id,
                summary=event_summary(order, label),
                color_id=status_color_id(order.status),
            )
        except CalendarSyncError as e:
            return self._warn(outcome, order, "update the status of", e)
        return outcome

    def reminders_changed(self, order: ServiceOrder) -> SyncOutcome:
        outcome = SyncOutcome()
        if not self.enabled or not order.google_event_id or not order.calendar_id:
            return outcome
        try:
            self.client.patch_event(order.google_event_id, order.calendar_id, reminders=order.reminders)
        except CalendarSyncError as e:
            return self._warn(outcome, order, "update reminders on", e)
        return outcome

    def removed(self, order: ServiceOrder) -> SyncOutcome:
        outcome = SyncOutcome()
        if not self.enabled or not order.google_event_id or not order.calendar_id:
            return outcome
        try:
            self.client.delete_event(order.google_event_id, order.calendar_id)
        except CalendarSyncError as e:
            return self._warn(outcome, order, "delete", e)
        return outcome

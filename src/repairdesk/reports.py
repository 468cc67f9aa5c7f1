from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from .domain import AppState, LogAction, OrderStatus, StaffRole
from .store import find_by_id

OFFICE_ROLES = (StaffRole.SECRETARY, StaffRole.ADMIN, StaffRole.COORDINATOR)


def _bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    return datetime.combine(date_from, time.min), datetime.combine(date_to, time.max)


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def secretary_performance(
    state: AppState,
    date_from: date,
    date_to: date,
    staff_id: Optional[str] = None,
) -> list[dict]:
    start, end = _bounds(date_from, date_to)
    office = [s for s in state.staff if s.role in OFFICE_ROLES and (staff_id is None or s.id == staff_id)]
    orders = state.service_orders

    rows = []
    for member in office:
        confirmed = sum(
            1 for o in orders if o.confirmed_by_id == member.id and o.start is not None and start <= o.start <= end
        )
        cancelled = sum(
            1
            for o in orders
            if o.cancelled_by_id == member.id
            and any(h.action == LogAction.CANCELLED and start <= h.timestamp <= end for h in o.history)
        )
        rescheduled = sum(
            1
            for o in orders
            for h in o.history
            if h.action == LogAction.RESCHEDULED and h.user_id == member.id and start <= h.timestamp <= end
        )
        new_customers = 0
        for c in state.customers:
            if c.created_by_id != member.id or not c.service_history:
                continue
            first = find_by_id(orders, c.service_history[0])
            if first is not None and start <= first.created_at <= end:
                new_customers += 1
        not_scheduled = sum(
            1 for o in orders if o.attended_by_id == member.id and o.status == OrderStatus.NOT_SCHEDULED
        )
        rows.append(
            {
                "staff_id": member.id,
                "name": member.name,
                "confirmed": confirmed,
                "cancelled": cancelled,
                "rescheduled": rescheduled,
                "new_customers": new_customers,
                "confirmation_rate": _rate(confirmed, confirmed + not_scheduled),
            }
        )
    return rows


def technician_performance(
    state: AppState,
    date_from: date,
    date_to: date,
    staff_id: Optional[str] = None,
) -> list[dict]:
    start, end = _bounds(date_from, date_to)
    techs = [s for s in state.staff if s.role == StaffRole.TECHNICIAN and (staff_id is None or s.id == staff_id)]

    rows = []
    for tech in techs:
        calendar_ids = {c.id for c in state.calendars if c.user_id == tech.id}
        assigned = [
            o
            for o in state.service_orders
            if o.calendar_id in calendar_ids and (o.end or o.start) is not None and start <= (o.end or o.start) <= end
        ]
        completed = sum(1 for o in assigned if o.status == OrderStatus.COMPLETED)
        warranty = sum(1 for o in assigned if o.status == OrderStatus.WARRANTY)
        rows.append(
            {
                "staff_id": tech.id,
                "name": tech.name,
                "assigned": len(assigned),
                "completed": completed,
                "warranty": warranty,
                "completion_rate": _rate(completed, len(assigned)),
                "warranty_rate": _rate(warranty, completed),
            }
        )
    return rows

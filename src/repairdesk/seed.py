from __future__ import annotations

from .domain import AppState, Calendar, CompanyInfo, Staff, StaffRole
from .services.availability import DEFAULT_AVAILABILITY

ADMIN_ID = "s-admin"
ADMIN_CALENDAR_ID = "c-admin"


def initial_state(company_name: str = "RepairDesk") -> AppState:
    """Fresh install: one administrator with a calendar, selected as current user."""
    admin = Staff(
        id=ADMIN_ID,
        name="Administrador",
        email="admin@example.com",
        calendar_id=ADMIN_CALENDAR_ID,
        role=StaffRole.ADMIN,
    )
    calendar = Calendar(
        id=ADMIN_CALENDAR_ID,
        name="Agenda principal",
        user_id=ADMIN_ID,
        color="#039BE5",
        availability=DEFAULT_AVAILABILITY,
    )
    return AppState(
        staff=(admin,),
        calendars=(calendar,),
        public_form_availability=DEFAULT_AVAILABILITY,
        company_info=CompanyInfo(name=company_name),
        current_user_id=ADMIN_ID,
    )

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..domain import ActionLog, AppState, EquipmentStatus, LogAction, StaffRole, WorkshopEquipment
from ..store import get_by_id, new_id, replace_by_id, require_actor
from .errors import ValidationError

_EDITABLE = frozenset(
    {
        "customer_id",
        "equipment_type",
        "brand",
        "model",
        "serial_number",
        "reported_fault",
        "technician_id",
        "status",
    }
)


@dataclass
class EquipmentInput:
    customer_id: str
    equipment_type: str
    brand: str
    model: str
    reported_fault: str
    serial_number: str = ""
    technician_id: Optional[str] = None
    status: EquipmentStatus = EquipmentStatus.RECEIVED
    entry_date: Optional[datetime] = None


def _check_technician(state: AppState, technician_id: Optional[str]) -> None:
    if technician_id is None:
        return
    tech = get_by_id(state.staff, technician_id, "staff member")
    if tech.role != StaffRole.TECHNICIAN:
        raise ValidationError(f"{tech.name} is not a technician.")


def add_workshop_equipment(
    state: AppState,
    data: EquipmentInput,
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, WorkshopEquipment]:
    get_by_id(state.customers, data.customer_id, "customer")
    if not data.equipment_type.strip() or not data.reported_fault.strip():
        raise ValidationError("Equipment type and reported fault are required.")
    _check_technician(state, data.technician_id)
    actor = require_actor(state, actor_id)
    equipment = WorkshopEquipment(
        id=new_id("we"),
        entry_date=data.entry_date or now,
        customer_id=data.customer_id,
        equipment_type=data.equipment_type.strip(),
        brand=data.brand.strip(),
        model=data.model.strip(),
        serial_number=data.serial_number.strip(),
        reported_fault=data.reported_fault.strip(),
        technician_id=data.technician_id,
        status=EquipmentStatus(data.status),
        history=(ActionLog(LogAction.CREATED, now, actor, "Equipo registrado en taller."),),
    )
    return dataclasses.replace(state, workshop_equipment=state.workshop_equipment + (equipment,)), equipment


def update_workshop_equipment(
    state: AppState,
    equipment_id: str,
    changes: dict[str, Any],
    *,
    now: datetime,
    actor_id: Optional[str] = None,
) -> tuple[AppState, WorkshopEquipment]:
    """Edit equipment fields; only a status change is written to its history."""
    original = get_by_id(state.workshop_equipment, equipment_id, "workshop equipment")
    bad = set(changes) - _EDITABLE
    if bad:
        raise ValidationError(f"Fields cannot be edited: {sorted(bad)}")
    changes = dict(changes)
    if "status" in changes:
        changes["status"] = EquipmentStatus(changes["status"])
    if "customer_id" in changes:
        get_by_id(state.customers, changes["customer_id"], "customer")
    if "technician_id" in changes:
        _check_technician(state, changes["technician_id"])

    updated = dataclasses.replace(original, **changes)
    if updated.status != original.status:
        actor = require_actor(state, actor_id)
        entry = ActionLog(LogAction.STATUS_CHANGED, now, actor, f"Estado cambiado a: {updated.status.value}")
        updated = dataclasses.replace(updated, history=original.history + (entry,))
    equipment = replace_by_id(state.workshop_equipment, updated)
    return dataclasses.replace(state, workshop_equipment=equipment), updated

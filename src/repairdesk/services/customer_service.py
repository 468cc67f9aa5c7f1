from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..domain import AppState, Customer
from ..store import get_by_id, new_id, replace_by_id
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class CustomerInput:
    name: str
    phone: str
    email: str = ""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def _clean(data: CustomerInput) -> CustomerInput:
    if not data.name.strip():
        raise ValidationError("Customer name cannot be empty.")
    if not data.phone.strip():
        raise ValidationError("Customer phone cannot be empty.")
    return CustomerInput(
        name=data.name.strip(),
        phone=data.phone.strip(),
        email=(data.email or "").strip(),
        address=(data.address or "").strip(),
        latitude=data.latitude,
        longitude=data.longitude,
    )


def find_customer_by_phone(customers: Iterable[Customer], phone: str) -> Optional[Customer]:
    phone = phone.strip()
    for c in customers:
        if c.phone == phone:
            return c
    return None


def add_customer(
    state: AppState,
    data: CustomerInput,
    *,
    actor_id: Optional[str] = None,
) -> tuple[AppState, Customer]:
    data = _clean(data)
    if find_customer_by_phone(state.customers, data.phone) is not None:
        raise ValidationError(f"A customer with phone {data.phone} already exists.")
    customer = Customer(
        id=new_id("cust"),
        name=data.name,
        phone=data.phone,
        email=data.email,
        address=data.address,
        latitude=data.latitude,
        longitude=data.longitude,
        created_by_id=actor_id or state.current_user_id,
    )
    return dataclasses.replace(state, customers=state.customers + (customer,)), customer


def update_customer(state: AppState, customer_id: str, data: CustomerInput) -> tuple[AppState, Customer]:
    original = get_by_id(state.customers, customer_id, "customer")
    data = _clean(data)
    other = find_customer_by_phone(state.customers, data.phone)
    if other is not None and other.id != customer_id:
        raise ValidationError(f"Phone {data.phone} belongs to another customer.")
    updated = dataclasses.replace(
        original,
        name=data.name,
        phone=data.phone,
        email=data.email,
        address=data.address,
        latitude=data.latitude,
        longitude=data.longitude,
    )
    return dataclasses.replace(state, customers=replace_by_id(state.customers, updated)), updated


def resolve_customer(
    state: AppState,
    data: CustomerInput,
    *,
    created_by_id: Optional[str],
) -> tuple[AppState, Customer]:
    """Return the customer owning ``data.phone``, creating one if none does."""
    data = _clean(data)
    existing = find_customer_by_phone(state.customers, data.phone)
    if existing is not None:
        return state, existing
    customer = Customer(
        id=new_id("cust"),
        name=data.name,
        phone=data.phone,
        email=data.email,
        address=data.address,
        latitude=data.latitude,
        longitude=data.longitude,
        created_by_id=created_by_id,
    )
    logger.info("New customer %s from order intake", customer.id)
    return dataclasses.replace(state, customers=state.customers + (customer,)), customer


def append_service_history(state: AppState, customer_id: str, order_id: str) -> AppState:
    customer = get_by_id(state.customers, customer_id, "customer")
    updated = dataclasses.replace(customer, service_history=customer.service_history + (order_id,))
    return dataclasses.replace(state, customers=replace_by_id(state.customers, updated))


def load_customers(state: AppState, customers: Iterable[Customer]) -> AppState:
    customers = tuple(customers)
    if not all(c.id and c.name and c.phone for c in customers):
        raise ValidationError("Every customer needs an id, a name and a phone.")
    return dataclasses.replace(state, customers=customers)

from __future__ import annotations

import pytest

from repairdesk.domain import Customer
from repairdesk.importers import (
    ImportError,
    export_customers_json,
    parse_customers_json,
    read_customers_json,
    write_customers_json,
)
from repairdesk.services.customer_service import (
    CustomerInput,
    add_customer,
    find_customer_by_phone,
    load_customers,
    update_customer,
)
from repairdesk.services.errors import ValidationError


def test_duplicate_phone_rejected(state):
    state, _ = add_customer(state, CustomerInput("Maria", "18095551234"))
    with pytest.raises(ValidationError):
        add_customer(state, CustomerInput("Otra", " 18095551234 "))


def test_phone_lookup_strips_whitespace(state):
    state, customer = add_customer(state, CustomerInput("Maria", "18095551234"))
    assert find_customer_by_phone(state.customers, "  18095551234") == customer
    assert find_customer_by_phone(state.customers, "8095551234") is None


def test_update_cannot_steal_phone(state):
    state, first = add_customer(state, CustomerInput("Maria", "1"))
    state, second = add_customer(state, CustomerInput("Juan", "2"))
    with pytest.raises(ValidationError):
        update_customer(state, second.id, CustomerInput("Juan", "1"))
    state, updated = update_customer(state, first.id, CustomerInput("Maria P.", "1", address="Calle 2"))
    assert updated.address == "Calle 2"


def test_export_then_import_gives_same_customers():
    customers = (
        Customer(id="cust1", name="Maria", phone="1", latitude=18.47, longitude=-69.9, service_history=("so-1",)),
        Customer(id="cust2", name="Juan", phone="2", created_by_id="s-admin"),
    )
    assert parse_customers_json(export_customers_json(customers)) == customers


def test_import_rejects_whole_batch_on_bad_record():
    text = '[{"id": "c1", "name": "Maria", "phone": "1"}, {"id": "c2", "name": "", "phone": "2"}]'
    with pytest.raises(ImportError):
        parse_customers_json(text)


def test_import_requires_a_list():
    with pytest.raises(ImportError):
        parse_customers_json('{"id": "c1"}')
    with pytest.raises(ImportError):
        parse_customers_json("not json")


def test_file_round_trip(tmp_path):
    path = tmp_path / "customers.json"
    assert write_customers_json(path, [Customer(id="c1", name="Maria", phone="1")]) == 1
    assert read_customers_json(path)[0].name == "Maria"
    with pytest.raises(ImportError):
        read_customers_json(tmp_path / "missing.json")


def test_load_replaces_collection(state):
    state, _ = add_customer(state, CustomerInput("Maria", "1"))
    state = load_customers(state, [Customer(id="c9", name="Juan", phone="9")])
    assert [c.id for c in state.customers] == ["c9"]


def test_import_rejects_non_numeric_coordinates():
    text = '[{"id": "c1", "name": "Maria", "phone": "1", "latitude": "abc"}]'
    with pytest.raises(ImportError, match="latitude"):
        parse_customers_json(text)


def test_import_rejects_wrong_scalar_types():
    with pytest.raises(ImportError):
        parse_customers_json('[{"id": "c1", "name": "Maria", "phone": 18095551234}]')

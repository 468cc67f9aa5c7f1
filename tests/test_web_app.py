from __future__ import annotations

import json
from datetime import datetime

import pytest

import web_app
from repairdesk.bootstrap import build_services
from repairdesk.config import parse_config


@pytest.fixture
def services(state):
    return build_services(parse_config({}), state=state)


@pytest.fixture
def client(services):
    app = web_app.configure(services)
    app.config["TESTING"] = True
    return app.test_client()


def _new_public_order(client, phone="18095551234"):
    resp = client.post(
        "/orders/public",
        json={
            "customer_name": "Maria",
            "customer_phone": phone,
            "customer_address": "Calle 1",
            "appliance_type": "Estufa",
            "issue_description": "No prende",
        },
    )
    assert resp.status_code == 201
    return resp.get_json()["order"]


def _confirm(client, order_id, start="2024-03-04T09:00:00", end="2024-03-04T10:00:00"):
    return client.post(f"/orders/{order_id}/confirm", json={"start": start, "end": end, "calendar_id": "c2"})


def test_slots_for_monday(client):
    resp = client.get("/calendars/c2/slots?date=2024-03-04")
    slots = resp.get_json()
    assert resp.status_code == 200
    assert [s["start_time"] for s in slots] == ["09:00", "11:00", "13:00", "15:00", "17:00"]
    assert not any(s["occupied"] for s in slots)


def test_public_order_then_confirm(client):
    order = _new_public_order(client)
    assert order["status"] == "Por Confirmar"

    resp = _confirm(client, order["id"])
    assert resp.status_code == 200
    assert resp.get_json()["order"]["status"] == "Pendiente"

    slots = client.get("/calendars/c2/slots?date=2024-03-04").get_json()
    assert slots[0]["occupied"]


def test_double_booking_is_a_400(client):
    _confirm(client, _new_public_order(client)["id"])
    resp = _confirm(client, _new_public_order(client, phone="18090000000")["id"])
    assert resp.status_code == 400
    assert "already booked" in resp.get_json()["error"]


def test_unknown_order_is_a_404(client):
    resp = client.post("/orders/so-missing/cancel", json={"reason": "x"})
    assert resp.status_code == 404


def test_patch_rejects_status(client):
    order = _new_public_order(client)
    resp = client.patch(f"/orders/{order['id']}", json={"status": "Completado"})
    assert resp.status_code == 400


def test_status_endpoint(client):
    order = _new_public_order(client)
    _confirm(client, order["id"])
    resp = client.post(f"/orders/{order['id']}/status", json={"status": "En Proceso"})
    assert resp.get_json()["order"]["status"] == "En Proceso"
    assert client.post(f"/orders/{order['id']}/status", json={"status": "Otro"}).status_code == 400


def test_invoice_and_payment(client):
    _new_public_order(client)
    customer_id = json.loads(client.get("/customers/export").get_data(as_text=True))[0]["id"]

    resp = client.post(
        "/invoices",
        json={"customer_id": customer_id, "items": [{"description": "Reparación", "sell_price": 1000}], "discount": 200},
    )
    invoice = resp.get_json()
    assert resp.status_code == 201
    assert invoice["total"] == "944.00"

    paid = client.post(f"/invoices/{invoice['id']}/payments", json={"method": "Efectivo", "amount": 944}).get_json()
    assert paid["status"] == "Pagada"


def test_customer_import_export(client, services):
    payload = '[{"id": "c1", "name": "Maria", "phone": "1"}]'
    resp = client.post("/customers/import", data=payload, content_type="application/json")
    assert resp.get_json() == {"imported": 1}
    assert [c.id for c in services.store.state.customers] == ["c1"]

    bad = client.post("/customers/import", data='[{"id": "c2"}]', content_type="application/json")
    assert bad.status_code == 400
    assert [c.id for c in services.store.state.customers] == ["c1"]


def test_last_admin_cannot_be_deleted(client):
    assert client.delete("/staff/s-admin").status_code == 400
    assert client.delete("/staff/s-tech").status_code == 200


def test_sweep_and_reports(client):
    assert client.post("/maintenance/sweep").get_json() == {"created": []}
    rows = client.get("/reports/secretaries?from=2024-03-01&to=2024-03-31").get_json()
    assert {r["staff_id"] for r in rows} == {"s-admin", "s-sec"}
    techs = client.get("/reports/technicians?from=2024-03-01&to=2024-03-31").get_json()
    assert [r["staff_id"] for r in techs] == ["s-tech"]


def test_utc_times_are_stored_as_business_local_time(client, services):
    _confirm(client, _new_public_order(client)["id"])
    # 13:00 UTC is 09:00 in Santo Domingo
    second = _new_public_order(client, phone="18090000000")
    resp = _confirm(client, second["id"], "2024-03-04T13:00:00Z", "2024-03-04T14:00:00Z")
    assert resp.status_code == 400
    assert "already booked" in resp.get_json()["error"]

    other = _new_public_order(client, phone="18091111111")
    resp = _confirm(client, other["id"], "2024-03-04T15:00:00+00:00", "2024-03-04T16:00:00+00:00")
    assert resp.status_code == 200
    stored = next(o for o in services.store.state.service_orders if o.id == other["id"])
    assert stored.start == datetime(2024, 3, 4, 11, 0)
    assert stored.start.tzinfo is None
    assert client.get("/reports/secretaries?from=2024-03-01&to=2024-03-31").status_code == 200


def test_patch_cannot_move_order_to_another_customer(client):
    first = _new_public_order(client)
    second = _new_public_order(client, phone="18090000000")
    resp = client.patch(f"/orders/{first['id']}", json={"customer_id": second["customer_id"]})
    assert resp.status_code == 400
    assert client.patch(f"/orders/{first['id']}", json={"calendar_id": "nope"}).status_code == 404


def test_public_order_coordinates(client):
    body = {
        "customer_name": "Maria",
        "customer_phone": "18095551234",
        "customer_address": "Calle 1",
        "appliance_type": "Estufa",
        "issue_description": "No prende",
    }
    assert client.post("/orders/public", json={**body, "latitude": "abc"}).status_code == 400
    assert client.post("/orders/public", json={**body, "longitude": True}).status_code == 400
    resp = client.post("/orders/public", json={**body, "latitude": "18.47", "longitude": -69.9})
    assert resp.status_code == 201
    assert resp.get_json()["order"]["latitude"] == 18.47


def test_invoice_priced_from_product_catalog(client):
    _new_public_order(client)
    customer_id = json.loads(client.get("/customers/export").get_data(as_text=True))[0]["id"]
    product = client.post(
        "/products",
        json={"name": "Termostato", "purchase_price": 200, "sell_price_1": 500, "sell_price_2": 450, "stock": 3},
    ).get_json()
    assert [p["id"] for p in client.get("/products").get_json()] == [product["id"]]

    resp = client.post(
        "/invoices",
        json={"customer_id": customer_id, "items": [{"product_id": product["id"], "quantity": 2}]},
    )
    invoice = resp.get_json()
    assert resp.status_code == 201
    assert invoice["total"] == "1180.00"
    assert invoice["items"][0]["type"] == "Inventario"

    ghost = client.post("/invoices", json={"customer_id": customer_id, "items": [{"product_id": "ghost"}]})
    assert ghost.status_code == 404
